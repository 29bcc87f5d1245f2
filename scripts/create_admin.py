#!/usr/bin/env python3
"""
Create an administrator, or reset the password of an existing one.
Usage: python scripts/create_admin.py <email> <password> [role]
Roles: super_admin, admin, editor, viewer (default: admin).
"""
import sys
import os
import uuid

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from taletrail.api.auth import hash_password
from taletrail.api.database import SessionLocal, init_db
from taletrail.api.models import AdminUser

ROLES = ("super_admin", "admin", "editor", "viewer")


def main() -> None:
    if len(sys.argv) < 3:
        print("Usage: python scripts/create_admin.py <email> <password> [role]", file=sys.stderr)
        sys.exit(1)
    email = sys.argv[1].strip().lower()
    password = sys.argv[2]
    role = sys.argv[3] if len(sys.argv) > 3 else "admin"
    if not email or not password:
        print("Error: provide an email and a password.", file=sys.stderr)
        sys.exit(1)
    if role not in ROLES:
        print(f"Error: role must be one of {', '.join(ROLES)}.", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        admin = db.query(AdminUser).filter(AdminUser.email == email).first()
        if admin:
            admin.password_hash = hash_password(password)
            admin.role = role
            admin.is_active = True
            action = "Updated"
        else:
            admin = AdminUser(id=str(uuid.uuid4()), email=email, password_hash=hash_password(password), role=role)
            db.add(admin)
            action = "Created"
        db.commit()
        print(f"{action} {role} {email!r} (id={admin.id}).")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
