#!/usr/bin/env python3
"""
Generate access codes for a game and print them, one per line.
Usage: python scripts/generate_codes.py <game_id> [quantity] [--test]
"""
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from taletrail.api import store
from taletrail.api.database import SessionLocal, init_db
from taletrail.engine.errors import EngineError


def main() -> None:
    args = [a for a in sys.argv[1:] if a != "--test"]
    is_test = "--test" in sys.argv[1:]
    if not args:
        print("Usage: python scripts/generate_codes.py <game_id> [quantity] [--test]", file=sys.stderr)
        sys.exit(1)
    game_id = args[0]
    try:
        quantity = int(args[1]) if len(args) > 1 else 1
    except ValueError:
        print("Error: quantity must be a number.", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        codes = store.generate_access_codes(db, game_id, quantity, is_test=is_test)
    except EngineError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2)
    finally:
        db.close()
    for code in codes:
        print(code.code)


if __name__ == "__main__":
    main()
