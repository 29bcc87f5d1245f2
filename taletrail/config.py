"""
Single place for engine and deployment configuration.
Values can be overridden through environment variables; defaults match production.
"""

import os
import string


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# Hours a code stays playable after its first redemption. Never-redeemed codes do not expire.
PLAY_WINDOW_HOURS = _int_env("PLAY_WINDOW_HOURS", 12)

# Access codes: uppercase letters + digits, fixed length
ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_CODE_LENGTH = 8
CODE_GENERATION_ATTEMPTS = _int_env("CODE_GENERATION_ATTEMPTS", 20)
MAX_CODES_PER_REQUEST = 100

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
