"""
Access code lifecycle rules.

States (derived from the stored fields, see AccessCodeState.status):
    unused      is_active, activated_at is null
    active      is_active, activated_at set, now < expires_at
    expired     now >= expires_at (terminal)
    deactivated is_active false (terminal, administrators only)

The unused -> active transition happens once, on the first successful redemption.
The play window is measured from that redemption, never from code creation.
This module decides; taletrail.api.store performs the guarded writes.
"""

import secrets
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from taletrail.config import ACCESS_CODE_ALPHABET, ACCESS_CODE_LENGTH, CODE_GENERATION_ATTEMPTS
from taletrail.engine import PLAY_WINDOW
from taletrail.engine.errors import (
    CodeDeactivated,
    CodeExpired,
    CodeGenerationError,
    CodeNotFound,
)
from taletrail.engine.events import GameEvent, code_activated, code_expired
from taletrail.engine.state import (
    CODE_DEACTIVATED,
    CODE_EXPIRED,
    AccessCodeState,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_code(raw: str | None) -> str:
    """Codes are matched trimmed and upper-cased."""
    return (raw or "").strip().upper()


def generate_code(length: int = ACCESS_CODE_LENGTH, alphabet: str = ACCESS_CODE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_unique_code(
    exists: Callable[[str], bool],
    taken: set[str] | None = None,
    attempts: int = CODE_GENERATION_ATTEMPTS,
) -> str:
    """
    Generate a code that `exists` reports as unused and that is not in `taken`
    (codes already handed out in the same batch). Retries on collision.
    """
    taken = taken or set()
    for _ in range(attempts):
        code = generate_code()
        if code in taken:
            continue
        if not exists(code):
            return code
    raise CodeGenerationError()


def check_redeemable(code: AccessCodeState | None, now: datetime) -> str:
    """
    Gate a redemption attempt. Returns CODE_UNUSED (activation needed) or CODE_ACTIVE (resume).
    Raises CodeNotFound, CodeDeactivated or CodeExpired.
    """
    if code is None:
        raise CodeNotFound()
    status = code.status(now)
    if status == CODE_DEACTIVATED:
        raise CodeDeactivated()
    if status == CODE_EXPIRED:
        raise CodeExpired()
    return status


def activate(code: AccessCodeState, now: datetime) -> tuple[AccessCodeState, list[GameEvent]]:
    """
    First redemption: stamp activated_at and expires_at = now + play window.
    Already-activated codes are returned unchanged with no events.
    """
    if code.activated_at is not None:
        return code, []
    expires_at = now + PLAY_WINDOW
    new_code = replace(code, activated_at=now, expires_at=expires_at)
    return new_code, [code_activated(code.id, code.game_id, expires_at.isoformat())]


def expiry_event(code: AccessCodeState) -> GameEvent:
    """Event for the once-only expired usage log entry. Only meaningful for activated codes."""
    return code_expired(code.id, code.game_id, code.deadline().isoformat())


def deactivate(code: AccessCodeState) -> AccessCodeState:
    """Terminal. Applies whatever the current state is."""
    return replace(code, is_active=False)


def time_remaining(code: AccessCodeState, now: datetime) -> float | None:
    """Seconds left in the play window; None for unused or test codes."""
    if code.activated_at is None or code.is_test:
        return None
    return max(0.0, (code.deadline() - now).total_seconds())
