"""
Access code lifecycle: unused -> active -> expired | deactivated, with the play window measured
from the first redemption.
"""

from datetime import timedelta

import pytest

from taletrail.engine import PLAY_WINDOW
from taletrail.engine.access import (
    activate,
    check_redeemable,
    deactivate,
    expiry_event,
    generate_code,
    generate_unique_code,
    normalize_code,
    time_remaining,
)
from taletrail.engine.errors import CodeDeactivated, CodeExpired, CodeGenerationError, CodeNotFound
from taletrail.engine.events import CODE_ACTIVATED, CODE_EXPIRED
from taletrail.engine.state import CODE_ACTIVE, CODE_DEACTIVATED, CODE_EXPIRED as STATUS_EXPIRED, CODE_UNUSED

from conftest import T0


def test_play_window_is_twelve_hours():
    assert PLAY_WINDOW == timedelta(hours=12)


def test_unused_code_never_expires(unused_code):
    assert unused_code.status(T0 + timedelta(days=365)) == CODE_UNUSED
    assert check_redeemable(unused_code, T0 + timedelta(days=365)) == CODE_UNUSED


def test_activation_stamps_window(unused_code):
    code, events = activate(unused_code, T0)
    assert code.activated_at == T0
    assert code.expires_at == T0 + timedelta(hours=12)
    assert [e.type for e in events] == [CODE_ACTIVATED]
    assert events[0].payload["expires_at"] == code.expires_at.isoformat()
    # The input is not mutated
    assert unused_code.activated_at is None


def test_activation_happens_once(unused_code):
    code, _ = activate(unused_code, T0)
    again, events = activate(code, T0 + timedelta(hours=3))
    assert again is code
    assert events == []
    assert again.expires_at == T0 + timedelta(hours=12)


def test_window_boundaries(unused_code):
    code, _ = activate(unused_code, T0)
    assert check_redeemable(code, T0 + timedelta(hours=11, minutes=59)) == CODE_ACTIVE
    with pytest.raises(CodeExpired):
        check_redeemable(code, T0 + timedelta(hours=12))
    with pytest.raises(CodeExpired):
        check_redeemable(code, T0 + timedelta(hours=12, minutes=1))
    assert code.status(T0 + timedelta(hours=12, minutes=1)) == STATUS_EXPIRED


def test_expires_at_is_not_recomputed(unused_code):
    code, _ = activate(unused_code, T0)
    # A stored deadline wins even if it disagrees with activated_at + window
    shortened = code.__class__(**{**code.__dict__, "expires_at": T0 + timedelta(hours=1)})
    assert shortened.status(T0 + timedelta(hours=2)) == STATUS_EXPIRED


def test_unknown_code():
    with pytest.raises(CodeNotFound) as exc:
        check_redeemable(None, T0)
    assert exc.value.kind == "not_found"


def test_deactivation_is_terminal(unused_code):
    code, _ = activate(unused_code, T0)
    code = deactivate(code)
    assert code.status(T0 + timedelta(hours=1)) == CODE_DEACTIVATED
    with pytest.raises(CodeDeactivated):
        check_redeemable(code, T0 + timedelta(hours=1))
    # Deactivation wins over expiry too
    with pytest.raises(CodeDeactivated):
        check_redeemable(code, T0 + timedelta(days=2))
    assert deactivate(unused_code).status(T0) == CODE_DEACTIVATED


def test_test_codes_never_expire(unused_code):
    code, _ = activate(unused_code.__class__(**{**unused_code.__dict__, "is_test": True}), T0)
    assert check_redeemable(code, T0 + timedelta(days=30)) == CODE_ACTIVE
    assert time_remaining(code, T0) is None


def test_time_remaining(unused_code):
    assert time_remaining(unused_code, T0) is None
    code, _ = activate(unused_code, T0)
    assert time_remaining(code, T0 + timedelta(hours=11)) == 3600
    assert time_remaining(code, T0 + timedelta(hours=13)) == 0


def test_expiry_event(unused_code):
    code, _ = activate(unused_code, T0)
    event = expiry_event(code)
    assert event.type == CODE_EXPIRED
    assert event.payload == {
        "access_code_id": "code-1",
        "game_id": code.game_id,
        "expired_at": (T0 + timedelta(hours=12)).isoformat(),
    }


def test_status_in_dict(unused_code):
    assert unused_code.to_dict(T0)["status"] == CODE_UNUSED
    assert "status" not in unused_code.to_dict()


# ===== code strings =====

def test_normalize_code():
    assert normalize_code("  abcd1234 ") == "ABCD1234"
    assert normalize_code(None) == ""


def test_generated_codes_use_alphabet():
    code = generate_code()
    assert len(code) == 8
    assert all(c.isupper() or c.isdigit() for c in code)


def test_generate_unique_code_retries_on_collision():
    seen = []

    def exists(code):
        seen.append(code)
        return len(seen) < 3

    code = generate_unique_code(exists)
    assert code == seen[-1]
    assert len(seen) == 3


def test_generate_unique_code_gives_up():
    with pytest.raises(CodeGenerationError):
        generate_unique_code(lambda code: True, attempts=5)
