"""
Engine events for client hooks and the usage log.
Events describe what happened while processing a redemption or a submission.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


# ===== Event Type Constants =====

# Code lifecycle events (these are the CodeUsageLog actions)
CODE_ACTIVATED = "activated"
CODE_EXPIRED = "expired"
SESSION_COMPLETED = "completed"

USAGE_LOG_ACTIONS = (CODE_ACTIVATED, CODE_EXPIRED, SESSION_COMPLETED)

# Play events
WRONG_ANSWER = "wrong_answer"
CLUE_REVEALED = "clue_revealed"
CLUES_EXHAUSTED = "clues_exhausted"
PUZZLE_COMPLETED = "puzzle_completed"
SPLASH_VIEWED = "splash_viewed"
SESSION_RESET = "session_reset"


# ===== Event Factory Functions =====

def code_activated(access_code_id: str, game_id: str, expires_at: str) -> GameEvent:
    return GameEvent(CODE_ACTIVATED, {
        "access_code_id": access_code_id,
        "game_id": game_id,
        "expires_at": expires_at,
    })


def code_expired(access_code_id: str, game_id: str, expired_at: str) -> GameEvent:
    return GameEvent(CODE_EXPIRED, {
        "access_code_id": access_code_id,
        "game_id": game_id,
        "expired_at": expired_at,
    })


def session_completed(session_id: str, access_code_id: str, game_id: str, puzzle_count: int) -> GameEvent:
    return GameEvent(SESSION_COMPLETED, {
        "session_id": session_id,
        "access_code_id": access_code_id,
        "game_id": game_id,
        "puzzle_count": puzzle_count,
    })


def wrong_answer(session_id: str, puzzle_id: str, answer: str) -> GameEvent:
    return GameEvent(WRONG_ANSWER, {
        "session_id": session_id,
        "puzzle_id": puzzle_id,
        "answer": answer,
    })


def clue_revealed(session_id: str, puzzle_id: str, clue_index: int, clue: str) -> GameEvent:
    return GameEvent(CLUE_REVEALED, {
        "session_id": session_id,
        "puzzle_id": puzzle_id,
        "clue_index": clue_index,
        "clue": clue,
    })


def clues_exhausted(session_id: str, puzzle_id: str, clue_count: int) -> GameEvent:
    return GameEvent(CLUES_EXHAUSTED, {
        "session_id": session_id,
        "puzzle_id": puzzle_id,
        "clue_count": clue_count,
    })


def puzzle_completed(session_id: str, puzzle_id: str, next_puzzle_id: str | None) -> GameEvent:
    return GameEvent(PUZZLE_COMPLETED, {
        "session_id": session_id,
        "puzzle_id": puzzle_id,
        "next_puzzle_id": next_puzzle_id,
    })


def splash_viewed(session_id: str, splash_screen_id: str) -> GameEvent:
    return GameEvent(SPLASH_VIEWED, {
        "session_id": session_id,
        "splash_screen_id": splash_screen_id,
    })


def session_reset(session_id: str, first_puzzle_id: str | None) -> GameEvent:
    return GameEvent(SESSION_RESET, {
        "session_id": session_id,
        "current_puzzle_id": first_puzzle_id,
    })
