"""
Session tracking: where a player is in the Timeline.

in_progress    current_puzzle_id points at a puzzle not yet completed
awaiting_next  the current puzzle was just completed; the position is about to advance
finished       no uncompleted puzzle remains ahead of the position (current_puzzle_id is None)

Splash screens are presentation-only: the position always rests on a puzzle (or on the end),
and the splash screens in front of it are reported as pending until the player acknowledges them.
"""

import re
from datetime import datetime

from taletrail.engine.definitions import Puzzle, SplashScreen
from taletrail.engine.errors import ValidationError
from taletrail.engine.events import (
    GameEvent,
    puzzle_completed,
    session_completed,
    session_reset,
    splash_viewed,
)
from taletrail.engine.state import (
    SESSION_AWAITING_NEXT,
    SESSION_FINISHED,
    SESSION_IN_PROGRESS,
    AccessCodeState,
    ClueCounters,
    SessionState,
)
from taletrail.engine.timeline import Timeline

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def start_session(session_id: str, code: AccessCodeState, timeline: Timeline, now: datetime) -> SessionState:
    """Fresh session positioned at the first puzzle of the Timeline."""
    state = SessionState(
        id=session_id,
        access_code_id=code.id,
        game_id=code.game_id,
        last_activity=now,
    )
    return advance_to_next_puzzle(state, timeline)


def _scan_start(state: SessionState, timeline: Timeline) -> int:
    index = timeline.index_of_puzzle(state.current_puzzle_id)
    if index is None:
        # No position yet, or the current puzzle was removed from the game
        return 0
    return index


def advance_to_next_puzzle(state: SessionState, timeline: Timeline) -> SessionState:
    """
    Scan forward from the current position, skipping splash screens, and stop at the first
    puzzle not in completed_puzzles. With none left the session is finished.
    """
    new_state = state.copy()
    if new_state.is_finished and new_state.current_puzzle_id is None:
        return new_state

    for entry in timeline.entries[_scan_start(new_state, timeline):]:
        if entry.is_puzzle and not new_state.is_completed(entry.id):
            new_state.current_puzzle_id = entry.id
            new_state.status = SESSION_IN_PROGRESS
            return new_state

    new_state.current_puzzle_id = None
    new_state.status = SESSION_FINISHED
    return new_state


def record_completion(
    state: SessionState,
    puzzle_id: str,
    timeline: Timeline,
    now: datetime,
) -> tuple[SessionState, list[GameEvent]]:
    """
    Add puzzle_id to completed_puzzles (set semantics), touch last_activity and advance.
    Completing an already completed puzzle is a successful no-op.
    """
    if timeline.get_puzzle(puzzle_id) is None:
        raise ValidationError(f"Puzzle {puzzle_id} is not part of this game")

    new_state = state.copy()
    new_state.last_activity = now
    if new_state.is_completed(puzzle_id):
        return new_state, []

    was_finished = new_state.is_finished
    new_state.completed_puzzles.add(puzzle_id)
    new_state.status = SESSION_AWAITING_NEXT
    new_state = advance_to_next_puzzle(new_state, timeline)

    events = [puzzle_completed(new_state.id, puzzle_id, new_state.current_puzzle_id)]
    if new_state.is_finished and not was_finished:
        if new_state.completed_at is None:
            new_state.completed_at = now
        events.append(session_completed(
            new_state.id, new_state.access_code_id, new_state.game_id, len(timeline.puzzle_ids),
        ))
    return new_state, events


def mark_splash_viewed(
    state: SessionState,
    splash_id: str,
    timeline: Timeline,
    now: datetime,
) -> tuple[SessionState, list[GameEvent]]:
    """Acknowledge a splash screen so it is no longer pending. Idempotent."""
    if timeline.get_splash(splash_id) is None:
        raise ValidationError(f"Splash screen {splash_id} is not part of this game")
    new_state = state.copy()
    new_state.last_activity = now
    if splash_id in new_state.viewed_splashes:
        return new_state, []
    new_state.viewed_splashes.add(splash_id)
    return new_state, [splash_viewed(new_state.id, splash_id)]


def pending_splashes(state: SessionState, timeline: Timeline) -> list[SplashScreen]:
    """
    Unviewed splash screens in front of the current position: those between the previous puzzle
    and the current one, or every screen after the last puzzle once the session is finished.
    """
    entries = timeline.entries
    if state.is_finished or state.current_puzzle_id is None:
        last_puzzle = max((i for i, e in enumerate(entries) if e.is_puzzle), default=-1)
        window = entries[last_puzzle + 1:]
    else:
        index = timeline.index_of_puzzle(state.current_puzzle_id)
        if index is None:
            return []
        start = index
        while start > 0 and not entries[start - 1].is_puzzle:
            start -= 1
        window = entries[start:index]
    return [e.item for e in window if not e.is_puzzle and e.id not in state.viewed_splashes]


def revealed_clues(state: SessionState, puzzle: Puzzle) -> list[str]:
    count = min(state.clue_reveals.get(puzzle.id), puzzle.clue_count)
    return list(puzzle.clues[:count])


def describe_position(state: SessionState, timeline: Timeline) -> dict:
    """What the player client renders: pending splash screens, current puzzle, clues so far, progress."""
    puzzle = timeline.get_puzzle(state.current_puzzle_id) if state.current_puzzle_id else None
    puzzle_ids = timeline.puzzle_ids
    completed = [p for p in puzzle_ids if p in state.completed_puzzles]
    clues = revealed_clues(state, puzzle) if puzzle else []
    out = {
        "status": state.status,
        "current_puzzle": puzzle.to_dict() if puzzle else None,
        "revealed_clues": clues,
        "clues_remaining": (puzzle.clue_count - len(clues)) if puzzle else 0,
        "pending_splash_screens": [s.to_dict() for s in pending_splashes(state, timeline)],
        "progress": {
            "completed": len(completed),
            "total": len(puzzle_ids),
            "position": (puzzle_ids.index(puzzle.id) + 1) if puzzle else len(puzzle_ids),
        },
    }
    return out


def reset_session(state: SessionState, timeline: Timeline, now: datetime) -> tuple[SessionState, list[GameEvent]]:
    """Back to the first puzzle with no completions, clues or viewed screens (test codes only)."""
    new_state = state.copy()
    new_state.completed_puzzles = set()
    new_state.clue_reveals = ClueCounters()
    new_state.viewed_splashes = set()
    new_state.current_puzzle_id = None
    new_state.status = SESSION_IN_PROGRESS
    new_state.completed_at = None
    new_state.last_activity = now
    new_state = advance_to_next_puzzle(new_state, timeline)
    return new_state, [session_reset(new_state.id, new_state.current_puzzle_id)]


def set_player_email(state: SessionState, email: str | None) -> SessionState:
    email = (email or "").strip()
    if not EMAIL_PATTERN.match(email) or len(email) > 255:
        raise ValidationError("Please enter a valid email address")
    new_state = state.copy()
    new_state.player_email = email
    return new_state
