"""
Answer evaluation and progressive clues.

Free-text puzzles compare the trimmed answer case-insensitively. Fixed-choice puzzles require the
submission to be one of answer_options exactly; correctness is equality with the answer, so the
option list may hold decoys.

A wrong answer unlocks the next clue (first wrong answer -> clues[0]). Once every clue is shown,
further wrong answers report clues_exhausted and change nothing.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from taletrail.engine.definitions import Puzzle
from taletrail.engine.errors import ValidationError
from taletrail.engine.events import (
    GameEvent,
    clue_revealed,
    clues_exhausted,
    wrong_answer,
)
from taletrail.engine.progression import record_completion
from taletrail.engine.state import SessionState
from taletrail.engine.timeline import Timeline

MAX_ANSWER_LENGTH = 500


@dataclass
class SubmitResult:
    correct: bool
    next_clue: str | None = None
    clue_index: int | None = None
    clues_exhausted: bool = False
    clues_remaining: int = 0
    already_completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct": self.correct,
            "next_clue": self.next_clue,
            "clue_index": self.clue_index,
            "clues_exhausted": self.clues_exhausted,
            "clues_remaining": self.clues_remaining,
            "already_completed": self.already_completed,
        }


def normalize_answer(raw: Any) -> str:
    """Trimmed answer text. Non-strings and blank answers are malformed."""
    if not isinstance(raw, str):
        raise ValidationError("Answer must be text")
    answer = raw.strip()
    if not answer:
        raise ValidationError("Please enter an answer")
    if len(answer) > MAX_ANSWER_LENGTH:
        raise ValidationError(f"Answer must be at most {MAX_ANSWER_LENGTH} characters")
    return answer


def check_answer(puzzle: Puzzle, raw: Any) -> bool:
    answer = normalize_answer(raw)
    if puzzle.is_choice:
        if answer not in puzzle.answer_options:
            raise ValidationError("Please choose one of the listed options")
        return answer == puzzle.answer
    return answer.casefold() == puzzle.answer.strip().casefold()


def clue_for_count(puzzle: Puzzle, revealed: int) -> str | None:
    """The clue unlocked when the reveal counter reaches `revealed` (1-based count -> 0-based index)."""
    if revealed < 1 or revealed > puzzle.clue_count:
        return None
    return puzzle.clues[revealed - 1]


def wrong_answer_result(puzzle: Puzzle, revealed_before: int, revealed_after: int) -> SubmitResult:
    """Result for a wrong answer given the counter before and after the (bounded) increment."""
    if revealed_after > revealed_before:
        return SubmitResult(
            correct=False,
            next_clue=clue_for_count(puzzle, revealed_after),
            clue_index=revealed_after - 1,
            clues_exhausted=False,
            clues_remaining=puzzle.clue_count - revealed_after,
        )
    return SubmitResult(correct=False, clues_exhausted=True, clues_remaining=0)


def wrong_answer_events(session_id: str, puzzle: Puzzle, answer: str, result: SubmitResult) -> list[GameEvent]:
    events = [wrong_answer(session_id, puzzle.id, answer)]
    if result.next_clue is not None:
        events.append(clue_revealed(session_id, puzzle.id, result.clue_index, result.next_clue))
    else:
        events.append(clues_exhausted(session_id, puzzle.id, puzzle.clue_count))
    return events


def validate_submission(state: SessionState, puzzle: Puzzle, timeline: Timeline) -> None:
    """Reject submissions that must not touch the session. Raises ValidationError."""
    if puzzle.game_id != state.game_id or timeline.get_puzzle(puzzle.id) is None:
        raise ValidationError(f"Puzzle {puzzle.id} is not part of this game")
    if state.is_completed(puzzle.id):
        return
    if state.is_finished:
        raise ValidationError("This game is already finished")
    if state.current_puzzle_id != puzzle.id:
        raise ValidationError("That puzzle is not the current puzzle")


def submit(
    state: SessionState,
    puzzle: Puzzle,
    raw_answer: Any,
    timeline: Timeline,
    now: datetime,
) -> tuple[SessionState, SubmitResult, list[GameEvent]]:
    """
    Evaluate one submission against the session.

    Returns (new_state, result, events). Validation happens before anything changes, so a
    rejected submission leaves the session untouched.
    """
    validate_submission(state, puzzle, timeline)
    correct = check_answer(puzzle, raw_answer)

    if state.is_completed(puzzle.id):
        # Completed puzzles are frozen: no completion record, no clue change
        new_state = state.copy()
        new_state.last_activity = now
        revealed = new_state.clue_reveals.get(puzzle.id)
        return new_state, SubmitResult(
            correct=correct,
            clues_exhausted=not correct and revealed >= puzzle.clue_count,
            clues_remaining=max(0, puzzle.clue_count - revealed),
            already_completed=True,
        ), []

    if correct:
        new_state, events = record_completion(state, puzzle.id, timeline, now)
        revealed = new_state.clue_reveals.get(puzzle.id)
        return new_state, SubmitResult(
            correct=True,
            clues_remaining=max(0, puzzle.clue_count - revealed),
        ), events

    new_state = state.copy()
    new_state.last_activity = now
    before = new_state.clue_reveals.get(puzzle.id)
    new_state.clue_reveals.increment(puzzle.id, puzzle.clue_count)
    after = new_state.clue_reveals.get(puzzle.id)
    result = wrong_answer_result(puzzle, before, after)

    return new_state, result, wrong_answer_events(state.id, puzzle, raw_answer.strip(), result)
