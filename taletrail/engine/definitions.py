"""
Authored content records consumed by the engine: games, puzzles, splash screens.
The engine never mutates puzzle or splash screen content; only a splash screen's anchor and
the ranks used for ordering are repositioned through the ordering operations in timeline.py.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from taletrail.engine.errors import ValidationError

DATA_DIR = Path(__file__).parent.parent / "data"
SAMPLE_GAME_FILE = DATA_DIR / "sample_game.json"

ANSWER_TYPE_TEXT = "text"
ANSWER_TYPE_CHOICE = "choice"
ANSWER_TYPES = (ANSWER_TYPE_TEXT, ANSWER_TYPE_CHOICE)

# Older records call fixed-choice puzzles "dropdown"
_LEGACY_ANSWER_TYPES = {"dropdown": ANSWER_TYPE_CHOICE}

ANCHOR_START = "start"
ANCHOR_PUZZLE = "puzzle"
ANCHOR_END = "end"


# ===== Anchor (where a splash screen sits in the timeline) =====

@dataclass(frozen=True)
class Start:
    """Shown before the first puzzle."""
    kind = ANCHOR_START

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "puzzle_id": None}


@dataclass(frozen=True)
class BeforePuzzle:
    """Shown immediately before the given puzzle."""
    puzzle_id: str
    kind = ANCHOR_PUZZLE

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "puzzle_id": self.puzzle_id}


@dataclass(frozen=True)
class End:
    """Shown after the last puzzle."""
    kind = ANCHOR_END

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "puzzle_id": None}


Anchor = Union[Start, BeforePuzzle, End]


def anchor_from_parts(kind: str | None, puzzle_id: str | None = None) -> Anchor:
    """
    Build an Anchor from its persisted columns (anchor_kind, anchor_puzzle_id).
    Raises ValidationError for unknown kinds or a puzzle anchor without a puzzle id.
    """
    kind = (kind or ANCHOR_START).strip().lower()
    if kind == ANCHOR_START:
        return Start()
    if kind == ANCHOR_END:
        return End()
    if kind == ANCHOR_PUZZLE:
        if not puzzle_id:
            raise ValidationError("A puzzle anchor needs a puzzle_id")
        return BeforePuzzle(str(puzzle_id))
    raise ValidationError(f"Unknown anchor kind '{kind}'. Use start, puzzle or end.")


def anchor_from_legacy(puzzle_id: str | None) -> Anchor:
    """Convert the old single-column anchor (null / puzzle id / 'END') to a tagged Anchor."""
    if puzzle_id is None or puzzle_id == "":
        return Start()
    if puzzle_id == "END":
        return End()
    return BeforePuzzle(str(puzzle_id))


# ===== Content =====

@dataclass
class Game:
    id: str
    title: str
    is_active: bool = True
    location_id: str | None = None


@dataclass
class Puzzle:
    """A riddle with progressive clues. `sequence_order` is a float rank, unique per game."""
    id: str
    game_id: str
    sequence_order: float
    riddle: str
    answer: str
    clues: list[str] = field(default_factory=list)
    answer_type: str = ANSWER_TYPE_TEXT
    answer_options: list[str] = field(default_factory=list)
    title: str = ""

    @property
    def clue_count(self) -> int:
        return len(self.clues)

    @property
    def is_choice(self) -> bool:
        return self.answer_type == ANSWER_TYPE_CHOICE

    def validate(self) -> None:
        if self.answer_type not in ANSWER_TYPES:
            raise ValidationError(f"Puzzle {self.id}: unknown answer_type '{self.answer_type}'")
        if not (self.answer or "").strip():
            raise ValidationError(f"Puzzle {self.id}: answer is required")
        if self.is_choice and self.answer not in self.answer_options:
            raise ValidationError(f"Puzzle {self.id}: answer_options must contain the answer")

    def to_dict(self, include_answer: bool = False) -> dict[str, Any]:
        """Player-safe dict. Clues and the answer are withheld unless asked for."""
        out = {
            "id": self.id,
            "game_id": self.game_id,
            "title": self.title,
            "riddle": self.riddle,
            "sequence_order": self.sequence_order,
            "answer_type": self.answer_type,
            "answer_options": list(self.answer_options) if self.is_choice else [],
            "clue_count": self.clue_count,
        }
        if include_answer:
            out["answer"] = self.answer
            out["clues"] = list(self.clues)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Puzzle":
        if not isinstance(data, dict):
            data = {}
        answer_type = str(data.get("answer_type") or ANSWER_TYPE_TEXT)
        answer_type = _LEGACY_ANSWER_TYPES.get(answer_type, answer_type)
        clues = data.get("clues") or []
        options = data.get("answer_options") or []
        return cls(
            id=str(data.get("id") or ""),
            game_id=str(data.get("game_id") or ""),
            sequence_order=float(data.get("sequence_order") or 0),
            riddle=str(data.get("riddle") or ""),
            answer=str(data.get("answer") or ""),
            clues=[str(c) for c in clues] if isinstance(clues, list) else [],
            answer_type=answer_type,
            answer_options=[str(o) for o in options] if isinstance(options, list) else [],
            title=str(data.get("title") or ""),
        )


@dataclass
class SplashScreen:
    """Narrative screen. `sequence_order` orders screens sharing the same anchor."""
    id: str
    game_id: str
    sequence_order: float
    anchor: Anchor = field(default_factory=Start)
    title: str = ""
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "title": self.title,
            "content": self.content,
            "sequence_order": self.sequence_order,
            "anchor": self.anchor.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SplashScreen":
        if not isinstance(data, dict):
            data = {}
        raw_anchor = data.get("anchor")
        if isinstance(raw_anchor, dict):
            anchor = anchor_from_parts(raw_anchor.get("kind"), raw_anchor.get("puzzle_id"))
        else:
            anchor = anchor_from_legacy(data.get("puzzle_id"))
        return cls(
            id=str(data.get("id") or ""),
            game_id=str(data.get("game_id") or ""),
            sequence_order=float(data.get("sequence_order") or 0),
            anchor=anchor,
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
        )


# ===== Loading =====

def load_game_file(path: Path | str | None = None) -> tuple[Game, list[Puzzle], list[SplashScreen]]:
    """
    Load a game authored as JSON: {"game": {...}, "puzzles": [...], "splash_screens": [...]}.
    Splash screens may use the older single `puzzle_id` anchor column. Every puzzle is validated.
    """
    path = Path(path) if path is not None else SAMPLE_GAME_FILE
    with open(path, "r") as f:
        data = json.load(f)

    raw_game = data.get("game") or {}
    game = Game(
        id=str(raw_game.get("id") or path.stem),
        title=str(raw_game.get("title") or path.stem),
        is_active=bool(raw_game.get("is_active", True)),
        location_id=raw_game.get("location_id"),
    )
    puzzles = [Puzzle.from_dict({**p, "game_id": game.id}) for p in data.get("puzzles") or []]
    for puzzle in puzzles:
        puzzle.validate()
    splash_screens = [SplashScreen.from_dict({**s, "game_id": game.id}) for s in data.get("splash_screens") or []]
    return game, puzzles, splash_screens
