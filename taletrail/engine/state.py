"""
Engine state: access code lifecycle fields and per-session progress.
Mutating helpers return new copies; the API layer persists the differences with atomic writes.
Includes dict serialization for API responses and for replaying a session from stored rows.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from taletrail.engine import PLAY_WINDOW

# Access code statuses (derived, never stored)
CODE_UNUSED = "unused"
CODE_ACTIVE = "active"
CODE_EXPIRED = "expired"
CODE_DEACTIVATED = "deactivated"

# Session statuses
SESSION_IN_PROGRESS = "in_progress"
SESSION_AWAITING_NEXT = "awaiting_next"
SESSION_FINISHED = "finished"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


@dataclass
class AccessCodeState:
    """
    Lifecycle fields of an access code.
    expires_at is written once, at activation, and never recomputed.
    """
    id: str
    code: str
    game_id: str
    is_active: bool = True
    activated_at: datetime | None = None
    expires_at: datetime | None = None
    is_test: bool = False

    def status(self, now: datetime) -> str:
        """unused -> active -> expired | deactivated. Deactivation wins over every other state."""
        if not self.is_active:
            return CODE_DEACTIVATED
        if self.activated_at is None:
            return CODE_UNUSED
        if self.is_test:
            return CODE_ACTIVE
        if now >= self.deadline():
            return CODE_EXPIRED
        return CODE_ACTIVE

    def deadline(self) -> datetime:
        """Play-window deadline. Falls back to activated_at + window for rows missing expires_at."""
        if self.expires_at is not None:
            return self.expires_at
        return self.activated_at + PLAY_WINDOW

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        out = {
            "id": self.id,
            "code": self.code,
            "game_id": self.game_id,
            "is_active": self.is_active,
            "activated_at": _iso(self.activated_at),
            "expires_at": _iso(self.expires_at),
            "is_test": self.is_test,
        }
        if now is not None:
            out["status"] = self.status(now)
        return out


@dataclass
class ClueCounters:
    """
    Per-puzzle clue reveal counts for one session: puzzle_id -> revealed (0..len(clues)).
    Counts only ever grow; merging two views keeps the larger count per puzzle.
    """
    counts: dict[str, int] = field(default_factory=dict)

    def get(self, puzzle_id: str) -> int:
        return self.counts.get(puzzle_id, 0)

    def increment(self, puzzle_id: str, bound: int) -> bool:
        """Reveal one more clue. Returns False (and changes nothing) once the bound is reached."""
        current = self.get(puzzle_id)
        if current >= bound:
            return False
        self.counts[puzzle_id] = current + 1
        return True

    def clamp(self, bounds: dict[str, int]) -> "ClueCounters":
        """Clamp each count into 0..bound. Puzzles without a bound are kept as-is."""
        out = {}
        for puzzle_id, count in self.counts.items():
            bound = bounds.get(puzzle_id)
            count = max(0, int(count))
            out[puzzle_id] = min(count, bound) if bound is not None else count
        return ClueCounters(out)

    def to_dict(self) -> dict[str, int]:
        return dict(self.counts)

    @classmethod
    def from_dict(cls, data: Any) -> "ClueCounters":
        if not isinstance(data, dict):
            return cls()
        counts = {}
        for k, v in data.items():
            try:
                counts[str(k)] = max(0, int(v))
            except (TypeError, ValueError):
                continue
        return cls(counts)


@dataclass
class SessionState:
    """Progress of one player through one access code's Timeline."""
    id: str
    access_code_id: str
    game_id: str
    current_puzzle_id: str | None = None
    completed_puzzles: set[str] = field(default_factory=set)
    clue_reveals: ClueCounters = field(default_factory=ClueCounters)
    viewed_splashes: set[str] = field(default_factory=set)
    status: str = SESSION_IN_PROGRESS
    player_email: str | None = None
    last_activity: datetime | None = None
    completed_at: datetime | None = None

    def copy(self) -> "SessionState":
        """Return a deep copy of this session state."""
        return deepcopy(self)

    def is_completed(self, puzzle_id: str) -> bool:
        return puzzle_id in self.completed_puzzles

    @property
    def is_finished(self) -> bool:
        return self.status == SESSION_FINISHED

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "access_code_id": self.access_code_id,
            "game_id": self.game_id,
            "current_puzzle_id": self.current_puzzle_id,
            "completed_puzzles": sorted(self.completed_puzzles),
            "clue_reveals": self.clue_reveals.to_dict(),
            "viewed_splashes": sorted(self.viewed_splashes),
            "status": self.status,
            "player_email": self.player_email,
            "last_activity": _iso(self.last_activity),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionState":
        """Create SessionState from a dictionary (handles missing/None values)."""
        if not isinstance(data, dict):
            data = {}
        completed = data.get("completed_puzzles") or []
        viewed = data.get("viewed_splashes") or []
        status = str(data.get("status") or SESSION_IN_PROGRESS)
        if status not in (SESSION_IN_PROGRESS, SESSION_AWAITING_NEXT, SESSION_FINISHED):
            status = SESSION_IN_PROGRESS
        return cls(
            id=str(data.get("id") or ""),
            access_code_id=str(data.get("access_code_id") or ""),
            game_id=str(data.get("game_id") or ""),
            current_puzzle_id=data.get("current_puzzle_id") or None,
            completed_puzzles={str(p) for p in completed} if isinstance(completed, list) else set(),
            clue_reveals=ClueCounters.from_dict(data.get("clue_reveals")),
            viewed_splashes={str(s) for s in viewed} if isinstance(viewed, list) else set(),
            status=status,
            player_email=data.get("player_email") or None,
            last_activity=_parse_dt(data.get("last_activity")),
            completed_at=_parse_dt(data.get("completed_at")),
        )
