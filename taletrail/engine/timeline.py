"""
Sequence composition.
Merges a game's puzzles and splash screens into one linear Timeline the player walks through.
Pure function of authored data: nothing here is cached or persisted, the Timeline is re-derived on read.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Sequence, Union

from taletrail.engine.definitions import (
    Anchor,
    BeforePuzzle,
    End,
    Puzzle,
    SplashScreen,
)
from taletrail.engine.errors import OrphanedSplashScreen, ValidationError

logger = logging.getLogger(__name__)

KIND_SPLASH = "splash"
KIND_PUZZLE = "puzzle"


@dataclass(frozen=True)
class TimelineEntry:
    kind: str  # "splash" or "puzzle"
    item: Union[Puzzle, SplashScreen]

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def is_puzzle(self) -> bool:
        return self.kind == KIND_PUZZLE

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.item.id, "title": self.item.title}


@dataclass
class Timeline:
    """Ordered entries plus the orphaned splash screens found while composing."""
    entries: list[TimelineEntry] = field(default_factory=list)
    orphans: list[OrphanedSplashScreen] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def puzzles(self) -> list[Puzzle]:
        return [e.item for e in self.entries if e.is_puzzle]

    @property
    def puzzle_ids(self) -> list[str]:
        return [e.item.id for e in self.entries if e.is_puzzle]

    def get_puzzle(self, puzzle_id: str) -> Puzzle | None:
        for e in self.entries:
            if e.is_puzzle and e.item.id == puzzle_id:
                return e.item
        return None

    def get_splash(self, splash_id: str) -> SplashScreen | None:
        for e in self.entries:
            if not e.is_puzzle and e.item.id == splash_id:
                return e.item
        return None

    def index_of_puzzle(self, puzzle_id: str | None) -> int | None:
        if puzzle_id is None:
            return None
        for i, e in enumerate(self.entries):
            if e.is_puzzle and e.item.id == puzzle_id:
                return i
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "orphans": [o.to_dict() for o in self.orphans],
        }


def _order_key(item: Union[Puzzle, SplashScreen]) -> tuple[float, str]:
    # Ties on rank break on id so composition is deterministic
    return (item.sequence_order, item.id)


def compose(puzzles: Iterable[Puzzle], splash_screens: Iterable[SplashScreen]) -> Timeline:
    """
    Build the playable Timeline.

    1. Puzzles sorted by sequence_order.
    2. Splash screens bucketed by anchor (start / before puzzle / end), each bucket by its own sequence_order.
    3. Emit start screens, then for each puzzle its anchored screens followed by the puzzle, then end screens.

    A splash screen anchored to a puzzle that is not in `puzzles` is an orphan: it is reported on
    Timeline.orphans and shown with the start screens rather than dropped.
    """
    ordered_puzzles = sorted(puzzles, key=_order_key)
    known_ids = {p.id for p in ordered_puzzles}

    start: list[SplashScreen] = []
    end: list[SplashScreen] = []
    by_puzzle: dict[str, list[SplashScreen]] = {}
    orphans: list[OrphanedSplashScreen] = []

    for splash in splash_screens:
        anchor = splash.anchor
        if isinstance(anchor, End):
            end.append(splash)
        elif isinstance(anchor, BeforePuzzle):
            if anchor.puzzle_id in known_ids:
                by_puzzle.setdefault(anchor.puzzle_id, []).append(splash)
            else:
                orphan = OrphanedSplashScreen(splash.id, anchor.puzzle_id)
                logger.warning("%s; showing it with the start screens", orphan)
                orphans.append(orphan)
                start.append(splash)
        else:
            start.append(splash)

    entries: list[TimelineEntry] = []
    for splash in sorted(start, key=_order_key):
        entries.append(TimelineEntry(KIND_SPLASH, splash))
    for puzzle in ordered_puzzles:
        for splash in sorted(by_puzzle.get(puzzle.id, []), key=_order_key):
            entries.append(TimelineEntry(KIND_SPLASH, splash))
        entries.append(TimelineEntry(KIND_PUZZLE, puzzle))
    for splash in sorted(end, key=_order_key):
        entries.append(TimelineEntry(KIND_SPLASH, splash))

    return Timeline(entries=entries, orphans=sorted(orphans, key=lambda o: o.splash_screen_id))


def reassign_anchor(splash: SplashScreen, new_anchor: Anchor) -> SplashScreen:
    """Return the splash screen with a new anchor. Reassigning to the current anchor is a no-op."""
    if splash.anchor == new_anchor:
        return splash
    return replace(splash, anchor=new_anchor)


# ===== Ordering (float ranks: usually one write per move) =====

def _splittable(before: float | None, after: float | None) -> bool:
    if before is None or after is None:
        return True
    middle = (before + after) / 2.0
    return before < middle < after


def rank_between(before: float | None, after: float | None) -> float:
    """Rank strictly between two neighbours. Either side may be missing (list ends)."""
    if before is None and after is None:
        return 1.0
    if before is None:
        return after - 1.0
    if after is None:
        return before + 1.0
    if not _splittable(before, after):
        raise ValidationError(f"No rank fits strictly between {before} and {after}")
    return (before + after) / 2.0


def next_rank(items: Sequence[Union[Puzzle, SplashScreen]]) -> float:
    """Rank for appending after every existing item."""
    if not items:
        return 1.0
    return max(i.sequence_order for i in items) + 1.0


def renumber(ordered_ids: Sequence[str], ranks: dict[str, float]) -> dict[str, float]:
    """Ranks 1, 2, 3... in the given order. Only items whose rank changes are returned."""
    out = {}
    for position, item_id in enumerate(ordered_ids, start=1):
        if ranks.get(item_id) != float(position):
            out[item_id] = float(position)
    return out


def move_item(
    items: Sequence[Union[Puzzle, SplashScreen]],
    item_id: str,
    direction: str,
) -> dict[str, float]:
    """
    Rank writes for moving `item_id` one step "up" (earlier) or "down" (later) among `items`,
    as {item_id: new_rank}. Empty when the item is already at that end.

    Normally only the moved item changes. When its new neighbours share a rank (hand-edited
    orders) or sit too close for a float between them, the whole list is renumbered instead.
    """
    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'")
    ordered = sorted(items, key=_order_key)
    index = next((i for i, it in enumerate(ordered) if it.id == item_id), None)
    if index is None:
        raise ValidationError(f"Item {item_id} is not in this list")

    if direction == "up":
        if index == 0:
            return {}
        target = index - 1
        # Land between the item two places up and the one directly above
        before = ordered[index - 2].sequence_order if index >= 2 else None
        after = ordered[index - 1].sequence_order
    else:
        if index == len(ordered) - 1:
            return {}
        target = index + 1
        before = ordered[index + 1].sequence_order
        after = ordered[index + 2].sequence_order if index + 2 < len(ordered) else None

    if _splittable(before, after):
        return {item_id: rank_between(before, after)}

    logger.info("Renumbering %d items to move %s %s", len(ordered), item_id, direction)
    order = [it.id for it in ordered]
    order.insert(target, order.pop(index))
    return renumber(order, {it.id: it.sequence_order for it in ordered})


def splash_bucket(splash_screens: Iterable[SplashScreen], anchor: Anchor) -> list[SplashScreen]:
    """Splash screens sharing `anchor` (the list a splash screen is reordered within)."""
    return [s for s in splash_screens if s.anchor == anchor]
