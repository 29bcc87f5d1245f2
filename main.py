"""
Main entry point for the Tale & Trail Game Progression Engine.
Demonstrates core functionality by playing the bundled sample game against the pure engine.
"""

from datetime import timedelta

from taletrail.engine.access import activate, check_redeemable, time_remaining, utcnow
from taletrail.engine.definitions import load_game_file
from taletrail.engine.errors import EngineError
from taletrail.engine.evaluator import submit
from taletrail.engine.progression import describe_position, mark_splash_viewed, start_session
from taletrail.engine.state import AccessCodeState
from taletrail.engine.timeline import compose


def print_position(state, timeline) -> None:
    view = describe_position(state, timeline)
    progress = view["progress"]
    print(f"  Status: {view['status']} | Progress: {progress['completed']}/{progress['total']}")
    for splash in view["pending_splash_screens"]:
        print(f"  [SPLASH] {splash['title']}: {splash['content']}")
    puzzle = view["current_puzzle"]
    if puzzle:
        print(f"  [PUZZLE] {puzzle['title']}: {puzzle['riddle']}")
        for i, clue in enumerate(view["revealed_clues"], start=1):
            print(f"    clue {i}: {clue}")


def main():
    print("Tale & Trail - Game Progression Engine")
    print("=" * 60)

    game, puzzles, splash_screens = load_game_file()
    timeline = compose(puzzles, splash_screens)

    print(f"\n[TIMELINE: {game.title}]")
    for entry in timeline:
        print(f"  {entry.kind:<7} {entry.id}")

    # ===== SCENARIO 1: Redeem an access code =====
    print("\n[SCENARIO 1: Redeem]")
    t0 = utcnow()
    code = AccessCodeState(id="code-1", code="ABCD1234", game_id=game.id)
    check_redeemable(code, t0)
    code, events = activate(code, t0)
    print(f"✓ Code {code.code} activated, expires {code.expires_at.isoformat()}")
    print(f"  Events: {[e.type for e in events]}")

    state = start_session("session-1", code, timeline, t0)
    print_position(state, timeline)

    # ===== SCENARIO 2: Wrong answers reveal clues =====
    print("\n[SCENARIO 2: Progressive clues]")
    first = timeline.get_puzzle(state.current_puzzle_id)
    for guess in ["Anchor", "Lantern", "Gull"]:
        state, result, events = submit(state, first, guess, timeline, t0)
        if result.next_clue:
            print(f"✗ {guess!r}: clue {result.clue_index + 1} -> {result.next_clue}")
        else:
            print(f"✗ {guess!r}: no clues left")

    # ===== SCENARIO 3: Play through to the end =====
    print("\n[SCENARIO 3: Solve every puzzle]")
    now = t0 + timedelta(minutes=5)
    for splash in describe_position(state, timeline)["pending_splash_screens"]:
        state, _ = mark_splash_viewed(state, splash["id"], timeline, now)
    while not state.is_finished:
        puzzle = timeline.get_puzzle(state.current_puzzle_id)
        state, result, events = submit(state, puzzle, puzzle.answer, timeline, now)
        print(f"✓ {puzzle.title}: {[e.type for e in events]}")
        for splash in describe_position(state, timeline)["pending_splash_screens"]:
            print(f"  [SPLASH] {splash['title']}")
            state, _ = mark_splash_viewed(state, splash["id"], timeline, now)
        now += timedelta(minutes=5)
    print_position(state, timeline)

    # ===== SCENARIO 4: The play window =====
    print("\n[SCENARIO 4: Play window]")
    for offset in (timedelta(hours=11, minutes=59), timedelta(hours=12, minutes=1)):
        at = t0 + offset
        try:
            check_redeemable(code, at)
            print(f"✓ T0+{offset}: still playable, {time_remaining(code, at):.0f}s left")
        except EngineError as e:
            print(f"✗ T0+{offset}: {e.message}")


if __name__ == "__main__":
    main()
