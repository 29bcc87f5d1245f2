#!/usr/bin/env python3
"""
Interactive CLI for testing the Tale & Trail progression engine.
Run: python test/play_cli.py [path/to/game.json]
"""

import sys
from datetime import timedelta

from taletrail.engine.access import activate, check_redeemable, time_remaining, utcnow
from taletrail.engine.definitions import load_game_file
from taletrail.engine.errors import EngineError
from taletrail.engine.evaluator import submit
from taletrail.engine.progression import (
    describe_position,
    mark_splash_viewed,
    reset_session,
    start_session,
)
from taletrail.engine.state import AccessCodeState
from taletrail.engine.timeline import compose


def clear_screen():
    print("\n" * 2)


def print_header(code, state, timeline, now):
    """Print session status header."""
    view = describe_position(state, timeline)
    progress = view["progress"]
    remaining = time_remaining(code, now)
    clock = f"{remaining / 3600:.1f}h left" if remaining is not None else "no time limit"
    print("=" * 60)
    print(f"  CODE {code.code} | {clock} | Puzzle {progress['position']}/{progress['total']} "
          f"| Solved {progress['completed']}")
    if state.is_finished:
        print("  *** TRAIL COMPLETE ***")
    print("=" * 60)


def show_splashes(state, timeline, now):
    """Show pending splash screens one by one and mark them viewed."""
    for splash in describe_position(state, timeline)["pending_splash_screens"]:
        print(f"\n--- {splash['title']} ---")
        print(splash["content"])
        input("\n(press Enter to continue) ")
        state, _ = mark_splash_viewed(state, splash["id"], timeline, now)
    return state


def show_puzzle(state, timeline):
    view = describe_position(state, timeline)
    puzzle = view["current_puzzle"]
    if not puzzle:
        return
    print(f"\n[{puzzle['title']}]")
    print(puzzle["riddle"])
    if puzzle["answer_options"]:
        for i, option in enumerate(puzzle["answer_options"], start=1):
            print(f"  {i}. {option}")
    for i, clue in enumerate(view["revealed_clues"], start=1):
        print(f"  clue {i}: {clue}")


def read_answer(puzzle):
    raw = input("\nYour answer (:q quit, :r reset, :t +1h): ").strip()
    if puzzle.is_choice and raw.isdigit():
        index = int(raw) - 1
        if 0 <= index < len(puzzle.answer_options):
            return puzzle.answer_options[index]
    return raw


def main():
    path = sys.argv[1] if len(sys.argv) > 1 else None
    game, puzzles, splash_screens = load_game_file(path)
    timeline = compose(puzzles, splash_screens)
    for orphan in timeline.orphans:
        print(f"warning: {orphan}")

    now = utcnow()
    code = AccessCodeState(id="cli", code="CLI00001", game_id=game.id)
    check_redeemable(code, now)
    code, _ = activate(code, now)
    state = start_session("cli-session", code, timeline, now)

    print(f"\nWelcome to {game.title}!")
    while True:
        clear_screen()
        try:
            check_redeemable(code, now)
        except EngineError as e:
            print(e.message)
            return
        print_header(code, state, timeline, now)
        state = show_splashes(state, timeline, now)
        if state.is_finished:
            print("\nThanks for playing!")
            return

        show_puzzle(state, timeline)
        puzzle = timeline.get_puzzle(state.current_puzzle_id)
        answer = read_answer(puzzle)
        if answer == ":q":
            return
        if answer == ":r":
            state, _ = reset_session(state, timeline, now)
            continue
        if answer == ":t":
            now += timedelta(hours=1)
            continue

        try:
            state, result, events = submit(state, puzzle, answer, timeline, now)
        except EngineError as e:
            print(f"✗ {e.message}")
            continue
        if result.correct:
            print("✓ Correct!")
        elif result.next_clue:
            print(f"✗ Not quite. New clue: {result.next_clue}")
        else:
            print("✗ Not quite, and there are no clues left.")
        print(f"  Events: {[e.type for e in events]}")


if __name__ == "__main__":
    main()
