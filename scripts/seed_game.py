#!/usr/bin/env python3
"""
Load a game authored as JSON into the database (replacing its puzzles and splash screens).
Usage: python scripts/seed_game.py [path/to/game.json]
Without a path the bundled sample game is loaded.
"""
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from taletrail.api.database import SessionLocal, init_db
from taletrail.api.models import Game, Puzzle, SplashScreen
from taletrail.engine.definitions import load_game_file
from taletrail.engine.errors import EngineError
from taletrail.engine.timeline import compose


def main() -> None:
    path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        game, puzzles, splash_screens = load_game_file(path)
    except (OSError, ValueError, EngineError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        row = db.query(Game).filter(Game.id == game.id).first()
        if row is None:
            row = Game(id=game.id)
            db.add(row)
        row.title = game.title
        row.location_id = game.location_id
        row.is_active = game.is_active
        db.query(SplashScreen).filter(SplashScreen.game_id == game.id).delete(synchronize_session=False)
        db.query(Puzzle).filter(Puzzle.game_id == game.id).delete(synchronize_session=False)
        for p in puzzles:
            db.add(Puzzle(
                id=p.id, game_id=game.id, title=p.title, riddle=p.riddle, clues=p.clues, answer=p.answer,
                answer_type=p.answer_type, answer_options=p.answer_options, sequence_order=p.sequence_order,
            ))
        for s in splash_screens:
            db.add(SplashScreen(
                id=s.id, game_id=game.id, title=s.title, content=s.content, sequence_order=s.sequence_order,
                anchor_kind=s.anchor.kind, anchor_puzzle_id=getattr(s.anchor, "puzzle_id", None),
            ))
        db.commit()
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    timeline = compose(puzzles, splash_screens)
    print(f"Loaded {game.title!r} (id={game.id}): {len(puzzles)} puzzles, {len(splash_screens)} splash screens")
    print("Play order: " + " -> ".join(e.id for e in timeline))
    for orphan in timeline.orphans:
        print(f"  warning: {orphan}")


if __name__ == "__main__":
    main()
