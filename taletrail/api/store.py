"""
Persistence for the progression engine.

Each operation loads rows, asks the pure engine what should happen, then writes the difference
with guarded statements so concurrent requests cannot double-activate a code, double-log an
event or lose a clue increment:

    activation     UPDATE ... WHERE activated_at IS NULL        (rowcount decides the winner)
    expired log    UPDATE ... WHERE expiry_logged_at IS NULL
    completion     INSERT ... ON CONFLICT DO NOTHING            (unique session_id, puzzle_id)
    completed log  UPDATE ... WHERE completed_at IS NULL
    clue counter   UPDATE ... SET revealed = revealed + 1 WHERE revealed < :cap

Every unit of work commits once or rolls back entirely.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taletrail.config import MAX_CODES_PER_REQUEST
from taletrail.engine import access, evaluator, progression
from taletrail.engine.access import utcnow
from taletrail.engine.definitions import BeforePuzzle, anchor_from_parts
from taletrail.engine.errors import (
    CodeExpired,
    CodeGenerationError,
    CodeNotFound,
    ContentNotFound,
    SessionNotFound,
    ValidationError,
)
from taletrail.engine.events import (
    CODE_ACTIVATED,
    CODE_EXPIRED,
    SESSION_COMPLETED,
    GameEvent,
    puzzle_completed,
    session_completed,
)
from taletrail.engine.evaluator import SubmitResult
from taletrail.engine.state import (
    CODE_UNUSED,
    SESSION_FINISHED,
    SESSION_IN_PROGRESS,
    AccessCodeState,
    ClueCounters,
    SessionState,
)
from taletrail.engine.timeline import Timeline, compose, move_item, next_rank, reassign_anchor, splash_bucket

from .models import (
    AccessCode,
    ClueReveal,
    CodeUsageLog,
    Game,
    PlayerSession,
    Puzzle,
    PuzzleCompletion,
    SplashScreen,
    SplashView,
)

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class PlayView:
    """Everything the player client needs after a play operation."""
    code: AccessCodeState
    session: SessionState
    timeline: Timeline
    events: list[GameEvent] = field(default_factory=list)
    result: SubmitResult | None = None

    def to_dict(self, now: datetime) -> dict:
        out = {
            "session_id": self.session.id,
            "code": self.code.to_dict(now),
            "time_remaining_seconds": access.time_remaining(self.code, now),
            "player_email": self.session.player_email,
            "position": progression.describe_position(self.session, self.timeline),
            "events": [e.to_dict() for e in self.events],
        }
        if self.result is not None:
            out["result"] = self.result.to_dict()
        return out


# ===== Low-level helpers =====

def _insert_ignore(db: Session, model, values: dict, conflict_columns: list[str]) -> bool:
    """Insert one row unless it collides on conflict_columns. Returns True if a row was written."""
    insert = _DIALECT_INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        try:
            with db.begin_nested():
                db.add(model(**values))
        except IntegrityError:
            return False
        return True
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    return db.execute(stmt).rowcount == 1


def _log_usage(db: Session, code_row: AccessCode, action: str, details: dict, now: datetime) -> None:
    db.add(CodeUsageLog(
        access_code_id=code_row.id,
        game_id=code_row.game_id,
        action=action,
        timestamp=now,
        details=details,
    ))


def load_timeline(db: Session, game_id: str) -> Timeline:
    """Compose the game's Timeline from the content tables. Re-derived on every read."""
    puzzles = [p.to_definition() for p in db.query(Puzzle).filter(Puzzle.game_id == game_id)]
    splashes = [s.to_definition() for s in db.query(SplashScreen).filter(SplashScreen.game_id == game_id)]
    return compose(puzzles, splashes)


def find_code(db: Session, raw_code: str | None) -> AccessCode | None:
    code = access.normalize_code(raw_code)
    if not code:
        return None
    return db.query(AccessCode).filter(AccessCode.code == code).first()


def _get_session_row(db: Session, session_id: str) -> PlayerSession:
    row = db.query(PlayerSession).filter(PlayerSession.id == session_id).first()
    if row is None:
        raise SessionNotFound()
    return row


def load_session_state(db: Session, row: PlayerSession, timeline: Timeline) -> SessionState:
    """
    Rebuild SessionState from the session row and its child rows, then resync the position
    against the current Timeline (content may have changed since the last write).
    """
    completed = {r.puzzle_id for r in db.query(PuzzleCompletion.puzzle_id).filter(
        PuzzleCompletion.session_id == row.id)}
    counters = ClueCounters({r.puzzle_id: r.revealed for r in db.query(ClueReveal).filter(
        ClueReveal.session_id == row.id)})
    bounds = {p.id: p.clue_count for p in timeline.puzzles}
    viewed = {r.splash_screen_id for r in db.query(SplashView.splash_screen_id).filter(
        SplashView.session_id == row.id)}
    state = SessionState(
        id=row.id,
        access_code_id=row.access_code_id,
        game_id=row.game_id,
        current_puzzle_id=row.current_puzzle_id,
        completed_puzzles=completed,
        clue_reveals=counters.clamp(bounds),
        viewed_splashes=viewed,
        status=SESSION_FINISHED if row.current_puzzle_id is None else SESSION_IN_PROGRESS,
        player_email=row.player_email,
        last_activity=row.last_activity,
        completed_at=row.completed_at,
    )
    return progression.advance_to_next_puzzle(state, timeline)


def _record_expiry(db: Session, code_row: AccessCode, state: AccessCodeState, now: datetime) -> None:
    """Write the expired usage log entry, at most once per code."""
    try:
        updated = db.query(AccessCode).filter(
            AccessCode.id == code_row.id,
            AccessCode.expiry_logged_at.is_(None),
        ).update({AccessCode.expiry_logged_at: now}, synchronize_session=False)
        if updated == 1:
            event = access.expiry_event(state)
            _log_usage(db, code_row, CODE_EXPIRED, event.payload, now)
            logger.info("Access code %s expired (deadline %s)", state.code, event.payload["expired_at"])
        db.commit()
    except Exception:
        db.rollback()
        raise


def _require_redeemable(db: Session, code_row: AccessCode | None, now: datetime) -> str:
    """check_redeemable plus the once-only expired log. Returns the code status."""
    state = code_row.to_state() if code_row is not None else None
    try:
        return access.check_redeemable(state, now)
    except CodeExpired:
        _record_expiry(db, code_row, state, now)
        raise


def _mark_session_completed(
    db: Session,
    session_row: PlayerSession,
    code_row: AccessCode,
    puzzle_count: int,
    now: datetime,
) -> bool:
    """Stamp completed_at and write the completed usage log entry, once per session."""
    updated = db.query(PlayerSession).filter(
        PlayerSession.id == session_row.id,
        PlayerSession.completed_at.is_(None),
    ).update({PlayerSession.completed_at: now}, synchronize_session=False)
    if updated != 1:
        return False
    event = session_completed(session_row.id, code_row.id, code_row.game_id, puzzle_count)
    _log_usage(db, code_row, SESSION_COMPLETED, event.payload, now)
    logger.info("Session %s completed (code %s)", session_row.id, code_row.code)
    return True


def _write_position(
    db: Session,
    session_row: PlayerSession,
    code_row: AccessCode,
    state: SessionState,
    timeline: Timeline,
    now: datetime,
) -> bool:
    """Persist current_puzzle_id and last_activity; stamp completion if the session just finished."""
    db.query(PlayerSession).filter(PlayerSession.id == session_row.id).update(
        {PlayerSession.current_puzzle_id: state.current_puzzle_id, PlayerSession.last_activity: now},
        synchronize_session=False,
    )
    if state.is_finished:
        return _mark_session_completed(db, session_row, code_row, len(timeline.puzzle_ids), now)
    return False


def _view(db: Session, code_row: AccessCode, session_row: PlayerSession, events=None, result=None) -> PlayView:
    timeline = load_timeline(db, session_row.game_id)
    return PlayView(
        code=code_row.to_state(),
        session=load_session_state(db, session_row, timeline),
        timeline=timeline,
        events=events or [],
        result=result,
    )


# ===== Player operations =====

def redeem(db: Session, raw_code: str | None, now: datetime | None = None) -> PlayView:
    """
    Enter the game with an access code. The first redemption activates the code and starts the
    play window; later redemptions inside the window resume the same session.
    Raises CodeNotFound, CodeDeactivated, CodeExpired or ContentNotFound.
    """
    now = now or utcnow()
    code_row = find_code(db, raw_code)
    status = _require_redeemable(db, code_row, now)

    timeline = load_timeline(db, code_row.game_id)
    if not timeline.puzzle_ids:
        raise ContentNotFound("No puzzles found for this game. Please contact support.")

    code_id = code_row.id
    events: list[GameEvent] = []
    try:
        if status == CODE_UNUSED:
            events = _activate(db, code_row, timeline, now)
        session_row = db.query(PlayerSession).filter(PlayerSession.access_code_id == code_id).first()
        if session_row is None:
            # Activated without a session (lost row or legacy data): start one now
            _create_session(db, code_row.to_state(), timeline, now)
            session_row = db.query(PlayerSession).filter(PlayerSession.access_code_id == code_id).one()
        elif not events:
            db.query(PlayerSession).filter(PlayerSession.id == session_row.id).update(
                {PlayerSession.last_activity: now}, synchronize_session=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    code_row = db.query(AccessCode).filter(AccessCode.id == code_id).one()
    session_row = db.query(PlayerSession).filter(PlayerSession.access_code_id == code_id).one()
    return _view(db, code_row, session_row, events)


def _activate(db: Session, code_row: AccessCode, timeline: Timeline, now: datetime) -> list[GameEvent]:
    """Guarded unused -> active transition. Only the request that flips activated_at logs it."""
    activated, events = access.activate(code_row.to_state(), now)
    updated = db.query(AccessCode).filter(
        AccessCode.id == code_row.id,
        AccessCode.activated_at.is_(None),
    ).update(
        {AccessCode.activated_at: activated.activated_at, AccessCode.expires_at: activated.expires_at},
        synchronize_session=False,
    )
    if updated != 1:
        # Another request activated the code first; it owns the log entry and the session
        return []
    _log_usage(db, code_row, CODE_ACTIVATED, events[0].payload, now)
    _create_session(db, activated, timeline, now)
    logger.info("Access code %s activated, expires %s", activated.code, activated.expires_at.isoformat())
    return events


def _create_session(db: Session, code: AccessCodeState, timeline: Timeline, now: datetime) -> bool:
    state = progression.start_session(str(uuid.uuid4()), code, timeline, now)
    return _insert_ignore(db, PlayerSession, {
        "id": state.id,
        "access_code_id": code.id,
        "game_id": code.game_id,
        "current_puzzle_id": state.current_puzzle_id,
        "last_activity": now,
        "created_at": now,
    }, ["access_code_id"])


def get_play_session(db: Session, session_id: str, now: datetime | None = None) -> PlayView:
    """Current position view. Expired or deactivated codes can no longer see their session."""
    now = now or utcnow()
    session_row = _get_session_row(db, session_id)
    code_row = session_row.access_code
    _require_redeemable(db, code_row, now)
    return _view(db, code_row, session_row)


def submit_answer(
    db: Session,
    session_id: str,
    puzzle_id: str,
    answer,
    now: datetime | None = None,
) -> PlayView:
    """
    Evaluate an answer for the session's current puzzle.
    Correct answers record the completion and advance; wrong answers reveal the next clue.
    """
    now = now or utcnow()
    session_row = _get_session_row(db, session_id)
    code_row = session_row.access_code
    _require_redeemable(db, code_row, now)

    timeline = load_timeline(db, session_row.game_id)
    puzzle = timeline.get_puzzle(puzzle_id)
    if puzzle is None:
        raise ValidationError(f"Puzzle {puzzle_id} is not part of this game")
    state = load_session_state(db, session_row, timeline)

    # Pure evaluation first: a rejected submission raises before anything is written
    new_state, result, events = evaluator.submit(state, puzzle, answer, timeline, now)

    try:
        if result.already_completed:
            _touch(db, session_row, now)
        elif result.correct:
            events = _complete_puzzle(db, session_row, code_row, puzzle.id, new_state, timeline, now)
            if not events:
                result = SubmitResult(correct=True, already_completed=True,
                                      clues_remaining=result.clues_remaining)
        else:
            result = _reveal_clue(db, session_row, puzzle)
            events = evaluator.wrong_answer_events(session_row.id, puzzle, answer.strip(), result)
            _touch(db, session_row, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if result.next_clue is not None:
        logger.debug("Session %s revealed clue %d for puzzle %s", session_id, result.clue_index + 1, puzzle.id)
    return _view(db, code_row, session_row, events, result)


def _touch(db: Session, session_row: PlayerSession, now: datetime) -> None:
    db.query(PlayerSession).filter(PlayerSession.id == session_row.id).update(
        {PlayerSession.last_activity: now}, synchronize_session=False,
    )


def _complete_puzzle(
    db: Session,
    session_row: PlayerSession,
    code_row: AccessCode,
    puzzle_id: str,
    new_state: SessionState,
    timeline: Timeline,
    now: datetime,
) -> list[GameEvent]:
    """Record a completion once. Returns the events, empty if another request recorded it first."""
    inserted = _insert_ignore(db, PuzzleCompletion, {
        "session_id": session_row.id,
        "puzzle_id": puzzle_id,
        "completed_at": now,
    }, ["session_id", "puzzle_id"])
    if not inserted:
        _touch(db, session_row, now)
        return []
    events = [puzzle_completed(session_row.id, puzzle_id, new_state.current_puzzle_id)]
    if _write_position(db, session_row, code_row, new_state, timeline, now):
        events.append(session_completed(
            session_row.id, code_row.id, code_row.game_id, len(timeline.puzzle_ids),
        ))
    return events


def _reveal_clue(db: Session, session_row: PlayerSession, puzzle) -> SubmitResult:
    """Bounded in-place increment of the clue counter. Never read-modify-write."""
    _insert_ignore(db, ClueReveal, {
        "session_id": session_row.id,
        "puzzle_id": puzzle.id,
        "revealed": 0,
    }, ["session_id", "puzzle_id"])
    counter = db.query(ClueReveal).filter(
        ClueReveal.session_id == session_row.id,
        ClueReveal.puzzle_id == puzzle.id,
    )
    updated = counter.filter(ClueReveal.revealed < puzzle.clue_count).update(
        {ClueReveal.revealed: ClueReveal.revealed + 1}, synchronize_session=False,
    )
    revealed = min(counter.with_entities(ClueReveal.revealed).scalar() or 0, puzzle.clue_count)
    before = revealed - 1 if updated == 1 else revealed
    return evaluator.wrong_answer_result(puzzle, before, revealed)


def mark_splash_viewed(db: Session, session_id: str, splash_id: str, now: datetime | None = None) -> PlayView:
    now = now or utcnow()
    session_row = _get_session_row(db, session_id)
    code_row = session_row.access_code
    _require_redeemable(db, code_row, now)
    timeline = load_timeline(db, session_row.game_id)
    state = load_session_state(db, session_row, timeline)
    _, events = progression.mark_splash_viewed(state, splash_id, timeline, now)
    try:
        if events:
            _insert_ignore(db, SplashView, {
                "session_id": session_row.id,
                "splash_screen_id": splash_id,
                "viewed_at": now,
            }, ["session_id", "splash_screen_id"])
        _touch(db, session_row, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _view(db, code_row, session_row, events)


def set_player_email(db: Session, session_id: str, email: str | None, now: datetime | None = None) -> PlayView:
    now = now or utcnow()
    session_row = _get_session_row(db, session_id)
    code_row = session_row.access_code
    _require_redeemable(db, code_row, now)
    timeline = load_timeline(db, session_row.game_id)
    new_state = progression.set_player_email(load_session_state(db, session_row, timeline), email)
    try:
        db.query(PlayerSession).filter(PlayerSession.id == session_row.id).update(
            {PlayerSession.player_email: new_state.player_email, PlayerSession.last_activity: now},
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _view(db, code_row, session_row)


# ===== Administrator operations =====

def _get_code_row(db: Session, code_id: str) -> AccessCode:
    row = db.query(AccessCode).filter(AccessCode.id == code_id).first()
    if row is None:
        raise CodeNotFound()
    return row


def _get_game_row(db: Session, game_id: str) -> Game:
    row = db.query(Game).filter(Game.id == game_id).first()
    if row is None:
        raise ContentNotFound(f"Game {game_id} not found")
    return row


def deactivate_code(db: Session, code_id: str) -> AccessCodeState:
    """Terminal. Applies regardless of the code's current state."""
    row = _get_code_row(db, code_id)
    deactivated = access.deactivate(row.to_state())
    try:
        db.query(AccessCode).filter(AccessCode.id == code_id).update(
            {AccessCode.is_active: deactivated.is_active}, synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    logger.info("Access code %s deactivated", row.code)
    return row.to_state()


def generate_access_codes(db: Session, game_id: str, quantity: int, is_test: bool = False) -> list[AccessCodeState]:
    """Create `quantity` fresh unused codes for a game."""
    _get_game_row(db, game_id)
    if not isinstance(quantity, int) or not 1 <= quantity <= MAX_CODES_PER_REQUEST:
        raise ValidationError(f"Quantity must be between 1 and {MAX_CODES_PER_REQUEST}")

    def exists(code: str) -> bool:
        return db.query(AccessCode.id).filter(AccessCode.code == code).first() is not None

    batch: set[str] = set()
    rows = []
    try:
        for _ in range(quantity):
            code = access.generate_unique_code(exists, taken=batch)
            batch.add(code)
            row = AccessCode(id=str(uuid.uuid4()), code=code, game_id=game_id, is_active=True, is_test=is_test)
            db.add(row)
            rows.append(row)
        db.commit()
    except IntegrityError as e:
        # A concurrent batch inserted the same code between the check and the commit
        db.rollback()
        raise CodeGenerationError() from e
    except Exception:
        db.rollback()
        raise
    logger.info("Generated %d access code(s) for game %s%s", quantity, game_id, " (test)" if is_test else "")
    return [r.to_state() for r in rows]


def code_report(db: Session, code_id: str, now: datetime | None = None) -> dict:
    """Derived status, session progress and usage log for one code."""
    now = now or utcnow()
    row = _get_code_row(db, code_id)
    state = row.to_state()
    out = state.to_dict(now)
    out["time_remaining_seconds"] = access.time_remaining(state, now)
    out["session"] = None
    session_row = db.query(PlayerSession).filter(PlayerSession.access_code_id == code_id).first()
    if session_row is not None:
        timeline = load_timeline(db, row.game_id)
        session = load_session_state(db, session_row, timeline)
        out["session"] = session.to_dict()
        out["session"]["progress"] = progression.describe_position(session, timeline)["progress"]
    out["usage"] = usage_log(db, code_id)
    return out


def usage_log(db: Session, code_id: str) -> list[dict]:
    _get_code_row(db, code_id)
    rows = db.query(CodeUsageLog).filter(CodeUsageLog.access_code_id == code_id).order_by(CodeUsageLog.id)
    return [r.to_dict() for r in rows]


def game_timeline(db: Session, game_id: str) -> dict:
    game = _get_game_row(db, game_id)
    timeline = load_timeline(db, game_id)
    out = timeline.to_dict()
    out["game"] = asdict(game.to_definition())
    return out


def reassign_splash_anchor(db: Session, splash_id: str, kind: str, puzzle_id: str | None = None) -> dict:
    """
    Point a splash screen at a new anchor, appended to the end of that anchor's bucket.
    One UPDATE; reassigning to the current anchor changes nothing.
    """
    row = db.query(SplashScreen).filter(SplashScreen.id == splash_id).first()
    if row is None:
        raise ContentNotFound(f"Splash screen {splash_id} not found")
    new_anchor = anchor_from_parts(kind, puzzle_id)
    current = row.to_definition()
    if reassign_anchor(current, new_anchor) is current:
        # Also covers an orphan pointed back at its missing puzzle
        return current.to_dict()
    if isinstance(new_anchor, BeforePuzzle):
        owner = db.query(Puzzle.id).filter(Puzzle.id == new_anchor.puzzle_id, Puzzle.game_id == row.game_id).first()
        if owner is None:
            raise ValidationError(f"Puzzle {new_anchor.puzzle_id} is not part of this game")

    siblings = [s.to_definition() for s in db.query(SplashScreen).filter(SplashScreen.game_id == row.game_id)]
    rank = next_rank(splash_bucket([s for s in siblings if s.id != splash_id], new_anchor))
    try:
        db.query(SplashScreen).filter(SplashScreen.id == splash_id).update({
            SplashScreen.anchor_kind: new_anchor.kind,
            SplashScreen.anchor_puzzle_id: getattr(new_anchor, "puzzle_id", None),
            SplashScreen.sequence_order: rank,
        }, synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return row.to_definition().to_dict()


def move_splash(db: Session, splash_id: str, direction: str) -> dict:
    """Move a splash screen one step within its anchor bucket."""
    row = db.query(SplashScreen).filter(SplashScreen.id == splash_id).first()
    if row is None:
        raise ContentNotFound(f"Splash screen {splash_id} not found")
    current = row.to_definition()
    siblings = [s.to_definition() for s in db.query(SplashScreen).filter(SplashScreen.game_id == row.game_id)]
    bucket = splash_bucket(siblings, current.anchor)
    ranks = move_item(bucket, splash_id, direction)
    if ranks:
        _write_ranks(db, SplashScreen, ranks, bucket)
        db.refresh(row)
    return row.to_definition().to_dict()


def move_puzzle(db: Session, puzzle_id: str, direction: str) -> dict:
    """Move a puzzle one step in its game's order. Splash screens anchored to it move with it."""
    row = db.query(Puzzle).filter(Puzzle.id == puzzle_id).first()
    if row is None:
        raise ContentNotFound(f"Puzzle {puzzle_id} not found")
    puzzles = [p.to_definition() for p in db.query(Puzzle).filter(Puzzle.game_id == row.game_id)]
    ranks = move_item(puzzles, puzzle_id, direction)
    if ranks:
        _write_ranks(db, Puzzle, ranks, puzzles)
        db.refresh(row)
    return row.to_definition().to_dict(include_answer=True)


def _write_ranks(db: Session, model, ranks: dict[str, float], items) -> None:
    """
    Apply rank writes in one transaction. A renumbering first parks the rows below every
    existing rank so the per-game unique order on puzzles never sees a transient duplicate.
    """
    try:
        if len(ranks) > 1:
            floor = min([i.sequence_order for i in items] + list(ranks.values())) - 1.0
            for offset, item_id in enumerate(ranks):
                db.query(model).filter(model.id == item_id).update(
                    {model.sequence_order: floor - offset}, synchronize_session=False,
                )
        for item_id, rank in ranks.items():
            db.query(model).filter(model.id == item_id).update(
                {model.sequence_order: rank}, synchronize_session=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise


def reset_session(db: Session, session_id: str, now: datetime | None = None) -> PlayView:
    """Send a test code's session back to the first puzzle. Usage log history is kept."""
    now = now or utcnow()
    session_row = _get_session_row(db, session_id)
    code_row = session_row.access_code
    if not code_row.is_test:
        raise ValidationError("Only sessions of test codes can be reset")
    timeline = load_timeline(db, session_row.game_id)
    state = load_session_state(db, session_row, timeline)
    new_state, events = progression.reset_session(state, timeline, now)
    try:
        for model in (PuzzleCompletion, ClueReveal, SplashView):
            db.query(model).filter(model.session_id == session_row.id).delete(synchronize_session=False)
        db.query(PlayerSession).filter(PlayerSession.id == session_row.id).update({
            PlayerSession.current_puzzle_id: new_state.current_puzzle_id,
            PlayerSession.completed_at: None,
            PlayerSession.last_activity: now,
        }, synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Session %s reset (test code %s)", session_id, code_row.code)
    return _view(db, code_row, session_row, events)
