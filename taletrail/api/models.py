"""
SQLAlchemy models for games, content, access codes, sessions and the usage log.
Content tables (games, puzzles, splash_screens) are written by the content store; the engine writes
access codes, sessions and their child rows, and the append-only usage log.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from taletrail.engine.access import utcnow
from taletrail.engine.definitions import (
    Game as GameDefinition,
    Puzzle as PuzzleDefinition,
    SplashScreen as SplashScreenDefinition,
    anchor_from_parts,
)
from taletrail.engine.events import USAGE_LOG_ACTIONS
from taletrail.engine.state import AccessCodeState

from .database import Base


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True)  # uuid
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="admin")  # super_admin | admin | editor | viewer
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    title = Column(String(200), nullable=False)
    location_id = Column(String(36), nullable=True, index=True)  # owning location (external record)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    puzzles = relationship("Puzzle", back_populates="game", cascade="all, delete-orphan")
    splash_screens = relationship("SplashScreen", back_populates="game", cascade="all, delete-orphan")
    access_codes = relationship("AccessCode", back_populates="game", cascade="all, delete-orphan")

    def to_definition(self) -> GameDefinition:
        return GameDefinition(
            id=self.id,
            title=self.title,
            is_active=bool(self.is_active),
            location_id=self.location_id,
        )


class Puzzle(Base):
    __tablename__ = "puzzles"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="")
    riddle = Column(Text, nullable=False, default="")
    clues = Column(JSON, nullable=False, default=list)  # ordered, revealed progressively
    answer = Column(String(500), nullable=False)
    answer_type = Column(String(16), nullable=False, default="text")  # text | choice
    answer_options = Column(JSON, nullable=False, default=list)
    sequence_order = Column(Float, nullable=False)  # rank, unique per game
    created_at = Column(DateTime, default=utcnow)

    game = relationship("Game", back_populates="puzzles")

    __table_args__ = (
        UniqueConstraint("game_id", "sequence_order", name="uq_puzzle_game_order"),
    )

    def to_definition(self) -> PuzzleDefinition:
        return PuzzleDefinition.from_dict({
            "id": self.id,
            "game_id": self.game_id,
            "title": self.title,
            "riddle": self.riddle,
            "clues": self.clues or [],
            "answer": self.answer,
            "answer_type": self.answer_type,
            "answer_options": self.answer_options or [],
            "sequence_order": self.sequence_order,
        })


class SplashScreen(Base):
    __tablename__ = "splash_screens"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    sequence_order = Column(Float, nullable=False)  # rank among screens sharing the anchor
    # Anchor as a tagged pair: start | puzzle (+ anchor_puzzle_id) | end
    anchor_kind = Column(String(8), nullable=False, default="start")
    # No foreign key: a dangling id surfaces as an orphan on the timeline
    anchor_puzzle_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    game = relationship("Game", back_populates="splash_screens")

    __table_args__ = (
        CheckConstraint("anchor_kind IN ('start', 'puzzle', 'end')", name="ck_splash_anchor_kind"),
        CheckConstraint(
            "(anchor_kind = 'puzzle' AND anchor_puzzle_id IS NOT NULL) "
            "OR (anchor_kind != 'puzzle' AND anchor_puzzle_id IS NULL)",
            name="ck_splash_anchor_puzzle",
        ),
    )

    def to_definition(self) -> SplashScreenDefinition:
        return SplashScreenDefinition(
            id=self.id,
            game_id=self.game_id,
            sequence_order=float(self.sequence_order or 0),
            anchor=anchor_from_parts(self.anchor_kind, self.anchor_puzzle_id),
            title=self.title or "",
            content=self.content or "",
        )


class AccessCode(Base):
    __tablename__ = "access_codes"

    id = Column(String(36), primary_key=True)
    code = Column(String(16), unique=True, nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_test = Column(Boolean, nullable=False, default=False)  # never expires, session can be reset
    activated_at = Column(DateTime, nullable=True)  # set once, on first redemption
    expires_at = Column(DateTime, nullable=True)  # activated_at + play window, written once
    expiry_logged_at = Column(DateTime, nullable=True)  # guards the single "expired" usage log entry
    created_at = Column(DateTime, default=utcnow)

    game = relationship("Game", back_populates="access_codes")
    session = relationship("PlayerSession", back_populates="access_code", uselist=False,
                           cascade="all, delete-orphan")
    usage_logs = relationship("CodeUsageLog", back_populates="access_code", cascade="all, delete-orphan",
                              order_by="CodeUsageLog.id")

    def to_state(self) -> AccessCodeState:
        return AccessCodeState(
            id=self.id,
            code=self.code,
            game_id=self.game_id,
            is_active=bool(self.is_active),
            activated_at=self.activated_at,
            expires_at=self.expires_at,
            is_test=bool(self.is_test),
        )


class PlayerSession(Base):
    __tablename__ = "player_sessions"

    id = Column(String(36), primary_key=True)
    access_code_id = Column(String(36), ForeignKey("access_codes.id", ondelete="CASCADE"),
                            nullable=False, unique=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    current_puzzle_id = Column(String(36), nullable=True)  # null once the last puzzle is completed
    player_email = Column(String(255), nullable=True)
    last_activity = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)  # guards the single "completed" usage log entry
    created_at = Column(DateTime, default=utcnow)

    access_code = relationship("AccessCode", back_populates="session")
    completions = relationship("PuzzleCompletion", cascade="all, delete-orphan")
    clue_reveals = relationship("ClueReveal", cascade="all, delete-orphan")
    splash_views = relationship("SplashView", cascade="all, delete-orphan")


class PuzzleCompletion(Base):
    """One row per completed puzzle per session (the completed_puzzles set)."""
    __tablename__ = "puzzle_completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("player_sessions.id", ondelete="CASCADE"), nullable=False)
    puzzle_id = Column(String(36), nullable=False)
    completed_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "puzzle_id", name="uq_completion_session_puzzle"),
    )


class ClueReveal(Base):
    """Clue-reveal counter for one puzzle in one session. Only ever incremented in place."""
    __tablename__ = "clue_reveals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("player_sessions.id", ondelete="CASCADE"), nullable=False)
    puzzle_id = Column(String(36), nullable=False)
    revealed = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("session_id", "puzzle_id", name="uq_clue_session_puzzle"),
        CheckConstraint("revealed >= 0", name="ck_clue_revealed_non_negative"),
    )


class SplashView(Base):
    __tablename__ = "splash_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("player_sessions.id", ondelete="CASCADE"), nullable=False)
    splash_screen_id = Column(String(36), nullable=False)
    viewed_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "splash_screen_id", name="uq_splash_view_session"),
    )


class CodeUsageLog(Base):
    """Append-only lifecycle record: activated | expired | completed."""
    __tablename__ = "code_usage_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    access_code_id = Column(String(36), ForeignKey("access_codes.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    game_id = Column(String(36), nullable=False, index=True)
    action = Column(String(16), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    details = Column("metadata", JSON, nullable=False, default=dict)

    access_code = relationship("AccessCode", back_populates="usage_logs")

    __table_args__ = (
        CheckConstraint(
            "action IN (" + ", ".join(f"'{a}'" for a in USAGE_LOG_ACTIONS) + ")",
            name="ck_usage_action",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "access_code_id": self.access_code_id,
            "game_id": self.game_id,
            "action": self.action,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "metadata": self.details or {},
        }
