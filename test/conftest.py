"""
Shared fixtures: the two-puzzle scenario game (P1, P2 with splash screens S1 at the start and
S2 before P2) as pure engine records, and the same game seeded into an in-memory database.
"""

import uuid
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taletrail.api import models
from taletrail.api.auth import hash_password
from taletrail.api.database import get_db, init_db
from taletrail.api.main import app
from taletrail.engine.definitions import BeforePuzzle, Puzzle, SplashScreen, Start
from taletrail.engine.state import AccessCodeState
from taletrail.engine.timeline import compose

T0 = datetime(2025, 6, 1, 9, 0, 0)
GAME_ID = "game-1"


def make_puzzle(puzzle_id, order, clues=(), answer="answer", game_id=GAME_ID, **kwargs):
    return Puzzle(
        id=puzzle_id,
        game_id=game_id,
        sequence_order=float(order),
        riddle=f"Riddle {puzzle_id}",
        answer=answer,
        clues=list(clues),
        title=kwargs.pop("title", puzzle_id),
        **kwargs,
    )


def make_splash(splash_id, order, anchor=None, game_id=GAME_ID):
    return SplashScreen(
        id=splash_id,
        game_id=game_id,
        sequence_order=float(order),
        anchor=anchor or Start(),
        title=splash_id,
        content=f"Story {splash_id}",
    )


def scenario_content():
    puzzles = [
        make_puzzle("P1", 1, clues=["first clue", "second clue"], answer="Lantern"),
        make_puzzle("P2", 2, clues=["only clue"], answer="Harbour"),
    ]
    splashes = [
        make_splash("S1", 1, Start()),
        make_splash("S2", 1, BeforePuzzle("P2")),
    ]
    return puzzles, splashes


@pytest.fixture
def timeline():
    puzzles, splashes = scenario_content()
    return compose(puzzles, splashes)


@pytest.fixture
def unused_code():
    return AccessCodeState(id="code-1", code="ABCD1234", game_id=GAME_ID)


# ===== Database =====

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def seed_game(db, game_id=GAME_ID):
    db.add(models.Game(id=game_id, title="Scenario Game"))
    puzzles, splashes = scenario_content()
    for p in puzzles:
        db.add(models.Puzzle(
            id=p.id, game_id=game_id, title=p.title, riddle=p.riddle, clues=p.clues, answer=p.answer,
            answer_type=p.answer_type, answer_options=p.answer_options, sequence_order=p.sequence_order,
        ))
    for s in splashes:
        db.add(models.SplashScreen(
            id=s.id, game_id=game_id, title=s.title, content=s.content, sequence_order=s.sequence_order,
            anchor_kind=s.anchor.kind, anchor_puzzle_id=getattr(s.anchor, "puzzle_id", None),
        ))


def add_code(db, code, code_id=None, game_id=GAME_ID, is_test=False):
    row = models.AccessCode(id=code_id or str(uuid.uuid4()), code=code, game_id=game_id, is_test=is_test)
    db.add(row)
    return row


@pytest.fixture
def seeded_db(db):
    seed_game(db)
    add_code(db, "ABCD1234", code_id="code-1")
    add_code(db, "TEST2025", code_id="code-test", is_test=True)
    db.commit()
    return db


# ===== API =====

@pytest.fixture
def client(session_factory, seeded_db):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, seeded_db):
    seeded_db.add(models.AdminUser(
        id="admin-1", email="admin@example.com", password_hash=hash_password("s3cret"), role="admin",
    ))
    seeded_db.add(models.AdminUser(
        id="viewer-1", email="viewer@example.com", password_hash=hash_password("s3cret"), role="viewer",
    ))
    seeded_db.commit()
    response = client.post("/admin/login", json={"email": "admin@example.com", "password": "s3cret"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
