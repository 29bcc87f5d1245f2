"""
FastAPI backend for Tale & Trail.
Player endpoints redeem access codes and play through a game; admin endpoints manage codes and ordering.
"""

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from taletrail.config import CORS_ORIGINS, LOG_LEVEL
from taletrail.engine.access import utcnow
from taletrail.engine.errors import EngineError

from . import store
from .auth import create_access_token, get_current_admin, verify_password
from .database import get_db, init_db
from .models import AdminUser

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tale & Trail API",
    description="Game progression engine for Tale & Trail puzzle trails",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Engine error kind -> HTTP status
ERROR_STATUS = {
    "not_found": 404,
    "deactivated": 403,
    "expired": 410,
    "session_not_found": 404,
    "content_not_found": 404,
    "validation_error": 400,
    "code_generation_failed": 500,
}

EDITOR_ROLES = ("super_admin", "admin", "editor")


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.error("[500] %s %s (exception)", method, path)
        raise


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    status_code = ERROR_STATUS.get(exc.kind, 400)
    if status_code >= 500:
        logger.error("%s: %s", exc.kind, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": exc.kind})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Return 500 with the message so the frontend can read the error."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc), "error": "internal_error"})


# ===== Pydantic Models =====

class RedeemRequest(BaseModel):
    code: str


class SubmitRequest(BaseModel):
    puzzle_id: str
    answer: Any = None  # validated by the evaluator so malformed answers get a uniform 400


class SplashViewedRequest(BaseModel):
    splash_screen_id: str


class EmailRequest(BaseModel):
    email: str


class LoginRequest(BaseModel):
    email: str
    password: str


class GenerateCodesRequest(BaseModel):
    quantity: int = 1
    is_test: bool = False


class AnchorRequest(BaseModel):
    kind: str
    puzzle_id: str | None = None


class MoveRequest(BaseModel):
    direction: str


# ===== Helper Functions =====

def _require_editor(admin: AdminUser) -> None:
    """Raise 403 for read-only admins."""
    if admin.role not in EDITOR_ROLES:
        raise HTTPException(status_code=403, detail="Your role cannot change game data")


def admin_for_response(admin: AdminUser) -> dict[str, Any]:
    return {"id": admin.id, "email": admin.email, "role": admin.role}


@app.on_event("startup")
def on_startup():
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Tale & Trail API", "version": "1.0.0"}


# ----- Player -----

@app.post("/play/redeem")
def redeem_code(request: RedeemRequest, db: Session = Depends(get_db)):
    """Enter a game with an access code. First use starts the play window; later uses resume."""
    now = utcnow()
    view = store.redeem(db, request.code, now)
    return view.to_dict(now)


@app.get("/play/sessions/{session_id}")
def get_play_session(session_id: str, db: Session = Depends(get_db)):
    now = utcnow()
    return store.get_play_session(db, session_id, now).to_dict(now)


@app.post("/play/sessions/{session_id}/submit")
def submit_answer(session_id: str, request: SubmitRequest, db: Session = Depends(get_db)):
    """Answer the current puzzle. Wrong answers return the next clue."""
    now = utcnow()
    view = store.submit_answer(db, session_id, request.puzzle_id, request.answer, now)
    return view.to_dict(now)


@app.post("/play/sessions/{session_id}/splash-viewed")
def splash_viewed(session_id: str, request: SplashViewedRequest, db: Session = Depends(get_db)):
    now = utcnow()
    return store.mark_splash_viewed(db, session_id, request.splash_screen_id, now).to_dict(now)


@app.put("/play/sessions/{session_id}/email")
def set_email(session_id: str, request: EmailRequest, db: Session = Depends(get_db)):
    now = utcnow()
    return store.set_player_email(db, session_id, request.email, now).to_dict(now)


# ----- Admin auth -----

@app.post("/admin/login")
def admin_login(request: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    admin = db.query(AdminUser).filter(AdminUser.email == request.email.strip().lower()).first()
    if not admin or not admin.is_active or not verify_password(request.password, admin.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token(admin.id)
    return {"access_token": token, "admin": admin_for_response(admin)}


@app.get("/admin/me")
def admin_me(admin: AdminUser = Depends(get_current_admin)):
    return admin_for_response(admin)


# ----- Admin: access codes -----

@app.post("/admin/games/{game_id}/codes")
def generate_codes(
    game_id: str,
    request: GenerateCodesRequest,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Generate 1..100 unused access codes for a game."""
    _require_editor(admin)
    codes = store.generate_access_codes(db, game_id, request.quantity, request.is_test)
    now = utcnow()
    return {"codes": [c.to_dict(now) for c in codes]}


@app.get("/admin/codes/{code_id}")
def get_code(code_id: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    return store.code_report(db, code_id)


@app.post("/admin/codes/{code_id}/deactivate")
def deactivate_code(code_id: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    """Permanently disable a code, whatever its state."""
    _require_editor(admin)
    code = store.deactivate_code(db, code_id)
    return code.to_dict(utcnow())


@app.get("/admin/codes/{code_id}/usage")
def get_code_usage(code_id: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    return {"usage": store.usage_log(db, code_id)}


# ----- Admin: timeline and ordering -----

@app.get("/admin/games/{game_id}/timeline")
def get_timeline(game_id: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    """Composed play order with orphaned splash screens flagged."""
    return store.game_timeline(db, game_id)


@app.post("/admin/splash-screens/{splash_id}/anchor")
def reassign_anchor(
    splash_id: str,
    request: AnchorRequest,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _require_editor(admin)
    return store.reassign_splash_anchor(db, splash_id, request.kind, request.puzzle_id)


@app.post("/admin/splash-screens/{splash_id}/move")
def move_splash(
    splash_id: str,
    request: MoveRequest,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _require_editor(admin)
    return store.move_splash(db, splash_id, request.direction)


@app.post("/admin/puzzles/{puzzle_id}/move")
def move_puzzle(
    puzzle_id: str,
    request: MoveRequest,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _require_editor(admin)
    return store.move_puzzle(db, puzzle_id, request.direction)


# ----- Admin: sessions -----

@app.post("/admin/sessions/{session_id}/reset")
def reset_session(session_id: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    """Send a test code's session back to the start."""
    _require_editor(admin)
    now = utcnow()
    return store.reset_session(db, session_id, now).to_dict(now)
