"""
Engine error taxonomy.
Each error carries a stable `kind` (used in API responses) and a player/admin facing message.
"""

from taletrail.config import PLAY_WINDOW_HOURS


class EngineError(Exception):
    """Base class for all engine errors."""
    kind = "engine_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "Game engine error"

    @property
    def message(self) -> str:
        return str(self)


# ===== Redemption errors =====

class RedeemError(EngineError):
    kind = "redeem_error"


class CodeNotFound(RedeemError):
    """Unknown access code. Recoverable: the player can retry with a different code."""
    kind = "not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Invalid access code. Please check your code and try again."


class CodeDeactivated(RedeemError):
    """Code disabled by an administrator. Terminal."""
    kind = "deactivated"

    @classmethod
    def default_message(cls) -> str:
        return "This access code is no longer valid."


class CodeExpired(RedeemError):
    """Play window elapsed. Terminal."""
    kind = "expired"

    @classmethod
    def default_message(cls) -> str:
        return (
            "This access code has expired. "
            f"Each code is valid for {PLAY_WINDOW_HOURS} hours from first use."
        )


# ===== Lookup / validation errors =====

class SessionNotFound(EngineError):
    kind = "session_not_found"

    @classmethod
    def default_message(cls) -> str:
        return "No active game session found."


class ContentNotFound(EngineError):
    kind = "content_not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Requested game content does not exist."


class ValidationError(EngineError):
    """Malformed input. Raised before any state is changed."""
    kind = "validation_error"

    @classmethod
    def default_message(cls) -> str:
        return "Invalid request."


class CodeGenerationError(EngineError):
    kind = "code_generation_failed"

    @classmethod
    def default_message(cls) -> str:
        return "Could not generate a unique access code."


class OrphanedSplashScreen(Warning):
    """
    Data-integrity warning: a splash screen is anchored to a puzzle that is not part of its game.
    Collected on the Timeline for administrators, never raised at players.
    """

    def __init__(self, splash_screen_id: str, missing_puzzle_id: str):
        self.splash_screen_id = splash_screen_id
        self.missing_puzzle_id = missing_puzzle_id
        super().__init__(
            f"Splash screen {splash_screen_id} is anchored to missing puzzle {missing_puzzle_id}"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "splash_screen_id": self.splash_screen_id,
            "missing_puzzle_id": self.missing_puzzle_id,
        }
