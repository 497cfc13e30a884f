"""
Custom exception hierarchy for the Signademy gesture pipeline.

Used by the asset cache, recognizer loader, camera manager and the
recognition loop. All pipeline exceptions inherit from SignademyError and
can carry a user-facing message.
"""

# -----------------------------------------------------------------------------
# Standard library
# -----------------------------------------------------------------------------
from typing import Any, Dict, List, Optional


# -----------------------------------------------------------------------------
# Base
# -----------------------------------------------------------------------------


class SignademyError(Exception):
    """Base exception for all Signademy errors."""

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or "An error occurred. Please try again."
        self.details = details or {}


# -----------------------------------------------------------------------------
# Model loading
# -----------------------------------------------------------------------------


class ModelLoadError(SignademyError):
    """Raised when a recognizer could not be made ready."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", "Failed to load the sign model. Please try again.")
        super().__init__(message, **kwargs)


class RuntimeLoadError(ModelLoadError):
    """Raised when every runtime endpoint failed after all retries."""

    def __init__(self, message: str, attempts: Optional[List[str]] = None, **kwargs):
        kwargs.setdefault(
            "user_message",
            "Could not load the recognition runtime. Check your connection and try again.",
        )
        super().__init__(message, **kwargs)
        self.attempts = list(attempts or [])
        self.details.setdefault("attempts", self.attempts)


class AssetDownloadError(ModelLoadError):
    """Raised when a model asset download fails (non-2xx, transport error or timeout)."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("user_message", "Failed to download the sign model. Please try again.")
        super().__init__(message, **kwargs)
        self.url = url
        self.status = status
        self.details.setdefault("url", url)
        self.details.setdefault("status", status)


DownloadError = AssetDownloadError


class UnknownModelCategoryError(ModelLoadError):
    """Raised when a category is not present in the model registry."""

    def __init__(self, category: str, **kwargs):
        kwargs.setdefault("user_message", f"Unknown model category: {category}")
        super().__init__(f"Unknown model category: {category!r}", **kwargs)
        self.category = category


# -----------------------------------------------------------------------------
# Camera
# -----------------------------------------------------------------------------


class CameraAccessError(SignademyError):
    """Raised when the camera could not be acquired or never delivered a frame."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault(
            "user_message",
            "Could not access the camera. Please check permissions and that no other app is using it.",
        )
        super().__init__(message, **kwargs)


# -----------------------------------------------------------------------------
# Recognition
# -----------------------------------------------------------------------------


class RecognitionError(SignademyError):
    """Raised when classifying a single frame fails."""
    pass


class StaleResultDiscarded(SignademyError):
    """Raised when a one-shot result belongs to a request that was superseded."""

    def __init__(self, message: str = "Recognition result is stale", **kwargs):
        super().__init__(message, **kwargs)


class RecognizerNotReadyError(SignademyError):
    """Raised when recognition is requested before a model is loaded."""

    def __init__(self, message: str = "No sign model is loaded", **kwargs):
        kwargs.setdefault("user_message", "Please load a sign model first.")
        super().__init__(message, **kwargs)


class InvalidStateTransitionError(SignademyError):
    """Raised when attempting an invalid state transition."""
    pass


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def get_user_message(exc: Exception) -> str:
    """Return a user-facing message for an exception."""
    if isinstance(exc, SignademyError):
        return exc.user_message
    return "An unexpected error occurred. Please try again."
