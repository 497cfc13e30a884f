# External package imports
from typing import Optional

from fastapi import HTTPException, status

# Local application imports
from ...application.services.gesture_session import GestureSession
from ...exceptions import (
    AssetDownloadError,
    CameraAccessError,
    InvalidStateTransitionError,
    RecognitionError,
    RecognizerNotReadyError,
    RuntimeLoadError,
    SignademyError,
    UnknownModelCategoryError,
    get_user_message,
)
from ...infrastructure.cache.asset_cache import AssetCache
from ...infrastructure.notifications import WebSocketManager


# Global instances (set from main.py lifespan)
_asset_cache: Optional[AssetCache] = None
_gesture_session: Optional[GestureSession] = None
_websocket_manager: Optional[WebSocketManager] = None


def set_asset_cache(cache: Optional[AssetCache]) -> None:
    global _asset_cache
    _asset_cache = cache


def set_gesture_session(session: Optional[GestureSession]) -> None:
    global _gesture_session
    _gesture_session = session


def set_websocket_manager(manager: Optional[WebSocketManager]) -> None:
    global _websocket_manager
    _websocket_manager = manager


def get_asset_cache() -> AssetCache:
    """FastAPI dependency returning the shared asset cache"""
    if _asset_cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Model cache not available"
        )
    return _asset_cache


def get_gesture_session() -> GestureSession:
    """FastAPI dependency returning the gesture session"""
    if _gesture_session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gesture session not available"
        )
    return _gesture_session


def get_websocket_manager() -> WebSocketManager:
    if _websocket_manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="WebSocket manager not available"
        )
    return _websocket_manager


def status_code_for(exc: SignademyError) -> int:
    """Map a pipeline error to an HTTP status code"""
    if isinstance(exc, UnknownModelCategoryError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, AssetDownloadError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, (RuntimeLoadError, CameraAccessError)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, (RecognizerNotReadyError, InvalidStateTransitionError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, RecognitionError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(exc: SignademyError) -> HTTPException:
    return HTTPException(status_code=status_code_for(exc), detail=get_user_message(exc))
