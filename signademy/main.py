# Standard library imports
from pathlib import Path
from contextlib import asynccontextmanager
import logging

# External package imports
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Local application imports
from .api.v1 import models_router, recognition_router
from .api.v1.dependencies import (
    set_asset_cache,
    set_gesture_session,
    set_websocket_manager,
    status_code_for,
)
from .api.v1.recognition_controller import cleared_message, detection_message
from .application.services.gesture_session import GestureSession
from .core.config import get_settings
from .exceptions import SignademyError, get_user_message
from .infrastructure.cache.asset_cache import AssetCache
from .infrastructure.http_client_factory import close_shared_http_client
from .infrastructure.notifications import WebSocketManager
from .processing.camera.camera_manager import CameraResourceManager
from .processing.models.model_loader import RecognizerLoader
from .processing.recognition.detection_state import ConfidenceThresholds

logger = logging.getLogger(__name__)


def build_gesture_session(cache: AssetCache) -> GestureSession:
    """Wire loader, camera manager and thresholds from settings."""
    settings = get_settings()
    return GestureSession(
        loader=RecognizerLoader(cache),
        camera=CameraResourceManager(first_frame_timeout=settings.camera_first_frame_timeout),
        thresholds=ConfidenceThresholds(
            display=settings.recognition_display_threshold,
            scoring=settings.recognition_scoring_threshold,
        ),
        grace_ms=settings.recognition_grace_ms,
        frame_interval=1.0 / max(settings.recognition_fps, 1.0),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    
    Creates the asset cache, the gesture session and the WebSocket manager,
    and forwards session detections to connected WebSocket clients.
    """
    settings = get_settings()
    
    cache = AssetCache(settings.model_cache_dir, download_timeout=settings.model_download_timeout)
    session = build_gesture_session(cache)
    websocket_manager = WebSocketManager()
    session.subscribe(
        lambda event: websocket_manager.publish(detection_message(event)),
        lambda: websocket_manager.publish(cleared_message()),
    )
    
    set_asset_cache(cache)
    set_gesture_session(session)
    set_websocket_manager(websocket_manager)
    logger.info(f"Gesture services initialized (model cache at {cache.cache_dir})")
    
    yield
    
    try:
        await session.close()
    except Exception as e:
        logger.error(f"Error closing gesture session: {e}", exc_info=True)
    
    set_gesture_session(None)
    set_asset_cache(None)
    set_websocket_manager(None)
    await close_shared_http_client()
    logger.info("Application shutdown complete")


async def handle_signademy_error(request: Request, exc: SignademyError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": get_user_message(exc)},
    )


def create_application() -> FastAPI:
    """
    Create and configure FastAPI application.
    
    This function sets up the FastAPI application with:
    - Environment variable loading
    - CORS middleware configuration
    - API route registration
    
    Returns:
        Configured FastAPI application instance
    """
    # Load environment variables from .env file
    env_path = Path(__file__).resolve().parent.parent / ".env"
    load_dotenv(env_path)
    
    application = FastAPI(
        title="Signademy Vision API",
        version="1.0.0",
        description="Sign language gesture recognition service",
        lifespan=lifespan
    )
    
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    application.add_exception_handler(SignademyError, handle_signademy_error)
    
    # Register API routers
    application.include_router(models_router, prefix="/api/v1/models")
    application.include_router(recognition_router, prefix="/api/v1/recognition")
    
    @application.get("/health")
    async def health() -> dict:
        return {"status": "ok"}
    
    return application


# Create application instance
app = create_application()
