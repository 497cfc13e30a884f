"""Recognition API endpoints: model switching, camera control, still images and live events"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional

import cv2
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, WebSocket, WebSocketDisconnect, status

from ...application.dto.recognition_dto import (
    DetectionResponse,
    LoadModelRequest,
    LoadModelResponse,
    SessionStateResponse,
    StillRecognitionResponse,
)
from ...application.services.gesture_session import GestureSession
from ...exceptions import SignademyError, get_user_message
from ...processing.recognition.detection_state import ClassificationEvent
from .dependencies import get_gesture_session, get_websocket_manager, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recognition"])


def detection_to_dto(event: Optional[ClassificationEvent]) -> Optional[DetectionResponse]:
    if event is None:
        return None
    return DetectionResponse(
        label=event.label,
        confidence_percent=event.confidence_percent,
        timestamp_ms=event.timestamp_ms,
        raw_label=event.raw_label,
    )


def detection_message(event: ClassificationEvent) -> Dict[str, Any]:
    """WebSocket payload for an accepted detection"""
    return {"type": "detection", **detection_to_dto(event).model_dump()}


def cleared_message() -> Dict[str, Any]:
    return {"type": "cleared"}


def session_state(session: GestureSession) -> SessionStateResponse:
    return SessionStateResponse(
        category=session.category,
        ready=session.is_ready,
        loading=session.is_loading,
        streaming=session.is_streaming,
        running_mode=session.running_mode.value if session.running_mode else None,
        detection=detection_to_dto(session.detection_state.event),
        last_error=get_user_message(session.last_error) if session.last_error else None,
    )


@router.post("/load", response_model=LoadModelResponse)
async def load_model(
    request: LoadModelRequest,
    session: GestureSession = Depends(get_gesture_session),
) -> LoadModelResponse:
    """
    Switch the session to a model category.

    A running camera is stopped for the switch and restarted afterwards.
    """
    progress: List[int] = []
    try:
        instance = await session.load_model(request.category, request.custom_url, on_progress=progress.append)
    except SignademyError as e:
        logger.warning(f"Model load failed for {request.category}: {e}")
        raise to_http_exception(e)

    return LoadModelResponse(
        category=request.category,
        display_name=instance.source.display_name,
        running_mode=instance.running_mode.value,
        progress=progress,
    )


@router.get("/state", response_model=SessionStateResponse)
async def get_state(session: GestureSession = Depends(get_gesture_session)) -> SessionStateResponse:
    return session_state(session)


@router.post("/camera/start", response_model=SessionStateResponse)
async def start_camera(session: GestureSession = Depends(get_gesture_session)) -> SessionStateResponse:
    """Start the camera and the live recognition loop"""
    try:
        await session.start_camera()
    except SignademyError as e:
        logger.warning(f"Camera start failed: {e}")
        raise to_http_exception(e)
    return session_state(session)


@router.post("/camera/stop", response_model=SessionStateResponse)
async def stop_camera(session: GestureSession = Depends(get_gesture_session)) -> SessionStateResponse:
    await session.stop_camera()
    return session_state(session)


@router.get("/camera/snapshot")
async def camera_snapshot(session: GestureSession = Depends(get_gesture_session)) -> Response:
    """Latest camera frame with hand landmarks drawn, as JPEG"""
    frame = session.snapshot()
    if frame is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Camera is not running"
        )
    ok, encoded = await asyncio.to_thread(cv2.imencode, ".jpg", frame)
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to encode frame"
        )
    return Response(content=encoded.tobytes(), media_type="image/jpeg")


@router.post("/image", response_model=StillRecognitionResponse)
async def recognize_image(
    file: UploadFile = File(...),
    include_image: bool = False,
    session: GestureSession = Depends(get_gesture_session),
) -> StillRecognitionResponse:
    """
    Recognize the sign in an uploaded image.

    Args:
        file: Image file (any format Pillow can decode)
        include_image: Return the annotated image as base64 JPEG
    """
    data = await file.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty image upload"
        )

    try:
        recognition = await session.recognize_still(data)
    except SignademyError as e:
        raise to_http_exception(e)

    if recognition is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Image analysis was superseded by a newer request"
        )

    image_base64 = None
    if include_image:
        ok, encoded = await asyncio.to_thread(cv2.imencode, ".jpg", recognition.image)
        if ok:
            image_base64 = base64.b64encode(encoded.tobytes()).decode("ascii")

    return StillRecognitionResponse(
        detected=recognition.detected,
        message=recognition.message,
        label=recognition.label,
        raw_label=recognition.raw_label,
        confidence_percent=recognition.confidence_percent,
        hands=len(recognition.result.landmarks),
        image_base64=image_base64,
    )


@router.delete("/image", status_code=status.HTTP_204_NO_CONTENT)
async def clear_image(session: GestureSession = Depends(get_gesture_session)) -> None:
    """Discard the current image analysis"""
    session.clear_still()


async def _pump_messages(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/ws")
async def recognition_events(websocket: WebSocket):
    """
    WebSocket endpoint streaming live detection events.

    Messages are {"type": "detection", "label", "confidence_percent", ...}
    and {"type": "cleared"}. Clients may send "ping" to receive "pong".
    """
    try:
        manager = get_websocket_manager()
    except HTTPException as e:
        await websocket.close(code=1011, reason=str(e.detail))
        return

    await websocket.accept()
    queue = manager.add_connection()
    sender = asyncio.create_task(_pump_messages(websocket, queue))

    try:
        await websocket.send_json({"type": "connection_established"})
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
            else:
                logger.debug(f"Ignoring WebSocket message: {message}")
    except WebSocketDisconnect:
        logger.info("Recognition WebSocket disconnected")
    except Exception as e:
        logger.error(f"Error in recognition WebSocket: {e}", exc_info=True)
    finally:
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"WebSocket sender ended with error: {e}")
        manager.remove_connection(queue)
