"""Gesture session: one loaded recognizer, one camera and one recognition loop."""
import asyncio
import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from ...exceptions import (
    InvalidStateTransitionError,
    ModelLoadError,
    RecognizerNotReadyError,
    StaleResultDiscarded,
)
from ...processing.camera.camera_manager import CameraResourceManager
from ...processing.data_input.still_image import ImageInput
from ...processing.drawing.landmark_overlay import OverlaySurface
from ...processing.models.contracts import RunningMode
from ...processing.models.model_loader import LoadProgressCallback, RecognizerInstance, RecognizerLoader
from ...processing.recognition.detection_state import (
    ClassificationEvent,
    ConfidenceThresholds,
    DetectionSmoother,
    DetectionState,
)
from ...processing.recognition.frame_loop import Clock, FrameRecognitionLoop, Scheduler
from ...processing.recognition.single_shot import StillImageRecognizer, StillRecognition

logger = logging.getLogger(__name__)

DetectionListener = Callable[[ClassificationEvent], None]
ClearedListener = Callable[[], None]


class GestureSession:
    """
    Facade over the loader, camera manager and recognition loop.

    Every lifecycle change (model load, camera start/stop, still analysis,
    close) runs under one lock, so reconfiguration always happens in the
    order stop -> reconfigure -> start and never while a loop is ticking.
    """

    def __init__(
        self,
        loader: RecognizerLoader,
        camera: Optional[CameraResourceManager] = None,
        thresholds: Optional[ConfidenceThresholds] = None,
        grace_ms: float = 500.0,
        frame_interval: float = 1.0 / 30.0,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
    ):
        self.loader = loader
        self.camera = camera or CameraResourceManager()
        self.thresholds = thresholds or ConfidenceThresholds()
        self.smoother = DetectionSmoother(self.thresholds, grace_ms)
        self.overlay = OverlaySurface()
        self.frame_interval = frame_interval
        self._scheduler = scheduler
        self._clock = clock
        self._still = StillImageRecognizer()
        self._lock = asyncio.Lock()
        self._instance: Optional[RecognizerInstance] = None
        self._loop: Optional[FrameRecognitionLoop] = None
        self._loading = False
        self._last_error: Optional[Exception] = None
        self._listeners: List[Tuple[DetectionListener, Optional[ClearedListener]]] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def instance(self) -> Optional[RecognizerInstance]:
        return self._instance

    @property
    def category(self) -> Optional[str]:
        if self._instance is None:
            return None
        return self._instance.source.category or self._instance.source.key

    @property
    def is_ready(self) -> bool:
        return self._instance is not None and not self._loading

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_streaming(self) -> bool:
        return self._loop is not None and self._loop.is_running and self.camera.is_running

    @property
    def detection_state(self) -> DetectionState:
        return self.smoother.state

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def running_mode(self) -> Optional[RunningMode]:
        return self._instance.running_mode if self._instance else None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(
        self,
        on_detection: DetectionListener,
        on_cleared: Optional[ClearedListener] = None,
    ) -> Callable[[], None]:
        """Listen for accepted detections and clears across camera restarts."""
        entry = (on_detection, on_cleared)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _emit_detection(self, event: ClassificationEvent) -> None:
        for on_detection, _ in list(self._listeners):
            on_detection(event)

    def _emit_cleared(self) -> None:
        for _, on_cleared in list(self._listeners):
            if on_cleared is None:
                continue
            try:
                on_cleared()
            except Exception as e:
                logger.error(f"Cleared listener failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Streaming internals (lock held)
    # ------------------------------------------------------------------

    async def _start_streaming(self) -> None:
        assert self._instance is not None
        self._still.cancel()
        await self._instance.set_running_mode(RunningMode.VIDEO)
        session = await self.camera.start()

        loop = FrameRecognitionLoop(
            self._instance.classifier,
            session.stream,
            overlay=self.overlay,
            smoother=self.smoother,
            scheduler=self._scheduler,
            clock=self._clock,
            frame_interval=self.frame_interval,
        )
        loop.subscribe(self._emit_detection, self._emit_cleared)
        self._loop = loop
        try:
            loop.start()
        except Exception:
            self._loop = None
            await self.camera.stop()
            raise

    async def _stop_streaming(self) -> None:
        loop, self._loop = self._loop, None
        had_detection = self.smoother.state.event is not None
        if loop is not None:
            await loop.stop()
        await self.camera.stop()
        if had_detection:
            self._emit_cleared()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load_model(
        self,
        category: str,
        custom_url: Optional[str] = None,
        on_progress: Optional[LoadProgressCallback] = None,
    ) -> RecognizerInstance:
        """
        Switch to a model category.

        The loop and camera are stopped and the old recognizer closed before
        the new one is loaded; the camera is restarted if it was streaming.

        Raises:
            ModelLoadError: Loading failed; the session is left without a model
            CameraAccessError: The model loaded but the camera could not restart
        """
        async with self._lock:
            was_streaming = self.is_streaming
            await self._stop_streaming()
            self._still.cancel()
            if self._instance is not None:
                self._instance.close()
                self._instance = None

            self._loading = True
            try:
                instance = await self.loader.load(category, custom_url, RunningMode.IMAGE, on_progress)
            except ModelLoadError as e:
                self._last_error = e
                raise
            finally:
                self._loading = False

            self._instance = instance
            self._last_error = None

            if was_streaming:
                await self._start_streaming()
            return instance

    async def start_camera(self) -> None:
        """
        Put the recognizer in VIDEO mode, acquire the camera and start the loop.

        Raises:
            RecognizerNotReadyError: No model is loaded
            CameraAccessError: The camera could not be acquired
        """
        async with self._lock:
            if self._instance is None:
                raise RecognizerNotReadyError()
            if self.is_streaming:
                return
            await self._start_streaming()

    async def stop_camera(self) -> None:
        async with self._lock:
            await self._stop_streaming()

    async def recognize_still(self, image: ImageInput) -> Optional[StillRecognition]:
        """
        Classify one image in IMAGE mode.

        Returns:
            The result, or None if a newer request or clear_still() superseded it

        Raises:
            RecognizerNotReadyError: No model is loaded
            InvalidStateTransitionError: The live camera loop is running
            RecognitionError: The image could not be decoded or classified
        """
        token = self._still.begin()
        async with self._lock:
            if self._instance is None:
                raise RecognizerNotReadyError()
            if self.is_streaming:
                raise InvalidStateTransitionError(
                    "Cannot analyze an image while the camera is running",
                    user_message="Stop the camera before analyzing an image.",
                )
            if not self._still.is_current(token):
                return None

            await self._instance.set_running_mode(RunningMode.IMAGE)
            try:
                return await self._still.recognize(self._instance.classifier, image, token)
            except StaleResultDiscarded:
                logger.debug("Discarded stale still-image result")
                return None

    def clear_still(self) -> None:
        """Forget the current still analysis; a pending one is discarded."""
        self._still.cancel()

    def snapshot(self) -> Optional[np.ndarray]:
        """Latest camera frame with landmarks drawn, or None when not streaming."""
        loop = self._loop
        return loop.compose_latest() if loop is not None else None

    async def close(self) -> None:
        """Stop everything and release the recognizer."""
        async with self._lock:
            await self._stop_streaming()
            self._still.cancel()
            if self._instance is not None:
                self._instance.close()
                self._instance = None
            logger.info("Gesture session closed")
