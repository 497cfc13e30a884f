"""
Frame Recognition Loop
----------------------

Per-frame recognition over a live frame source.

HOW IT WORKS:
-------------
1. Each tick reads the latest frame from the source
2. The frame is classified only if its media time moved since the last tick
3. The overlay is redrawn every tick from the last retained result
4. A classified frame feeds its top candidate to the DetectionSmoother;
   a skipped frame only lets the current detection decay
5. Accepted candidates and clears are published to subscribers

The loop runs as an asyncio task: tick, await the scheduler, repeat while
the running flag is set. Ticks are synchronous, so stop() never interrupts
one halfway.
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

import numpy as np

from ...exceptions import InvalidStateTransitionError
from ..data_input.data_models import FrameSource
from ..drawing.landmark_overlay import OverlaySurface
from ..models.contracts import GestureClassifier, RecognitionResult, RunningMode
from .detection_state import ClassificationEvent, DetectionSmoother, DetectionState, DetectionUpdate

logger = logging.getLogger(__name__)

DetectionListener = Callable[[ClassificationEvent], None]
ClearedListener = Callable[[], None]
Scheduler = Callable[[], Awaitable[None]]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class LoopState:
    running: bool = False
    last_media_time: float = -1.0
    last_result: Optional[RecognitionResult] = None
    frames_processed: int = 0
    ticks: int = 0


class FrameRecognitionLoop:
    """Drives one classifier over one frame source."""

    def __init__(
        self,
        classifier: GestureClassifier,
        source: FrameSource,
        overlay: Optional[OverlaySurface] = None,
        smoother: Optional[DetectionSmoother] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        frame_interval: float = 1.0 / 30.0,
    ):
        self.classifier = classifier
        self.source = source
        self.overlay = overlay or OverlaySurface()
        self.smoother = smoother or DetectionSmoother()
        self._scheduler = scheduler or functools.partial(asyncio.sleep, frame_interval)
        self._clock = clock or monotonic_ms
        self._state = LoopState()
        self._task: Optional["asyncio.Task[None]"] = None
        self._listeners: List[Tuple[DetectionListener, Optional[ClearedListener]]] = []

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def detection(self) -> DetectionState:
        return self.smoother.state

    def subscribe(
        self,
        on_detection: DetectionListener,
        on_cleared: Optional[ClearedListener] = None,
    ) -> Callable[[], None]:
        """Register listeners. Returns a function that unregisters them."""
        entry = (on_detection, on_cleared)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _dispatch(self, update: DetectionUpdate) -> None:
        for on_detection, on_cleared in list(self._listeners):
            try:
                if update.accepted is not None:
                    on_detection(update.accepted)
                elif update.cleared and on_cleared is not None:
                    on_cleared()
            except Exception as e:
                logger.error(f"Detection listener failed: {e}", exc_info=True)

    def tick(self) -> bool:
        """
        Run one iteration.

        Returns:
            True if a new frame was classified on this tick
        """
        self._state.ticks += 1
        now_ms = self._clock()
        packet = self.source.latest()
        if packet is None:
            self._dispatch(self.smoother.expire(now_ms))
            return False

        self.overlay.resize(packet.width, packet.height)

        processed = False
        if packet.media_time != self._state.last_media_time:
            self._state.last_media_time = packet.media_time
            try:
                self._state.last_result = self.classifier.recognize_video_frame(packet.frame, int(now_ms))
                self._state.frames_processed += 1
                processed = True
            except Exception as e:
                logger.warning(f"Frame {packet.frame_index} classification failed: {e}")

        self.overlay.redraw(self._state.last_result)

        if processed and self._state.last_result is not None:
            update = self.smoother.observe(self._state.last_result.top_gesture, now_ms)
        else:
            update = self.smoother.expire(now_ms)
        self._dispatch(update)
        return processed

    async def _run(self) -> None:
        while self._state.running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Recognition tick failed: {e}", exc_info=True)
            await self._scheduler()

    def start(self) -> None:
        """
        Start ticking in a background task.

        Raises:
            InvalidStateTransitionError: If the classifier is not in VIDEO mode
        """
        if self._task is not None and not self._task.done():
            return
        if self.classifier.running_mode is not RunningMode.VIDEO:
            raise InvalidStateTransitionError("Recognition loop requires a VIDEO mode classifier")
        self._state.running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Recognition loop started")

    async def stop(self) -> None:
        """Stop ticking and reset retained state. Safe to call more than once."""
        was_running = self._state.running
        self._state.running = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._state.last_media_time = -1.0
        self._state.last_result = None
        self.smoother.reset()
        self.overlay.clear()
        if was_running:
            logger.info(f"Recognition loop stopped after {self._state.frames_processed} frames")

    def compose_latest(self) -> Optional[np.ndarray]:
        """Latest frame with the overlay painted over it, or None."""
        packet = self.source.latest()
        if packet is None:
            return None
        return self.overlay.compose(packet.frame)
