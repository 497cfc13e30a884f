"""
Camera stream
-------------

Reads frames from a local camera and keeps only the latest one.

HOW IT WORKS:
-------------
1. open_camera_stream() opens the device through OpenCV and starts a reader thread
2. The reader decodes frames at the device rate and replaces the latest packet
3. The first decoded frame sets the "loaded" signal the camera manager waits on
4. stop() ends the reader and releases the capture handle

Only the latest frame is kept (no buffering), so the recognition loop always
sees the most recent image and can tell from media_time whether it is new.
"""

# -----------------------------------------------------------------------------
# Standard library
# -----------------------------------------------------------------------------
import asyncio
import logging
import threading
import time
from typing import Any, Optional

# -----------------------------------------------------------------------------
# Third-party
# -----------------------------------------------------------------------------
import cv2

# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------
from ...exceptions import CameraAccessError
from .data_models import FramePacket

logger = logging.getLogger(__name__)


class CameraStream(threading.Thread):
    """
    Thread that pulls frames from a capture and publishes the latest one.

    The capture is any object with read() -> (ok, frame), get(prop) and
    release(), normally a cv2.VideoCapture.
    """

    def __init__(
        self,
        capture: Any,
        source_id: str = "camera",
        read_retry_delay: float = 0.01,
    ) -> None:
        super().__init__(daemon=True, name=f"camera-stream-{source_id}")
        self.source_id = source_id
        self.read_retry_delay = read_retry_delay
        self._capture = capture
        self._lock = threading.Lock()
        self._latest: Optional[FramePacket] = None
        self._loaded = threading.Event()
        self._stopped = threading.Event()
        self._released = False
        self._frame_index = 0
        self._start_monotonic = time.monotonic()
        fps = capture.get(cv2.CAP_PROP_FPS)
        self.fps: Optional[float] = float(fps) if fps else None

    def run(self) -> None:  # type: ignore[override]
        """Read frames until stopped. Failed reads are retried after a short wait."""
        while not self._stopped.is_set():
            ok, frame = self._capture.read()
            if not ok or frame is None or len(frame.shape) != 3:
                self._stopped.wait(self.read_retry_delay)
                continue
            if frame.shape[2] == 4:
                frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

            packet = FramePacket(
                frame=frame,
                frame_index=self._frame_index,
                media_time=time.monotonic() - self._start_monotonic,
                fps=self.fps,
                source_id=self.source_id,
            )
            self._frame_index += 1
            with self._lock:
                self._latest = packet
            self._loaded.set()

    def latest(self) -> Optional[FramePacket]:
        with self._lock:
            return self._latest

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set()

    async def wait_until_loaded(self, timeout: float) -> bool:
        """Wait for the first frame. Returns False on timeout."""
        return await asyncio.to_thread(self._loaded.wait, timeout)

    @property
    def live_track_count(self) -> int:
        return 0 if self._released else 1

    def stop(self) -> None:
        """Stop the reader and release the capture. Safe to call more than once."""
        self._stopped.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout=2.0)
        if not self._released:
            self._released = True
            try:
                self._capture.release()
            except cv2.error as e:
                logger.warning(f"[{self.source_id}] Error releasing capture: {e}")
            logger.info(f"[{self.source_id}] Camera released")
        with self._lock:
            self._latest = None


def open_camera_stream(index: int = 0, width: int = 640, height: int = 480) -> CameraStream:
    """
    Open a local camera and start its reader thread (blocking).

    Raises:
        CameraAccessError: Device missing, busy or permission denied
    """
    capture = cv2.VideoCapture(index)
    if not capture.isOpened():
        capture.release()
        raise CameraAccessError(f"Could not open camera {index}")

    capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    stream = CameraStream(capture, source_id=f"camera-{index}")
    stream.start()
    logger.info(f"Opened camera {index} ({width}x{height} requested)")
    return stream
