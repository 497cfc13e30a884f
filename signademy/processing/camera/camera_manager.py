"""
Camera Resource Manager
-----------------------

Owns the single live camera stream of a gesture session.

start() acquires a stream and waits for its first frame before reporting
success. stop() is the one teardown path used for an explicit stop, a model
switch and session close; it releases every capture handle and can be
called any number of times.
"""

# -----------------------------------------------------------------------------
# Standard library
# -----------------------------------------------------------------------------
import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------
from ...core.config import get_settings
from ...exceptions import CameraAccessError
from ..data_input.camera_source import CameraStream, open_camera_stream

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], CameraStream]


def default_stream_factory() -> StreamFactory:
    settings = get_settings()
    return functools.partial(
        open_camera_stream,
        settings.camera_index,
        settings.camera_width,
        settings.camera_height,
    )


@dataclass
class CameraSession:
    stream: CameraStream
    running: bool = True
    started_at: float = field(default_factory=time.time)


class CameraResourceManager:
    """Acquires and releases the camera stream."""

    def __init__(
        self,
        stream_factory: Optional[StreamFactory] = None,
        first_frame_timeout: float = 5.0,
    ):
        self._factory = stream_factory
        self.first_frame_timeout = first_frame_timeout
        self._session: Optional[CameraSession] = None

    @property
    def session(self) -> Optional[CameraSession]:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._session is not None and self._session.running

    @property
    def live_track_count(self) -> int:
        return self._session.stream.live_track_count if self._session else 0

    async def start(self) -> CameraSession:
        """
        Acquire the camera and wait for its first frame.

        Returns:
            The running CameraSession (the existing one if already running)

        Raises:
            CameraAccessError: Device unavailable, permission denied or no first frame
        """
        if self._session is not None:
            return self._session

        factory = self._factory or default_stream_factory()
        try:
            stream = await asyncio.to_thread(factory)
        except CameraAccessError:
            raise
        except Exception as e:
            raise CameraAccessError(f"Could not start camera: {e}") from e

        try:
            loaded = await stream.wait_until_loaded(self.first_frame_timeout)
        except BaseException:
            await asyncio.to_thread(stream.stop)
            raise

        if not loaded:
            await asyncio.to_thread(stream.stop)
            raise CameraAccessError(
                f"Camera delivered no frame within {self.first_frame_timeout:g}s"
            )

        self._session = CameraSession(stream=stream)
        logger.info("Camera session started")
        return self._session

    async def stop(self) -> None:
        """Release the stream if one is held."""
        session, self._session = self._session, None
        if session is None:
            return
        session.running = False
        await asyncio.to_thread(session.stream.stop)
        logger.info("Camera session stopped")
