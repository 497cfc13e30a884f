"""
Frame data contracts
--------------------

Defines the packet passed from the camera stream to the recognition loop.
"""

# -----------------------------------------------------------------------------
# Standard library
# -----------------------------------------------------------------------------
from dataclasses import dataclass
from typing import Optional, Protocol

# -----------------------------------------------------------------------------
# Third-party
# -----------------------------------------------------------------------------
import numpy as np

# -----------------------------------------------------------------------------
# Data contracts
# -----------------------------------------------------------------------------


@dataclass
class FramePacket:
    """
    One frame plus metadata, passed from a source to the recognition loop.

    media_time advances with every new frame; the loop only classifies a
    packet whose media_time differs from the last one it processed.
    """

    frame: np.ndarray          # BGR image (H, W, 3)
    frame_index: int           # Sequential index from source
    media_time: float          # Seconds since the stream started (monotonic)
    fps: Optional[float] = None
    source_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate shape and type of frame."""
        if self.frame is None:
            raise ValueError("Frame cannot be None")
        if not isinstance(self.frame, np.ndarray):
            raise ValueError("Frame must be a numpy array")
        if len(self.frame.shape) != 3 or self.frame.shape[2] != 3:
            raise ValueError("Frame must be a 3-channel BGR image (H, W, 3)")

    @property
    def width(self) -> int:
        return int(self.frame.shape[1])

    @property
    def height(self) -> int:
        return int(self.frame.shape[0])


class FrameSource(Protocol):
    """Anything that can hand out its most recent frame."""

    def latest(self) -> Optional[FramePacket]:
        ...
