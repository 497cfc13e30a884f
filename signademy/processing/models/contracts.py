"""
Recognizer Data Contracts
-------------------------

Defines the typed results returned by gesture classifiers and the narrow
interfaces the pipeline uses to talk to the classifier runtime. The rest of
the pipeline never touches runtime-specific objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Protocol

import numpy as np


class RunningMode(str, Enum):
    """Classifier mode: single images or a timestamped frame sequence."""
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


@dataclass(frozen=True)
class Landmark:
    """Normalized hand landmark (x, y in [0, 1] relative to the frame)."""
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class GestureCategory:
    category_name: str
    score: float  # 0..1


@dataclass
class RecognitionResult:
    """
    Output of one classifier call.

    gestures[i] holds the ranked candidates for hand i, landmarks[i] its 21 points.
    """

    gestures: List[List[GestureCategory]] = field(default_factory=list)
    landmarks: List[List[Landmark]] = field(default_factory=list)

    @property
    def top_gesture(self) -> Optional[GestureCategory]:
        if self.gestures and self.gestures[0]:
            return self.gestures[0][0]
        return None

    @property
    def has_hands(self) -> bool:
        return bool(self.landmarks)


class GestureClassifier(Protocol):
    """
    Protocol defining a loaded gesture classifier.

    Frames are BGR numpy arrays (H, W, 3).
    """

    @property
    def running_mode(self) -> RunningMode:
        ...

    def recognize_image(self, frame: np.ndarray) -> RecognitionResult:
        ...

    def recognize_video_frame(self, frame: np.ndarray, timestamp_ms: int) -> RecognitionResult:
        """
        Classify one frame of a sequence. Timestamps must be increasing.
        """
        ...

    async def set_running_mode(self, mode: RunningMode) -> None:
        ...

    def close(self) -> None:
        ...


class VisionRuntime(Protocol):
    """
    Protocol defining a resolved classifier runtime.

    The runtime prepares its fileset once per load and builds classifiers
    from raw model bytes.
    """

    async def create_fileset(self, asset_base: str) -> Any:
        ...

    async def create_classifier(
        self,
        fileset: Any,
        model_bytes: bytes,
        running_mode: RunningMode,
    ) -> GestureClassifier:
        ...
