"""
MediaPipe gesture runtime adapter
---------------------------------

Wraps MediaPipe Tasks' GestureRecognizer behind the GestureClassifier and
VisionRuntime contracts. MediaPipe objects never leave this module: results
are converted to RecognitionResult before they are returned.

MediaPipe has no in-place option update for the running mode, so a mode
switch builds a new recognizer from the retained model bytes and swaps it in
once it is ready.

The recognizer is built from an in-memory model buffer, so the resolved asset
base is only verified to exist and reported in the logs; it has no effect on
how the recognizer itself is constructed.
"""

import asyncio
import functools
import importlib
import logging
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, List, Optional

import cv2
import numpy as np

from ...core.config import get_settings
from ...exceptions import InvalidStateTransitionError, ModelLoadError
from ...processing.models.contracts import (
    GestureCategory,
    Landmark,
    RecognitionResult,
    RunningMode,
)
from .runtime_resolver import RuntimeEndpoint

logger = logging.getLogger(__name__)

_RUNNING_MODE_MODULE = "mediapipe.tasks.python.vision.core.vision_task_running_mode"
_BASE_OPTIONS_MODULE = "mediapipe.tasks.python.core.base_options"


@dataclass(frozen=True)
class RuntimeFileset:
    """Resolved location of the runtime's companion assets."""
    asset_base: Path


class MediaPipeRuntime:
    """VisionRuntime backed by a MediaPipe vision module."""

    def __init__(self, vision_module: ModuleType, delegate: str = "CPU"):
        for name in ("GestureRecognizer", "GestureRecognizerOptions"):
            if not hasattr(vision_module, name):
                raise ImportError(f"{vision_module.__name__} does not provide {name}")
        self._vision = vision_module
        self._mp = importlib.import_module("mediapipe")
        self._mode_enum = importlib.import_module(_RUNNING_MODE_MODULE).VisionTaskRunningMode
        self._base_options_cls = importlib.import_module(_BASE_OPTIONS_MODULE).BaseOptions
        self.delegate = delegate

    async def create_fileset(self, asset_base: str) -> RuntimeFileset:
        path = Path(asset_base) if asset_base else _module_dir(self._vision)
        if not await asyncio.to_thread(path.is_dir):
            raise ModelLoadError(f"Runtime asset base not found: {path}")
        return RuntimeFileset(asset_base=path)

    def build_recognizer(self, model_bytes: bytes, running_mode: RunningMode) -> Any:
        delegate = getattr(self._base_options_cls.Delegate, self.delegate, self._base_options_cls.Delegate.CPU)
        options = self._vision.GestureRecognizerOptions(
            base_options=self._base_options_cls(model_asset_buffer=model_bytes, delegate=delegate),
            running_mode=getattr(self._mode_enum, running_mode.value),
        )
        return self._vision.GestureRecognizer.create_from_options(options)

    async def create_classifier(
        self,
        fileset: RuntimeFileset,
        model_bytes: bytes,
        running_mode: RunningMode,
    ) -> "MediaPipeGestureClassifier":
        recognizer = await asyncio.to_thread(self.build_recognizer, model_bytes, running_mode)
        logger.info(f"Created gesture recognizer ({running_mode.value}, assets at {fileset.asset_base})")
        return MediaPipeGestureClassifier(self, recognizer, model_bytes, running_mode)

    def to_image(self, frame: np.ndarray) -> Any:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))


def _convert_result(result: Any) -> RecognitionResult:
    gestures: List[List[GestureCategory]] = [
        [GestureCategory(category_name=c.category_name or "", score=float(c.score)) for c in hand]
        for hand in (getattr(result, "gestures", None) or [])
    ]
    landmarks: List[List[Landmark]] = [
        [Landmark(x=float(p.x), y=float(p.y), z=float(p.z or 0.0)) for p in hand]
        for hand in (getattr(result, "hand_landmarks", None) or [])
    ]
    return RecognitionResult(gestures=gestures, landmarks=landmarks)


class MediaPipeGestureClassifier:
    """GestureClassifier over a MediaPipe GestureRecognizer."""

    def __init__(
        self,
        runtime: MediaPipeRuntime,
        recognizer: Any,
        model_bytes: bytes,
        running_mode: RunningMode,
    ):
        self._runtime = runtime
        self._recognizer: Optional[Any] = recognizer
        self._model_bytes = model_bytes
        self._running_mode = running_mode
        self._last_timestamp_ms = -1

    @property
    def running_mode(self) -> RunningMode:
        return self._running_mode

    def _require(self, mode: RunningMode) -> Any:
        if self._recognizer is None:
            raise InvalidStateTransitionError("Gesture recognizer is closed")
        if self._running_mode is not mode:
            raise InvalidStateTransitionError(
                f"Recognizer is in {self._running_mode.value} mode, {mode.value} required"
            )
        return self._recognizer

    def recognize_image(self, frame: np.ndarray) -> RecognitionResult:
        recognizer = self._require(RunningMode.IMAGE)
        return _convert_result(recognizer.recognize(self._runtime.to_image(frame)))

    def recognize_video_frame(self, frame: np.ndarray, timestamp_ms: int) -> RecognitionResult:
        recognizer = self._require(RunningMode.VIDEO)
        # MediaPipe rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        return _convert_result(recognizer.recognize_for_video(self._runtime.to_image(frame), timestamp_ms))

    async def set_running_mode(self, mode: RunningMode) -> None:
        if self._recognizer is None:
            raise InvalidStateTransitionError("Gesture recognizer is closed")
        if mode is self._running_mode:
            return
        replacement = await asyncio.to_thread(self._runtime.build_recognizer, self._model_bytes, mode)
        previous, self._recognizer = self._recognizer, replacement
        self._running_mode = mode
        self._last_timestamp_ms = -1
        previous.close()
        logger.debug(f"Gesture recognizer switched to {mode.value} mode")

    def close(self) -> None:
        if self._recognizer is not None:
            self._recognizer.close()
            self._recognizer = None


def _module_dir(module: ModuleType) -> Path:
    return Path(module.__file__).resolve().parent


def load_vision_module(path: str) -> ModuleType:
    """
    Import "<module>" or "<module>:<attribute path>".

    The attribute form reaches a vision module through a package's public
    namespace, e.g. "mediapipe:tasks.vision".
    """
    module_name, _, attributes = path.partition(":")
    module = importlib.import_module(module_name)
    if not attributes:
        return module
    try:
        return functools.reduce(getattr, attributes.split("."), module)
    except AttributeError as e:
        raise ImportError(f"{module_name} has no attribute path {attributes}") from e


async def import_mediapipe_runtime(endpoint: RuntimeEndpoint) -> MediaPipeRuntime:
    """Import the runtime module named by an endpoint and wrap it."""
    module = await asyncio.to_thread(load_vision_module, endpoint.module)
    return MediaPipeRuntime(module, delegate=get_settings().runtime_delegate)
