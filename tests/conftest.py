"""
Shared pytest fixtures for signademy tests.

Fakes stand in for the MediaPipe runtime, the camera and the network so the
pipeline can be driven deterministically.
"""
import asyncio
import os
from typing import Callable, List, Optional
from unittest.mock import patch

import httpx
import numpy as np
import pytest

from signademy.domain.constants.model_registry import ModelRegistry
from signademy.infrastructure.cache.asset_cache import AssetCache
from signademy.processing.data_input.data_models import FramePacket
from signademy.processing.models.contracts import (
    GestureCategory,
    Landmark,
    RecognitionResult,
    RunningMode,
)

STORAGE_URL = "https://storage.test"


def make_result(label: Optional[str] = None, score: float = 0.9, hands: int = 1) -> RecognitionResult:
    """RecognitionResult with one ranked gesture (or none) and a flat hand."""
    landmarks = [[Landmark(x=0.1 + i * 0.02, y=0.5) for i in range(21)] for _ in range(hands)]
    if label is None:
        return RecognitionResult(gestures=[], landmarks=landmarks)
    return RecognitionResult(gestures=[[GestureCategory(label, score)]], landmarks=landmarks)


def make_packet(media_time: float, frame_index: int = 0, width: int = 64, height: int = 48) -> FramePacket:
    return FramePacket(
        frame=np.zeros((height, width, 3), dtype=np.uint8),
        frame_index=frame_index,
        media_time=media_time,
    )


class FakeClassifier:
    """Scripted GestureClassifier. Results are served in order; the last one repeats."""

    def __init__(self, results: Optional[List[RecognitionResult]] = None, mode: RunningMode = RunningMode.IMAGE):
        self.results = list(results or [RecognitionResult()])
        self._mode = mode
        self.video_calls: List[int] = []
        self.image_calls = 0
        self.mode_changes: List[RunningMode] = []
        self.closed = False
        self.error: Optional[Exception] = None

    @property
    def running_mode(self) -> RunningMode:
        return self._mode

    def _next(self) -> RecognitionResult:
        if self.error is not None:
            raise self.error
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    def recognize_image(self, frame):
        assert self._mode is RunningMode.IMAGE
        self.image_calls += 1
        return self._next()

    def recognize_video_frame(self, frame, timestamp_ms):
        assert self._mode is RunningMode.VIDEO
        self.video_calls.append(timestamp_ms)
        return self._next()

    async def set_running_mode(self, mode: RunningMode) -> None:
        if mode is not self._mode:
            self.mode_changes.append(mode)
            self._mode = mode

    def close(self) -> None:
        self.closed = True


class FakeRuntime:
    """VisionRuntime that hands out FakeClassifiers."""

    def __init__(self, results: Optional[List[RecognitionResult]] = None):
        self.results = results
        self.filesets: List[str] = []
        self.model_bytes: List[bytes] = []
        self.classifiers: List[FakeClassifier] = []
        self.fail_classifier: Optional[Exception] = None

    async def create_fileset(self, asset_base: str):
        self.filesets.append(asset_base)
        return {"asset_base": asset_base}

    async def create_classifier(self, fileset, model_bytes: bytes, running_mode: RunningMode):
        if self.fail_classifier is not None:
            raise self.fail_classifier
        self.model_bytes.append(model_bytes)
        classifier = FakeClassifier(self.results, running_mode)
        self.classifiers.append(classifier)
        return classifier


class FakeStream:
    """Camera stream whose latest frame is set by the test."""

    def __init__(self, loaded: bool = True):
        self.loaded = loaded
        self.packet: Optional[FramePacket] = None
        self.stop_calls = 0

    def latest(self) -> Optional[FramePacket]:
        return self.packet

    async def wait_until_loaded(self, timeout: float) -> bool:
        return self.loaded

    @property
    def live_track_count(self) -> int:
        return 0 if self.stop_calls else 1

    def stop(self) -> None:
        self.stop_calls += 1


async def no_wait() -> None:
    """Scheduler that yields to the event loop without sleeping."""
    await asyncio.sleep(0)


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry(STORAGE_URL, "models")


@pytest.fixture
def make_cache(tmp_path, registry) -> Callable[..., AssetCache]:
    """Factory: AssetCache in a temp dir whose HTTP traffic goes to handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> AssetCache:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return AssetCache(tmp_path / "models", client=client, registry=registry, **kwargs)

    return _make


@pytest.fixture
def mock_env():
    """Fixture to set common test environment variables."""
    env_vars = {
        "MODEL_STORAGE_URL": STORAGE_URL,
        "MODEL_BUCKET": "models",
        "RECOGNITION_GRACE_MS": "500",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


# -----------------------------------------------------------------------------
# Fake factories exposed as fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def result_factory() -> Callable[..., RecognitionResult]:
    return make_result


@pytest.fixture
def packet_factory() -> Callable[..., FramePacket]:
    return make_packet


@pytest.fixture
def classifier_factory() -> Callable[..., FakeClassifier]:
    return FakeClassifier


@pytest.fixture
def runtime_factory() -> Callable[..., FakeRuntime]:
    return FakeRuntime


@pytest.fixture
def stream_factory() -> Callable[..., FakeStream]:
    return FakeStream


@pytest.fixture
def fast_scheduler():
    return no_wait
