"""
Recognizer Loader
-----------------

Turns a model category (or a custom model URL) into a ready gesture
classifier: resolve the runtime, prepare its fileset, get the model bytes
through the asset cache and build the classifier.

Progress is reported as an integer percentage that only ever increases,
from 0 to 100.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ...domain.constants.model_registry import ModelRegistry, ModelSource, get_model_registry
from ...exceptions import ModelLoadError
from ...infrastructure.cache.asset_cache import AssetCache, DownloadProgress
from ...infrastructure.runtime.runtime_resolver import RuntimeResolver, get_runtime_resolver
from .contracts import GestureClassifier, RunningMode

logger = logging.getLogger(__name__)

LoadProgressCallback = Callable[[int], None]

PROGRESS_RUNTIME_RESOLVED = 50
PROGRESS_FILESET_READY = 70
PROGRESS_BYTES_READY = 95
PROGRESS_DONE = 100


class LoaderState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


@dataclass
class RecognizerInstance:
    """A loaded classifier bound to the model source it was built from."""

    source: ModelSource
    classifier: GestureClassifier

    @property
    def running_mode(self) -> RunningMode:
        return self.classifier.running_mode

    async def set_running_mode(self, mode: RunningMode) -> None:
        """Reconfigure the classifier. Any loop using it must be stopped first."""
        await self.classifier.set_running_mode(mode)

    def close(self) -> None:
        self.classifier.close()


class _ProgressReporter:
    """Forwards only strictly increasing progress values."""

    def __init__(self, callback: Optional[LoadProgressCallback]):
        self._callback = callback
        self.last = -1

    def report(self, value: int) -> None:
        value = max(0, min(int(value), PROGRESS_DONE))
        if value <= self.last:
            return
        self.last = value
        if self._callback is not None:
            self._callback(value)

    def download(self, progress: DownloadProgress) -> None:
        span = PROGRESS_BYTES_READY - PROGRESS_FILESET_READY
        self.report(PROGRESS_FILESET_READY + progress.percent * span // 100)


class RecognizerLoader:
    """
    Loads gesture classifiers, one load at a time.

    State goes IDLE -> LOADING -> READY on success and back to IDLE on
    failure, with the failure kept in last_error.
    """

    def __init__(
        self,
        cache: AssetCache,
        resolver: Optional[RuntimeResolver] = None,
        registry: Optional[ModelRegistry] = None,
    ):
        self.cache = cache
        self._resolver = resolver
        self.registry = registry or cache.registry
        self.state = LoaderState.IDLE
        self.last_error: Optional[Exception] = None
        self._lock = asyncio.Lock()

    @property
    def resolver(self) -> RuntimeResolver:
        if self._resolver is None:
            self._resolver = get_runtime_resolver()
        return self._resolver

    async def load(
        self,
        category: str,
        custom_url: Optional[str] = None,
        running_mode: RunningMode = RunningMode.IMAGE,
        on_progress: Optional[LoadProgressCallback] = None,
    ) -> RecognizerInstance:
        """
        Load a classifier for a category.

        Args:
            category: Model category from the registry
            custom_url: Lesson-supplied model URL overriding the canonical one
            running_mode: Mode the classifier is created in
            on_progress: Receives increasing integer percentages 0..100

        Returns:
            Ready RecognizerInstance

        Raises:
            ModelLoadError: (or a subclass) if any step fails
        """
        async with self._lock:
            self.state = LoaderState.LOADING
            self.last_error = None
            progress = _ProgressReporter(on_progress)

            try:
                source = self.registry.source_for(category, custom_url)
                progress.report(0)

                resolved = await self.resolver.resolve()
                progress.report(PROGRESS_RUNTIME_RESOLVED)

                fileset = await resolved.runtime.create_fileset(resolved.asset_base)
                progress.report(PROGRESS_FILESET_READY)

                model_bytes = await self.cache.fetch_source(source, on_progress=progress.download)
                progress.report(PROGRESS_BYTES_READY)

                classifier = await resolved.runtime.create_classifier(fileset, model_bytes, running_mode)
                progress.report(PROGRESS_DONE)
            except ModelLoadError as e:
                self._fail(e)
                raise
            except asyncio.CancelledError:
                self.state = LoaderState.IDLE
                raise
            except Exception as e:
                error = ModelLoadError(f"Failed to load model {category!r}: {e}")
                self._fail(error)
                raise error from e

            self.state = LoaderState.READY
            logger.info(f"Loaded gesture model {source.display_name} ({running_mode.value})")
            return RecognizerInstance(source=source, classifier=classifier)

    def _fail(self, error: Exception) -> None:
        self.state = LoaderState.IDLE
        self.last_error = error
        logger.error(f"Model load failed: {error}")
