"""
Runtime resolver
----------------

Resolves the gesture classifier runtime from a prioritized list of runtime
endpoints. Each endpoint is an importable runtime module plus the asset base
that matches it; the two always travel together so the fileset is built from
the same place the runtime came from.

Resolution is memoized for the whole process and shared by concurrent
callers. A failed resolution is forgotten so the next call starts over.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from ...core.config import get_settings
from ...exceptions import RuntimeLoadError
from ...processing.models.contracts import VisionRuntime
from ...utils.retry import SleepFunc, retry_async

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeEndpoint:
    """One runtime location and the asset base that belongs to it."""
    module: str
    asset_base: str = ""

    @classmethod
    def parse(cls, value: str) -> "RuntimeEndpoint":
        """Parse "<module>|<asset base>" (asset base optional)."""
        module, _, asset_base = value.partition("|")
        return cls(module=module.strip(), asset_base=asset_base.strip())

    def __str__(self) -> str:
        return self.module


@dataclass(frozen=True)
class ResolvedRuntime:
    runtime: VisionRuntime
    endpoint: RuntimeEndpoint

    @property
    def asset_base(self) -> str:
        return self.endpoint.asset_base


RuntimeImporter = Callable[[RuntimeEndpoint], Awaitable[VisionRuntime]]


class RuntimeResolver:
    """
    Tries each endpoint in order, retrying every endpoint with exponential
    backoff before moving to the next one.
    """

    def __init__(
        self,
        endpoints: Sequence[RuntimeEndpoint],
        importer: Optional[RuntimeImporter] = None,
        max_retries: int = 2,
        initial_delay: float = 1.0,
        max_delay: float = 4.0,
        sleep: Optional[SleepFunc] = None,
    ):
        if not endpoints:
            raise ValueError("At least one runtime endpoint is required")
        self.endpoints: List[RuntimeEndpoint] = list(endpoints)
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._importer = importer
        self._sleep = sleep
        self._pending: Optional["asyncio.Task[ResolvedRuntime]"] = None
        self._resolved: Optional[ResolvedRuntime] = None

    @property
    def resolved(self) -> Optional[ResolvedRuntime]:
        return self._resolved

    def _get_importer(self) -> RuntimeImporter:
        if self._importer is None:
            from .mediapipe_runtime import import_mediapipe_runtime
            self._importer = import_mediapipe_runtime
        return self._importer

    async def resolve(self) -> ResolvedRuntime:
        """
        Resolve the runtime, sharing one in-flight resolution between callers.

        Raises:
            RuntimeLoadError: Every endpoint failed after all retries
        """
        if self._resolved is not None:
            return self._resolved

        if self._pending is None:
            self._pending = asyncio.create_task(self._resolve_endpoints())
        pending = self._pending

        try:
            resolved = await asyncio.shield(pending)
        except BaseException:
            if pending.done() and self._pending is pending:
                self._pending = None
            raise

        self._resolved = resolved
        self._pending = None
        return resolved

    async def _resolve_endpoints(self) -> ResolvedRuntime:
        importer = self._get_importer()
        failures: List[str] = []

        for endpoint in self.endpoints:
            try:
                runtime = await retry_async(
                    functools.partial(importer, endpoint),
                    label=str(endpoint),
                    max_retries=self.max_retries,
                    initial_delay=self.initial_delay,
                    max_delay=self.max_delay,
                    sleep=self._sleep,
                    failures=failures,
                )
            except Exception:
                logger.warning(f"Runtime endpoint {endpoint} exhausted, trying next endpoint")
                continue

            logger.info(f"Resolved gesture runtime from {endpoint}")
            return ResolvedRuntime(runtime=runtime, endpoint=endpoint)

        raise RuntimeLoadError(
            "Failed to load gesture runtime from all endpoints: " + "; ".join(failures),
            attempts=failures,
        )


# Process-wide resolver (never torn down; reset only in tests)
_resolver: Optional[RuntimeResolver] = None


def get_runtime_resolver() -> RuntimeResolver:
    """Get the process-wide runtime resolver (singleton pattern)"""
    global _resolver
    if _resolver is None:
        settings = get_settings()
        _resolver = RuntimeResolver(
            endpoints=[RuntimeEndpoint.parse(value) for value in settings.runtime_endpoints],
            max_retries=settings.runtime_max_retries,
            initial_delay=settings.runtime_initial_delay,
            max_delay=settings.runtime_max_delay,
        )
    return _resolver


def reset_runtime_resolver() -> None:
    global _resolver
    _resolver = None
