"""
Persistent binary asset cache for gesture classifier models.

Assets are stored on disk, one file per key, so that a model downloaded once
survives restarts. A file holds a one-line JSON header followed by the raw
payload. Files are written to a temporary name and renamed into place, so a
reader never observes a partially written asset.
"""
import asyncio
import hashlib
import json
import logging
import math
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import httpx

from ...domain.constants.model_registry import ModelRegistry, ModelSource, get_model_registry
from ...exceptions import AssetDownloadError
from ..http_client_factory import get_shared_http_client

logger = logging.getLogger(__name__)

ASSET_SUFFIX = ".asset"


@dataclass(frozen=True)
class DownloadProgress:
    """Progress of one streamed download. percent is 0 when the length is unknown."""
    key: str
    loaded_bytes: int
    total_bytes: Optional[int]
    percent: int


@dataclass(frozen=True)
class CachedAsset:
    key: str
    size_bytes: int
    cached_at: float
    payload: bytes
    url: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class CacheEntryStatus:
    key: str
    display_name: str
    url: Optional[str]
    cached: bool
    size_bytes: Optional[int] = None


ProgressCallback = Callable[[DownloadProgress], None]
ModelCompleteCallback = Callable[[str, int, int], None]


def format_bytes(num_bytes: int) -> str:
    """Human readable size: 0 B, 512 B, 1.5 KB, 2 MB, ..."""
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / (1024 ** index), 1)
    return f"{value:g} {units[index]}"


class AssetCache:
    """
    Disk-backed key -> bytes store with a streaming downloader.

    Keys are model categories for canonical models and URLs for custom ones.
    Concurrent downloads of the same key are collapsed into a single request;
    callers that arrive while a download is in flight receive its result.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        client: Optional[httpx.AsyncClient] = None,
        registry: Optional[ModelRegistry] = None,
        download_timeout: float = 120.0,
    ):
        """
        Initialize asset cache.

        Args:
            cache_dir: Directory holding the asset files (created if missing)
            client: HTTP client for downloads (default: shared pooled client)
            registry: Model registry used by status and prefetch
            download_timeout: Wall-clock limit for one download in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.download_timeout = download_timeout
        self._client = client
        self._registry = registry
        self._inflight: Dict[str, "asyncio.Task[bytes]"] = {}

    @property
    def registry(self) -> ModelRegistry:
        if self._registry is None:
            self._registry = get_model_registry()
        return self._registry

    def _get_client(self) -> httpx.AsyncClient:
        return self._client if self._client is not None else get_shared_http_client()

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}{ASSET_SUFFIX}"

    # ------------------------------------------------------------------
    # Disk access (runs in a worker thread)
    # ------------------------------------------------------------------

    def _read_header(self, path: Path) -> Optional[dict]:
        try:
            with open(path, "rb") as handle:
                return json.loads(handle.readline().decode("utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {path.name}: {e}")
            return None

    def _is_valid_entry(self, key: str) -> bool:
        """Header-only version of the consistency check in _read_asset."""
        path = self._path_for(key)
        try:
            with open(path, "rb") as handle:
                header_line = handle.readline()
                header = json.loads(header_line.decode("utf-8"))
                payload_size = os.fstat(handle.fileno()).st_size - len(header_line)
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry for {key}: {e}")
            return False
        return isinstance(header, dict) and header.get("key") == key and header.get("size_bytes") == payload_size

    def _read_asset(self, key: str) -> Optional[CachedAsset]:
        path = self._path_for(key)
        try:
            with open(path, "rb") as handle:
                header = json.loads(handle.readline().decode("utf-8"))
                payload = handle.read()
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry for {key}: {e}")
            return None

        if header.get("key") != key or header.get("size_bytes") != len(payload):
            logger.warning(f"Cache entry for {key} is inconsistent, treating as missing")
            return None

        return CachedAsset(
            key=key,
            size_bytes=len(payload),
            cached_at=float(header.get("cached_at", 0.0)),
            payload=payload,
            url=header.get("url"),
            display_name=header.get("display_name"),
        )

    def _write_asset(
        self,
        key: str,
        url: Optional[str],
        display_name: Optional[str],
        payload: bytes,
    ) -> None:
        header = {
            "key": key,
            "url": url,
            "display_name": display_name,
            "size_bytes": len(payload),
            "cached_at": time.time(),
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(json.dumps(header).encode("utf-8"))
                handle.write(b"\n")
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path_for(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _delete(self, key: str) -> bool:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def _delete_all(self) -> int:
        removed = 0
        for path in self.cache_dir.glob(f"*{ASSET_SUFFIX}"):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
        return removed

    def _list_headers(self) -> List[dict]:
        headers = []
        for path in sorted(self.cache_dir.glob(f"*{ASSET_SUFFIX}")):
            header = self._read_header(path)
            if header and "key" in header:
                headers.append(header)
        return headers

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def has(self, key: str) -> bool:
        return await asyncio.to_thread(self._is_valid_entry, key)

    async def get_asset(self, key: str) -> Optional[CachedAsset]:
        return await asyncio.to_thread(self._read_asset, key)

    async def get(self, key: str) -> Optional[bytes]:
        """
        Get cached bytes for a key.

        Returns:
            Payload bytes or None if the key is not cached
        """
        asset = await self.get_asset(key)
        return asset.payload if asset is not None else None

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def _stream(
        self,
        key: str,
        url: str,
        on_progress: Optional[ProgressCallback],
    ) -> bytes:
        try:
            async with self._get_client().stream("GET", url) as response:
                if not 200 <= response.status_code < 300:
                    raise AssetDownloadError(
                        f"Failed to download {url}: HTTP {response.status_code}",
                        url=url,
                        status=response.status_code,
                    )

                content_length = response.headers.get("content-length")
                total = int(content_length) if content_length and content_length.isdigit() else None

                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if on_progress is not None:
                        percent = min(round(len(buffer) / total * 100), 100) if total else 0
                        on_progress(DownloadProgress(key, len(buffer), total, percent))
                return bytes(buffer)
        except httpx.HTTPError as e:
            raise AssetDownloadError(f"Failed to download {url}: {e}", url=url) from e

    async def _download(
        self,
        key: str,
        url: str,
        on_progress: Optional[ProgressCallback],
        display_name: Optional[str],
    ) -> bytes:
        logger.info(f"Downloading model asset {key} from {url}")
        try:
            payload = await asyncio.wait_for(
                self._stream(key, url, on_progress),
                timeout=self.download_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AssetDownloadError(
                f"Download of {url} timed out after {self.download_timeout:g}s",
                url=url,
            ) from e

        await asyncio.to_thread(self._write_asset, key, url, display_name, payload)
        logger.info(f"Cached model asset {key} ({format_bytes(len(payload))})")
        return payload

    async def fetch_and_store(
        self,
        key: str,
        url: str,
        on_progress: Optional[ProgressCallback] = None,
        display_name: Optional[str] = None,
    ) -> bytes:
        """
        Download url and store the body under key.

        Nothing is stored unless the download completes; an existing value
        for key is left untouched on failure, timeout or cancellation.

        Raises:
            AssetDownloadError: Non-2xx status, transport error or timeout
        """
        inflight = self._inflight.get(key)
        if inflight is not None:
            logger.debug(f"Joining in-flight download for {key}")
            return await asyncio.shield(inflight)

        task = asyncio.create_task(self._download(key, url, on_progress, display_name))
        self._inflight[key] = task
        try:
            return await task
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def get_or_fetch(
        self,
        key: str,
        url: str,
        on_progress: Optional[ProgressCallback] = None,
        display_name: Optional[str] = None,
    ) -> bytes:
        """Return cached bytes, downloading them first on a miss."""
        inflight = self._inflight.get(key)
        if inflight is not None:
            return await asyncio.shield(inflight)

        cached = await self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for model asset {key}")
            return cached

        return await self.fetch_and_store(key, url, on_progress, display_name)

    async def fetch_source(
        self,
        source: ModelSource,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        return await self.get_or_fetch(source.key, source.url, on_progress, source.display_name)

    async def prefetch_all(
        self,
        on_progress: Optional[ProgressCallback] = None,
        on_model_complete: Optional[ModelCompleteCallback] = None,
    ) -> None:
        """
        Download every registered category that is not cached yet.

        Args:
            on_progress: Called per chunk of each download
            on_model_complete: Called as (category, index, total) after each category
        """
        sources = self.registry.sources()
        total = len(sources)
        for index, source in enumerate(sources, start=1):
            if not await self.has(source.key):
                await self.fetch_and_store(source.key, source.url, on_progress, source.display_name)
            if on_model_complete is not None:
                on_model_complete(source.key, index, total)

    # ------------------------------------------------------------------
    # Eviction and status
    # ------------------------------------------------------------------

    async def remove(self, key: str) -> bool:
        """Delete the entry for a key, valid or not. Returns False if nothing was cached."""
        removed = await asyncio.to_thread(self._delete, key)
        if removed:
            logger.info(f"Removed cached model asset {key}")
        return removed

    async def clear(self) -> None:
        removed = await asyncio.to_thread(self._delete_all)
        logger.info(f"Cleared model asset cache ({removed} entries)")

    async def status(self) -> List[CacheEntryStatus]:
        """
        Cache status for every registered category, followed by any cached
        custom-URL entries.
        """
        headers = await asyncio.to_thread(self._list_headers)
        by_key = {header["key"]: header for header in headers}

        entries: List[CacheEntryStatus] = []
        for source in self.registry.sources():
            header = by_key.pop(source.key, None)
            entries.append(
                CacheEntryStatus(
                    key=source.key,
                    display_name=source.display_name,
                    url=source.url,
                    cached=header is not None,
                    size_bytes=header.get("size_bytes") if header else None,
                )
            )

        for key, header in by_key.items():
            entries.append(
                CacheEntryStatus(
                    key=key,
                    display_name=header.get("display_name") or key,
                    url=header.get("url"),
                    cached=True,
                    size_bytes=header.get("size_bytes"),
                )
            )
        return entries

    async def total_size(self) -> int:
        return sum(entry.size_bytes or 0 for entry in await self.status())
