"""
Unit tests for the persistent model asset cache.
"""
import asyncio

import httpx
import pytest

from signademy.exceptions import AssetDownloadError
from signademy.infrastructure.cache.asset_cache import format_bytes

ALPHABET_URL = "https://storage.test/storage/v1/object/public/models/letters.task"


def _static(body: bytes = b"model-bytes", status: int = 200, calls: list = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status, content=body)
    return handler


def _chunked(chunks, content_length=None, delay: float = 0.0):
    def handler(request: httpx.Request) -> httpx.Response:
        async def body():
            for chunk in chunks:
                if delay:
                    await asyncio.sleep(delay)
                yield chunk
        headers = {"Content-Length": str(content_length)} if content_length is not None else {}
        return httpx.Response(200, headers=headers, content=body())
    return handler


class TestLookupAndFetch:
    """Tests for get / has / get_or_fetch"""

    @pytest.mark.asyncio
    async def test_missing_key_is_not_found(self, make_cache):
        cache = make_cache(_static())
        assert await cache.has("alphabet") is False
        assert await cache.get("alphabet") is None

    @pytest.mark.asyncio
    async def test_get_or_fetch_downloads_once(self, make_cache):
        calls = []
        cache = make_cache(_static(b"letters", calls=calls))

        first = await cache.get_or_fetch("alphabet", ALPHABET_URL)
        second = await cache.get_or_fetch("alphabet", ALPHABET_URL)

        assert first == second == b"letters"
        assert calls == [ALPHABET_URL]
        assert await cache.get("alphabet") == b"letters"

    @pytest.mark.asyncio
    async def test_fetch_source_uses_registry_url(self, make_cache, registry):
        calls = []
        cache = make_cache(_static(b"numbers", calls=calls))
        source = registry.resolve("numbers")

        assert await cache.fetch_source(source) == b"numbers"
        assert calls == ["https://storage.test/storage/v1/object/public/models/numbers.task"]

    @pytest.mark.asyncio
    async def test_custom_url_is_cached_under_url(self, make_cache, registry):
        cache = make_cache(_static(b"custom"))
        source = registry.custom("https://cdn.test/lesson-7.task", "colors")

        await cache.fetch_source(source)

        assert await cache.get("https://cdn.test/lesson-7.task") == b"custom"
        assert await cache.get("colors") is None

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_request(self, make_cache):
        calls = []

        def handler(request):
            calls.append(str(request.url))

            async def body():
                await asyncio.sleep(0.1)
                yield b"shared"
            return httpx.Response(200, content=body())

        cache = make_cache(handler)
        results = await asyncio.gather(
            cache.get_or_fetch("alphabet", ALPHABET_URL),
            cache.get_or_fetch("alphabet", ALPHABET_URL),
        )

        assert results == [b"shared", b"shared"]
        assert len(calls) == 1


class TestDownloadFailures:
    """Tests for error, timeout and abort handling"""

    @pytest.mark.asyncio
    async def test_non_2xx_raises_and_stores_nothing(self, make_cache):
        cache = make_cache(_static(b"not found", status=404))

        with pytest.raises(AssetDownloadError) as exc_info:
            await cache.fetch_and_store("alphabet", ALPHABET_URL)

        assert exc_info.value.status == 404
        assert await cache.has("alphabet") is False

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_previous_value(self, make_cache):
        responses = iter([httpx.Response(200, content=b"v1"), httpx.Response(500, content=b"oops")])
        cache = make_cache(lambda request: next(responses))

        await cache.fetch_and_store("alphabet", ALPHABET_URL)
        with pytest.raises(AssetDownloadError):
            await cache.fetch_and_store("alphabet", ALPHABET_URL)

        assert await cache.get("alphabet") == b"v1"

    @pytest.mark.asyncio
    async def test_transport_error_raises_download_error(self, make_cache):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        cache = make_cache(handler)
        with pytest.raises(AssetDownloadError) as exc_info:
            await cache.fetch_and_store("alphabet", ALPHABET_URL)
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_stalled_download_times_out(self, make_cache):
        cache = make_cache(_chunked([b"a", b"b"], delay=1.0), download_timeout=0.05)

        with pytest.raises(AssetDownloadError, match="timed out"):
            await cache.fetch_and_store("alphabet", ALPHABET_URL)

        assert await cache.has("alphabet") is False

    @pytest.mark.asyncio
    async def test_aborted_download_leaves_no_partial_asset(self, make_cache):
        first_chunk = asyncio.Event()
        never = asyncio.Event()

        def handler(request):
            async def body():
                yield b"partial"
                await never.wait()
                yield b"rest"
            return httpx.Response(200, content=body())

        cache = make_cache(handler)
        task = asyncio.create_task(
            cache.fetch_and_store("alphabet", ALPHABET_URL, on_progress=lambda p: first_chunk.set())
        )
        await asyncio.wait_for(first_chunk.wait(), timeout=1.0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await cache.has("alphabet") is False
        assert list(cache.cache_dir.iterdir()) == []


class TestProgress:
    """Tests for download progress reporting"""

    @pytest.mark.asyncio
    async def test_percent_with_known_length(self, make_cache):
        updates = []
        cache = make_cache(_chunked([b"ab", b"cd", b"ef"], content_length=6))

        await cache.fetch_and_store("alphabet", ALPHABET_URL, on_progress=updates.append)

        assert [u.loaded_bytes for u in updates] == [2, 4, 6]
        assert [u.percent for u in updates] == [33, 67, 100]
        assert all(u.total_bytes == 6 for u in updates)

    @pytest.mark.asyncio
    async def test_percent_is_zero_for_unknown_length(self, make_cache):
        updates = []
        cache = make_cache(_chunked([b"ab", b"cd"]))

        await cache.fetch_and_store("alphabet", ALPHABET_URL, on_progress=updates.append)

        assert [u.percent for u in updates] == [0, 0]
        assert updates[-1].total_bytes is None
        assert updates[-1].loaded_bytes == 4


class TestStatusAndEviction:
    """Tests for status, total size, remove, clear and bulk prefetch"""

    @pytest.mark.asyncio
    async def test_status_lists_registry_then_custom_entries(self, make_cache):
        cache = make_cache(_static(b"12345"))
        await cache.get_or_fetch("alphabet", ALPHABET_URL, display_name="Letters (A-Z)")
        await cache.get_or_fetch("https://cdn.test/x.task", "https://cdn.test/x.task")

        entries = await cache.status()

        assert [e.key for e in entries[:6]] == ["alphabet", "numbers", "colors", "basicWords", "family", "food"]
        assert entries[0].cached is True and entries[0].size_bytes == 5
        assert entries[1].cached is False and entries[1].size_bytes is None
        assert entries[-1].key == "https://cdn.test/x.task"
        assert await cache.total_size() == 10

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, make_cache):
        cache = make_cache(_static())
        await cache.get_or_fetch("alphabet", ALPHABET_URL)
        await cache.get_or_fetch("numbers", "https://storage.test/n")

        assert await cache.remove("alphabet") is True
        assert await cache.remove("alphabet") is False
        assert await cache.has("alphabet") is False
        assert await cache.has("numbers") is True

        await cache.clear()
        assert await cache.total_size() == 0

    @pytest.mark.asyncio
    async def test_prefetch_all_skips_cached_categories(self, make_cache):
        calls = []
        cache = make_cache(_static(b"m", calls=calls))
        await cache.get_or_fetch("alphabet", ALPHABET_URL)
        completed = []

        await cache.prefetch_all(on_model_complete=lambda key, i, total: completed.append((key, i, total)))

        assert len(calls) == 6
        assert completed[0] == ("alphabet", 1, 6)
        assert completed[-1] == ("food", 6, 6)

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_treated_as_missing(self, make_cache):
        cache = make_cache(_static(b"good"))
        await cache.get_or_fetch("alphabet", ALPHABET_URL)
        cache._path_for("alphabet").write_bytes(b"not json\nbody")

        assert await cache.get("alphabet") is None
        assert await cache.has("alphabet") is False

    @pytest.mark.asyncio
    async def test_prefetch_all_repairs_truncated_entry(self, make_cache):
        calls = []
        cache = make_cache(_static(b"fresh", calls=calls))
        await cache.get_or_fetch("alphabet", ALPHABET_URL)
        cache._path_for("alphabet").write_bytes(b'{"key": "alphabet", "size_bytes": 4}\nab')

        assert await cache.has("alphabet") is False

        await cache.prefetch_all()

        assert calls.count(ALPHABET_URL) == 2
        assert await cache.has("alphabet") is True
        assert await cache.get("alphabet") == b"fresh"

    @pytest.mark.asyncio
    async def test_inconsistent_entry_can_still_be_removed(self, make_cache):
        cache = make_cache(_static(b"good"))
        await cache.get_or_fetch("alphabet", ALPHABET_URL)
        cache._path_for("alphabet").write_bytes(b"not json\nbody")

        assert await cache.remove("alphabet") is True
        assert not cache._path_for("alphabet").exists()


class TestFormatBytes:
    """Tests for format_bytes"""

    def test_values(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(2 * 1024 * 1024) == "2 MB"
        assert format_bytes(3 * 1024 ** 3) == "3 GB"
