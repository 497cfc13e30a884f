from .asset_cache import (
    AssetCache,
    CacheEntryStatus,
    CachedAsset,
    DownloadProgress,
    format_bytes,
)

__all__ = ["AssetCache", "CacheEntryStatus", "CachedAsset", "DownloadProgress", "format_bytes"]
