"""Price cache keyed by (symbol, size)."""

import gzip
import hashlib
import os
from datetime import datetime, timezone
from typing import Any

import diskcache
import pandas as pd

from vnstock_eval.utils.ohlcv import csv_to_df, df_to_csv
from vnstock_eval.utils.validators import FetchParams


class PriceCache:
    """
    Cache stores the validated price frame as exact CSV text.

    Entries expire after CACHE_TTL seconds (5 minutes by default).
    Resources only serve cached data. Never fetch live.
    """

    def __init__(self, cache_dir: str | None = None, default_ttl: int | None = None):
        if cache_dir is None:
            cache_dir = os.environ.get("CACHE_DIR", ".cache/prices")
        self.cache: diskcache.Cache = diskcache.Cache(cache_dir)
        if default_ttl is None:
            default_ttl = int(os.environ.get("CACHE_TTL", "300"))
        self._default_ttl = default_ttl

    def store(
        self,
        params: FetchParams,
        df: pd.DataFrame,
        ttl: int | None = None,
    ) -> str:
        """
        Store gzipped CSV + metadata, return canonical URI.

        Note: df should already be standardized and validated (from vndirect_client).

        Args:
            params: Fetch parameters (used to generate URI)
            df: Price frame to cache
            ttl: Cache TTL in seconds (default: CACHE_TTL)

        Returns:
            Canonical URI for the cached data
        """
        uri = params.to_uri()

        csv_text = df_to_csv(df)
        csv_bytes = csv_text.encode("utf-8")
        csv_gz = gzip.compress(csv_bytes)

        entry: dict[str, Any] = {
            "csv_gz": csv_gz,
            "encoding": "gzip",
            "size_bytes": len(csv_bytes),
            "rows": len(df),
            "columns": list(df.columns),
            "hash": hashlib.sha256(csv_bytes).hexdigest()[:16],
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }

        expire = ttl if ttl is not None else self._default_ttl
        self.cache.set(uri, entry, expire=expire)

        return uri

    def get(self, uri: str) -> dict[str, Any] | None:
        """Get raw cache entry by URI, or None if missing/expired."""
        return self.cache.get(uri)

    def get_csv(self, uri: str) -> str | None:
        """Get decompressed CSV text by URI."""
        entry = self.get(uri)
        if not entry:
            return None
        return gzip.decompress(entry["csv_gz"]).decode("utf-8")

    def get_frame(self, params: FetchParams) -> pd.DataFrame | None:
        """
        Get the cached price frame for fetch parameters.

        Args:
            params: Fetch parameters

        Returns:
            Price frame, or None if not cached
        """
        csv_text = self.get_csv(params.to_uri())
        if csv_text is None:
            return None
        return csv_to_df(csv_text)

    def get_metadata(self, uri: str) -> dict[str, Any] | None:
        """Get cache metadata without decompressing data."""
        entry = self.get(uri)
        if not entry:
            return None
        return {
            "rows": entry["rows"],
            "columns": entry["columns"],
            "size_bytes": entry["size_bytes"],
            "hash": entry["hash"],
            "stored_at": entry["stored_at"],
        }

    def exists(self, uri: str) -> bool:
        """Check if URI exists in cache."""
        return uri in self.cache

    def invalidate(self, uri: str) -> bool:
        """Drop one entry. Returns True if something was removed."""
        return bool(self.cache.delete(uri))

    def clear(self) -> None:
        """Clear all cached data."""
        self.cache.clear()


# Global instance
price_cache = PriceCache()
