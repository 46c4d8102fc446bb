"""
On-disk cache for resolved reference documents.

Fetching and parsing a remote page is the expensive part of resolution, and
the same URL is often cited by several posts. Successful resolutions are
stored as JSON files keyed by a hash of the URL; failures are never cached so
a temporarily unreachable site is retried on the next item.
"""

import hashlib
import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from post_kind_engine.core.reference_resolver.config import CACHE_DIR, CACHE_TTL

logger = logging.getLogger(__name__)


class ResolutionCache:
    """
    JSON file cache for resolved jf2 documents.

    Features:
    - Deterministic sha256 keys per namespace and input
    - Optional time-to-live
    - Corrupted entries are removed on read
    - Safe to share between resolver threads
    """

    def __init__(self, cache_dir: str = CACHE_DIR, ttl_seconds: int = CACHE_TTL):
        """
        Initialize the cache with a directory.

        Args:
            cache_dir: Directory holding the cache files
            ttl_seconds: Entry lifetime in seconds, 0 to keep entries forever
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()

    def _generate_cache_key(self, namespace: str, input_data: Any) -> str:
        data_str = json.dumps(input_data, sort_keys=True, default=str)
        hash_value = hashlib.sha256(f"{namespace}:{data_str}".encode()).hexdigest()
        return f"resolved_{namespace}_{hash_value[:16]}"

    def _path_for(self, namespace: str, input_data: Any) -> Path:
        return self.cache_dir / f"{self._generate_cache_key(namespace, input_data)}.json"

    def get(self, namespace: str, input_data: Any) -> Optional[Dict[str, Any]]:
        """
        Retrieve a cached document.

        Args:
            namespace: Component that stored the entry
            input_data: Input that identifies the entry (usually the URL)

        Returns:
            The cached document, or None on miss, expiry or corruption
        """
        cache_file = self._path_for(namespace, input_data)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, "r", encoding="utf-8") as f:
                cached = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load cache entry {cache_file.name}: {e}")
            cache_file.unlink(missing_ok=True)
            return None

        if not self._is_valid_entry(cached):
            logger.error(f"Malformed cache entry {cache_file.name}, removing it")
            cache_file.unlink(missing_ok=True)
            return None

        if self.ttl_seconds and time.time() - cached["timestamp"] > self.ttl_seconds:
            logger.debug(f"Cache entry expired for {namespace}: {cache_file.stem}")
            cache_file.unlink(missing_ok=True)
            return None

        logger.debug(f"Cache HIT for {namespace}: {cache_file.stem}")
        return cached["result"]

    @staticmethod
    def _is_valid_entry(cached: Any) -> bool:
        """An entry is an object with a numeric timestamp and a typed jf2 result."""
        if not isinstance(cached, dict):
            return False
        timestamp = cached.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return False
        result = cached.get("result")
        return isinstance(result, dict) and isinstance(result.get("type"), str) and bool(result["type"])

    def set(self, namespace: str, input_data: Any, result: Dict[str, Any]) -> None:
        """
        Store a document in the cache.

        Args:
            namespace: Component storing the entry
            input_data: Input that identifies the entry
            result: JSON-compatible document to store
        """
        cache_file = self._path_for(namespace, input_data)
        payload = {"namespace": namespace, "timestamp": time.time(), "result": result}
        tmp_file = cache_file.with_suffix(".tmp")

        try:
            with self._lock:
                with open(tmp_file, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False)
                tmp_file.replace(cache_file)
            logger.debug(f"Cache SET for {namespace}: {cache_file.stem}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save cache entry: {e}")
            tmp_file.unlink(missing_ok=True)

    def clear(self, namespace: Optional[str] = None) -> int:
        """
        Remove cached entries.

        Args:
            namespace: Only clear this namespace when given

        Returns:
            Number of entries removed
        """
        pattern = f"resolved_{namespace}_*.json" if namespace else "resolved_*.json"
        cache_files = list(self.cache_dir.glob(pattern))
        for cache_file in cache_files:
            cache_file.unlink(missing_ok=True)

        if cache_files:
            logger.info(f"Cleared {len(cache_files)} cache entries")
        return len(cache_files)

    def get_stats(self) -> Dict[str, Any]:
        cache_files = list(self.cache_dir.glob("resolved_*.json"))
        return {
            "total_entries": len(cache_files),
            "total_size_bytes": sum(f.stat().st_size for f in cache_files if f.exists()),
        }


_global_cache: Optional[ResolutionCache] = None


def get_cache() -> ResolutionCache:
    """Get or create the global resolution cache."""
    global _global_cache
    if _global_cache is None:
        _global_cache = ResolutionCache()
    return _global_cache
