"""In-process TTL cache for anonymous read responses."""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from thorbis.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


class ResponseCache:
    def __init__(self, ttl: int | None = None, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.ttl = settings.SEARCH_CACHE_TTL_SECONDS if ttl is None else ttl
        self.max_entries = max_entries
        self._cache: Dict[str, Any] = {}
        self._expiry: Dict[str, datetime] = {}

    @staticmethod
    def make_key(namespace: str, params: Mapping[str, Any]) -> str:
        """Key a response by its validated parameters, not the raw query string."""
        return f"{namespace}:{json.dumps(params, sort_keys=True, default=str)}"

    def get(self, key: str) -> Optional[Any]:
        if key not in self._cache:
            return None
        if datetime.now() > self._expiry[key]:
            self.delete(key)
            return None
        return self._cache[key]

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        if ttl <= 0:
            return
        self._cache.pop(key, None)
        self._expiry.pop(key, None)
        if len(self._cache) >= self.max_entries:
            self._evict()
        self._cache[key] = value
        self._expiry[key] = datetime.now() + timedelta(seconds=ttl)
        logger.debug("Cached %s with TTL %ss", key, ttl)

    def _evict(self) -> None:
        now = datetime.now()
        for key in [k for k, expires in self._expiry.items() if now > expires]:
            self.delete(key)
        # Insertion order is oldest first.
        while self._cache and len(self._cache) >= self.max_entries:
            self.delete(next(iter(self._cache)))

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        self._expiry.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()
        self._expiry.clear()

    def __len__(self) -> int:
        return len(self._cache)


response_cache = ResponseCache()
