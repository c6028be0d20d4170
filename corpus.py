# SPDX-License-Identifier: Apache-2.0

"""
Local snapshot of tracker and code-review query results.

Fetching a few years of someone's history means hundreds of search and
detail requests. Each response payload is stored as a JSON file named after
a hash of its (category, query) pair, so re-running a report over the same
range only hits the network for entries older than the TTL.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "work-stats")
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class QueryCache:
    """JSON files keyed by (category, query), each stamped with the time it was fetched."""

    def __init__(self, cache_dir: str = DEFAULT_CACHE_DIR, default_ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.cache_dir = os.path.abspath(cache_dir)
        self.default_ttl_seconds = int(default_ttl_seconds)
        self.hits = 0
        self.misses = 0
        os.makedirs(self.cache_dir, exist_ok=True)

    def path_for(self, category: str, query: dict) -> str:
        key = json.dumps([category, query], sort_keys=True)
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, category, f"{digest}.json")

    def _expired(self, fetched_at: datetime, ttl_seconds: int) -> bool:
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        age = datetime.now(timezone.utc) - fetched_at
        if age < timedelta(0):
            return True
        # A negative TTL means entries never expire.
        return ttl_seconds >= 0 and age > timedelta(seconds=ttl_seconds)

    def get(self, category: str, query: dict, ttl_seconds: Optional[int] = None) -> Any:
        """Return the cached payload, or None if it is missing, unreadable or expired."""
        path = self.path_for(category, query)
        if not os.path.isfile(path):
            self.misses += 1
            return None
        try:
            with open(path, encoding="utf-8") as f:
                entry = json.load(f)
            fetched_at = datetime.fromisoformat(entry["fetched_at"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logging.warning(f"Ignoring unreadable cache entry {path}: {e}")
            self.misses += 1
            return None
        if self._expired(fetched_at, self.default_ttl_seconds if ttl_seconds is None else ttl_seconds):
            self.misses += 1
            return None
        self.hits += 1
        return entry.get("data")

    def set(self, category: str, query: dict, data: Any) -> str:
        path = self.path_for(category, query)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        entry = {
            "query": query,
            "fetched_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entry, f)
        return path

    def log_stats(self) -> None:
        logging.info(f"Cache {self.cache_dir}: {self.hits} hit(s), {self.misses} miss(es).")


def cached_call(cache: Optional[QueryCache], category: str, query: dict, fetch):
    """Return the cached payload for (category, query), calling fetch() on a miss."""
    if cache is not None:
        data = cache.get(category, query)
        if data is not None:
            return data
    data = fetch()
    if cache is not None:
        cache.set(category, query, data)
    return data
