# SPDX-License-Identifier: Apache-2.0

import json
import logging

from corpus import QueryCache, cached_call


def test_set_then_get(tmp_path):
    cache = QueryCache(str(tmp_path), default_ttl_seconds=3600)
    cache.set("search", {"q": "involves:alice"}, {"items": [1, 2]})
    assert cache.get("search", {"q": "involves:alice"}) == {"items": [1, 2]}
    assert cache.get("search", {"q": "involves:bob"}) is None
    assert cache.hits == 1
    assert cache.misses == 1


def test_expired_entries_are_ignored(tmp_path):
    cache = QueryCache(str(tmp_path), default_ttl_seconds=3600)
    path = cache.set("timeline", {"number": 1}, ["event"])
    with open(path) as f:
        payload = json.load(f)
    payload["fetched_at"] = "2000-01-01T00:00:00+00:00"
    with open(path, "w") as f:
        json.dump(payload, f)

    assert cache.get("timeline", {"number": 1}) is None
    # A negative TTL never expires.
    assert cache.get("timeline", {"number": 1}, ttl_seconds=-1) == ["event"]


def test_unreadable_entries_are_ignored(tmp_path):
    cache = QueryCache(str(tmp_path))
    path = cache.set("gerrit", {"query": "owner:alice"}, [])
    with open(path, "w") as f:
        f.write("{not json")
    assert cache.get("gerrit", {"query": "owner:alice"}) is None


def test_cached_call_fetches_once(tmp_path):
    cache = QueryCache(str(tmp_path))
    calls = []

    def fetch():
        calls.append(1)
        return {"value": 42}

    assert cached_call(cache, "search", {"q": "x"}, fetch) == {"value": 42}
    assert cached_call(cache, "search", {"q": "x"}, fetch) == {"value": 42}
    assert len(calls) == 1
    # Without a cache every call goes to the network.
    cached_call(None, "search", {"q": "x"}, fetch)
    assert len(calls) == 2


def test_entries_are_grouped_by_category(tmp_path):
    cache = QueryCache(str(tmp_path))
    path = cache.set("timeline", {"owner": "golang", "repo": "go", "number": 7}, [])
    assert path.startswith(str(tmp_path / "timeline"))


def test_log_stats(tmp_path, caplog):
    cache = QueryCache(str(tmp_path))
    cache.get("search", {"q": "x"})
    cache.set("search", {"q": "x"}, [])
    cache.get("search", {"q": "x"})
    with caplog.at_level(logging.INFO):
        cache.log_stats()
    assert "1 hit(s), 1 miss(es)" in caplog.text
