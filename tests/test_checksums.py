from __future__ import annotations

from tmux_composer.runtime.checksums import ChecksumCache, content_checksum


def test_update_reports_changes() -> None:
    cache = ChecksumCache()
    key = ("work", "0")
    assert cache.update(key, content_checksum("a"))
    assert not cache.update(key, content_checksum("a"))
    assert cache.update(key, content_checksum("b"))


def test_lru_eviction_keeps_recently_used() -> None:
    cache = ChecksumCache(max_entries=2)
    cache.update("a", "1")
    cache.update("b", "2")
    assert cache.get("a") == "1"
    cache.update("c", "3")
    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_checksum_is_md5_hex() -> None:
    assert content_checksum("") == "d41d8cd98f00b204e9800998ecf8427e"
