import json
import os

import httpx
import pytest

from landmarkquest.catalog.loader import FileLandmarkCatalog, HttpLandmarkCatalog, load_landmarks
from landmarkquest.core.cache import FileCache


def _entry(lid, **extra):
    return {"id": lid, "name": lid.title(), "location": {"latitude": 7.78, "longitude": 122.59}, **extra}


def test_packaged_catalog_loads_ipil_presets():
    landmarks = load_landmarks("data/catalogs/landmarks.json")
    assert {lm.id for lm in landmarks} == {"ipil-municipal-hall", "ipil-public-market", "ipil-sanctuary"}
    assert all(lm.is_preset for lm in landmarks)


def test_catalog_keeps_presets_and_approved_submissions_only(tmp_path):
    path = tmp_path / "landmarks.json"
    path.write_text(
        json.dumps(
            [
                _entry("preset", isPreset=True, status="pending"),
                _entry("approved", status="approved"),
                _entry("pending", status="pending"),
                _entry("rejected", status="rejected"),
            ]
        ),
        encoding="utf-8",
    )

    assert [lm.id for lm in load_landmarks(path)] == ["preset", "approved"]


def test_file_catalog_reloads_when_file_changes(tmp_path):
    path = tmp_path / "landmarks.json"
    path.write_text(json.dumps([_entry("a")]), encoding="utf-8")
    catalog = FileLandmarkCatalog(path)
    assert [lm.id for lm in catalog.list_landmarks()] == ["a"]

    path.write_text(json.dumps({"landmarks": [_entry("a"), _entry("b")]}), encoding="utf-8")
    st = path.stat()
    os.utime(path, (st.st_atime, st.st_mtime + 10))
    assert [lm.id for lm in catalog.list_landmarks()] == ["a", "b"]


def test_http_catalog_serves_stale_copy_when_offline(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=60)
    catalog = HttpLandmarkCatalog("https://example.test/landmarks", cache, ttl_seconds=60)

    monkeypatch.setattr("landmarkquest.core.cache.time.time", lambda: 0)
    monkeypatch.setattr(catalog, "_fetch", lambda: [_entry("a")])
    assert [lm.id for lm in catalog.list_landmarks()] == ["a"]

    def offline():
        raise httpx.ConnectError("no network")

    monkeypatch.setattr("landmarkquest.core.cache.time.time", lambda: 10_000)
    monkeypatch.setattr(catalog, "_fetch", offline)
    assert [lm.id for lm in catalog.list_landmarks()] == ["a"]


def test_http_catalog_without_cached_copy_raises(monkeypatch, tmp_path):
    catalog = HttpLandmarkCatalog("https://example.test/landmarks", FileCache(tmp_path))

    def offline():
        raise httpx.ConnectError("no network")

    monkeypatch.setattr(catalog, "_fetch", offline)
    with pytest.raises(httpx.ConnectError):
        catalog.list_landmarks()


def test_file_cache_stale_if_error_respects_predicate(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)

    monkeypatch.setattr("landmarkquest.core.cache.time.time", lambda: 0)
    assert cache.get_or_set("ns", "k", lambda: {"v": 1}, ttl_seconds=1) == {"v": 1}

    monkeypatch.setattr("landmarkquest.core.cache.time.time", lambda: 100)

    def builder():
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        cache.get_or_set(
            "ns",
            "k",
            builder,
            ttl_seconds=1,
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, ValueError),
        )
    assert cache.get_or_set("ns", "k", builder, ttl_seconds=1, stale_if_error=True) == {"v": 1}
