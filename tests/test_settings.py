import pytest

from landmarkquest.config.settings import get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_default_settings_expose_engine_knobs(fresh_settings):
    settings = fresh_settings()

    assert settings.visit.radius_m == 100
    assert settings.visit.points_per_visit == 50
    assert settings.poller.interval_ms == 10_000
    assert settings.poller.geolocation_timeout_seconds == 15
    assert settings.ledger.transaction_retry_limit == 3
    assert settings.leaderboard.size == 10
    assert [b.id for b in settings.badges] == ["explorer-novice", "explorer-intermediate", "explorer-master"]


def test_env_overrides_selected_knobs(monkeypatch, fresh_settings):
    monkeypatch.setenv("LANDMARKQUEST_VISIT_RADIUS_M", "50")
    monkeypatch.setenv("LANDMARKQUEST_POLL_INTERVAL_MS", "30000")
    monkeypatch.setenv("LANDMARKQUEST_STORE_DIR", "/tmp/ledgers")
    monkeypatch.setenv("LANDMARKQUEST_LOG_LEVEL", "debug")

    settings = fresh_settings()

    assert settings.visit.radius_m == 50
    assert settings.poller.interval_ms == 30_000
    assert settings.store.dir == "/tmp/ledgers"
    assert settings.app.log_level == "debug"


def test_external_config_file_replaces_defaults(monkeypatch, tmp_path, fresh_settings):
    config = tmp_path / "custom.yaml"
    config.write_text(
        "visit:\n  radius_m: 75\nbadges:\n  - id: first-steps\n    requirement: 1\n    points: 10\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LANDMARKQUEST_CONFIG_PATH", str(config))

    settings = fresh_settings()

    assert settings.visit.radius_m == 75
    assert settings.visit.points_per_visit == 50
    assert [b.id for b in settings.badges] == ["first-steps"]


def test_duplicate_badge_ids_fail_validation(monkeypatch, tmp_path, fresh_settings):
    config = tmp_path / "dupes.yaml"
    config.write_text(
        "badges:\n  - id: x\n    requirement: 1\n  - id: x\n    requirement: 2\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LANDMARKQUEST_CONFIG_PATH", str(config))

    with pytest.raises(ValueError, match="duplicate badge id"):
        fresh_settings()
