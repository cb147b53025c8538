"""Unit tests for configuration management."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from scancar.models.config import ENV_MAPPINGS, AppConfig, ConfigManager, ProviderConfig, parse_duration

SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_MAPPINGS:
        monkeypatch.delenv(name, raising=False)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return path


def test_app_config_defaults():
    config = AppConfig()

    assert config.snapshot_ttl == 900.0
    assert config.detail_ttl == 1800.0
    assert config.stale_retry_interval == 60.0
    assert config.refresh_schedule == "*/30 * * * *"
    assert config.refresh_timezone == "Asia/Ho_Chi_Minh"
    assert config.sources == ["xeluottoantrung", "otoanhluong", "bonbanh", "chotot"]
    assert config.new_car_sources == ["vcar"]
    assert config.retryable_status_codes == [429, 502, 503, 504]
    assert config.port == 3000


@pytest.mark.parametrize("raw,seconds", [
    (900, 900.0),
    ("900", 900.0),
    ("15m", 900.0),
    ("2h", 7200.0),
    ("1.5d", 129600.0),
    ("250ms", 0.25),
    (" 30 S ", 30.0),
])
def test_parse_duration(raw, seconds):
    assert parse_duration(raw) == pytest.approx(seconds)


@pytest.mark.parametrize("raw", ["soon", "15 minutes", "", True])
def test_parse_duration_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_durations_accept_units():
    config = AppConfig(snapshot_ttl="10m", detail_ttl="1h", enrichment_timeout="500ms")

    assert config.snapshot_ttl == 600.0
    assert config.detail_ttl == 3600.0
    assert config.enrichment_timeout == 0.5


@pytest.mark.parametrize("field,value", [
    ("snapshot_ttl", 0),
    ("detail_cache_size", 0),
    ("requests_per_second", -1),
    ("max_retries", -1),
    ("log_level", "LOUD"),
])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        AppConfig(**{field: value})


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        AppConfig(cache_everything=True)


def test_empty_snapshot_path_disables_persistence():
    assert AppConfig(snapshot_path="").snapshot_path is None


def test_provider_config_validation():
    provider = ProviderConfig(id="bonbanh", allowed_hosts=[" Bonbanh.com ", "*.BONBANH.com", ""])
    assert provider.allowed_hosts == ["bonbanh.com", "*.bonbanh.com"]

    with pytest.raises(ValidationError):
        ProviderConfig(id="bonbanh", base_url="bonbanh.com")
    with pytest.raises(ValidationError):
        ProviderConfig(id="bonbanh", allowed_hosts=[" "])


def test_provider_override_lookup():
    config = AppConfig(providers=[{"id": "chotot", "base_url": "https://xe.chotot.com/"}])

    assert config.provider_override("chotot").base_url == "https://xe.chotot.com/"
    assert config.provider_override("bonbanh") is None


def test_env_overrides_parse_lists_and_aliases():
    overrides = AppConfig.env_overrides({
        "CACHE_TTL": "5m",
        "SCANCAR_SOURCES": "chotot, bonbanh,,",
        "PORT": "8080",
        "SCANCAR_PORT": "9090",
    })

    assert overrides == {"snapshot_ttl": "5m", "sources": ["chotot", "bonbanh"], "port": "9090"}
    config = AppConfig(**overrides)
    assert config.snapshot_ttl == 300.0
    assert config.port == 9090


@pytest.mark.parametrize("raw,seconds", [
    ("7200000", 7200.0),
    ("90000.5", 90.0005),
    ("2h", 7200.0),
])
def test_cache_ttl_ms_is_milliseconds(monkeypatch, raw, seconds):
    monkeypatch.setenv("CACHE_TTL_MS", raw)

    config = AppConfig.from_env()

    assert config.snapshot_ttl == pytest.approx(seconds)


def test_snapshot_ttl_env_precedence():
    overrides = AppConfig.env_overrides({
        "CACHE_TTL_MS": "60000",
        "CACHE_TTL": "5m",
        "SCANCAR_SNAPSHOT_TTL": "2h",
    })

    assert AppConfig(**overrides).snapshot_ttl == 7200.0
    assert AppConfig(**AppConfig.env_overrides({"CACHE_TTL_MS": "60000", "CACHE_TTL": "5m"})).snapshot_ttl == 300.0


def test_from_env(monkeypatch):
    monkeypatch.setenv("SCANCAR_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("SCANCAR_LOG_LEVEL", "debug")

    config = AppConfig.from_env()

    assert config.scheduler_enabled is False
    assert config.log_level == "DEBUG"


class TestConfigManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / "missing.yaml").load_config()

        assert config == AppConfig()

    def test_yaml_values_loaded(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", {
            "snapshot_ttl": "20m",
            "sources": ["chotot"],
            "providers": [{"id": "bonbanh", "allowed_hosts": ["bonbanh.com"]}],
        })

        config = ConfigManager(path).load_config()

        assert config.snapshot_ttl == 1200.0
        assert config.sources == ["chotot"]
        assert config.provider_override("bonbanh").allowed_hosts == ["bonbanh.com"]

    def test_precedence_cli_over_env_over_yaml(self, tmp_path, monkeypatch):
        path = write_yaml(tmp_path / "config.yaml", {"port": 3001, "log_level": "WARNING", "snapshot_ttl": 60})
        monkeypatch.setenv("SCANCAR_PORT", "4000")
        monkeypatch.setenv("SCANCAR_LOG_LEVEL", "ERROR")

        config = ConfigManager(path).load_config({"port": 5000, "log_level": None})

        assert config.port == 5000
        assert config.log_level == "ERROR"
        assert config.snapshot_ttl == 60.0

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert ConfigManager(path).load_config() == AppConfig()

    def test_config_property_loads_lazily(self, tmp_path):
        manager = ConfigManager(tmp_path / "missing.yaml")

        assert manager.config is manager.config

    def test_shipped_config_is_valid(self):
        config = ConfigManager(SHIPPED_CONFIG).load_config()

        assert config.snapshot_ttl == 900.0
        assert config.enrichment_timeout == 15.0
        assert config.provider_override("bonbanh").allowed_hosts == ["bonbanh.com", "www.bonbanh.com", "*.bonbanh.com"]
