"""Unit tests for settings loading and device driver factory."""

import logging
import os
import pytest
from pathlib import Path
from pydantic import ValidationError

from flasher.config import (
    DEFAULT_MANIFEST_URL,
    Settings,
    create_device_driver,
    load_settings,
)


class DummyDriver:
    """Importable driver factory for create_device_driver tests."""

    class Nested:
        pass


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop FLASHER_* variables inherited from the calling shell."""
    for key in list(os.environ):
        if key.upper().startswith("FLASHER_"):
            monkeypatch.delenv(key)
    return monkeypatch


def _set_env(monkeypatch, env):
    for key, value in env.items():
        monkeypatch.setenv(key, value)


@pytest.mark.unit
class TestLoadSettings:
    """Test load_settings against the process environment."""

    def test_defaults(self):
        settings = load_settings()

        assert settings.manifest_url == DEFAULT_MANIFEST_URL
        assert settings.cache_dir == Path("./tmp/images")
        assert settings.log_file == "./logs/flasher.log"
        assert settings.log_level == "INFO"
        assert settings.device_driver is None
        assert settings.report_url is None
        assert settings.port == 12316

    def test_reads_prefixed_variables(self, monkeypatch):
        _set_env(monkeypatch, {
            "FLASHER_MANIFEST_URL": "https://example.com/manifest.json",
            "FLASHER_CACHE_DIR": "/var/cache/flasher",
            "FLASHER_LOG_LEVEL": "debug",
            "FLASHER_PORT": "8080",
            "FLASHER_HOST": "127.0.0.1",
            "FLASHER_REPORT_URL": "http://localhost:9080/report",
            "MANIFEST_URL": "https://ignored.example.com/manifest.json",
        })

        settings = load_settings()

        assert settings.manifest_url == "https://example.com/manifest.json"
        assert settings.cache_dir == Path("/var/cache/flasher")
        assert settings.log_level == "DEBUG"
        assert settings.log_level_value == logging.DEBUG
        assert settings.port == 8080
        assert settings.host == "127.0.0.1"
        assert settings.report_url == "http://localhost:9080/report"

    def test_empty_log_file_means_console_only(self, monkeypatch):
        monkeypatch.setenv("FLASHER_LOG_FILE", "")

        assert load_settings().log_file is None

    def test_empty_optional_values_unset(self, monkeypatch):
        _set_env(monkeypatch, {"FLASHER_REPORT_URL": "", "FLASHER_DEVICE_DRIVER": " "})

        settings = load_settings()

        assert settings.report_url is None
        assert settings.device_driver is None

    def test_unrelated_prefixed_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("FLASHER_SOMETHING_ELSE", "1")

        assert load_settings().port == 12316

    def test_constructor_arguments(self, tmp_path):
        settings = Settings(cache_dir=tmp_path, log_file=None)

        assert settings.cache_dir == tmp_path
        assert settings.log_file is None

    @pytest.mark.parametrize(
        "env",
        [
            {"FLASHER_LOG_LEVEL": "VERBOSE"},
            {"FLASHER_PORT": "70000"},
            {"FLASHER_PORT": "not-a-port"},
            {"FLASHER_DEVICE_DRIVER": "no_colon_here"},
            {"FLASHER_REPORT_URL": "ftp://example.com"},
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, env):
        _set_env(monkeypatch, env)

        with pytest.raises(ValidationError):
            load_settings()


@pytest.mark.unit
class TestCreateDeviceDriver:
    """Test create_device_driver."""

    @pytest.mark.parametrize("spec", [None, ""])
    def test_no_driver_configured(self, spec):
        assert create_device_driver(spec) is None

    def test_instantiates_factory(self):
        driver = create_device_driver(f"{__name__}:DummyDriver")
        assert isinstance(driver, DummyDriver)

    def test_dotted_attribute_path(self):
        driver = create_device_driver(f"{__name__}:DummyDriver.Nested")
        assert isinstance(driver, DummyDriver.Nested)

    def test_missing_module(self):
        with pytest.raises(ImportError):
            create_device_driver("flasher.no_such_driver:Driver")

    def test_missing_factory(self):
        with pytest.raises(AttributeError):
            create_device_driver("flasher.config:NoSuchDriver")

    def test_settings_accepts_driver_spec(self):
        settings = Settings(device_driver="mydevice.qdl:QdlDevice")
        assert settings.device_driver == "mydevice.qdl:QdlDevice"
