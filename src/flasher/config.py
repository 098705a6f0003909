"""Service settings read from FLASHER_* environment variables."""

import importlib
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MANIFEST_URL = "./manifest.json"


class Settings(BaseSettings):
    """Flasher service settings.

    Every field can be set with a FLASHER_<FIELD> environment variable.
    An empty FLASHER_LOG_FILE, FLASHER_DEVICE_DRIVER or FLASHER_REPORT_URL
    unsets that field (console-only logging, no driver, no reporting).
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHER_",
        case_sensitive=False,
        extra="ignore",
    )

    manifest_url: str = Field(
        default=DEFAULT_MANIFEST_URL, description="URL or path of the release manifest"
    )
    cache_dir: Path = Field(
        default=Path("./tmp/images"), description="Download/unpack directory"
    )
    log_file: Optional[str] = Field(
        default="./logs/flasher.log", description="Rotating log file, None for console only"
    )
    log_level: str = Field(default="INFO", description="DEBUG/INFO/WARNING/ERROR")
    device_driver: Optional[str] = Field(
        None,
        pattern=r"^[\w.]+:[\w.]+$",
        description="Device driver factory as 'module:callable'",
    )
    report_url: Optional[str] = Field(
        None, pattern=r"^https?://.+", description="Status report endpoint"
    )
    host: str = Field(default="0.0.0.0", description="API bind address")
    port: int = Field(default=12316, gt=0, lt=65536, description="API port")

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        """Ensure the log level is one logging knows."""
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    @field_validator("log_file", "device_driver", "report_url", mode="before")
    @classmethod
    def empty_means_unset(cls, v: Any) -> Any:
        """Treat an empty string as None for optional settings."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


def load_settings() -> Settings:
    """Build Settings from FLASHER_* environment variables.

    Raises:
        pydantic.ValidationError: If a value is invalid
    """
    return Settings()


def create_device_driver(spec: Optional[str]) -> Optional[Any]:
    """Instantiate the configured device driver.

    Args:
        spec: 'module:callable' path of a driver factory, or None

    Returns:
        Driver instance, or None if no driver is configured

    Raises:
        ImportError: If the module cannot be imported
        AttributeError: If the factory does not exist
    """
    if not spec:
        return None
    module_name, _, attr_path = spec.partition(":")
    factory = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        factory = getattr(factory, attr)
    return factory()
