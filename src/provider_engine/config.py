"""Configuration management with validation.

Controller connection settings are validated at load time so that a bad
environment fails before the first remote call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 600

# Transport-level attempts per controller call (connection errors only)
DEFAULT_TRANSPORT_RETRIES = 3
MAX_TRANSPORT_RETRIES = 10

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max desired-config file
MAX_SPEC_FILES_PER_DIR = 500

# Input validation patterns
VALID_CONTROLLER_PATTERN = r"^[A-Za-z0-9.\-]+(:\d{1,5})?$"


@dataclass(frozen=True)
class Config:
    """Engine configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Controller connection
    controller_ip: str
    username: str
    password: str = field(repr=False, default="")
    verify_tls: bool = True

    # Timing
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_transport_retries: int = DEFAULT_TRANSPORT_RETRIES

    # Paths
    specs_dir: Path = field(default_factory=lambda: Path("specs"))

    # Behavior
    dry_run: bool = False
    log_format: LogFormat = LogFormat.JSON

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.controller_ip:
            errors.append("CONTROLLER_IP is required")
        elif not re.match(VALID_CONTROLLER_PATTERN, self.controller_ip):
            errors.append(
                f"CONTROLLER_IP must be a host name or address (optionally with port): "
                f"{self.controller_ip}"
            )

        if not self.username:
            errors.append("CONTROLLER_USERNAME is required")
        if not self.password:
            errors.append("CONTROLLER_PASSWORD is required")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if not 1 <= self.max_transport_retries <= MAX_TRANSPORT_RETRIES:
            errors.append(f"MAX_TRANSPORT_RETRIES must be between 1 and {MAX_TRANSPORT_RETRIES}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def base_url(self) -> str:
        return f"https://{self.controller_ip}"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            CONTROLLER_IP: Controller host name or address
            CONTROLLER_USERNAME: Controller login user
            CONTROLLER_PASSWORD: Controller login password
            CONTROLLER_VERIFY_TLS: Verify the controller certificate (default: true)
            REQUEST_TIMEOUT: Per-request timeout in seconds (default: 60)
            MAX_TRANSPORT_RETRIES: Attempts per call on connection errors (default: 3)
            SPECS_DIR: Path to desired-config YAML files (default: ./specs)
            DRY_RUN: If "true", plan without applying (default: false)
            LOG_FORMAT: "json" or "text" (default: json)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_log_format(value: str | None) -> LogFormat:
            if not value:
                return LogFormat.JSON
            try:
                return LogFormat(value.lower())
            except ValueError as e:
                valid = [f.value for f in LogFormat]
                raise ConfigurationError(f"LOG_FORMAT must be one of {valid}: {value}") from e

        return cls(
            controller_ip=os.environ.get("CONTROLLER_IP", ""),
            username=os.environ.get("CONTROLLER_USERNAME", ""),
            password=os.environ.get("CONTROLLER_PASSWORD", ""),
            verify_tls=get_bool("CONTROLLER_VERIFY_TLS", True),
            request_timeout_seconds=get_int("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS),
            max_transport_retries=get_int("MAX_TRANSPORT_RETRIES", DEFAULT_TRANSPORT_RETRIES),
            specs_dir=Path(os.environ.get("SPECS_DIR", "specs")),
            dry_run=get_bool("DRY_RUN", False),
            log_format=get_log_format(os.environ.get("LOG_FORMAT")),
        )
