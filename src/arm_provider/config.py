"""Configuration management with validation.

All settings come from environment variables and are validated at load
time, so a misconfigured provider fails before it makes any Azure call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum

from .client import DEFAULT_ARM_ENDPOINT
from .operations import DEFAULT_POLL_INTERVAL_SECONDS
from .reader import DEFAULT_LIST_MAX_PAGES, DEFAULT_LIST_PAGE_SIZE


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
MIN_POLL_INTERVAL_SECONDS = 1
MAX_POLL_INTERVAL_SECONDS = 300

MIN_SECRET_LIST_PAGE_SIZE = 1
MAX_SECRET_LIST_PAGE_SIZE = 25

MIN_SECRET_LIST_MAX_PAGES = 1
MAX_SECRET_LIST_MAX_PAGES = 100

# Desired-state files are small YAML documents
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_ENDPOINT_PATTERN = r"^https://[^/\s]+/?$"


@dataclass(frozen=True)
class ProviderConfig:
    """Provider configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    subscription_id: str

    # Azure
    arm_endpoint: str = DEFAULT_ARM_ENDPOINT
    client_id: str | None = None

    # Behavior
    require_import: bool = True
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    secret_list_page_size: int = DEFAULT_LIST_PAGE_SIZE
    secret_list_max_pages: int = DEFAULT_LIST_MAX_PAGES

    # Logging
    log_format: LogFormat = LogFormat.JSON
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not re.match(VALID_ENDPOINT_PATTERN, self.arm_endpoint):
            errors.append(f"ARM_ENDPOINT must be an https base URL: {self.arm_endpoint}")

        if self.client_id is not None and not re.match(
            VALID_SUBSCRIPTION_ID_PATTERN, self.client_id.lower()
        ):
            errors.append(f"AZURE_CLIENT_ID must be a valid GUID: {self.client_id}")

        if not (
            MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if not (
            MIN_SECRET_LIST_PAGE_SIZE <= self.secret_list_page_size <= MAX_SECRET_LIST_PAGE_SIZE
        ):
            errors.append(
                f"SECRET_LIST_PAGE_SIZE must be between {MIN_SECRET_LIST_PAGE_SIZE} "
                f"and {MAX_SECRET_LIST_PAGE_SIZE}"
            )

        if not (
            MIN_SECRET_LIST_MAX_PAGES <= self.secret_list_max_pages <= MAX_SECRET_LIST_MAX_PAGES
        ):
            errors.append(
                f"SECRET_LIST_MAX_PAGES must be between {MIN_SECRET_LIST_MAX_PAGES} "
                f"and {MAX_SECRET_LIST_MAX_PAGES}"
            )

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> ProviderConfig:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription the provider manages (required)
            ARM_ENDPOINT: Resource Manager base URL (default: https://management.azure.com)
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity (optional)
            REQUIRE_IMPORT: Refuse to create objects that already exist (default: true)
            POLL_INTERVAL: Seconds between long-running operation polls (default: 10)
            SECRET_LIST_PAGE_SIZE: Secrets per page when locating a secret (default: 25)
            SECRET_LIST_MAX_PAGES: Pages searched when locating a secret (default: 1)
            LOG_FORMAT: json or text (default: json)
            LOG_LEVEL: Root log level (default: INFO)
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
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            arm_endpoint=os.environ.get("ARM_ENDPOINT", DEFAULT_ARM_ENDPOINT),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            require_import=get_bool("REQUIRE_IMPORT", True),
            poll_interval_seconds=get_int("POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            secret_list_page_size=get_int("SECRET_LIST_PAGE_SIZE", DEFAULT_LIST_PAGE_SIZE),
            secret_list_max_pages=get_int("SECRET_LIST_MAX_PAGES", DEFAULT_LIST_MAX_PAGES),
            log_format=get_log_format(os.environ.get("LOG_FORMAT")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
