"""
Secure Configuration Management

Provides centralized, validated configuration for the exporter.
Replaces ad-hoc os.getenv() calls with strict validation and fail-fast behavior.

Usage:
    from devops_exporter.secure_config import get_config

    config = get_config()
    ado_config = config.get_ado_config()
    exporter_config = config.get_exporter_config()

Security Features:
    - Strict validation of all configuration values
    - Fail-fast on missing/invalid configuration at startup
    - Placeholder detection (e.g., "your_pat_here")
    - HTTPS enforcement for the organization URL

Raises:
    ConfigurationError: If configuration is missing or invalid
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

from devops_exporter.utils.datetime_utils import parse_duration


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""


@dataclass
class AzureDevOpsConfig:
    """
    Validated Azure DevOps connection configuration.
    """

    organization_url: str
    pat: str

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """
        Validate Azure DevOps configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.organization_url:
            raise ConfigurationError("ADO_ORGANIZATION_URL is required")

        if not self.organization_url.startswith("https://"):
            raise ConfigurationError(f"ADO_ORGANIZATION_URL must use HTTPS: {self.organization_url}")

        if not ("dev.azure.com" in self.organization_url or "visualstudio.com" in self.organization_url):
            raise ConfigurationError(f"ADO_ORGANIZATION_URL must be a valid Azure DevOps URL: {self.organization_url}")

        if not self.pat:
            raise ConfigurationError("ADO_PAT is required")

        if len(self.pat) < 20:
            raise ConfigurationError(f"ADO_PAT appears invalid (too short: {len(self.pat)} chars, expected >=20)")

        placeholders = ["your_pat", "your_token", "example", "placeholder", "xxx", "replace_me"]
        if any(placeholder in self.pat.lower() for placeholder in placeholders):
            raise ConfigurationError("ADO_PAT contains a placeholder value - please set a real Personal Access Token")


@dataclass
class ExporterConfig:
    """
    Validated exporter runtime configuration.

    Attributes:
        host: Bind address of the HTTP server
        port: Bind port of the HTTP server
        scrape_interval: Interval of the release collector
        scrape_interval_live: Interval of the latest-build collector
        scrape_timeout: Upper bound for one collection cycle
        limit_projects: Maximum number of projects listed
        limit_builds_per_project: $top for the latest builds query
        limit_releases_per_definition: Releases kept per release definition
        limit_release_definitions_per_project: $top for the definitions query
        release_history_duration: Lookback window for release history
        project_filter: Project ids/names to include (empty = all)
        project_blacklist: Project ids/names to exclude
        request_concurrency: Maximum cycles running at once
        request_retries: Attempts per API call
        commit_queue_size: Bound of the commit queue
    """

    host: str = "0.0.0.0"  # nosec B104
    port: int = 8080
    scrape_interval: timedelta = timedelta(minutes=30)
    scrape_interval_live: timedelta = timedelta(seconds=30)
    scrape_timeout: timedelta = timedelta(minutes=5)
    limit_projects: int = 100
    limit_builds_per_project: int = 100
    limit_releases_per_definition: int = 100
    limit_release_definitions_per_project: int = 100
    release_history_duration: timedelta = timedelta(hours=48)
    project_filter: list[str] = field(default_factory=list)
    project_blacklist: list[str] = field(default_factory=list)
    request_concurrency: int = 10
    request_retries: int = 3
    commit_queue_size: int = 1000

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"EXPORTER_PORT must be between 1 and 65535: {self.port}")

        for name in ("scrape_interval", "scrape_interval_live", "scrape_timeout", "release_history_duration"):
            if getattr(self, name) <= timedelta(0):
                raise ConfigurationError(f"{name} must be a positive duration")

        for name in (
            "limit_projects",
            "limit_builds_per_project",
            "limit_releases_per_definition",
            "limit_release_definitions_per_project",
            "request_concurrency",
            "request_retries",
            "commit_queue_size",
        ):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {getattr(self, name)}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer: {raw!r}") from e


def _env_duration(name: str, default: str) -> timedelta:
    raw = os.getenv(name) or default
    try:
        return parse_duration(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a duration like 30s, 30m or 48h: {raw!r}") from e


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.replace(";", ",").split(",") if item.strip()]


class SecureConfig:
    """
    Centralized secure configuration manager.

    Loads and validates all exporter configuration from environment variables
    (and a .env file when present).
    """

    def __init__(self):
        """Initialize configuration (loads .env file)."""
        load_dotenv()

    def get_ado_config(self) -> AzureDevOpsConfig:
        """
        Get validated Azure DevOps configuration.

        Returns:
            AzureDevOpsConfig: Validated configuration

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        return AzureDevOpsConfig(
            organization_url=os.getenv("ADO_ORGANIZATION_URL") or "",
            pat=os.getenv("ADO_PAT") or "",
        )

    def get_exporter_config(self) -> ExporterConfig:
        """
        Get validated exporter configuration.

        Returns:
            ExporterConfig: Validated configuration

        Raises:
            ConfigurationError: If a value is malformed or out of range
        """
        return ExporterConfig(
            host=os.getenv("EXPORTER_HOST") or "0.0.0.0",  # nosec B104
            port=_env_int("EXPORTER_PORT", 8080),
            scrape_interval=_env_duration("SCRAPE_TIME", "30m"),
            scrape_interval_live=_env_duration("SCRAPE_TIME_LIVE", "30s"),
            scrape_timeout=_env_duration("SCRAPE_TIMEOUT", "5m"),
            limit_projects=_env_int("LIMIT_PROJECT", 100),
            limit_builds_per_project=_env_int("LIMIT_BUILDS_PER_PROJECT", 100),
            limit_releases_per_definition=_env_int("LIMIT_RELEASES_PER_DEFINITION", 100),
            limit_release_definitions_per_project=_env_int("LIMIT_RELEASEDEFINITIONS_PER_PROJECT", 100),
            release_history_duration=_env_duration("LIMIT_RELEASE_HISTORY_DURATION", "48h"),
            project_filter=_env_list("AZURE_DEVOPS_FILTER_PROJECT"),
            project_blacklist=_env_list("AZURE_DEVOPS_BLACKLIST_PROJECT"),
            request_concurrency=_env_int("REQUEST_CONCURRENCY", 10),
            request_retries=_env_int("REQUEST_RETRIES", 3),
            commit_queue_size=_env_int("COMMIT_QUEUE_SIZE", 1000),
        )


_config_instance: SecureConfig | None = None


def get_config() -> SecureConfig:
    """
    Get the global configuration instance (singleton pattern).

    Returns:
        SecureConfig: The configuration manager
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = SecureConfig()
    return _config_instance


def validate_config_on_startup() -> tuple[AzureDevOpsConfig, ExporterConfig]:
    """
    Validate all configuration at application startup.

    Call this in main() to fail fast if configuration is invalid.

    Returns:
        Tuple of (AzureDevOpsConfig, ExporterConfig)

    Raises:
        ConfigurationError: If any configuration is missing or invalid
    """
    config = get_config()
    return config.get_ado_config(), config.get_exporter_config()
