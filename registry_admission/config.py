"""Environment-driven configuration for the registry admission service."""

import os
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass
class GitHubOAuthConfig:
    """GitHub OAuth application settings."""

    client_id: str
    client_secret: str = ""
    base_url: str = "https://github.com"
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 10.0
    scope: str = "read:user"


@dataclass
class ServerSettings:
    """HTTP listener settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    shutdown_timeout_seconds: int = 8


def _int_from_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad values."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Invalid integer in environment, using default",
            variable=name,
            value=raw,
            default=default,
        )
        return default


def _float_from_env(name: str, default: float) -> float:
    """Read a float environment variable, falling back on bad values."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid number in environment, using default",
            variable=name,
            value=raw,
            default=default,
        )
        return default


def get_github_config() -> GitHubOAuthConfig:
    """Build the GitHub OAuth configuration from environment variables."""
    return GitHubOAuthConfig(
        client_id=os.getenv("GITHUB_CLIENT_ID", ""),
        client_secret=os.getenv("GITHUB_CLIENT_SECRET", ""),
        base_url=os.getenv("GITHUB_BASE_URL", "https://github.com").rstrip("/"),
        api_url=os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
        timeout_seconds=_float_from_env("GITHUB_TIMEOUT_SECONDS", 10.0),
        scope=os.getenv("GITHUB_SCOPE", "read:user"),
    )


def get_server_settings() -> ServerSettings:
    """Build the HTTP listener settings from environment variables."""
    return ServerSettings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_from_env("PORT", 8000),
        shutdown_timeout_seconds=_int_from_env("SHUTDOWN_TIMEOUT_SECONDS", 8),
    )


def get_auth_cache_ttl_seconds() -> int:
    """TTL for cached GitHub identity lookups (default: 5 minutes)."""
    return _int_from_env("AUTH_CACHE_TTL_SECONDS", 300)
