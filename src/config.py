"""
Configuration module for the Cloudflare Extended provider.

Loads configuration from environment variables. Credentials are resolved
once and handed to the API client; plugin-specific settings are loaded by
each plugin through ``load_config_from_env``.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

API_HOSTNAME_DEFAULT = "api.cloudflare.com"
API_BASE_PATH_DEFAULT = "/client/v4"
RETRIES_DEFAULT = 4


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


@dataclass
class CloudflareConfig:
    """Cloudflare API client configuration."""

    api_token: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)
    email: str = ""
    api_user_service_key: str = field(default="", repr=False)
    api_hostname: str = API_HOSTNAME_DEFAULT
    api_base_path: str = API_BASE_PATH_DEFAULT
    retries: int = RETRIES_DEFAULT
    api_client_logging: bool = False
    user_agent_operator_suffix: Optional[str] = None
    request_timeout: float = 60.0

    # Backoff between retried requests
    backoff_base_delay: float = 0.5
    backoff_max_delay: float = 8.0
    backoff_jitter_factor: float = 0.1

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        cfg = cls(
            api_token=os.getenv("CLOUDFLARE_API_TOKEN", ""),
            api_key=os.getenv("CLOUDFLARE_API_KEY", ""),
            email=os.getenv("CLOUDFLARE_EMAIL", ""),
            api_user_service_key=os.getenv("CLOUDFLARE_API_USER_SERVICE_KEY", ""),
            api_hostname=os.getenv("CLOUDFLARE_API_HOSTNAME", API_HOSTNAME_DEFAULT),
            api_base_path=os.getenv("CLOUDFLARE_API_BASE_PATH", API_BASE_PATH_DEFAULT),
            retries=int(os.getenv("CLOUDFLARE_RETRIES", str(RETRIES_DEFAULT))),
            api_client_logging=_env_bool("CLOUDFLARE_API_CLIENT_LOGGING"),
            user_agent_operator_suffix=(
                os.getenv("CLOUDFLARE_USER_AGENT_OPERATOR_SUFFIX") or None
            ),
            request_timeout=float(os.getenv("CLOUDFLARE_REQUEST_TIMEOUT", "60")),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """
        Check the configured credentials.

        An API token and an API key exclude each other; the user service key
        may be configured on its own or next to either of them.

        Raises:
            ValueError: If no credential is configured, both an API token and
                an API key are configured, or an API key is configured
                without an email address.
        """
        if not (self.api_token or self.api_key or self.api_user_service_key):
            raise ValueError(
                'must provide one of "api_key", "api_token" or "api_user_service_key"'
            )
        if self.api_token and self.api_key:
            raise ValueError('"api_token" and "api_key" cannot both be configured')
        if self.api_key and not self.email:
            raise ValueError('"email" is required with "api_key" and was not configured')
        if self.retries < 0:
            raise ValueError("retries cannot be negative")

    @property
    def base_url(self) -> str:
        """Base URL of the versioned control plane API."""
        base_path = "/" + self.api_base_path.strip("/") if self.api_base_path else ""
        return f"https://{self.api_hostname}{base_path}"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO"))


@dataclass
class PluginConfig:
    """Plugin system configuration."""

    # List of enabled resource plugin names (empty = use all registered plugins)
    enabled_resource_plugins: List[str] = field(default_factory=list)

    # Plugin-specific configurations keyed by plugin name
    plugin_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        enabled_str = os.getenv("ENABLED_RESOURCE_PLUGINS", "")
        enabled = (
            [p.strip() for p in enabled_str.split(",") if p.strip()]
            if enabled_str
            else []
        )

        plugin_configs = {}
        if os.getenv("PLUGIN_CONFIGS"):
            try:
                plugin_configs = json.loads(os.getenv("PLUGIN_CONFIGS"))
            except json.JSONDecodeError:
                pass

        return cls(enabled_resource_plugins=enabled, plugin_configs=plugin_configs)

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get configuration for a specific plugin."""
        return self.plugin_configs.get(plugin_name, {})


@dataclass
class Config:
    """Main configuration object."""

    cloudflare: CloudflareConfig
    logging: LoggingConfig
    plugins: PluginConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            cloudflare=CloudflareConfig.from_env(),
            logging=LoggingConfig.from_env(),
            plugins=PluginConfig.from_env(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
