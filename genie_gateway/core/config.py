"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic_settings import BaseSettings
import yaml


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]
    public_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Supabase (credential store, leads, campaigns)
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # Redis (OAuth state)
    redis_url: str = "redis://localhost:6379"

    # Outbound provider calls
    http_timeout_seconds: float = 30.0

    # Campaign sending
    campaign_send_delay_seconds: float = 2.5
    campaign_batch_size: int = 50
    campaign_max_jobs_per_tenant: int = 1
    campaign_poll_interval_seconds: float = 5.0

    # Tenant bootstrap
    founder_tenant_id: str = "founder-tenant"
    founder_tenant_name: str = "Market Genie Founder"
    founder_owner_id: Optional[str] = None
    founder_owner_email: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


# YAML layers, later files override earlier ones key by key
CONFIG_LAYERS = ("default.yaml", "{env}.yaml", "providers.yaml")

_ENV_REFERENCE = re.compile(r"^\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>.*))?\}$")


def _merged(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _merged(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env(value: Any) -> Any:
    """Resolve ${VAR} and ${VAR:-default} references anywhere in the tree."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        match = _ENV_REFERENCE.match(value)
        if match:
            fallback = match.group("default")
            return os.getenv(match.group("name"), value if fallback is None else fallback)
    return value


class ConfigManager:
    """
    Read-only view over the YAML files in config/.

    Provider adapters read their base URLs and defaults from the
    `providers.<name>` block.
    """

    def __init__(self, env: Optional[str] = None, config_dir: Optional[Path] = None):
        self.env = env or os.getenv("ENVIRONMENT", "development")
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = self._read_layers()

    def _read_layers(self) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for name in CONFIG_LAYERS:
            path = self.config_dir / name.format(env=self.env)
            if not path.exists():
                continue
            with open(path, "r", encoding="utf-8") as f:
                tree = _merged(tree, yaml.safe_load(f) or {})
        return _expand_env(tree)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Dotted lookup, e.g. get("providers.hunter.base_url")"""
        node: Any = self._config
        for key in key_path.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_provider_config(self, provider: str) -> Dict[str, Any]:
        block = self.get(f"providers.{provider}")
        return dict(block) if isinstance(block, dict) else {}


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get singleton config manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def reset_config_manager() -> None:
    """Reset singleton (tests only)."""
    global _config_manager
    _config_manager = None
