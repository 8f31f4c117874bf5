"""
Configuration Management
Loads secrets from environment variables and queue tunables from YAML files
"""
import yaml
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# YAML ${VAR} substitution reads os.environ, so .env must be exported too
load_dotenv()


DEFAULT_PHARMACIST_IDENTITY = "pharmacist_console"


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]
    api_base_url: str = "http://localhost:8000"

    # Document store
    store_backend: str = "supabase"  # "supabase" or "memory"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # Telephony (Vonage Client SDK)
    vonage_application_id: Optional[str] = None
    vonage_private_key: Optional[str] = None
    vonage_private_key_path: Optional[str] = None
    pharmacist_identity: str = DEFAULT_PHARMACIST_IDENTITY
    webhook_secret: Optional[str] = None

    # Pharmacist console basic auth
    pharmacist_user: Optional[str] = None
    pharmacist_pass: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def console_configured(self) -> bool:
        return bool(self.pharmacist_user and self.pharmacist_pass)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (override in tests via dependency_overrides)."""
    return Settings()


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        # Substitute environment variables
        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} or ${VAR_NAME:default} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var, _, fallback = value[2:-1].partition(":")
                config[key] = os.getenv(env_var, fallback or value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("queue.minutes_per_call") -> 6
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_int(self, key_path: str, default: int) -> int:
        """Get an integer value, falling back to default on missing or malformed entries"""
        value = self.get(key_path, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default


@dataclass(frozen=True)
class QueueTuning:
    """Operational constants for the call queue and console."""
    minutes_per_call: int = 6
    recent_calls_limit: int = 50
    presence_window_seconds: int = 45
    grant_ttl_seconds: int = 3600
    sessions_limit: int = 50

    @classmethod
    def from_config(cls, config: ConfigManager) -> "QueueTuning":
        return cls(
            minutes_per_call=config.get_int("queue.minutes_per_call", cls.minutes_per_call),
            recent_calls_limit=config.get_int("queue.recent_calls_limit", cls.recent_calls_limit),
            presence_window_seconds=config.get_int(
                "presence.online_window_seconds", cls.presence_window_seconds
            ),
            grant_ttl_seconds=config.get_int("telephony.grant_ttl_seconds", cls.grant_ttl_seconds),
            sessions_limit=config.get_int("console.sessions_limit", cls.sessions_limit),
        )


@lru_cache
def get_queue_tuning() -> QueueTuning:
    """Queue tunables for the current environment."""
    return QueueTuning.from_config(ConfigManager(env=get_settings().environment))
