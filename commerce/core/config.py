"""
Configuration management with schema validation.
Single source of truth for service configuration.
"""

import os
from pathlib import Path
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

DEFAULT_SETTINGS_FILE = Path(os.getenv("COMMERCE_SETTINGS", "config/settings.yaml"))

ALL_SERVICES = ["users", "products", "orders", "carts", "payments"]


class AppSettings(BaseModel):
    name: str = "mock-commerce"
    version: str = "1.0.0"
    environment: str = "development"


class StorageSettings(BaseModel):
    data_dir: str = "data"
    schema_version: str = "1.0"
    lock_timeout_seconds: float = 10.0


class AuthSettings(BaseModel):
    jwt_secret: str = "your_jwt_secret_key"
    jwt_algorithm: str = "HS256"
    token_expiry_minutes: int = 1440
    admin_role: str = "admin"
    leeway_seconds: int = 0
    # Off for the identity service itself: it is the authority
    remote_verification: bool = True


class IdentityServiceSettings(BaseModel):
    base_url: str = "http://localhost:3000/api"
    timeout_seconds: float = 5.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


class OrderSettings(BaseModel):
    reserve_stock: bool = False


class UserSettings(BaseModel):
    seed_admin: bool = True
    admin_email: str = "admin@example.com"
    admin_password: str = "admin123"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3001
    services: List[str] = Field(default_factory=lambda: list(ALL_SERVICES))


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    identity_service: IdentityServiceSettings = Field(default_factory=IdentityServiceSettings)
    orders: OrderSettings = Field(default_factory=OrderSettings)
    users: UserSettings = Field(default_factory=UserSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


class ConfigManager:
    """Loads settings.yaml with ${VAR} / ${VAR:default} environment substitution"""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else DEFAULT_SETTINGS_FILE
        self._settings: Optional[Settings] = None

    def _substitute_env_vars(self, value: Any) -> Any:
        """Recursively substitute environment variables"""
        if isinstance(value, str):
            if value.startswith("${") and value.endswith("}"):
                var_expr = value[2:-1]
                if ":" in var_expr:
                    var_name, default = var_expr.split(":", 1)
                    return os.getenv(var_name.strip(), default.strip())
                else:
                    return os.getenv(var_expr, value)
        elif isinstance(value, dict):
            return {k: self._substitute_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._substitute_env_vars(item) for item in value]
        return value

    def load_settings(self) -> Settings:
        """Load and validate settings; a missing file means defaults"""
        if not self.settings_path.exists():
            logger.info("Settings file not found, using defaults", path=str(self.settings_path))
            self._settings = Settings()
            return self._settings

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read settings from {self.settings_path}: {e}")

        processed_data = self._substitute_env_vars(raw_data)
        try:
            self._settings = Settings(**processed_data)
        except ValueError as e:
            raise ConfigError(f"Invalid settings in {self.settings_path}: {e}")
        return self._settings

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            return self.load_settings()
        return self._settings


def load_settings(settings_path: Optional[Path] = None) -> Settings:
    return ConfigManager(settings_path).load_settings()
