"""
Pydantic settings for the Presence Monitor API
"""

import os
from typing import List, Optional, Dict, Any
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application settings
    app_name: str = Field(default="Presence Monitor API", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development, testing, staging, production)")
    debug: bool = Field(default=False, description="Debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    reload: bool = Field(default=False, description="Auto-reload on code changes")
    workers: int = Field(default=1, description="Number of worker processes")

    # Security settings
    secret_key: str = Field(..., description="Secret key for JWT tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expire_hours: int = Field(default=24, description="JWT token expiration in hours")
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts")
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")

    # Key-value store settings
    store_backend: str = Field(default="memory", description="Key-value store backend (memory, redis)")
    redis_url: Optional[str] = Field(default=None, description="Redis connection URL")
    redis_password: Optional[str] = Field(default=None, description="Redis password")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_required: bool = Field(default=False, description="Require Redis connection (fail if unavailable)")
    redis_max_connections: int = Field(default=10, description="Maximum Redis connections")
    redis_socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")
    redis_connect_timeout: int = Field(default=5, description="Redis connection timeout in seconds")
    redis_key_prefix: str = Field(default="presence:", description="Namespace prefix for every Redis key")
    enable_redis_failsafe: bool = Field(default=True, description="Fall back to the in-memory store when Redis is unavailable")

    # Sample transport (MQTT) settings
    mqtt_enabled: bool = Field(default=False, description="Start the MQTT sample listener with the API")
    mqtt_host: str = Field(default="localhost", description="MQTT broker host")
    mqtt_port: int = Field(default=1883, description="MQTT broker port")
    mqtt_topic: str = Field(default="esp32/motion", description="Topic carrying device state messages")
    mqtt_username: Optional[str] = Field(default=None, description="MQTT username")
    mqtt_password: Optional[str] = Field(default=None, description="MQTT password")
    mqtt_client_id_prefix: str = Field(default="presence_monitor_", description="Prefix for generated MQTT client ids")
    mqtt_reconnect_interval: float = Field(default=1.0, description="Seconds between reconnect attempts")
    mqtt_persist_samples: bool = Field(default=True, description="Capture a metric sample for every state message")
    event_log_size: int = Field(default=500, description="Number of received state events kept in memory")

    # Alert rule configuration
    rules_file: str = Field(default="./data/alert_rules.json", description="Path of the persisted alert rule list")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_directory: str = Field(default="./logs", description="Log directory path")
    log_max_size: int = Field(default=10485760, description="Max log file size in bytes (10MB)")
    log_backup_count: int = Field(default=5, description="Number of log backup files")

    # Storage settings
    data_storage_path: str = Field(default="./data", description="Data storage directory")

    # API settings
    api_prefix: str = Field(default="", description="API prefix")
    docs_url: str = Field(default="/docs", description="API documentation URL")
    redoc_url: str = Field(default="/redoc", description="ReDoc documentation URL")
    openapi_url: str = Field(default="/openapi.json", description="OpenAPI schema URL")

    # Feature flags
    enable_test_endpoints: bool = Field(default=False, description="Enable test endpoints")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_environments = ["development", "testing", "staging", "production"]
        if v not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level setting."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v):
        """Validate key-value store backend."""
        allowed_backends = ["memory", "redis"]
        if v.lower() not in allowed_backends:
            raise ValueError(f"Store backend must be one of: {allowed_backends}")
        return v.lower()

    @field_validator("port", "redis_port", "mqtt_port")
    @classmethod
    def validate_port(cls, v):
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v):
        """Validate worker count."""
        if v < 1:
            raise ValueError("Workers must be at least 1")
        return v

    @field_validator("mqtt_reconnect_interval")
    @classmethod
    def validate_reconnect_interval(cls, v):
        """Validate reconnect interval."""
        if v <= 0:
            raise ValueError("Reconnect interval must be positive")
        return v

    @field_validator("event_log_size")
    @classmethod
    def validate_event_log_size(cls, v):
        """Validate event log size."""
        if v < 1:
            raise ValueError("Event log size must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    def get_redis_url(self) -> str:
        """Get Redis URL, built from components when not given explicitly."""
        if self.redis_url:
            return self.redis_url

        password_part = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{password_part}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    def get_cors_config(self) -> Dict[str, Any]:
        """Get CORS configuration."""
        if self.is_development:
            return {
                "allow_origins": ["*"],
                "allow_credentials": True,
                "allow_methods": ["*"],
                "allow_headers": ["*"],
            }

        return {
            "allow_origins": self.cors_origins,
            "allow_credentials": True,
            "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Authorization", "Content-Type"],
        }

    def create_directories(self):
        """Create necessary directories."""
        directories = [
            self.data_storage_path,
            self.log_directory,
            os.path.dirname(self.rules_file) or ".",
        ]

        for directory in directories:
            os.makedirs(directory, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    settings.create_directories()
    return settings


def get_test_settings(**overrides) -> Settings:
    """Get settings for testing."""
    values = dict(
        environment="testing",
        debug=True,
        secret_key="test-secret-key",
        store_backend="memory",
        mqtt_enabled=False,
        enable_test_endpoints=True,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


def load_settings_from_file(file_path: str) -> Settings:
    """Load settings from a specific file."""
    return Settings(_env_file=file_path)


def validate_settings(settings: Settings) -> List[str]:
    """Validate settings and return list of issues."""
    issues = []

    # Check required settings for production
    if settings.is_production:
        if not settings.secret_key or settings.secret_key == "change-me":
            issues.append("Secret key must be set for production")

        if settings.store_backend != "redis":
            issues.append("In-memory store loses all samples and alerts on restart; use redis in production")

        if settings.debug:
            issues.append("Debug mode should be disabled in production")

        if "*" in settings.allowed_hosts:
            issues.append("Allowed hosts should be restricted in production")

        if "*" in settings.cors_origins:
            issues.append("CORS origins should be restricted in production")

    if settings.store_backend == "redis" and settings.redis_required and settings.enable_redis_failsafe:
        issues.append("redis_required overrides enable_redis_failsafe; the in-memory fallback is never used")

    if settings.mqtt_enabled and not settings.mqtt_topic:
        issues.append("MQTT topic must be set when the listener is enabled")

    # Check storage paths exist
    try:
        settings.create_directories()
    except Exception as e:
        issues.append(f"Cannot create storage directories: {e}")

    return issues
