"""Configuration settings using Pydantic for validation."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class PrometheusConfig(BaseModel):
    """Prometheus query API configuration."""
    host: str = Field(default="prometheus", description="Prometheus host name")
    port: int = Field(default=9090, description="Prometheus port")
    scheme: str = Field(default="http", description="URL scheme used for queries")
    timeout_seconds: float = Field(default=5.0, description="Per-query timeout")

    @field_validator('timeout_seconds')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


class ProviderConfig(BaseModel):
    """Upstream function provider configuration."""
    url: str = Field(default="http://faas-netes:8080", description="Provider base URL")
    timeout_seconds: float = Field(default=5.0, description="Per-request timeout")
    username: Optional[str] = Field(default=None, description="Basic auth user for the provider")
    password: Optional[str] = Field(default=None, description="Basic auth password for the provider")
    default_namespace: str = Field(
        default="",
        description="Namespace listed when the provider reports no namespaces",
    )

    @field_validator('timeout_seconds')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v


class WatcherConfig(BaseModel):
    """Service watcher configuration."""
    enabled: bool = Field(default=True, description="Run the service watcher")
    interval_seconds: float = Field(default=5.0, description="Seconds between snapshot refreshes")

    @field_validator('interval_seconds')
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("interval_seconds must be positive")
        return v


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8082, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")
    output: str = Field(default="stdout", description="Log output destination")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v.lower() not in ('json', 'text'):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class GatewayMetricsSettings(BaseSettings):
    """Main gateway metrics service settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_METRICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="gateway-metrics", description="Service name")
    function_namespace: str = Field(
        default="openfaas-fn",
        description="Namespace the CPU and memory queries are pinned to",
    )

    prometheus: PrometheusConfig = Field(default_factory=PrometheusConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_file: Optional[str] = None) -> GatewayMetricsSettings:
    """Load configuration from a YAML file, falling back to environment and defaults."""
    if not config_file or not Path(config_file).exists():
        if config_file:
            logger.warning(f"Config file {config_file} not found, using environment and defaults")
        return GatewayMetricsSettings()

    with open(config_file, 'r') as f:
        config_data = yaml.safe_load(f) or {}

    config_data = _substitute_env_vars(config_data)
    return GatewayMetricsSettings(**config_data)


def _substitute_env_vars(data):
    """Recursively substitute ${NAME} and ${NAME:default} placeholders."""
    if isinstance(data, dict):
        return {key: _substitute_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    elif isinstance(data, str) and data.startswith('${') and data.endswith('}'):
        env_spec = data[2:-1]

        if ':' in env_spec:
            env_name, default_value = env_spec.split(':', 1)
        else:
            env_name, default_value = env_spec, None

        return os.getenv(env_name, default_value)
    else:
        return data
