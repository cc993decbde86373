"""
Operator configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Operator settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="couchdb-operator", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development/staging/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Operator identity (required)
    operator_namespace: str = Field(..., min_length=1, description="Namespace the operator runs in")
    operator_name: str = Field(..., min_length=1, description="Pod name of the running operator")

    # Server
    listen_addr: str = Field(default="0.0.0.0:8080", description="Address the health endpoint listens on")

    # Kubernetes
    kubeconfig: Optional[str] = Field(
        default=None, description="Path to kubeconfig file (None for in-cluster)"
    )
    watch_namespace: str = Field(
        default="", description="Namespace to watch (empty string watches all namespaces)"
    )
    crd_group: str = Field(default="stable.couchdb.org", description="CouchDB resource API group")
    crd_version: str = Field(default="v1", description="CouchDB resource API version")
    crd_plural: str = Field(default="couchdbs", description="CouchDB resource plural name")

    # CouchDB
    couchdb_image: str = Field(default="nicolai86/couchdb", description="Image used when a cluster omits baseImage")
    couchdb_version: str = Field(default="2.1.0", description="Image tag used when a cluster omits version")
    admin_request_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for CouchDB admin API calls"
    )

    # Monitoring
    prometheus_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sentry traces sample rate"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("listen_addr")
    @classmethod
    def validate_listen_addr(cls, v: str) -> str:
        """Validate that the listen address is host:port."""
        host, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError("listen_addr must be in host:port form")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def listen_host_port(self) -> Tuple[str, int]:
        """Split listen_addr into host and port."""
        host, _, port = self.listen_addr.rpartition(":")
        return host or "0.0.0.0", int(port)


@lru_cache
def get_settings() -> Settings:
    """
    Return the process-wide settings instance.

    Raises pydantic.ValidationError when OPERATOR_NAMESPACE or OPERATOR_NAME
    is missing from the environment.
    """
    return Settings()
