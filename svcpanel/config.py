"""
Configuration management for the service control panel using Pydantic v2.
"""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_SERVICES = "calibre.service,jellyfin.service,navidrome.service"


class ServerConfig(BaseSettings):
    # Server configuration
    bind_address: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=8081, ge=1, le=65535, alias="PORT")
    uds_path: Optional[Path] = Field(default=None)

    # TLS configuration
    tls_cert_path: Optional[Path] = Field(default=None, alias="TLS_CERT_PATH")
    tls_key_path: Optional[Path] = Field(default=None, alias="TLS_KEY_PATH")
    require_tls: bool = Field(default=False, alias="REQUIRE_TLS")

    # HTTP limits
    keep_alive_timeout_seconds: int = Field(default=60, ge=1)
    shutdown_grace_seconds: int = Field(default=30, ge=0)
    max_header_bytes: int = Field(default=1 << 20, ge=1024)

    # Debug mode
    debug: bool = Field(default=False, alias="DEBUG")

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("tls_cert_path", "tls_key_path", mode="before")
    @classmethod
    def blank_path_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("tls_cert_path", "tls_key_path", mode="after")
    @classmethod
    def validate_paths(cls, v: Optional[Path]) -> Optional[Path]:
        """Validate that paths exist if specified."""
        if v and not v.exists():
            raise ValueError(f"Path does not exist: {v}")
        return v

    @field_validator("uds_path", mode="after")
    @classmethod
    def validate_uds_directory(cls, v: Optional[Path]) -> Optional[Path]:
        """Validate that parent dir exist if specified."""
        if v and not v.parent.exists():
            raise ValueError(f"Directory for UDS path does not exist: {v}")
        return v


class PanelConfig(ServerConfig):
    """Settings for the service control panel."""

    allowed_services_str: str = Field(default=DEFAULT_ALLOWED_SERVICES, alias="ALLOWED_SERVICES")

    admin_user: str = Field(..., alias="ADMIN_USER")
    admin_pass: SecretStr = Field(..., alias="ADMIN_PASS")

    # systemctl invocation
    systemctl_path: str = Field(default="systemctl", alias="SYSTEMCTL_PATH")
    command_timeout_seconds: float = Field(default=30.0, gt=0, alias="COMMAND_TIMEOUT_SECONDS")
    max_output_bytes: int = Field(default=65536, ge=1, alias="MAX_OUTPUT_BYTES")
    serialize_operations: bool = Field(default=False, alias="SERIALIZE_OPERATIONS")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_requests: int = Field(default=100, ge=1, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, ge=1, alias="RATE_LIMIT_WINDOW_SECONDS")
    trust_proxy_headers: bool = Field(default=False, alias="TRUST_PROXY_HEADERS")

    # Logging
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("admin_user", mode="before")
    @classmethod
    def require_admin_user(cls, v):
        if v is None or not str(v).strip():
            raise ValueError("ADMIN_USER and ADMIN_PASS environment variables must be set")
        return str(v).strip()

    @field_validator("admin_pass", mode="before")
    @classmethod
    def require_admin_pass(cls, v):
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if v is None or not str(v).strip():
            raise ValueError("ADMIN_USER and ADMIN_PASS environment variables must be set")
        return str(v).strip()

    @property
    def allowed_services(self) -> List[str]:
        # Blank entries are kept so the allowlist can reject them.
        return [item.strip() for item in self.allowed_services_str.split(",")]
