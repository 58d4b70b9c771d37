"""Pydantic models for the watchdog YAML configuration."""

from pydantic import BaseModel, ConfigDict, Field

from src.helpers.constants import DEFAULT_SERVER_PORT, MIN_SCRAPE_INTERVAL


class ServerConfig(BaseModel):
    """Administration API listener settings."""

    port: int = DEFAULT_SERVER_PORT
    external: bool = False


class HostConfig(BaseModel):
    """A host running miner containers, reached through its Docker API."""

    ip: str = Field(..., min_length=1, description="Host address")
    port: int = Field(..., description="Docker Engine API port")
    ca_path: str = ""
    cert_path: str = ""
    key_path: str = ""

    @property
    def tls_enabled(self) -> bool:
        """Whether all TLS material is configured."""
        return bool(self.ca_path and self.cert_path and self.key_path)


class EmailConfig(BaseModel):
    """SMTP delivery settings."""

    smtp_endpoint: str = ""
    smtp_port: int | None = None
    smtp_account: str = ""
    smtp_password: str = ""
    receiver: list[str] = Field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        """Whether every field needed to send mail is present."""
        return bool(
            self.smtp_endpoint
            and self.smtp_port
            and self.smtp_account
            and self.smtp_password
            and self.receiver
        )


class AlertConfig(BaseModel):
    """Alert switch and notification channels."""

    enable: bool = False
    webhook: list[str] = Field(default_factory=list)
    email: EmailConfig = Field(default_factory=EmailConfig)


class AuthConfig(BaseModel):
    """Credentials of the administration API."""

    username: str = ""
    password: str = ""
    jwt_secret_key: str = ""
    token_expiry: int = 0


class WatchdogConfig(BaseModel):
    """Root of the configuration file."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    scrape_interval: int = Field(default=MIN_SCRAPE_INTERVAL, alias="scrapeInterval")
    hosts: list[HostConfig] = Field(default_factory=list)
    alert: AlertConfig = Field(default_factory=AlertConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


__all__ = [
    "AlertConfig",
    "AuthConfig",
    "EmailConfig",
    "HostConfig",
    "ServerConfig",
    "WatchdogConfig",
]
