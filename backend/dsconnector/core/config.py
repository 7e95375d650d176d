"""
Connector configuration using Pydantic Settings.

Values come from environment variables (or a local ``.env`` file). The IDS
identity block is stamped onto every outbound protocol message.
"""

import warnings
from functools import lru_cache
from typing import Literal, Self
from urllib.parse import urlsplit

from pydantic import Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTITY_SCHEMES = ("http", "https", "urn")


class Settings(BaseSettings):
    """
    Connector settings loaded from environment variables.

    ``connector_id`` and ``sender_agent`` must be absolute URIs; they end up
    as ``ids:issuerConnector`` and ``ids:senderAgent`` in message headers.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Service
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    api_prefix: str = "/api"
    project_name: str = "IDS Dataspace Connector"
    version: str = "0.1.0"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ==========================================================================
    # IDS Identity
    # ==========================================================================
    connector_id: str = Field(
        default="https://w3id.org/idsa/autogen/baseConnector/local",
        description="Connector URI sent as ids:issuerConnector",
    )
    sender_agent: str = Field(
        default="",
        description="Participant URI sent as ids:senderAgent; falls back to connector_id",
    )
    ids_model_version: str = "4.0.0"
    ids_security_token: str = Field(
        default="",
        description="Dynamic Attribute Token presented to peer connectors",
    )
    ids_request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a peer connector to answer one message",
    )

    @field_validator("connector_id", "sender_agent")
    @classmethod
    def _require_absolute_uri(cls, value: str) -> str:
        value = value.strip()
        if value and urlsplit(value).scheme not in _IDENTITY_SCHEMES:
            raise ValueError(f"{value!r} is not an absolute http(s) or urn URI")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def effective_sender_agent(self) -> str:
        """Participant the connector acts for."""
        return self.sender_agent or self.connector_id

    @model_validator(mode="after")
    def _validate_deployed_identity(self) -> Self:
        if self.environment == "development":
            if not self.ids_security_token:
                warnings.warn(
                    "ids_security_token is empty; peer connectors that verify "
                    "the DAT will reject outbound messages.",
                    UserWarning,
                    stacklevel=2,
                )
            return self

        if not self.ids_security_token:
            raise ValueError(f"ids_security_token must be set in {self.environment} environment")
        if not self.connector_id:
            raise ValueError(f"connector_id must be set in {self.environment} environment")
        if self.debug:
            raise ValueError(f"debug must be False in {self.environment} environment")
        return self


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process; tests clear the cache to reload."""
    return Settings()
