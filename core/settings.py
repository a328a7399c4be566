"""
Authorize.Net gateway settings using pydantic-settings v2 with nested env keys.

Environment variables use the `AUTHNET__` prefix and `__` as the nested
delimiter, e.g. `AUTHNET__API_LOGIN`, `AUTHNET__TIMEOUTS__READ`.
"""
from __future__ import annotations

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class GatewayTimeouts(BaseModel):
    connect: float = 5.0
    read: float = 30.0
    write: float = 10.0
    total: float = 45.0


class GatewayRetry(BaseModel):
    # Only connection failures are retried: the request never reached the gateway.
    max: int = 0
    base_backoff: float = 0.2


class GatewaySettings(BaseSettings):
    api_login: Optional[str] = None
    transaction_key: Optional[str] = None
    mode: Literal["test", "live"] = "test"

    # Plugin instance id, used to key the customer's cached remote profile id
    gateway_id: str = "authorizenet"
    # Default transaction type used during checkout
    transaction_type: Literal["auth_only", "auth_capture"] = "auth_only"
    credit_card_types: list[str] = Field(
        default_factory=lambda: ["amex", "dinersclub", "discover", "jcb", "mastercard", "visa"]
    )
    serialize_profile_creation: bool = True

    live_endpoint: str = "https://api.authorize.net/xml/v1/request.api"
    sandbox_endpoint: str = "https://apitest.authorize.net/xml/v1/request.api"

    timeouts: GatewayTimeouts = Field(default_factory=GatewayTimeouts)
    retry: GatewayRetry = Field(default_factory=GatewayRetry)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AUTHNET__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @property
    def sandbox(self) -> bool:
        return self.mode == "test"

    @property
    def endpoint(self) -> str:
        return self.sandbox_endpoint if self.sandbox else self.live_endpoint

    @property
    def provider_key(self) -> str:
        """Key under which a customer's remote profile id is cached."""
        return f"authnet_{self.gateway_id}"


gateway_settings = GatewaySettings()
