"""
Base payment client implementing shared concerns: http, retry, logging, mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Optional
from contextlib import asynccontextmanager

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    GatewayResponseFormatError,
    GatewayTransportError,
)
from shared.codes.payment_codes import TRANSACTION_TYPE_TO_PROVIDER


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 5.0, "read": 30.0, "write": 10.0, "total": 45.0}
        self._retry_cfg = retry or {"max": 0, "base": 0.2}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Any]):
        # ConnectError means nothing reached the gateway, so a retry cannot double-charge.
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(httpx.ConnectError),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _post_json(self, url: str, body: dict[str, Any], *, operation: str) -> dict[str, Any]:
        """POST a JSON document and decode the JSON answer.

        Every transport or decoding problem is raised as an InfrastructureError.
        """
        async def _send() -> httpx.Response:
            async with self.client() as http:
                return await http.post(url, json=body, headers={"Accept": "application/json"})

        try:
            response = await self._retry(_send)
        except httpx.TimeoutException as exc:
            self._log("gateway_timeout", operation=operation, error=str(exc))
            raise GatewayTransportError(
                f"Timed out talking to the payment gateway: {exc}",
                provider=self.provider,
                operation=operation,
                timeout=True,
            ) from exc
        except httpx.HTTPError as exc:
            self._log("gateway_transport_error", operation=operation, error=str(exc))
            raise GatewayTransportError(
                f"Could not reach the payment gateway: {exc}",
                provider=self.provider,
                operation=operation,
            ) from exc

        if response.status_code >= 400:
            raise GatewayTransportError(
                f"Payment gateway answered with HTTP {response.status_code}",
                provider=self.provider,
                operation=operation,
                details={"status_code": response.status_code},
            )

        try:
            # Authorize.Net prefixes its JSON with a UTF-8 byte order mark.
            data = json.loads(response.content.decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise GatewayResponseFormatError(
                "Payment gateway returned an undecodable response",
                provider=self.provider,
                operation=operation,
            ) from exc
        if not isinstance(data, dict):
            raise GatewayResponseFormatError(
                "Payment gateway returned an unexpected document",
                provider=self.provider,
                operation=operation,
            )
        return data

    # Helpers
    def _map_transaction_type(self, transaction_type: str) -> str:
        try:
            return TRANSACTION_TYPE_TO_PROVIDER[transaction_type]
        except KeyError:
            raise ValueError(f"Unsupported transaction type: {transaction_type}") from None

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
