"""
Authorize.Net adapter speaking the JSON flavour of the XML API (`request.api`).

Notes on the API:
- Every request is a single-key document named after the operation, with
  `merchantAuthentication` first. Element order follows the XML schema and
  must be preserved.
- Responses carry a `messages` block (`resultCode` Ok/Error plus ordered
  `message` entries). Transaction responses add `transactionResponse` with
  `transId` and an optional `errors` list.
- The response body starts with a UTF-8 byte order mark.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CreditCardData,
    CustomerProfile,
    GatewayErrorItem,
    GatewayMessage,
    GatewayResponse,
    PaymentProfile,
    TransactionRequest,
)
from core.settings import GatewaySettings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import GatewayResponseFormatError


class AuthorizeNetClient(BasePaymentClient):
    provider = "authorizenet"

    def __init__(self, settings: GatewaySettings, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(
            timeouts=settings.timeouts.model_dump(),
            retry={"max": settings.retry.max, "base": settings.retry.base_backoff},
            transport=transport,
        )
        if not settings.api_login or not settings.transaction_key:
            raise RuntimeError("AUTHNET__API_LOGIN and AUTHNET__TRANSACTION_KEY must be configured")
        self._api_login = settings.api_login
        self._transaction_key = settings.transaction_key
        self.sandbox = settings.sandbox
        self.endpoint = settings.endpoint

    async def authenticate_test(self) -> GatewayResponse:
        return await self._execute("authenticateTestRequest", {})

    async def create_customer_profile(self, profile: CustomerProfile) -> GatewayResponse:
        payload: dict[str, Any] = {"merchantCustomerId": profile.merchant_customer_id}
        if profile.email:
            payload["email"] = profile.email
        if profile.payment_profiles:
            built = [self._payment_profile(p) for p in profile.payment_profiles]
            payload["paymentProfiles"] = built[0] if len(built) == 1 else built
        return await self._execute("createCustomerProfileRequest", {"profile": payload})

    async def create_customer_payment_profile(
        self, customer_profile_id: str, payment_profile: PaymentProfile
    ) -> GatewayResponse:
        return await self._execute("createCustomerPaymentProfileRequest", {
            "customerProfileId": customer_profile_id,
            "paymentProfile": self._payment_profile(payment_profile),
        })

    async def create_transaction(self, request: TransactionRequest) -> GatewayResponse:
        tx: dict[str, Any] = {
            "transactionType": self._map_transaction_type(request.transaction_type.value),
            "amount": format(request.amount, "f"),
        }
        if request.credit_card is not None:
            tx["payment"] = {"creditCard": self._credit_card(request.credit_card)}
        if request.profile is not None:
            tx["profile"] = {
                "customerProfileId": request.profile.customer_profile_id,
                "paymentProfile": {"paymentProfileId": request.profile.payment_profile_id},
            }
        if request.ref_trans_id:
            tx["refTransId"] = request.ref_trans_id
        if request.invoice_number:
            tx["order"] = {"invoiceNumber": request.invoice_number}
        if request.customer_ip:
            tx["customerIP"] = request.customer_ip
        self._log(
            "gateway_transaction_request",
            transaction_type=request.transaction_type.value,
            amount=tx["amount"],
            ref_trans_id=request.ref_trans_id,
        )
        return await self._execute("createTransactionRequest", {"transactionRequest": tx})

    async def delete_customer_payment_profile(
        self, customer_profile_id: str, payment_profile_id: str
    ) -> GatewayResponse:
        return await self._execute("deleteCustomerPaymentProfileRequest", {
            "customerProfileId": customer_profile_id,
            "customerPaymentProfileId": payment_profile_id,
        })

    async def _execute(self, operation: str, body: dict[str, Any]) -> GatewayResponse:
        document = {
            operation: {
                "merchantAuthentication": {
                    "name": self._api_login,
                    "transactionKey": self._transaction_key,
                },
                **body,
            }
        }
        data = await self._post_json(self.endpoint, document, operation=operation)
        response = self._parse(operation, data)
        self._log(
            "gateway_response",
            operation=operation,
            result_code=response.result_code,
            message_code=response.leading_code,
            sandbox=self.sandbox,
        )
        return response

    def _parse(self, operation: str, data: dict[str, Any]) -> GatewayResponse:
        block = data.get("messages")
        if not isinstance(block, dict) or not block.get("resultCode"):
            raise GatewayResponseFormatError(
                "Payment gateway response has no messages block",
                provider=self.provider,
                operation=operation,
            )
        messages = [
            GatewayMessage(code=str(m.get("code", "")), text=str(m.get("text", "")))
            for m in _as_list(block.get("message"))
            if isinstance(m, dict)
        ]

        tx = data.get("transactionResponse") or {}
        errors = [
            GatewayErrorItem(
                code=str(e["errorCode"]) if e.get("errorCode") is not None else None,
                text=str(e.get("errorText", "")),
            )
            for e in _as_list(tx.get("errors"))
            if isinstance(e, dict)
        ]
        trans_id = tx.get("transId")

        return GatewayResponse(
            operation=operation,
            result_code=str(block["resultCode"]),
            messages=messages,
            errors=errors,
            # The gateway answers "0" when no transaction was recorded
            transaction_id=str(trans_id) if trans_id and str(trans_id) != "0" else None,
            response_code=str(tx["responseCode"]) if tx.get("responseCode") is not None else None,
            customer_profile_id=_optional_str(data.get("customerProfileId")),
            customer_payment_profile_id=_optional_str(data.get("customerPaymentProfileId")),
            customer_payment_profile_ids=_id_list(data.get("customerPaymentProfileIdList")),
            raw=data,
        )

    @staticmethod
    def _credit_card(card: CreditCardData) -> dict[str, Any]:
        built = {"cardNumber": card.card_number, "expirationDate": card.expiration_date}
        if card.card_code:
            built["cardCode"] = card.card_code
        return built

    def _payment_profile(self, profile: PaymentProfile) -> dict[str, Any]:
        built: dict[str, Any] = {"customerType": profile.customer_type}
        if profile.bill_to is not None:
            bill_to = {
                "firstName": profile.bill_to.first_name,
                "lastName": profile.bill_to.last_name,
                "company": profile.bill_to.company,
                "address": profile.bill_to.address,
                "city": profile.bill_to.city,
                "state": profile.bill_to.state,
                "zip": profile.bill_to.zip,
                "country": profile.bill_to.country,
            }
            built["billTo"] = {k: v for k, v in bill_to.items() if v}
        built["payment"] = {"creditCard": self._credit_card(profile.credit_card)}
        return built


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _id_list(value: Any) -> list[str]:
    # JSON mirrors the XML <numericString> wrapper on some endpoints
    if isinstance(value, dict):
        value = value.get("numericString")
    return [str(v) for v in _as_list(value) if v not in (None, "")]
