from datetime import datetime, timezone

import pytest

from application.dtos.payments import CardDetails
from domain.payment.exceptions import HardDeclineError, InfrastructureError, InvalidRequestError
from conftest import error, make_method, ok


@pytest.mark.asyncio
async def test_create_populates_method(service, gateway, payment_methods, stored_customer, card):
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="880011"))
    method = make_method(stored_customer, remote_id=None)
    method.card_type = method.card_number = method.card_exp_month = method.card_exp_year = None

    token = await service.create_payment_method(method, card)

    assert token == "880011"
    assert method.remote_id == "880011"
    assert method.card_type == "visa"
    assert method.card_number == "1111"
    assert (method.card_exp_month, method.card_exp_year) == (9, 2028)
    assert method.expires_at == datetime(2028, 9, 30, 23, 59, 59, tzinfo=timezone.utc)
    assert await payment_methods.get(method.id) is method

    sent = gateway.calls[0][1]["payment_profile"].credit_card
    assert sent.card_number == "4111111111111111"
    assert sent.expiration_date == "2028-09"


@pytest.mark.asyncio
@pytest.mark.parametrize("number, label", [("6200000000000005", "UnionPay"), ("9000000000000001", "unknown")])
async def test_create_rejects_unsupported_card_type(service, gateway, stored_customer, number, label):
    card = CardDetails(number=number, exp_month=9, exp_year=2028, security_code="123")
    with pytest.raises(HardDeclineError) as excinfo:
        await service.create_payment_method(make_method(stored_customer, remote_id=None), card)
    assert excinfo.value.message == f'Unsupported credit card type "{label}".'
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_create_rejects_expired_card(service, gateway, stored_customer):
    card = CardDetails(number="4111 1111 1111 1111", exp_month=12, exp_year=25, security_code="123")
    with pytest.raises(InvalidRequestError):
        await service.create_payment_method(make_method(stored_customer, remote_id=None), card)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_create_accepts_card_expiring_this_month(service, gateway, stored_customer):
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="880012"))
    card = CardDetails(number="4111111111111111", exp_month=1, exp_year=2026)
    method = make_method(stored_customer, remote_id=None)

    await service.create_payment_method(method, card)

    assert method.expires_at == datetime(2026, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_delete_removes_remote_then_local(service, gateway, payment_methods, method):
    await payment_methods.save(method)
    gateway.queue("delete_customer_payment_profile", ok("deleteCustomerPaymentProfileRequest"))

    await service.delete_payment_method(method)

    assert gateway.calls[0][1] == {"customer_profile_id": "5550001", "payment_profile_id": "900100"}
    assert await payment_methods.get(method.id) is None


@pytest.mark.asyncio
async def test_delete_twice_is_idempotent(service, gateway, payment_methods, method):
    await payment_methods.save(method)
    gateway.queue(
        "delete_customer_payment_profile",
        ok("deleteCustomerPaymentProfileRequest"),
        error("deleteCustomerPaymentProfileRequest", "E00040", "The record cannot be found."),
    )

    await service.delete_payment_method(method)
    await service.delete_payment_method(method)

    assert payment_methods.deleted == [method.id]
    assert len(gateway.calls) == 2


@pytest.mark.asyncio
async def test_delete_failure_keeps_local_record(service, gateway, payment_methods, method):
    await payment_methods.save(method)
    gateway.queue(
        "delete_customer_payment_profile",
        error("deleteCustomerPaymentProfileRequest", "E00013", "Customer Payment Profile ID is invalid."),
    )

    with pytest.raises(HardDeclineError) as excinfo:
        await service.delete_payment_method(method)

    assert excinfo.value.message == "Customer Payment Profile ID is invalid."
    assert await payment_methods.get(method.id) is method


@pytest.mark.asyncio
async def test_delete_transient_failure_keeps_local_record(service, gateway, payment_methods, method):
    await payment_methods.save(method)
    gateway.queue(
        "delete_customer_payment_profile",
        error("deleteCustomerPaymentProfileRequest", "E00001", "An error occurred during processing. Please try again."),
    )

    with pytest.raises(InfrastructureError):
        await service.delete_payment_method(method)
    assert await payment_methods.get(method.id) is method


@pytest.mark.asyncio
async def test_delete_without_cached_customer_only_removes_local(service, gateway, payment_methods, customer):
    method = make_method(customer)
    await payment_methods.save(method)

    await service.delete_payment_method(method)

    assert gateway.calls == []
    assert await payment_methods.get(method.id) is None
