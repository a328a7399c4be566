import asyncio

import pytest

from application.services.profile_resolver import ProfileResolver, build_payment_profile
from domain.payment.entity import Customer
from domain.payment.exceptions import HardDeclineError, InfrastructureError
from conftest import NOW, PROVIDER_KEY, error, make_method, ok


DUPLICATE_CUSTOMER_TEXT = "A duplicate record with ID 554433 already exists."


@pytest.fixture
def resolver(gateway, customers, clock) -> ProfileResolver:
    return ProfileResolver(gateway, customers, provider_key=PROVIDER_KEY, clock=clock)


def test_build_payment_profile_uses_explicit_names(customer, card):
    profile = build_payment_profile(make_method(customer), card)
    assert profile.bill_to.first_name == "Ada"
    assert profile.bill_to.last_name == "Lovelace"
    assert profile.bill_to.address == "12 Analytical Way Suite 3"
    assert profile.credit_card.expiration_date == "2028-09"
    assert profile.credit_card.card_code == "123"


# Step 1: cached customer profile id

@pytest.mark.asyncio
async def test_cached_customer_success(resolver, gateway, stored_customer, card, customers):
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="880011"))

    token = await resolver.resolve(stored_customer, make_method(stored_customer), card)

    assert token == "880011"
    assert gateway.operations() == ["create_customer_payment_profile"]
    assert gateway.calls[0][1]["customer_profile_id"] == "5550001"
    assert customers.snapshots == []


@pytest.mark.asyncio
async def test_cached_customer_duplicate_uses_payload_id(resolver, gateway, stored_customer, card):
    gateway.queue(
        "create_customer_payment_profile",
        error(
            "createCustomerPaymentProfileRequest",
            "E00039",
            "A duplicate customer payment profile already exists.",
            customer_payment_profile_id="880022",
        ),
    )
    assert await resolver.resolve(stored_customer, make_method(stored_customer), card) == "880022"


@pytest.mark.asyncio
async def test_cached_customer_duplicate_falls_back_to_message_text(resolver, gateway, stored_customer, card):
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00039", "A duplicate record with ID 880033 already exists."),
    )
    assert await resolver.resolve(stored_customer, make_method(stored_customer), card) == "880033"


@pytest.mark.asyncio
async def test_cached_customer_duplicate_without_any_id(resolver, gateway, stored_customer, card):
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00039", "A duplicate customer payment profile already exists."),
    )
    with pytest.raises(HardDeclineError):
        await resolver.resolve(stored_customer, make_method(stored_customer), card)


@pytest.mark.asyncio
async def test_stale_cached_id_is_cleared_and_not_reused(resolver, gateway, stored_customer, card, customers):
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00040", "The record cannot be found."),
    )
    gateway.queue(
        "create_customer_profile",
        ok("createCustomerProfileRequest", customer_profile_id="6660001", customer_payment_profile_ids=["770001"]),
    )

    token = await resolver.resolve(stored_customer, make_method(stored_customer), card)

    assert token == "770001"
    assert gateway.operations() == ["create_customer_payment_profile", "create_customer_profile"]
    # Cleared and persisted first, then replaced by the fresh id
    assert customers.snapshots == [{}, {PROVIDER_KEY: "6660001"}]
    assert stored_customer.get_remote_id(PROVIDER_KEY) == "6660001"


@pytest.mark.asyncio
async def test_cached_customer_other_failure_is_hard_decline(resolver, gateway, stored_customer, card):
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00013", "Card Code is invalid."),
    )
    with pytest.raises(HardDeclineError) as excinfo:
        await resolver.resolve(stored_customer, make_method(stored_customer), card)
    assert excinfo.value.message == "Card Code is invalid."
    assert gateway.operations() == ["create_customer_payment_profile"]


@pytest.mark.asyncio
async def test_cached_customer_transient_failure_is_infrastructure(resolver, gateway, stored_customer, card):
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00001", "An error occurred during processing. Please try again."),
    )
    with pytest.raises(InfrastructureError):
        await resolver.resolve(stored_customer, make_method(stored_customer), card)
    assert stored_customer.get_remote_id(PROVIDER_KEY) == "5550001"


# Step 2: no cached id

@pytest.mark.asyncio
async def test_new_customer_profile_is_cached(resolver, gateway, customer, card, customers):
    gateway.queue(
        "create_customer_profile",
        ok("createCustomerProfileRequest", customer_profile_id="6660002", customer_payment_profile_ids=["770002"]),
    )

    token = await resolver.resolve(customer, make_method(customer), card)

    assert token == "770002"
    profile = gateway.calls[0][1]["profile"]
    assert profile.merchant_customer_id == "7"
    assert profile.email == "buyer@example.com"
    assert len(profile.payment_profiles) == 1
    assert customers.snapshots == [{PROVIDER_KEY: "6660002"}]


@pytest.mark.asyncio
async def test_guest_gets_synthetic_merchant_id_and_ignores_cache(resolver, gateway, card):
    guest = Customer(id=0, email="guest@example.com", is_authenticated=False, remote_ids={PROVIDER_KEY: "1"})
    gateway.queue(
        "create_customer_profile",
        ok("createCustomerProfileRequest", customer_profile_id="6660003", customer_payment_profile_ids=["770003"]),
    )

    assert await resolver.resolve(guest, make_method(guest), card) == "770003"
    assert gateway.operations() == ["create_customer_profile"]
    assert gateway.calls[0][1]["profile"].merchant_customer_id == f"0_{int(NOW.timestamp())}"


@pytest.mark.asyncio
async def test_duplicate_customer_profile_adopts_extracted_id(resolver, gateway, customer, card, customers):
    gateway.queue("create_customer_profile", error("createCustomerProfileRequest", "E00039", DUPLICATE_CUSTOMER_TEXT))
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="770004"))

    token = await resolver.resolve(customer, make_method(customer), card)

    assert token == "770004"
    assert gateway.operations() == ["create_customer_profile", "create_customer_payment_profile"]
    assert gateway.calls[1][1]["customer_profile_id"] == "554433"
    assert customer.get_remote_id(PROVIDER_KEY) == "554433"
    assert customers.snapshots == [{PROVIDER_KEY: "554433"}]


@pytest.mark.asyncio
async def test_duplicate_customer_then_duplicate_payment_profile(resolver, gateway, customer, card):
    gateway.queue("create_customer_profile", error("createCustomerProfileRequest", "E00039", DUPLICATE_CUSTOMER_TEXT))
    gateway.queue(
        "create_customer_payment_profile",
        error(
            "createCustomerPaymentProfileRequest",
            "E00039",
            "A duplicate customer payment profile already exists.",
            customer_payment_profile_id="770005",
        ),
    )
    assert await resolver.resolve(customer, make_method(customer), card) == "770005"


@pytest.mark.asyncio
async def test_duplicate_customer_then_payment_profile_failure(resolver, gateway, customer, card, customers):
    gateway.queue("create_customer_profile", error("createCustomerProfileRequest", "E00039", DUPLICATE_CUSTOMER_TEXT))
    gateway.queue(
        "create_customer_payment_profile",
        error("createCustomerPaymentProfileRequest", "E00013", "Card Code is invalid."),
    )

    with pytest.raises(HardDeclineError) as excinfo:
        await resolver.resolve(customer, make_method(customer), card)

    assert excinfo.value.message == "Unable to create payment profile for existing customer"
    assert customer.get_remote_id(PROVIDER_KEY) is None
    assert customers.snapshots == []


@pytest.mark.asyncio
async def test_customer_profile_failure(resolver, gateway, customer, card):
    gateway.queue("create_customer_profile", error("createCustomerProfileRequest", "E00013", "Email is invalid."))
    with pytest.raises(HardDeclineError) as excinfo:
        await resolver.resolve(customer, make_method(customer), card)
    assert excinfo.value.message == "Unable to create customer profile."
    assert excinfo.value.details["gateway_message"] == "Email is invalid."


@pytest.mark.asyncio
async def test_customer_profile_without_payment_profile_id(resolver, gateway, customer, card):
    gateway.queue("create_customer_profile", ok("createCustomerProfileRequest", customer_profile_id="6660006"))
    with pytest.raises(InfrastructureError):
        await resolver.resolve(customer, make_method(customer), card)


@pytest.mark.asyncio
async def test_concurrent_resolves_for_one_customer_create_one_profile(resolver, gateway, customer, card):
    gateway.queue(
        "create_customer_profile",
        ok("createCustomerProfileRequest", customer_profile_id="6660007", customer_payment_profile_ids=["770007"]),
    )
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="770008"))

    tokens = await asyncio.gather(
        resolver.resolve(customer, make_method(customer), card),
        resolver.resolve(customer, make_method(customer), card),
    )

    assert sorted(tokens) == ["770007", "770008"]
    assert gateway.operations() == ["create_customer_profile", "create_customer_payment_profile"]
    assert gateway.calls[1][1]["customer_profile_id"] == "6660007"
    assert resolver._locks == {}


@pytest.mark.asyncio
async def test_lock_entry_is_dropped_after_failure(resolver, gateway, customer, card):
    gateway.queue("create_customer_profile", error("createCustomerProfileRequest", "E00013", "Email is invalid."))

    with pytest.raises(HardDeclineError):
        await resolver.resolve(customer, make_method(customer), card)

    assert resolver._locks == {}


@pytest.mark.asyncio
async def test_lock_entry_is_shared_while_tasks_wait(resolver, gateway, customer, card):
    gateway.queue(
        "create_customer_profile",
        ok("createCustomerProfileRequest", customer_profile_id="6660008", customer_payment_profile_ids=["770009"]),
    )
    gateway.queue("create_customer_payment_profile", ok("createCustomerPaymentProfileRequest", customer_payment_profile_id="770010"))

    first = asyncio.ensure_future(resolver.resolve(customer, make_method(customer), card))
    second = asyncio.ensure_future(resolver.resolve(customer, make_method(customer), card))
    await asyncio.sleep(0)

    lock, users = resolver._locks[customer.id]
    assert users == 2
    assert lock.locked()

    await asyncio.gather(first, second)
    assert resolver._locks == {}
