"""Unit tests for CheckoutService using in-memory collaborators."""

import datetime as dt
from typing import Any

import pytest

from regpay.models import (
    ErrorCode,
    GatewayError,
    GatewayNotification,
    Member,
    MembershipIntent,
    MembershipPrice,
    PaymentGateway,
    PaymentMethod,
    ProgramIntent,
    ProgramPrice,
    ProgramRegistration,
    RegistrationError,
    RegistrationIntent,
    RegistrationSource,
)
from regpay.services.checkout import CheckoutService
from regpay.services.gateways import CheckoutParams

# === Fakes ===


class FakePricing:
    def __init__(self, amount: int | None = 150000, member_id: str | None = None) -> None:
        self.amount = amount
        self.member_id = member_id

    def resolve_program_price(self, program_id: str, email: str) -> ProgramPrice:
        if program_id == "missing":
            raise RegistrationError(ErrorCode.PROGRAM_NOT_FOUND)
        return ProgramPrice(
            program_id=program_id,
            program_name="Bootcamp",
            amount=self.amount,
            source=RegistrationSource.MEMBER if self.member_id else RegistrationSource.NON_MEMBER,
            member_id=self.member_id,
        )

    def resolve_membership_price(self, membership_package_id: str) -> MembershipPrice:
        return MembershipPrice(id=membership_package_id, name="Basic", amount=self.amount)


class FakeCache:
    def __init__(self) -> None:
        self.entries: dict[str, RegistrationIntent] = {}

    def put(self, intent: RegistrationIntent) -> None:
        self.entries[intent.order_id] = intent

    def get(self, order_id: str) -> RegistrationIntent | None:
        return self.entries.get(order_id)

    def delete(self, order_id: str) -> None:
        self.entries.pop(order_id, None)


class FakeGateway:
    gateway = PaymentGateway.MIDTRANS

    def __init__(self, error: GatewayError | None = None) -> None:
        self.calls: list[CheckoutParams] = []
        self.error = error

    def create_checkout(self, params: CheckoutParams) -> dict[str, Any]:
        self.calls.append(params)
        if self.error:
            raise self.error
        return {"token": "tok", "redirect_url": "https://pay.example.com/tok"}

    def parse_notification(
        self, payload: dict[str, Any], signature: str | None = None
    ) -> GatewayNotification:
        raise NotImplementedError


class FakeStore:
    def __init__(self) -> None:
        self.registrations: set[tuple[str, str]] = set()
        self.members: set[str] = set()

    def get_program_registration(self, email: str, program_id: str) -> Any:
        if (email, program_id) not in self.registrations:
            return None
        return ProgramRegistration(
            registration_id="reg-1",
            email=email,
            program_id=program_id,
            name="x",
            source=RegistrationSource.NON_MEMBER,
            created_at=dt.datetime.now(dt.UTC),
        )

    def get_member(self, email: str) -> Any:
        if email not in self.members:
            return None
        return Member(
            member_id="m-1", email=email, name="x", created_at=dt.datetime.now(dt.UTC)
        )


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


def _service(
    cache: FakeCache,
    gateway: FakeGateway,
    store: FakeStore,
    pricing: FakePricing | None = None,
) -> CheckoutService:
    return CheckoutService(
        pricing=pricing or FakePricing(),
        cache=cache,
        gateways={PaymentGateway.MIDTRANS: gateway},
        store=store,
    )


# === Program Checkout ===


class TestCheckoutProgram:
    """Tests for checkout_program."""

    def test_caches_intent_and_returns_gateway_payload(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        result = _service(cache, gateway, store).checkout_program(
            program_id="prog-1", email="  Ayu@Example.com ", name="Ayu"
        )

        assert result.amount == 150000
        assert result.currency == "IDR"
        assert result.gateway_response["token"] == "tok"
        assert result.order_id.startswith("PRG-")
        assert result.order_id == result.order_id.upper()

        intent = cache.get(result.order_id)
        assert isinstance(intent, ProgramIntent)
        assert intent.email == "ayu@example.com"
        assert intent.amount == 150000
        assert intent.program_id == "prog-1"

    def test_gateway_receives_normalized_params(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        result = _service(cache, gateway, store).checkout_program(
            program_id="prog-1",
            email="AYU@example.com",
            name="Ayu",
            method=PaymentMethod.VA,
        )

        params = gateway.calls[0]
        assert params.order_id == result.order_id
        assert params.email == "ayu@example.com"
        assert params.method == PaymentMethod.VA
        assert params.item_name == "Bootcamp"

    def test_member_price_carries_member_id(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        pricing = FakePricing(amount=100000, member_id="member-001")

        result = _service(cache, gateway, store, pricing).checkout_program(
            program_id="prog-1", email="member@example.com", name="M"
        )

        intent = cache.get(result.order_id)
        assert isinstance(intent, ProgramIntent)
        assert intent.member_id == "member-001"
        assert intent.source == RegistrationSource.MEMBER

    def test_missing_price_defaults_to_zero(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        result = _service(cache, gateway, store, FakePricing(amount=None)).checkout_program(
            program_id="prog-1", email="a@example.com", name="A"
        )

        assert result.amount == 0

    def test_already_registered_rejected_before_gateway(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        store.registrations.add(("ayu@example.com", "prog-1"))

        with pytest.raises(RegistrationError) as exc_info:
            _service(cache, gateway, store).checkout_program(
                program_id="prog-1", email="Ayu@example.com", name="Ayu"
            )

        assert exc_info.value.code == ErrorCode.DUPLICATE_REGISTRATION
        assert gateway.calls == []
        assert cache.entries == {}

    def test_unknown_program_propagates(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        with pytest.raises(RegistrationError) as exc_info:
            _service(cache, gateway, store).checkout_program(
                program_id="missing", email="a@example.com", name="A"
            )

        assert exc_info.value.code == ErrorCode.PROGRAM_NOT_FOUND

    def test_gateway_failure_leaves_cache_untouched(
        self, cache: FakeCache, store: FakeStore
    ) -> None:
        gateway = FakeGateway(error=GatewayError("MIDTRANS", 500, "Internal error"))

        with pytest.raises(GatewayError):
            _service(cache, gateway, store).checkout_program(
                program_id="prog-1", email="a@example.com", name="A"
            )

        assert cache.entries == {}

    def test_unconfigured_gateway(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        with pytest.raises(RegistrationError) as exc_info:
            _service(cache, gateway, store).checkout_program(
                program_id="prog-1",
                email="a@example.com",
                name="A",
                gateway=PaymentGateway.IPAYMU,
            )

        assert exc_info.value.code == ErrorCode.GATEWAY_NOT_CONFIGURED

    def test_order_ids_are_unique(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        service = _service(cache, gateway, store)

        ids = {
            service.checkout_program(
                program_id="prog-1", email=f"u{i}@example.com", name="U"
            ).order_id
            for i in range(20)
        }

        assert len(ids) == 20


# === Membership Checkout ===


class TestCheckoutMembership:
    """Tests for checkout_membership."""

    def test_caches_membership_intent(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        result = _service(cache, gateway, store, FakePricing(amount=250000)).checkout_membership(
            membership_package_id="pkg-basic",
            email="Budi@Example.com",
            name="Budi",
            interest_areas=["data", "ai"],
            degree="S1",
        )

        assert result.order_id.startswith("MEM-")
        intent = cache.get(result.order_id)
        assert isinstance(intent, MembershipIntent)
        assert intent.email == "budi@example.com"
        assert intent.amount == 250000
        assert intent.interest_areas == ["data", "ai"]
        assert intent.degree == "S1"

    def test_existing_member_rejected(
        self, cache: FakeCache, gateway: FakeGateway, store: FakeStore
    ) -> None:
        store.members.add("budi@example.com")

        with pytest.raises(RegistrationError) as exc_info:
            _service(cache, gateway, store).checkout_membership(
                membership_package_id="pkg-basic", email="budi@example.com", name="Budi"
            )

        assert exc_info.value.code == ErrorCode.DUPLICATE_REGISTRATION
        assert gateway.calls == []
