"""
Shared test fixtures for the rental backend test suite.
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import structlog
from fastapi.testclient import TestClient

from app.errors import PaymentProviderUnavailable
from app.models.payments import PaymentIntentSnapshot, SubscriptionSnapshot
from app.models.rental import Agency, UserProfile, UserRole, Vehicle
from app.services.rental_repository import InMemoryRentalRepository


class FakeStripeProvider:
    """Test double for StripeService; keeps intents and subscriptions in dicts."""

    configured = True

    def __init__(self):
        self.intents: dict[str, PaymentIntentSnapshot] = {}
        self.subscriptions: dict[str, SubscriptionSnapshot] = {}
        self.customers: list[dict] = []
        self.prices_created = 0
        self.retrieve_calls: list[str] = []
        self.unavailable = False
        self.webhook_event: dict = {}

    def _check_available(self) -> None:
        if self.unavailable:
            raise PaymentProviderUnavailable()

    async def create_payment_intent(self, *, amount, metadata, currency=None):
        self._check_available()
        intent_id = f"pi_{len(self.intents) + 1}"
        intent = PaymentIntentSnapshot(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency or "eur",
            client_secret=f"{intent_id}_secret_test",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    async def retrieve_payment_intent(self, payment_intent_id):
        self._check_available()
        self.retrieve_calls.append(payment_intent_id)
        return self.intents[payment_intent_id].model_copy(deep=True)

    def succeed(self, payment_intent_id, **overrides):
        """Simulate the client completing payment with Stripe."""
        self.intents[payment_intent_id] = self.intents[payment_intent_id].model_copy(
            update={"status": "succeeded", **overrides}
        )

    async def create_customer(self, *, email, name):
        self._check_available()
        self.customers.append({"email": email, "name": name})
        return f"cus_{len(self.customers)}"

    async def create_price(self, **_kwargs):
        await asyncio.sleep(0)
        self.prices_created += 1
        return "price_premium"

    async def create_subscription(self, *, customer_id, price_id, metadata):
        self._check_available()
        subscription_id = f"sub_{len(self.subscriptions) + 1}"
        snapshot = SubscriptionSnapshot(
            subscription_id=subscription_id,
            customer_id=customer_id,
            status="incomplete",
            client_secret=f"{subscription_id}_secret_test",
            metadata=dict(metadata),
        )
        self.subscriptions[subscription_id] = snapshot
        return snapshot

    async def fetch_subscription_snapshot(self, subscription_id):
        self._check_available()
        return self.subscriptions[subscription_id].model_copy(deep=True)

    def activate(self, subscription_id, status="active"):
        self.subscriptions[subscription_id] = self.subscriptions[subscription_id].model_copy(
            update={"status": status}
        )

    def verify_webhook_event(self, _payload, signature):
        if signature == "bad":
            raise RuntimeError("bad signature")
        return self.webhook_event

    def payment_intent_snapshot_from_object(self, obj):
        return PaymentIntentSnapshot.model_validate(obj)

    def subscription_snapshot_from_object(self, obj):
        return SubscriptionSnapshot.model_validate(obj)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Settings deterministic: no Supabase, no Stripe key from the shell."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "")
    monkeypatch.setenv("STRIPE__SECRET_KEY", "")


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient wrapping the main application."""
    # Clear the lru_cache so settings pick up test env vars
    from app.config import get_settings

    get_settings.cache_clear()

    from app.main import app

    app.dependency_overrides.clear()
    return TestClient(app)


@pytest.fixture
def repository() -> InMemoryRentalRepository:
    """Repository seeded with one agency, a 150.00/day vehicle and one client profile."""
    repo = InMemoryRentalRepository()
    repo.agencies["agency-1"] = Agency(
        id="agency-1",
        name="Sunny Rentals",
        user_id="agency-user",
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
    )
    repo.add_vehicle(
        Vehicle(
            id="veh-1",
            title="Peugeot 208",
            brand="Peugeot",
            model="208",
            category="city",
            price_per_day=Decimal("150.00"),
            deposit_amount=Decimal("500.00"),
            region="Provence",
            agency_id="agency-1",
        )
    )
    repo.users["user-1"] = UserProfile(
        id="user-1", email="client@example.com", full_name="Camille Martin", role=UserRole.CLIENT
    )
    return repo


@pytest.fixture
def fake_stripe() -> FakeStripeProvider:
    return FakeStripeProvider()
