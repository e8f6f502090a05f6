"""Stripe API wrapper."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import stripe
import structlog

from app.config import StripeConfig
from app.errors import PaymentProviderUnavailable
from app.models.payments import PaymentIntentSnapshot, SubscriptionSnapshot

logger = structlog.get_logger(__name__)


def _to_datetime(timestamp: int | None) -> datetime | None:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=UTC)


def _as_dict(obj: Any) -> dict:
    """Stripe objects are dict-like; nested ones may be IDs or None."""
    if obj is None or isinstance(obj, str):
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None) or getattr(obj, "to_dict_recursive", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def _metadata(obj: dict) -> dict[str, str]:
    return {str(k): str(v) for k, v in _as_dict(obj.get("metadata")).items()}


class UnconfiguredStripeService:
    """Stand-in used when no Stripe secret key is set.

    Services check `configured` before any provider call and fail with
    PaymentProviderUnavailable instead of reaching the SDK.
    """

    configured = False

    def __init__(self, reason: str = "Stripe not configured. Please add STRIPE__SECRET_KEY.") -> None:
        self.reason = reason


class StripeService:
    """Encapsulates Stripe SDK calls used by the payment and subscription flows.

    Each instance owns its own StripeClient, so the module-level SDK
    configuration is never touched.
    """

    configured = True

    def __init__(self, config: StripeConfig) -> None:
        if not config.secret_key:
            raise ValueError("Stripe secret key is required")

        self.config = config
        self.client = stripe.StripeClient(
            config.secret_key, stripe_version=config.api_version or None
        )

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking SDK call off the event loop, hiding provider errors."""
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            logger.warning("stripe_call_failed", operation=operation, error=str(e))
            raise PaymentProviderUnavailable() from e

    @staticmethod
    def _parse(operation: str, parser: Callable[[Any], Any], obj: Any) -> Any:
        """Convert an SDK response; a malformed object counts as a provider failure."""
        try:
            return parser(obj)
        except ValueError as e:
            logger.warning("stripe_response_invalid", operation=operation, error=str(e))
            raise PaymentProviderUnavailable() from e

    # --- Payment intents ---

    async def create_payment_intent(
        self, *, amount: int, metadata: dict[str, str], currency: str | None = None
    ) -> PaymentIntentSnapshot:
        intent = await self._call(
            "payment_intent.create",
            self.client.payment_intents.create,
            params={
                "amount": amount,
                "currency": currency or self.config.currency,
                "metadata": metadata,
                "automatic_payment_methods": {"enabled": True},
            },
        )
        return self._parse(
            "payment_intent.create", self.payment_intent_snapshot_from_object, intent
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentSnapshot:
        intent = await self._call(
            "payment_intent.retrieve", self.client.payment_intents.retrieve, payment_intent_id
        )
        return self._parse(
            "payment_intent.retrieve", self.payment_intent_snapshot_from_object, intent
        )

    def payment_intent_snapshot_from_object(self, intent_obj: dict | Any) -> PaymentIntentSnapshot:
        intent = _as_dict(intent_obj)
        if not intent.get("id"):
            raise ValueError("Stripe payment intent is missing id")

        return PaymentIntentSnapshot(
            id=str(intent["id"]),
            status=str(intent.get("status", "")),
            amount=int(intent.get("amount") or 0),
            currency=str(intent.get("currency", "")),
            client_secret=intent.get("client_secret"),
            metadata=_metadata(intent),
        )

    # --- Customers & subscriptions ---

    async def create_customer(self, *, email: str | None, name: str | None) -> str:
        params: dict[str, Any] = {}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        customer = await self._call("customer.create", self.client.customers.create, params=params)
        return str(_as_dict(customer).get("id", ""))

    async def create_price(
        self,
        *,
        product_name: str,
        unit_amount: int,
        interval: str,
        currency: str | None = None,
    ) -> str:
        price = await self._call(
            "price.create",
            self.client.prices.create,
            params={
                "currency": currency or self.config.currency,
                "unit_amount": unit_amount,
                "recurring": {"interval": interval},
                "product_data": {"name": product_name},
            },
        )
        return str(_as_dict(price).get("id", ""))

    async def create_subscription(
        self, *, customer_id: str, price_id: str, metadata: dict[str, str]
    ) -> SubscriptionSnapshot:
        subscription = await self._call(
            "subscription.create",
            self.client.subscriptions.create,
            params={
                "customer": customer_id,
                "items": [{"price": price_id}],
                "payment_behavior": "default_incomplete",
                "payment_settings": {"save_default_payment_method": "on_subscription"},
                "metadata": metadata,
                "expand": ["latest_invoice.payment_intent"],
            },
        )
        return self._parse(
            "subscription.create", self.subscription_snapshot_from_object, subscription
        )

    async def fetch_subscription_snapshot(self, subscription_id: str) -> SubscriptionSnapshot:
        subscription = await self._call(
            "subscription.retrieve", self.client.subscriptions.retrieve, subscription_id
        )
        return self._parse(
            "subscription.retrieve", self.subscription_snapshot_from_object, subscription
        )

    def subscription_snapshot_from_object(
        self, subscription_obj: dict | Any
    ) -> SubscriptionSnapshot:
        subscription = _as_dict(subscription_obj)
        if not subscription.get("id"):
            raise ValueError("Stripe subscription is missing id")

        invoice = _as_dict(subscription.get("latest_invoice"))
        client_secret = _as_dict(invoice.get("payment_intent")).get("client_secret")
        if not client_secret:
            # Newer API versions expose the secret on the invoice itself.
            client_secret = _as_dict(invoice.get("confirmation_secret")).get("client_secret")

        return SubscriptionSnapshot(
            subscription_id=str(subscription["id"]),
            customer_id=str(subscription.get("customer", "")),
            status=str(subscription.get("status", "")),
            client_secret=client_secret,
            current_period_start=_to_datetime(subscription.get("current_period_start")),
            current_period_end=_to_datetime(subscription.get("current_period_end")),
            metadata=_metadata(subscription),
        )

    # --- Webhooks ---

    def verify_webhook_event(self, payload: bytes, signature: str | None) -> dict:
        if not self.config.webhook_secret:
            raise ValueError("Stripe webhook secret is not configured")
        if not signature:
            raise ValueError("Missing Stripe-Signature header")

        event = self.client.construct_event(
            payload=payload,
            sig_header=signature,
            secret=self.config.webhook_secret,
        )
        return _as_dict(event)
