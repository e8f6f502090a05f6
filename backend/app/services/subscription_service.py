"""Premium subscriptions for agencies."""

import asyncio
import uuid

import structlog

from app.config import SubscriptionConfig
from app.constants import ACTIVE_SUBSCRIPTION_STATUSES, META_AGENCY_ID, META_USER_ID
from app.errors import (
    AgencyProfileNotFound,
    Forbidden,
    MetadataMismatch,
    PaymentProviderUnavailable,
    SubscriptionNotActive,
)
from app.models.payments import IssuedSubscription, SubscriptionSnapshot
from app.models.rental import Agency, Subscription, UserAccount, UserRole
from app.services.rental_repository import RentalRepository
from app.services.stripe_service import StripeService, UnconfiguredStripeService

logger = structlog.get_logger(__name__)


class SubscriptionService:
    """Creates inactive premium subscriptions and activates them after payment."""

    def __init__(
        self,
        repository: RentalRepository,
        provider: StripeService | UnconfiguredStripeService,
        config: SubscriptionConfig,
    ) -> None:
        self.repository = repository
        self.provider = provider
        self.config = config
        self._price_id = config.price_id
        self._price_lock = asyncio.Lock()

    def _require_provider(self) -> StripeService:
        if not self.provider.configured:
            raise PaymentProviderUnavailable(self.provider.reason)
        return self.provider

    async def _require_agency(self, user_id: str) -> Agency:
        agency = await self.repository.get_agency_by_user_id(user_id)
        if agency is None:
            raise AgencyProfileNotFound()
        return agency

    async def _premium_price_id(self, provider: StripeService) -> str:
        async with self._price_lock:
            if not self._price_id:
                self._price_id = await provider.create_price(
                    product_name=self.config.product_name,
                    unit_amount=self.config.unit_amount,
                    interval=self.config.interval,
                )
                logger.info("premium_price_created", price_id=self._price_id)
        return self._price_id

    async def create_subscription(
        self,
        *,
        user_id: str,
        role: UserRole | None,
        email: str | None,
    ) -> IssuedSubscription:
        if role != UserRole.AGENCY:
            raise Forbidden("Only agencies can subscribe")

        agency = await self._require_agency(user_id)
        provider = self._require_provider()

        account = await self.repository.get_user_account(user_id) or UserAccount(user_id=user_id)
        if not account.stripe_customer_id:
            account.stripe_customer_id = await provider.create_customer(
                email=email, name=agency.name
            )
            account = await self.repository.upsert_user_account(account)
            logger.info("stripe_customer_created", customer_id=account.stripe_customer_id)

        snapshot = await provider.create_subscription(
            customer_id=account.stripe_customer_id,
            price_id=await self._premium_price_id(provider),
            metadata={META_AGENCY_ID: agency.id, META_USER_ID: user_id},
        )

        await self.repository.create_subscription(
            Subscription(
                id=str(uuid.uuid4()),
                agency_id=agency.id,
                active=False,
                stripe_subscription_id=snapshot.subscription_id,
            )
        )
        account.stripe_subscription_id = snapshot.subscription_id
        await self.repository.upsert_user_account(account)

        logger.info(
            "subscription_created",
            agency_id=agency.id,
            subscription_id=snapshot.subscription_id,
        )
        return IssuedSubscription(
            subscription_id=snapshot.subscription_id,
            client_secret=snapshot.client_secret,
        )

    async def confirm_subscription(self, *, user_id: str) -> Subscription | None:
        """
        Activate the caller's latest subscription.

        Returns None without error when the agency has no subscription record.
        With verify_with_provider on, Stripe must report the subscription as
        active (or trialing) for this agency before the flag is flipped.
        """
        agency = await self._require_agency(user_id)

        subscription = await self.repository.get_subscription_by_agency(agency.id)
        if subscription is None:
            logger.warning("subscription_record_missing", agency_id=agency.id)
            return None

        if self.config.verify_with_provider:
            self._verify_snapshot(agency, await self._fetch_snapshot(subscription))

        activated = await self.repository.set_subscription_active(subscription.id, True)
        logger.info("subscription_activated", agency_id=agency.id, subscription_id=subscription.id)
        return activated

    async def _fetch_snapshot(self, subscription: Subscription) -> SubscriptionSnapshot:
        if not subscription.stripe_subscription_id:
            raise SubscriptionNotActive()
        provider = self._require_provider()
        return await provider.fetch_subscription_snapshot(subscription.stripe_subscription_id)

    def _verify_snapshot(self, agency: Agency, snapshot: SubscriptionSnapshot) -> None:
        if snapshot.status not in ACTIVE_SUBSCRIPTION_STATUSES:
            logger.warning(
                "subscription_confirmation_rejected",
                agency_id=agency.id,
                status=snapshot.status,
            )
            raise SubscriptionNotActive()
        if snapshot.metadata.get(META_AGENCY_ID) != agency.id:
            logger.warning("subscription_metadata_mismatch", agency_id=agency.id)
            raise MetadataMismatch()

    async def sync_from_provider(self, snapshot: SubscriptionSnapshot) -> Subscription | None:
        """Webhook path: mirror Stripe's status onto the active flag."""
        subscription = await self.repository.get_subscription_by_stripe_id(
            snapshot.subscription_id
        )
        if subscription is None:
            logger.warning(
                "subscription_sync_unknown", subscription_id=snapshot.subscription_id
            )
            return None

        active = snapshot.status in ACTIVE_SUBSCRIPTION_STATUSES
        if active == subscription.active:
            return subscription
        return await self.repository.set_subscription_active(subscription.id, active)
