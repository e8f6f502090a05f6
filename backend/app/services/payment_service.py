"""
Reservation payments: intent issuance and confirmation.

Confirmation never takes the client's word for it. The intent is re-fetched
from Stripe by the ID stored at issuance time and run through PAYMENT_CHECKS,
a sequence of independent predicates that each return a tagged failure reason
(or None). The first failure wins. Only a fully verified intent reaches the
conditional status update in the repository.
"""

from collections.abc import Callable

import structlog

from app.constants import META_RESERVATION_ID, META_USER_ID, PAYMENT_INTENT_SUCCEEDED
from app.errors import (
    VERIFICATION_ERRORS,
    InvalidAmount,
    MissingPaymentIntent,
    NotFound,
    PaymentProviderUnavailable,
    RentalError,
    ReservationNotPayable,
    ReservationStateConflict,
    Unauthorized,
)
from app.models.payments import ConfirmationFailure, IssuedPaymentIntent, PaymentIntentSnapshot
from app.models.rental import Reservation, ReservationStatus
from app.services.pricing import to_minor_units
from app.services.rental_repository import RentalRepository
from app.services.stripe_service import StripeService, UnconfiguredStripeService

logger = structlog.get_logger(__name__)

PaymentCheck = Callable[[Reservation, PaymentIntentSnapshot], ConfirmationFailure | None]


def check_intent_succeeded(
    _reservation: Reservation, intent: PaymentIntentSnapshot
) -> ConfirmationFailure | None:
    if intent.status != PAYMENT_INTENT_SUCCEEDED:
        return ConfirmationFailure.PAYMENT_NOT_SUCCEEDED
    return None


def check_amount_matches(
    reservation: Reservation, intent: PaymentIntentSnapshot
) -> ConfirmationFailure | None:
    if intent.amount != to_minor_units(reservation.total):
        return ConfirmationFailure.AMOUNT_MISMATCH
    return None


def check_metadata_matches(
    reservation: Reservation, intent: PaymentIntentSnapshot
) -> ConfirmationFailure | None:
    if (
        intent.metadata.get(META_RESERVATION_ID) != reservation.id
        or intent.metadata.get(META_USER_ID) != reservation.user_id
    ):
        return ConfirmationFailure.METADATA_MISMATCH
    return None


PAYMENT_CHECKS: tuple[PaymentCheck, ...] = (
    check_intent_succeeded,
    check_amount_matches,
    check_metadata_matches,
)


def verify_payment_intent(
    reservation: Reservation,
    intent: PaymentIntentSnapshot,
    checks: tuple[PaymentCheck, ...] = PAYMENT_CHECKS,
) -> ConfirmationFailure | None:
    """Return the first failed check, or None when the intent pays for the reservation."""
    for check in checks:
        failure = check(reservation, intent)
        if failure is not None:
            return failure
    return None


class PaymentService:
    """Issues Stripe payment intents for reservations and confirms them."""

    def __init__(
        self,
        repository: RentalRepository,
        provider: StripeService | UnconfiguredStripeService,
    ) -> None:
        self.repository = repository
        self.provider = provider

    def _require_provider(self) -> StripeService:
        if not self.provider.configured:
            raise PaymentProviderUnavailable(self.provider.reason)
        return self.provider

    async def _load_owned_reservation(self, user_id: str, reservation_id: str) -> Reservation:
        reservation = await self.repository.get_reservation(reservation_id)
        if reservation is None:
            raise NotFound("Reservation not found")
        if reservation.user_id != user_id:
            raise Unauthorized()
        return reservation

    async def issue_payment_intent(
        self, *, user_id: str, reservation_id: str
    ) -> IssuedPaymentIntent:
        """
        Create a Stripe intent for the reservation's stored total.

        Every call creates a new intent and the reservation keeps the latest ID;
        earlier intents are left orphaned on the Stripe side.
        """
        reservation = await self._load_owned_reservation(user_id, reservation_id)
        if reservation.status != ReservationStatus.PENDING:
            raise ReservationNotPayable()

        amount = to_minor_units(reservation.total)
        if amount <= 0:
            raise InvalidAmount()

        provider = self._require_provider()
        intent = await provider.create_payment_intent(
            amount=amount,
            metadata={META_RESERVATION_ID: reservation.id, META_USER_ID: user_id},
        )
        if not intent.client_secret:
            logger.warning("payment_intent_missing_client_secret", payment_intent_id=intent.id)
            raise PaymentProviderUnavailable()

        if reservation.stripe_payment_intent_id:
            logger.info(
                "payment_intent_replaced",
                reservation_id=reservation.id,
                previous_payment_intent_id=reservation.stripe_payment_intent_id,
            )

        updated = await self.repository.attach_payment_intent(reservation.id, intent.id)
        if updated is None:
            logger.warning(
                "payment_intent_orphaned",
                reservation_id=reservation.id,
                payment_intent_id=intent.id,
            )
            raise ReservationNotPayable()

        logger.info(
            "payment_intent_issued",
            reservation_id=reservation.id,
            payment_intent_id=intent.id,
            amount=amount,
        )
        return IssuedPaymentIntent(payment_intent_id=intent.id, client_secret=intent.client_secret)

    async def confirm_payment(self, *, user_id: str, reservation_id: str) -> Reservation:
        """Mark a reservation paid once Stripe confirms the stored intent.

        Safe to repeat: a reservation already paid by the same intent is
        re-verified and returned unchanged.
        """
        reservation = await self._load_owned_reservation(user_id, reservation_id)
        if not reservation.stripe_payment_intent_id:
            raise MissingPaymentIntent()

        provider = self._require_provider()
        intent = await provider.retrieve_payment_intent(reservation.stripe_payment_intent_id)
        return await self._apply_verified_intent(reservation, intent)

    async def _apply_verified_intent(
        self, reservation: Reservation, intent: PaymentIntentSnapshot
    ) -> Reservation:
        failure = verify_payment_intent(reservation, intent)
        if failure is not None:
            logger.warning(
                "payment_confirmation_rejected",
                reservation_id=reservation.id,
                payment_intent_id=intent.id,
                reason=failure.value,
            )
            raise VERIFICATION_ERRORS[failure]()

        updated = await self.repository.mark_reservation_paid(reservation.id, intent.id)
        if updated is not None:
            logger.info(
                "payment_confirmed", reservation_id=reservation.id, payment_intent_id=intent.id
            )
            return updated

        current = await self.repository.get_reservation(reservation.id)
        if (
            current is not None
            and current.status == ReservationStatus.PAID
            and current.stripe_payment_intent_id == intent.id
        ):
            logger.info("payment_already_confirmed", reservation_id=reservation.id)
            return current

        logger.warning(
            "payment_confirmation_conflict",
            reservation_id=reservation.id,
            payment_intent_id=intent.id,
            current_status=current.status.value if current else None,
        )
        raise ReservationStateConflict()

    async def handle_payment_intent_succeeded(self, intent: PaymentIntentSnapshot) -> bool:
        """Webhook path: confirm the reservation named in the intent metadata.

        The event payload is signature-verified, so it stands in for the
        re-fetch. Returns True when the reservation ends up paid.
        """
        reservation_id = intent.metadata.get(META_RESERVATION_ID)
        if not reservation_id:
            logger.warning("webhook_intent_without_reservation", payment_intent_id=intent.id)
            return False

        reservation = await self.repository.get_reservation(reservation_id)
        if reservation is None:
            logger.warning("webhook_reservation_missing", reservation_id=reservation_id)
            return False
        if reservation.stripe_payment_intent_id != intent.id:
            logger.warning(
                "webhook_intent_not_current",
                reservation_id=reservation_id,
                payment_intent_id=intent.id,
            )
            return False

        try:
            await self._apply_verified_intent(reservation, intent)
        except RentalError as e:
            logger.warning(
                "webhook_payment_not_applied", reservation_id=reservation_id, code=e.code
            )
            return False
        return True

    async def process_webhook_event_id(self, event_id: str) -> bool:
        return await self.repository.mark_webhook_processed(event_id)

    async def release_webhook_event_id(self, event_id: str) -> None:
        await self.repository.release_webhook_event(event_id)
