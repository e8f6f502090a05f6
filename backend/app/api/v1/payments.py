"""Payment API endpoints."""

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field

from app.auth import CurrentUser
from app.constants import EVENT_PAYMENT_INTENT_SUCCEEDED, SUBSCRIPTION_SYNC_EVENTS
from app.models.rental import ReservationStatus
from app.services.payment_service import PaymentService
from app.services.stripe_service import StripeService
from app.services.subscription_service import SubscriptionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentIntentRequest(BaseModel):
    """Only the reservation is accepted; the amount always comes from storage."""

    reservation_id: str = Field(description="Reservation to pay for")


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class ConfirmPaymentRequest(BaseModel):
    reservation_id: str


class ConfirmPaymentResponse(BaseModel):
    success: bool
    reservation_id: str
    status: ReservationStatus


class WebhookResponse(BaseModel):
    """Stripe webhook processing response."""

    received: bool
    processed: bool


def _get_payment_service(request: Request) -> PaymentService:
    service = getattr(request.app.state, "payment_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Payment service unavailable")
    return service


def _get_stripe_service(request: Request) -> StripeService:
    service = getattr(request.app.state, "stripe_service", None)
    if service is None or not service.configured:
        raise HTTPException(status_code=503, detail="Stripe not configured")
    return service


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    request: Request,
    user: CurrentUser,
) -> PaymentIntentResponse:
    """Create a Stripe PaymentIntent for the caller's pending reservation."""
    service = _get_payment_service(request)
    issued = await service.issue_payment_intent(
        user_id=user.id, reservation_id=body.reservation_id
    )
    return PaymentIntentResponse(
        client_secret=issued.client_secret, payment_intent_id=issued.payment_intent_id
    )


@router.post("/confirm", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    request: Request,
    user: CurrentUser,
) -> ConfirmPaymentResponse:
    """Verify the stored intent with Stripe and mark the reservation paid."""
    service = _get_payment_service(request)
    reservation = await service.confirm_payment(
        user_id=user.id, reservation_id=body.reservation_id
    )
    return ConfirmPaymentResponse(
        success=True, reservation_id=reservation.id, status=reservation.status
    )


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> WebhookResponse:
    """Process Stripe webhooks for reservation payments and subscriptions."""
    payment_service = _get_payment_service(request)
    stripe_service = _get_stripe_service(request)
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook_event(payload, stripe_signature)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    event_id = str(event.get("id", ""))
    if not event_id:
        raise HTTPException(status_code=400, detail="Stripe event without ID")

    is_new = await payment_service.process_webhook_event_id(event_id)
    if not is_new:
        return WebhookResponse(received=True, processed=False)

    event_type = str(event.get("type", ""))
    data_object = event.get("data", {}).get("object", {})

    try:
        await _dispatch_event(
            request, payment_service, stripe_service, event_id, event_type, data_object
        )
    except Exception:
        # A failed event is forgotten so the redelivery runs it again.
        await payment_service.release_webhook_event_id(event_id)
        logger.exception("stripe_webhook_failed", event_id=event_id, event_type=event_type)
        raise

    logger.info("stripe_webhook_processed", event_id=event_id, event_type=event_type)
    return WebhookResponse(received=True, processed=True)


async def _dispatch_event(
    request: Request,
    payment_service: PaymentService,
    stripe_service: StripeService,
    event_id: str,
    event_type: str,
    data_object: dict,
) -> None:
    if event_type == EVENT_PAYMENT_INTENT_SUCCEEDED:
        try:
            intent = stripe_service.payment_intent_snapshot_from_object(data_object)
        except ValueError as e:
            logger.warning("stripe_payment_intent_invalid", event_id=event_id, error=str(e))
            return
        await payment_service.handle_payment_intent_succeeded(intent)
    elif event_type in SUBSCRIPTION_SYNC_EVENTS:
        subscription_service: SubscriptionService | None = getattr(
            request.app.state, "subscription_service", None
        )
        if subscription_service is None:
            return
        try:
            snapshot = stripe_service.subscription_snapshot_from_object(data_object)
        except ValueError as e:
            logger.warning("stripe_subscription_snapshot_invalid", event_id=event_id, error=str(e))
            return
        await subscription_service.sync_from_provider(snapshot)
