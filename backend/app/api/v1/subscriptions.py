"""Premium subscription endpoints for agencies."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from app.auth import CurrentUser
from app.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


class CreateSubscriptionResponse(BaseModel):
    subscription_id: str
    client_secret: str | None = None


class ConfirmSubscriptionResponse(BaseModel):
    success: bool
    activated: bool


def _get_subscription_service(request: Request) -> SubscriptionService:
    service = getattr(request.app.state, "subscription_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Subscription service unavailable")
    return service


@router.post("", response_model=CreateSubscriptionResponse)
async def create_subscription(request: Request, user: CurrentUser) -> CreateSubscriptionResponse:
    """Start an inactive premium subscription; the client finishes payment with Stripe."""
    service = _get_subscription_service(request)
    issued = await service.create_subscription(user_id=user.id, role=user.role, email=user.email)
    return CreateSubscriptionResponse(
        subscription_id=issued.subscription_id, client_secret=issued.client_secret
    )


@router.post("/confirm", response_model=ConfirmSubscriptionResponse)
async def confirm_subscription(request: Request, user: CurrentUser) -> ConfirmSubscriptionResponse:
    service = _get_subscription_service(request)
    subscription = await service.confirm_subscription(user_id=user.id)
    return ConfirmSubscriptionResponse(
        success=True, activated=subscription is not None and subscription.active
    )
