"""Agency profile and vehicle lookup endpoints."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from app.auth import CurrentUser
from app.models.rental import Agency, Vehicle
from app.services.reservation_service import ReservationService

router = APIRouter(tags=["agency"])


class AgencyProfileRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    address: str | None = None
    logo: str | None = None


def _get_reservation_service(request: Request) -> ReservationService:
    service = getattr(request.app.state, "reservation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Reservation service unavailable")
    return service


@router.get("/agency/profile", response_model=Agency | None)
async def get_agency_profile(request: Request, user: CurrentUser) -> Agency | None:
    service = _get_reservation_service(request)
    return await service.get_agency_profile(user.id)


@router.post("/agency/profile", response_model=Agency, status_code=201)
async def create_agency_profile(
    body: AgencyProfileRequest,
    request: Request,
    user: CurrentUser,
) -> Agency:
    service = _get_reservation_service(request)
    return await service.create_agency_profile(
        user_id=user.id,
        role=user.role,
        name=body.name,
        description=body.description,
        address=body.address,
        logo=body.logo,
    )


@router.get("/vehicles/{vehicle_id}", response_model=Vehicle)
async def get_vehicle(vehicle_id: str, request: Request) -> Vehicle:
    """Public vehicle detail, including the daily rate used for pricing."""
    service = _get_reservation_service(request)
    return await service.get_vehicle(vehicle_id)
