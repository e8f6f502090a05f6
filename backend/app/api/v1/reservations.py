"""Reservation API endpoints."""

from datetime import date

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from app.auth import CurrentUser
from app.models.rental import AgencyReservation, ClientReservation, DepositMethod, Reservation
from app.services.reservation_service import ReservationService

router = APIRouter(tags=["reservations"])


class CreateReservationRequest(BaseModel):
    """Booking request. Any price fields sent by the client are ignored."""

    vehicle_id: str = Field(description="Vehicle to book")
    start_date: date
    end_date: date
    deposit_method: DepositMethod | None = None


def _get_reservation_service(request: Request) -> ReservationService:
    service = getattr(request.app.state, "reservation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Reservation service unavailable")
    return service


@router.post("/reservations", response_model=Reservation, status_code=201)
async def create_reservation(
    body: CreateReservationRequest,
    request: Request,
    user: CurrentUser,
) -> Reservation:
    """Book a vehicle; days and total are computed from the vehicle's daily rate."""
    service = _get_reservation_service(request)
    return await service.create_reservation(
        user_id=user.id,
        role=user.role,
        vehicle_id=body.vehicle_id,
        start_date=body.start_date,
        end_date=body.end_date,
        deposit_method=body.deposit_method,
    )


@router.get("/reservations", response_model=list[ClientReservation])
async def list_reservations(request: Request, user: CurrentUser) -> list[ClientReservation]:
    """Reservations of the authenticated user, with vehicle and agency."""
    service = _get_reservation_service(request)
    return await service.list_reservations(user.id)


@router.get("/reservations/{reservation_id}", response_model=Reservation)
async def get_reservation(reservation_id: str, request: Request, user: CurrentUser) -> Reservation:
    service = _get_reservation_service(request)
    return await service.get_reservation(user_id=user.id, reservation_id=reservation_id)


@router.get("/agency/reservations", response_model=list[AgencyReservation])
async def list_agency_reservations(
    request: Request, user: CurrentUser
) -> list[AgencyReservation]:
    """Reservations on the caller's agency fleet, with vehicle and client."""
    service = _get_reservation_service(request)
    return await service.list_agency_reservations(user.id)
