"""Reservation booking and lookup."""

import uuid
from datetime import date

import structlog

from app.config import RentalConfig
from app.errors import AgencyProfileNotFound, Forbidden, NotFound, Unauthorized
from app.models.rental import (
    Agency,
    AgencyReservation,
    ClientReservation,
    DepositMethod,
    DepositStatus,
    Reservation,
    ReservationStatus,
    UserRole,
    Vehicle,
    VehicleWithAgency,
)
from app.services.pricing import quote_rental
from app.services.rental_repository import RentalRepository

logger = structlog.get_logger(__name__)


class ReservationService:
    """Creates pending reservations with server-computed prices."""

    def __init__(self, repository: RentalRepository, config: RentalConfig) -> None:
        self.repository = repository
        self.config = config

    async def create_reservation(
        self,
        *,
        user_id: str,
        role: UserRole | None,
        vehicle_id: str,
        start_date: date,
        end_date: date,
        deposit_method: DepositMethod | None = None,
    ) -> Reservation:
        if role != UserRole.CLIENT:
            raise Forbidden("Only clients can create reservations")

        vehicle = await self.repository.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFound("Vehicle not found")

        quote = quote_rental(
            start_date,
            end_date,
            vehicle.price_per_day,
            allow_same_day=self.config.allow_same_day_rental,
        )

        reservation = Reservation(
            id=str(uuid.uuid4()),
            start_date=start_date,
            end_date=end_date,
            days=quote.days,
            total=quote.total,
            status=ReservationStatus.PENDING,
            deposit_amount=vehicle.deposit_amount or 0,
            deposit_method=deposit_method or self.config.default_deposit_method,
            deposit_status=DepositStatus.PENDING,
            user_id=user_id,
            vehicle_id=vehicle.id,
        )
        stored = await self.repository.create_reservation(reservation)
        logger.info(
            "reservation_created",
            reservation_id=stored.id,
            vehicle_id=vehicle.id,
            days=stored.days,
            total=str(stored.total),
        )
        return stored

    async def get_reservation(self, *, user_id: str, reservation_id: str) -> Reservation:
        reservation = await self.repository.get_reservation(reservation_id)
        if reservation is None:
            raise NotFound("Reservation not found")
        if reservation.user_id != user_id:
            raise Unauthorized()
        return reservation

    async def list_reservations(self, user_id: str) -> list[ClientReservation]:
        """The caller's reservations, each with its vehicle and that vehicle's agency."""
        reservations = await self.repository.list_reservations_by_user(user_id)
        vehicles: dict[str, VehicleWithAgency | None] = {}
        agencies: dict[str, Agency | None] = {}

        listed = []
        for reservation in reservations:
            if reservation.vehicle_id not in vehicles:
                vehicle = await self.repository.get_vehicle(reservation.vehicle_id)
                if vehicle is not None and vehicle.agency_id not in agencies:
                    agencies[vehicle.agency_id] = await self.repository.get_agency(
                        vehicle.agency_id
                    )
                vehicles[reservation.vehicle_id] = (
                    VehicleWithAgency(**vehicle.model_dump(), agency=agencies[vehicle.agency_id])
                    if vehicle is not None
                    else None
                )
            listed.append(
                ClientReservation(
                    **reservation.model_dump(), vehicle=vehicles[reservation.vehicle_id]
                )
            )
        return listed

    async def list_agency_reservations(self, user_id: str) -> list[AgencyReservation]:
        """Reservations on the caller's fleet, each with its vehicle and client."""
        agency = await self.repository.get_agency_by_user_id(user_id)
        if agency is None:
            raise AgencyProfileNotFound()

        reservations = await self.repository.list_reservations_by_agency(agency.id)
        listed = []
        for reservation in reservations:
            listed.append(
                AgencyReservation(
                    **reservation.model_dump(),
                    vehicle=await self.repository.get_vehicle(reservation.vehicle_id),
                    user=await self.repository.get_user_profile(reservation.user_id),
                )
            )
        return listed

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = await self.repository.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFound("Vehicle not found")
        return vehicle

    async def get_agency_profile(self, user_id: str) -> Agency | None:
        return await self.repository.get_agency_by_user_id(user_id)

    async def create_agency_profile(
        self,
        *,
        user_id: str,
        role: UserRole | None,
        name: str,
        description: str | None = None,
        address: str | None = None,
        logo: str | None = None,
    ) -> Agency:
        if role != UserRole.AGENCY:
            raise Forbidden("Only agencies can create agency profiles")

        agency = await self.repository.create_agency(
            Agency(
                id=str(uuid.uuid4()),
                name=name,
                description=description,
                address=address,
                logo=logo,
                user_id=user_id,
            )
        )
        logger.info("agency_profile_created", agency_id=agency.id)
        return agency
