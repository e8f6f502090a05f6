"""Storage for reservations, subscriptions and the records they depend on."""

from datetime import UTC, datetime
from typing import Protocol

import structlog

from app.config import TableConfig
from app.models.rental import (
    Agency,
    Reservation,
    ReservationStatus,
    Subscription,
    UserAccount,
    UserProfile,
    Vehicle,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RentalRepository(Protocol):
    """Storage contract for the booking and payment flow."""

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        """Fetch a vehicle."""

    async def get_agency(self, agency_id: str) -> Agency | None:
        """Fetch an agency by ID."""

    async def get_agency_by_user_id(self, user_id: str) -> Agency | None:
        """Fetch the agency profile owned by a user."""

    async def create_agency(self, agency: Agency) -> Agency:
        """Persist a new agency profile."""

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        """Fetch a reservation."""

    async def list_reservations_by_user(self, user_id: str) -> list[Reservation]:
        """Reservations booked by a user, newest first."""

    async def list_reservations_by_agency(self, agency_id: str) -> list[Reservation]:
        """Reservations on the vehicles of an agency, newest first."""

    async def create_reservation(self, reservation: Reservation) -> Reservation:
        """Persist a new reservation."""

    async def attach_payment_intent(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        """Store the intent ID on a pending reservation.

        Returns None when the reservation is missing or no longer pending.
        """

    async def mark_reservation_paid(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        """Set status to paid where status is pending and the intent ID matches.

        Returns the updated row, or None when the condition did not match.
        """

    async def get_subscription_by_agency(self, agency_id: str) -> Subscription | None:
        """Latest subscription of an agency."""

    async def get_subscription_by_stripe_id(
        self, stripe_subscription_id: str
    ) -> Subscription | None:
        """Look up a subscription by its Stripe ID."""

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        """Persist a new subscription."""

    async def set_subscription_active(
        self, subscription_id: str, active: bool
    ) -> Subscription | None:
        """Flip the active flag."""

    async def get_user_account(self, user_id: str) -> UserAccount | None:
        """Fetch Stripe linkage for a user."""

    async def upsert_user_account(self, account: UserAccount) -> UserAccount:
        """Persist Stripe linkage for a user."""

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Fetch the public profile of a user."""

    async def mark_webhook_processed(self, event_id: str) -> bool:
        """Record webhook idempotency key.

        Returns True when the event is new; False if already seen.
        """

    async def release_webhook_event(self, event_id: str) -> None:
        """Forget a recorded event so a redelivery is processed again."""


class InMemoryRentalRepository:
    """In-memory repository used for tests and local fallback.

    Conditional updates run without an await between check and write, so they
    are atomic on the event loop.
    """

    def __init__(self) -> None:
        self.vehicles: dict[str, Vehicle] = {}
        self.agencies: dict[str, Agency] = {}
        self.reservations: dict[str, Reservation] = {}
        self.subscriptions: dict[str, Subscription] = {}
        self.user_accounts: dict[str, UserAccount] = {}
        self.users: dict[str, UserProfile] = {}
        self.processed_events: set[str] = set()

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        self.vehicles[vehicle.id] = vehicle.model_copy(deep=True)
        return vehicle

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        vehicle = self.vehicles.get(vehicle_id)
        return vehicle.model_copy(deep=True) if vehicle else None

    async def get_agency(self, agency_id: str) -> Agency | None:
        agency = self.agencies.get(agency_id)
        return agency.model_copy(deep=True) if agency else None

    async def get_agency_by_user_id(self, user_id: str) -> Agency | None:
        for agency in self.agencies.values():
            if agency.user_id == user_id:
                return agency.model_copy(deep=True)
        return None

    async def create_agency(self, agency: Agency) -> Agency:
        stored = agency.model_copy(update={"created_at": agency.created_at or _utcnow()})
        self.agencies[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        reservation = self.reservations.get(reservation_id)
        return reservation.model_copy(deep=True) if reservation else None

    def _newest_first(self, reservations: list[Reservation]) -> list[Reservation]:
        ordered = sorted(
            reservations,
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
        return [r.model_copy(deep=True) for r in ordered]

    async def list_reservations_by_user(self, user_id: str) -> list[Reservation]:
        return self._newest_first(
            [r for r in self.reservations.values() if r.user_id == user_id]
        )

    async def list_reservations_by_agency(self, agency_id: str) -> list[Reservation]:
        vehicle_ids = {v.id for v in self.vehicles.values() if v.agency_id == agency_id}
        return self._newest_first(
            [r for r in self.reservations.values() if r.vehicle_id in vehicle_ids]
        )

    async def create_reservation(self, reservation: Reservation) -> Reservation:
        stored = reservation.model_copy(
            update={"created_at": reservation.created_at or _utcnow()}
        )
        self.reservations[stored.id] = stored
        return stored.model_copy(deep=True)

    async def attach_payment_intent(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        reservation = self.reservations.get(reservation_id)
        if reservation is None or reservation.status != ReservationStatus.PENDING:
            return None
        reservation.stripe_payment_intent_id = payment_intent_id
        return reservation.model_copy(deep=True)

    async def mark_reservation_paid(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        reservation = self.reservations.get(reservation_id)
        if (
            reservation is None
            or reservation.status != ReservationStatus.PENDING
            or reservation.stripe_payment_intent_id != payment_intent_id
        ):
            return None
        reservation.status = ReservationStatus.PAID
        return reservation.model_copy(deep=True)

    async def get_subscription_by_agency(self, agency_id: str) -> Subscription | None:
        matches = [s for s in self.subscriptions.values() if s.agency_id == agency_id]
        if not matches:
            return None
        latest = max(matches, key=lambda s: s.created_at or datetime.min.replace(tzinfo=UTC))
        return latest.model_copy(deep=True)

    async def get_subscription_by_stripe_id(
        self, stripe_subscription_id: str
    ) -> Subscription | None:
        for subscription in self.subscriptions.values():
            if subscription.stripe_subscription_id == stripe_subscription_id:
                return subscription.model_copy(deep=True)
        return None

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        now = _utcnow()
        stored = subscription.model_copy(
            update={
                "created_at": subscription.created_at or now,
                "start_date": subscription.start_date or now,
            }
        )
        self.subscriptions[stored.id] = stored
        return stored.model_copy(deep=True)

    async def set_subscription_active(
        self, subscription_id: str, active: bool
    ) -> Subscription | None:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            return None
        subscription.active = active
        return subscription.model_copy(deep=True)

    async def get_user_account(self, user_id: str) -> UserAccount | None:
        account = self.user_accounts.get(user_id)
        return account.model_copy(deep=True) if account else None

    async def upsert_user_account(self, account: UserAccount) -> UserAccount:
        stored = account.model_copy(deep=True)
        self.user_accounts[stored.user_id] = stored
        return stored.model_copy(deep=True)

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        profile = self.users.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def mark_webhook_processed(self, event_id: str) -> bool:
        if event_id in self.processed_events:
            return False
        self.processed_events.add(event_id)
        return True

    async def release_webhook_event(self, event_id: str) -> None:
        self.processed_events.discard(event_id)


class SupabaseRentalRepository:
    """Supabase-backed repository."""

    def __init__(self, client, tables: TableConfig):
        self.client = client
        self.tables = tables

    async def _select_one(self, table: str, column: str, value: str) -> dict | None:
        response = (
            await self.client.table(table)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        row = await self._select_one(self.tables.vehicles, "id", vehicle_id)
        return Vehicle.model_validate(row) if row else None

    async def get_agency(self, agency_id: str) -> Agency | None:
        row = await self._select_one(self.tables.agencies, "id", agency_id)
        return Agency.model_validate(row) if row else None

    async def get_agency_by_user_id(self, user_id: str) -> Agency | None:
        row = await self._select_one(self.tables.agencies, "user_id", user_id)
        return Agency.model_validate(row) if row else None

    async def create_agency(self, agency: Agency) -> Agency:
        payload = agency.model_dump(mode="json", exclude_none=True)
        response = await self.client.table(self.tables.agencies).insert(payload).execute()
        rows = response.data or []
        return Agency.model_validate(rows[0]) if rows else agency

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        row = await self._select_one(self.tables.reservations, "id", reservation_id)
        return Reservation.model_validate(row) if row else None

    async def list_reservations_by_user(self, user_id: str) -> list[Reservation]:
        response = (
            await self.client.table(self.tables.reservations)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [Reservation.model_validate(row) for row in response.data or []]

    async def list_reservations_by_agency(self, agency_id: str) -> list[Reservation]:
        vehicles = (
            await self.client.table(self.tables.vehicles)
            .select("id")
            .eq("agency_id", agency_id)
            .execute()
        )
        vehicle_ids = [row["id"] for row in vehicles.data or []]
        if not vehicle_ids:
            return []
        response = (
            await self.client.table(self.tables.reservations)
            .select("*")
            .in_("vehicle_id", vehicle_ids)
            .order("created_at", desc=True)
            .execute()
        )
        return [Reservation.model_validate(row) for row in response.data or []]

    async def create_reservation(self, reservation: Reservation) -> Reservation:
        payload = reservation.model_dump(mode="json", exclude_none=True)
        response = (
            await self.client.table(self.tables.reservations).insert(payload).execute()
        )
        rows = response.data or []
        return Reservation.model_validate(rows[0]) if rows else reservation

    async def attach_payment_intent(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        response = (
            await self.client.table(self.tables.reservations)
            .update({"stripe_payment_intent_id": payment_intent_id})
            .eq("id", reservation_id)
            .eq("status", ReservationStatus.PENDING.value)
            .execute()
        )
        rows = response.data or []
        return Reservation.model_validate(rows[0]) if rows else None

    async def mark_reservation_paid(
        self, reservation_id: str, payment_intent_id: str
    ) -> Reservation | None:
        # Single conditional UPDATE; PostgREST applies the filters atomically.
        response = (
            await self.client.table(self.tables.reservations)
            .update({"status": ReservationStatus.PAID.value})
            .eq("id", reservation_id)
            .eq("status", ReservationStatus.PENDING.value)
            .eq("stripe_payment_intent_id", payment_intent_id)
            .execute()
        )
        rows = response.data or []
        return Reservation.model_validate(rows[0]) if rows else None

    async def get_subscription_by_agency(self, agency_id: str) -> Subscription | None:
        response = (
            await self.client.table(self.tables.subscriptions)
            .select("*")
            .eq("agency_id", agency_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Subscription.model_validate(rows[0]) if rows else None

    async def get_subscription_by_stripe_id(
        self, stripe_subscription_id: str
    ) -> Subscription | None:
        row = await self._select_one(
            self.tables.subscriptions, "stripe_subscription_id", stripe_subscription_id
        )
        return Subscription.model_validate(row) if row else None

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        payload = subscription.model_dump(mode="json", exclude_none=True)
        response = (
            await self.client.table(self.tables.subscriptions).insert(payload).execute()
        )
        rows = response.data or []
        return Subscription.model_validate(rows[0]) if rows else subscription

    async def set_subscription_active(
        self, subscription_id: str, active: bool
    ) -> Subscription | None:
        response = (
            await self.client.table(self.tables.subscriptions)
            .update({"active": active})
            .eq("id", subscription_id)
            .execute()
        )
        rows = response.data or []
        return Subscription.model_validate(rows[0]) if rows else None

    async def get_user_account(self, user_id: str) -> UserAccount | None:
        row = await self._select_one(self.tables.user_accounts, "user_id", user_id)
        return UserAccount.model_validate(row) if row else None

    async def upsert_user_account(self, account: UserAccount) -> UserAccount:
        payload = account.model_dump(mode="json", exclude_none=True)
        response = (
            await self.client.table(self.tables.user_accounts)
            .upsert(payload, on_conflict="user_id")
            .execute()
        )
        rows = response.data or []
        if not rows:
            # Some Supabase responses return no data unless `returning=representation`.
            return account
        return UserAccount.model_validate(rows[0])

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        row = await self._select_one(self.tables.users, "id", user_id)
        return UserProfile.model_validate(row) if row else None

    async def mark_webhook_processed(self, event_id: str) -> bool:
        existing = (
            await self.client.table(self.tables.webhook_events)
            .select("event_id")
            .eq("event_id", event_id)
            .limit(1)
            .execute()
        )
        if existing.data:
            return False

        await self.client.table(self.tables.webhook_events).insert(
            {"event_id": event_id, "processed_at": _utcnow().isoformat()}
        ).execute()
        logger.debug("webhook_event_recorded", event_id=event_id)
        return True

    async def release_webhook_event(self, event_id: str) -> None:
        await (
            self.client.table(self.tables.webhook_events)
            .delete()
            .eq("event_id", event_id)
            .execute()
        )
        logger.debug("webhook_event_released", event_id=event_id)
