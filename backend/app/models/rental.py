"""Rental marketplace records."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Marketplace roles."""

    CLIENT = "client"
    AGENCY = "agency"


class ReservationStatus(str, Enum):
    """Reservation lifecycle."""

    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DepositMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"


class DepositStatus(str, Enum):
    PENDING = "pending"
    HELD = "held"
    REFUNDED = "refunded"


class Vehicle(BaseModel):
    """Vehicle listed by an agency. Source of truth for the daily rate."""

    id: str
    title: str
    brand: str = ""
    model: str = ""
    category: str = ""
    price_per_day: Decimal = Field(gt=0)
    deposit_amount: Decimal | None = None
    region: str = ""
    available: bool = True
    agency_id: str
    created_at: datetime | None = None


class Agency(BaseModel):
    """Agency profile owned by an agency-role user."""

    id: str
    name: str
    description: str | None = None
    address: str | None = None
    logo: str | None = None
    user_id: str
    created_at: datetime | None = None


class Reservation(BaseModel):
    """One rental booking."""

    id: str
    start_date: date
    end_date: date
    days: int = Field(gt=0)
    total: Decimal
    status: ReservationStatus = ReservationStatus.PENDING
    deposit_amount: Decimal = Decimal("0")
    deposit_method: DepositMethod = DepositMethod.CREDIT_CARD
    deposit_status: DepositStatus = DepositStatus.PENDING
    stripe_payment_intent_id: str | None = None
    user_id: str
    vehicle_id: str
    created_at: datetime | None = None


class Subscription(BaseModel):
    """Recurring premium plan of an agency."""

    id: str
    agency_id: str
    active: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None
    stripe_subscription_id: str | None = None
    created_at: datetime | None = None


class UserAccount(BaseModel):
    """Stripe linkage fields of a user."""

    user_id: str
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None


class RentalQuote(BaseModel):
    """Server-computed rental duration and cost."""

    days: int
    total: Decimal


class UserProfile(BaseModel):
    """Public profile of a marketplace user."""

    id: str
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    region: str | None = None
    role: UserRole | None = None


class VehicleWithAgency(Vehicle):
    agency: Agency | None = None


class ClientReservation(Reservation):
    """Reservation as listed to the client who booked it."""

    vehicle: VehicleWithAgency | None = None


class AgencyReservation(Reservation):
    """Reservation as listed to the agency owning the vehicle."""

    vehicle: Vehicle | None = None
    user: UserProfile | None = None
