"""Domain errors raised by services and rendered by the API layer.

Each class carries the HTTP status and a stable machine-readable code so the
client can tell which check failed without seeing provider internals.
"""

from app.models.payments import ConfirmationFailure


class RentalError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code: int = 400
    code: str = "rental_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Validation ---


class InvalidDateRange(RentalError):
    status_code = 400
    code = "invalid_date_range"
    default_message = "Invalid date range"


class InvalidAmount(RentalError):
    status_code = 400
    code = "invalid_amount"
    default_message = "Invalid reservation amount"


# --- Authorization ---


class Unauthorized(RentalError):
    """Caller does not own the resource."""

    status_code = 403
    code = "unauthorized"
    default_message = "This reservation does not belong to you"


class Forbidden(RentalError):
    """Caller has the wrong role for the operation."""

    status_code = 403
    code = "forbidden"
    default_message = "Operation not allowed for this role"


# --- Not found ---


class NotFound(RentalError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class AgencyProfileNotFound(RentalError):
    status_code = 400
    code = "agency_profile_not_found"
    default_message = "Agency profile not found"


# --- State ---


class ReservationNotPayable(RentalError):
    status_code = 409
    code = "reservation_not_payable"
    default_message = "Reservation is not awaiting payment"


class ReservationStateConflict(RentalError):
    status_code = 409
    code = "reservation_state_conflict"
    default_message = "Reservation changed while the payment was being confirmed"


# --- Trust boundary ---


class MissingPaymentIntent(RentalError):
    status_code = 400
    code = "missing_payment_intent"
    default_message = "No payment intent found for this reservation"


_FAILURE_MESSAGES: dict[ConfirmationFailure, str] = {
    ConfirmationFailure.PAYMENT_NOT_SUCCEEDED: "Payment has not succeeded yet",
    ConfirmationFailure.AMOUNT_MISMATCH: "Payment amount mismatch",
    ConfirmationFailure.METADATA_MISMATCH: "Payment metadata mismatch",
    ConfirmationFailure.SUBSCRIPTION_NOT_ACTIVE: "Subscription payment is not active",
}


class PaymentVerificationError(RentalError):
    """A provider object failed one of the confirmation checks."""

    status_code = 400

    def __init__(self, reason: ConfirmationFailure) -> None:
        self.reason = reason
        self.code = reason.value
        super().__init__(_FAILURE_MESSAGES[reason])


class PaymentNotSucceeded(PaymentVerificationError):
    def __init__(self) -> None:
        super().__init__(ConfirmationFailure.PAYMENT_NOT_SUCCEEDED)


class AmountMismatch(PaymentVerificationError):
    def __init__(self) -> None:
        super().__init__(ConfirmationFailure.AMOUNT_MISMATCH)


class MetadataMismatch(PaymentVerificationError):
    def __init__(self) -> None:
        super().__init__(ConfirmationFailure.METADATA_MISMATCH)


class SubscriptionNotActive(PaymentVerificationError):
    def __init__(self) -> None:
        super().__init__(ConfirmationFailure.SUBSCRIPTION_NOT_ACTIVE)


VERIFICATION_ERRORS: dict[ConfirmationFailure, type[PaymentVerificationError]] = {
    ConfirmationFailure.PAYMENT_NOT_SUCCEEDED: PaymentNotSucceeded,
    ConfirmationFailure.AMOUNT_MISMATCH: AmountMismatch,
    ConfirmationFailure.METADATA_MISMATCH: MetadataMismatch,
    ConfirmationFailure.SUBSCRIPTION_NOT_ACTIVE: SubscriptionNotActive,
}


# --- Provider ---


class PaymentProviderUnavailable(RentalError):
    """Stripe is unconfigured or the remote call failed. Retrying may help."""

    status_code = 500
    code = "payment_provider_unavailable"
    default_message = "Payment provider unavailable"
