"""
Business logic constants for the rental backend.

These values are stable across environments (dev/staging/prod) and do not
need env-var overrides. For operational parameters that vary per environment
(keys, currency, product flags), see config.py.
"""

from decimal import Decimal

# --- Money ---
CENT = Decimal("0.01")
MINOR_UNITS_PER_MAJOR = 100

# --- Stripe statuses ---
# PaymentIntent terminal-success status
PAYMENT_INTENT_SUCCEEDED = "succeeded"
# Subscription statuses that count as paid
ACTIVE_SUBSCRIPTION_STATUSES: frozenset[str] = frozenset({"active", "trialing"})

# --- Stripe metadata keys ---
META_RESERVATION_ID = "reservation_id"
META_USER_ID = "user_id"
META_AGENCY_ID = "agency_id"

# --- Webhook events handled ---
EVENT_PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
SUBSCRIPTION_SYNC_EVENTS: frozenset[str] = frozenset(
    {"customer.subscription.updated", "customer.subscription.deleted"}
)

# --- API metadata ---
API_TITLE = "Carivoo Rental API"
API_VERSION = "0.1.0"
