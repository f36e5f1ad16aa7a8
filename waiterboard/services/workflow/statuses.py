"""Workflow status vocabulary and normalization."""
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class WorkflowStatus(str, Enum):
    """Canonical workflow states for an order."""

    NEW = "new"  # Waiting for a waiter to accept
    QUEUED = "queued"  # Accepted, waiting for the kitchen
    PREPARING = "preparing"  # In the kitchen
    READY = "ready"  # Ready for delivery
    DELIVERED = "delivered"  # Served at the table
    AWAITING_PAYMENT = "awaiting_payment"  # Bill requested
    PAID = "paid"  # Terminal
    CANCELLED = "cancelled"  # Terminal, staff initiated

    def __str__(self) -> str:
        """Return the string value of the status."""
        return self.value


CANONICAL_STATUSES = frozenset(status.value for status in WorkflowStatus)

# Alternate spellings still sent by older records
LEGACY_TO_CANONICAL = {
    "requested": WorkflowStatus.NEW.value,
    "waiter_accepted": WorkflowStatus.QUEUED.value,
    "kitchen_in_progress": WorkflowStatus.PREPARING.value,
    "ready_for_delivery": WorkflowStatus.READY.value,
    "wait_for_payment": WorkflowStatus.AWAITING_PAYMENT.value,
    "payed": WorkflowStatus.PAID.value,
    "delivered": WorkflowStatus.DELIVERED.value,
    "cancelled": WorkflowStatus.CANCELLED.value,
}

# Session lifecycle groups
OPEN_SESSION_STATUS = "open"
CHECKOUT_SESSION_STATUSES = frozenset(
    ["awaiting_tip", "awaiting_payment", "awaiting_payment_confirmation"]
)
PAID_SESSION_STATUSES = frozenset(["paid", "closed"])
FINISHED_SESSION_STATUSES = frozenset(["paid", "closed", "cancelled"])


def is_canonical_status(value: Optional[str]) -> bool:
    """Check whether a value belongs to the canonical status set."""
    return isinstance(value, str) and value in CANONICAL_STATUSES


def normalize_workflow_status(status: Optional[str], legacy: Optional[str] = None) -> str:
    """
    Map a raw workflow status to the canonical vocabulary.

    A known legacy token takes precedence over the primary token. Unknown tokens
    are returned unchanged.

    Args:
        status: Primary status token from the payload
        legacy: Optional legacy status token

    Returns:
        Canonical status, or the primary token when nothing is recognized
    """
    if legacy and legacy in LEGACY_TO_CANONICAL:
        return LEGACY_TO_CANONICAL[legacy]
    if status in LEGACY_TO_CANONICAL:
        return LEGACY_TO_CANONICAL[status]
    if status and not is_canonical_status(status):
        logger.warning(f"[STATUS] Unknown workflow status passed through: '{status}'")
    return status or ""


def is_checkout_session(session_status: Optional[str]) -> bool:
    """Check whether a session is in one of the checkout sub-states."""
    return session_status in CHECKOUT_SESSION_STATUSES


def is_paid_session(session_status: Optional[str]) -> bool:
    """Check whether a session reached the terminal paid state."""
    return session_status in PAID_SESSION_STATUSES


def is_finished_session(session_status: Optional[str]) -> bool:
    """Check whether a session no longer accepts work."""
    return session_status in FINISHED_SESSION_STATUSES
