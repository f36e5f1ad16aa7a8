"""Order, session and waiter-call models."""
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator, model_validator

from waiterboard.services.workflow.statuses import normalize_workflow_status

logger = logging.getLogger(__name__)

# Addresses the backend fills in for anonymous customers
PLACEHOLDER_EMAILS = {"none", "null", "undefined", "cliente@ejemplo.com"}
PLACEHOLDER_EMAIL_DOMAINS = ("@temp.local", "@pronto.local")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PAYMENT_METHOD_LABELS = {"cash": "Cash", "card": "Card", "clip": "Terminal"}

_DUPLICATE_TABLE_PREFIX = re.compile(r"^([A-Z])-(\1\d+)$")


def normalize_customer_email(email: Optional[str]) -> str:
    """Return the canonical form of a customer email, or '' for placeholders."""
    if not email:
        return ""
    cleaned = email.strip().lower()
    if not cleaned or cleaned in PLACEHOLDER_EMAILS:
        return ""
    if cleaned.startswith("anonimo+"):
        return ""
    if any(domain in cleaned for domain in PLACEHOLDER_EMAIL_DOMAINS):
        return ""
    return cleaned


def is_valid_email(email: str) -> bool:
    """Check basic email shape."""
    return bool(EMAIL_PATTERN.match(email.strip()))


def clean_table_label(label: Any) -> str:
    """Collapse duplicated prefixes such as 'M-M01' into 'M01'."""
    if label is None or label == "":
        return "N/A"
    label = str(label)
    match = _DUPLICATE_TABLE_PREFIX.match(label)
    return match.group(2) if match else label


class SessionSnapshot(BaseModel):
    """Session (table account) data embedded in an order."""

    id: int
    status: str = "open"
    table_number: Optional[str] = None
    notes: Optional[str] = None
    total_amount: Optional[float] = None
    closed_at: Optional[str] = None

    @field_validator("table_number", mode="before")
    @classmethod
    def _table_as_text(cls, value: Any) -> Optional[str]:
        return str(value) if value is not None else None


class CustomerSnapshot(BaseModel):
    """Customer data embedded in an order."""

    name: Optional[str] = None
    email: str = ""
    phone: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> str:
        return normalize_customer_email(value)


class OrderItem(BaseModel):
    """Order line with its own delivery progress."""

    id: int
    name: Optional[str] = None
    quantity: int = 1
    delivered_quantity: int = 0
    is_fully_delivered: bool = False
    delivered_at: Optional[str] = None
    delivered_by_employee_id: Optional[int] = None

    @model_validator(mode="after")
    def _sync_delivery_flag(self) -> "OrderItem":
        if self.delivered_quantity > self.quantity:
            logger.warning(
                f"[ORDERS] Item {self.id} delivered quantity {self.delivered_quantity} "
                f"exceeds quantity {self.quantity}, clamping"
            )
            self.delivered_quantity = self.quantity
        self.is_fully_delivered = self.delivered_quantity == self.quantity
        return self


class Order(BaseModel):
    """In-flight customer order as mirrored by the dashboard."""

    id: int
    session_id: int
    workflow_status: str
    workflow_status_legacy: Optional[str] = None
    session: Optional[SessionSnapshot] = None
    customer: Optional[CustomerSnapshot] = None
    waiter_id: Optional[int] = None
    waiter_name: Optional[str] = None
    waiter_notes: Optional[str] = None
    items: List[OrderItem] = []
    payment_status: Optional[str] = None
    cancel_reason: Optional[str] = None
    estimated_prep_time: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    chef_accepted_at: Optional[str] = None
    ready_at: Optional[str] = None
    cancelled_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_status(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            canonical = normalize_workflow_status(
                data.get("workflow_status"), data.get("workflow_status_legacy")
            )
            data["workflow_status"] = canonical
            data["workflow_status_legacy"] = canonical
            session = data.get("session")
            if data.get("session_id") is None and isinstance(session, dict):
                data["session_id"] = session.get("id")
        return data

    @property
    def session_status(self) -> str:
        """Session lifecycle status, 'open' when the snapshot is missing."""
        return self.session.status if self.session and self.session.status else "open"

    @property
    def table_number(self) -> str:
        """Table label from the session snapshot."""
        return (self.session.table_number if self.session else None) or ""

    @property
    def customer_name(self) -> str:
        """Customer display name."""
        return (self.customer.name if self.customer else None) or ""

    @property
    def all_items_delivered(self) -> bool:
        """True when the order has items and every one is fully delivered."""
        return bool(self.items) and all(item.is_fully_delivered for item in self.items)


def parse_orders(payloads: Any) -> List[Order]:
    """Build orders from raw payloads, skipping malformed records."""
    orders = []
    if not isinstance(payloads, list):
        return orders
    for payload in payloads:
        try:
            orders.append(Order.model_validate(payload))
        except PydanticValidationError as e:
            order_id = payload.get("id") if isinstance(payload, dict) else None
            logger.warning(f"[ORDERS] Skipping malformed order {order_id}: {e}")
    return orders


class WaiterCall(BaseModel):
    """Table call waiting for a waiter."""

    id: int
    session_id: Optional[int] = None
    table_number: str = "N/A"
    status: str = "pending"
    created_at: Optional[str] = None
    notes: Optional[str] = None
    order_numbers: List[int] = []

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WaiterCall":
        """Build a call from either the REST or the push payload shape."""
        raw_orders = payload.get("order_numbers")
        order_numbers = []
        if isinstance(raw_orders, list):
            for number in raw_orders:
                try:
                    value = int(number)
                except (TypeError, ValueError):
                    continue
                if value:
                    order_numbers.append(value)
        return cls(
            id=int(payload.get("call_id") or payload.get("id")),
            session_id=payload.get("session_id") or None,
            table_number=payload.get("table_number") or "N/A",
            status=payload.get("status") or "pending",
            created_at=payload.get("created_at") or payload.get("timestamp"),
            notes=payload.get("call_type") or payload.get("notes") or None,
            order_numbers=order_numbers,
        )


class PaidSession(BaseModel):
    """Row of the recently-paid sessions read model."""

    id: int
    table_number: str = "N/A"
    customer_name: Optional[str] = None
    customer_email: str = ""
    customer_phone: Optional[str] = None
    total_amount: float
    payment_method: Optional[str] = None
    closed_at: Optional[str] = None
    created_at: Optional[str] = None
    order_ids: List[int] = []
    orders_count: Optional[int] = None

    @field_validator("customer_email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> str:
        return normalize_customer_email(value)

    @field_validator("table_number", mode="before")
    @classmethod
    def _clean_table(cls, value: Optional[str]) -> str:
        return clean_table_label(value)

    @property
    def total_display(self) -> str:
        """Total formatted to two decimals."""
        return f"{self.total_amount:.2f}"

    @property
    def payment_method_label(self) -> str:
        """Display name of the payment method."""
        return PAYMENT_METHOD_LABELS.get(self.payment_method or "", self.payment_method or "N/A")

    @property
    def orders_label(self) -> str:
        if self.order_ids:
            return "Orders: " + ", ".join(f"#{order_id}" for order_id in self.order_ids)
        if self.orders_count:
            return f"Orders: {self.orders_count}"
        return ""

    @property
    def can_resend(self) -> bool:
        """A ticket can be resent only to a real customer address."""
        return bool(self.customer_email)
