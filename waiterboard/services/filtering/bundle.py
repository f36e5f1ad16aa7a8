"""Waiter filter settings."""
from enum import Enum
from typing import Set

from pydantic import BaseModel, Field, field_validator

DEFAULT_SESSION_STATUSES = {
    "open",
    "awaiting_tip",
    "awaiting_payment",
    "awaiting_payment_confirmation",
}
DEFAULT_WORKFLOW_STATUSES = {"new", "queued", "preparing", "ready", "delivered"}
DEFAULT_CUSTOM_DATE_DAYS = 7


class DateFilter(str, Enum):
    """Date range presets."""

    TODAY = "today"
    LAST7 = "last7"
    CUSTOM = "custom"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


class FilterBundle(BaseModel):
    """Everything that decides which orders the waiter sees."""

    starred: Set[int] = Field(default_factory=set)
    session_statuses: Set[str] = Field(default_factory=lambda: set(DEFAULT_SESSION_STATUSES))
    workflow_statuses: Set[str] = Field(default_factory=lambda: set(DEFAULT_WORKFLOW_STATUSES))
    show_my_orders: bool = True
    show_unassigned_orders: bool = True
    date_filter: DateFilter = DateFilter.TODAY
    custom_date_days: int = Field(default=DEFAULT_CUSTOM_DATE_DAYS, gt=0)
    search_term: str = ""

    @field_validator("search_term", mode="before")
    @classmethod
    def _normalize_search(cls, value) -> str:
        return (value or "").strip().lower()

    @property
    def waiter_filter_active(self) -> bool:
        """Assignment visibility applies only while one of the toggles is on."""
        return self.show_my_orders or self.show_unassigned_orders
