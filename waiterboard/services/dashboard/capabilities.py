"""Role capabilities bundle."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RoleCapabilities(BaseModel):
    """Boolean permissions of the acting employee's role."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    can_charge: bool = False
    can_reprint: bool = False
    can_cancel: bool = False
    can_edit_order: bool = False
    can_move_table: bool = False
    can_advance_kitchen: bool = False
    can_discount: bool = False
    can_reopen: bool = False
    can_command_items: bool = False
    can_view_paid: bool = False
    can_view_active: bool = False

    def has(self, capability: str) -> bool:
        """Check a capability by its snake_case or camelCase name."""
        name = capability
        if name not in type(self).model_fields:
            for field_name, field in type(self).model_fields.items():
                if field.alias == capability:
                    name = field_name
                    break
            else:
                return False
        return bool(getattr(self, name))

    @classmethod
    def for_role(cls, role: Optional[str]) -> "RoleCapabilities":
        """Default capabilities of a role name."""
        return cls(**ROLE_CAPABILITIES[role_key(role)])

    @classmethod
    def from_backend(cls, data: Optional[Dict[str, Any]]) -> Optional["RoleCapabilities"]:
        """Derive capabilities from the backend's nested permission tree."""
        if not data or not isinstance(data.get("capabilities"), dict):
            return None
        caps = data["capabilities"]

        def allowed(area: str, action: str) -> bool:
            section = caps.get(area) or {}
            return bool(section.get(action))

        return cls(
            can_charge=allowed("payments", "process"),
            can_reprint=allowed("payments", "view"),
            can_cancel=allowed("orders", "cancel"),
            can_edit_order=allowed("orders", "modify"),
            can_move_table=allowed("tables", "edit"),
            can_advance_kitchen=allowed("kitchen", "start") or allowed("kitchen", "complete"),
            can_discount=allowed("payments", "process"),
            can_reopen=allowed("orders", "modify"),
            can_command_items=allowed("orders", "modify"),
            can_view_paid=allowed("orders", "view"),
            can_view_active=allowed("orders", "view"),
        )


def role_key(role: Optional[str]) -> str:
    """Map a backend role name onto one of the preset keys."""
    if not role:
        return "guest"
    normalized = role.lower()
    if normalized in ("super_admin", "admin_roles", "manager", "admin"):
        return "admin"
    if normalized in ("chef", "cook"):
        return "chef"
    if normalized in ("cashier", "waiter"):
        return normalized
    return "guest"


ROLE_CAPABILITIES: Dict[str, Dict[str, bool]] = {
    "waiter": {
        "can_cancel": True,
        "can_edit_order": True,
        "can_move_table": True,
        "can_command_items": True,
        "can_view_paid": True,
        "can_view_active": True,
    },
    "cashier": {
        "can_charge": True,
        "can_reprint": True,
        "can_view_paid": True,
        "can_view_active": True,
    },
    "chef": {
        "can_advance_kitchen": True,
        "can_view_active": True,
    },
    "admin": {
        "can_charge": True,
        "can_reprint": True,
        "can_cancel": True,
        "can_edit_order": True,
        "can_move_table": True,
        "can_advance_kitchen": True,
        "can_discount": True,
        "can_reopen": True,
        "can_command_items": True,
        "can_view_paid": True,
        "can_view_active": True,
    },
    "guest": {},
}
