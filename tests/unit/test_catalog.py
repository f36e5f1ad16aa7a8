"""Unit tests for the status catalog and role capabilities."""
import pytest

from waiterboard.services.dashboard.capabilities import RoleCapabilities, role_key
from waiterboard.services.workflow.catalog import StatusCatalog, get_status_catalog
from waiterboard.services.workflow.statuses import CANONICAL_STATUSES


class TestStatusCatalog:
    """Test catalog lookups."""

    def test_every_canonical_status_has_copy(self):
        """Test the catalog covers the canonical vocabulary."""
        catalog = get_status_catalog()

        for status in CANONICAL_STATUSES:
            assert catalog.info(status) is not None

    def test_title(self):
        """Test status titles and the paid-session override."""
        catalog = get_status_catalog()

        assert catalog.title("ready") == "Ready for delivery"
        assert catalog.title("delivered", session_status="paid") == "Paid"
        assert catalog.title("on_hold") == "on_hold"

    def test_endpoint(self):
        """Test transition endpoints are formatted with the order id."""
        catalog = get_status_catalog()

        assert catalog.endpoint("kitchen_start", 7) == "/api/orders/7/kitchen/start"
        with pytest.raises(KeyError):
            catalog.endpoint("teleport", 7)

    def test_custom_file(self, tmp_path):
        """Test a catalog can be loaded from another file."""
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "transitions:\n"
            "  accept: /v2/orders/{order_id}/take\n"
            "statuses:\n"
            "  new:\n"
            "    title: Fresh\n"
        )
        catalog = StatusCatalog(str(path))

        assert catalog.title("new") == "Fresh"
        assert catalog.endpoint("accept", 3) == "/v2/orders/3/take"
        assert catalog.allowed_actions("new", RoleCapabilities()) == []


class TestRoleCapabilities:
    """Test role presets and permission parsing."""

    def test_role_key(self):
        """Test backend role names map onto presets."""
        assert role_key("super_admin") == "admin"
        assert role_key("Cook") == "chef"
        assert role_key("waiter") == "waiter"
        assert role_key("janitor") == "guest"
        assert role_key(None) == "guest"

    def test_has_accepts_both_spellings(self):
        """Test capabilities are looked up by snake_case or camelCase name."""
        caps = RoleCapabilities.for_role("waiter")

        assert caps.has("can_command_items")
        assert caps.has("canCommandItems")
        assert not caps.has("canCharge")
        assert not caps.has("can_fly")

    def test_camel_case_payload(self):
        """Test capabilities parse from camelCase keys."""
        caps = RoleCapabilities.model_validate({"canCharge": True, "canReprint": True})

        assert caps.can_charge is True
        assert caps.can_reprint is True

    def test_from_backend(self):
        """Test the nested permission tree is flattened."""
        caps = RoleCapabilities.from_backend(
            {
                "capabilities": {
                    "orders": {"modify": True, "view": True, "cancel": False},
                    "kitchen": {"complete": True},
                }
            }
        )

        assert caps.can_command_items is True
        assert caps.can_view_active is True
        assert caps.can_cancel is False
        assert caps.can_advance_kitchen is True
        assert RoleCapabilities.from_backend({}) is None
