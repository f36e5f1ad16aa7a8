"""Unit tests for workflow status normalization."""
import pytest

from waiterboard.services.workflow.statuses import (
    CANONICAL_STATUSES,
    LEGACY_TO_CANONICAL,
    WorkflowStatus,
    is_canonical_status,
    is_checkout_session,
    is_finished_session,
    is_paid_session,
    normalize_workflow_status,
)


class TestNormalizeWorkflowStatus:
    """Test mapping raw status tokens to the canonical vocabulary."""

    @pytest.mark.parametrize("legacy,canonical", sorted(LEGACY_TO_CANONICAL.items()))
    def test_legacy_tokens_map_to_canonical(self, legacy, canonical):
        """Test every legacy token maps to its canonical status."""
        assert normalize_workflow_status(legacy) == canonical

    @pytest.mark.parametrize("status", sorted(CANONICAL_STATUSES))
    def test_normalization_is_idempotent(self, status):
        """Test normalizing a canonical status twice changes nothing."""
        once = normalize_workflow_status(status)
        assert once == status
        assert normalize_workflow_status(once) == once

    def test_requested_becomes_new(self):
        """Test the legacy 'requested' token is shown as new."""
        assert normalize_workflow_status("requested") == WorkflowStatus.NEW

    def test_legacy_field_takes_precedence(self):
        """Test a known legacy token wins over the primary token."""
        assert normalize_workflow_status("new", legacy="kitchen_in_progress") == "preparing"

    def test_unknown_legacy_is_ignored(self):
        """Test an unknown legacy token falls back to the primary token."""
        assert normalize_workflow_status("ready", legacy="mystery") == "ready"

    def test_unknown_token_passes_through(self):
        """Test unknown tokens are returned unchanged."""
        assert normalize_workflow_status("on_hold") == "on_hold"

    def test_missing_status(self):
        """Test a missing status normalizes to an empty string."""
        assert normalize_workflow_status(None) == ""

    def test_canonical_membership(self):
        """Test only canonical tokens count as canonical."""
        assert is_canonical_status("awaiting_payment")
        assert not is_canonical_status("wait_for_payment")
        assert not is_canonical_status(None)


class TestSessionGroups:
    """Test session lifecycle helpers."""

    def test_checkout_states(self):
        """Test checkout sub-states are recognized."""
        assert is_checkout_session("awaiting_tip")
        assert is_checkout_session("awaiting_payment_confirmation")
        assert not is_checkout_session("open")

    def test_paid_and_finished(self):
        """Test paid and finished session groups."""
        assert is_paid_session("closed")
        assert not is_paid_session("cancelled")
        assert is_finished_session("cancelled")
        assert not is_finished_session("awaiting_payment")
