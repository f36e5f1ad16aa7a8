"""Unit tests for session actions."""
import pytest

from waiterboard.core.errors import ValidationError
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.filtering.bundle import FilterBundle
from waiterboard.services.orders.models import Order
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sessions.actions import SessionActions
from waiterboard.services.views.paid import PaidSessionsFeed
from tests.conftest import FakeBackend, make_order


@pytest.fixture
def feedback():
    return FeedbackChannel()


@pytest.fixture
def store():
    store = OrderStore()
    store.upsert(Order.model_validate(make_order(1, session_id=9, status="delivered")))
    store.upsert(Order.model_validate(make_order(2, session_id=9, status="delivered")))
    return store


@pytest.fixture
def paid_feed(backend_client, feedback, test_settings):
    return PaidSessionsFeed(backend_client, feedback, test_settings, FilterBundle)


@pytest.fixture
def actions(backend_client, store, feedback, paid_feed):
    return SessionActions(backend_client, store, feedback, paid_feed)


class TestSessionActions:
    """Test checkout, tip and payment."""

    @pytest.mark.asyncio
    async def test_checkout(self, fake_backend, actions, store, feedback):
        """Test checkout applies the returned session status."""
        fake_backend.add("POST", "/api/sessions/9/checkout", {"id": 9, "status": "awaiting_tip"})

        assert await actions.checkout(9) is True

        assert store.get(1).session_status == "awaiting_tip"
        assert feedback.last.message == "Tip requested"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["abc", -1, float("nan"), None])
    async def test_invalid_tip(self, fake_backend, actions, amount):
        """Test invalid tip amounts are refused before any request."""
        with pytest.raises(ValidationError):
            await actions.tip(9, amount)
        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_tip(self, fake_backend, actions, feedback):
        """Test a valid tip is sent as a number."""
        fake_backend.add("POST", "/api/sessions/9/tip", {"id": 9, "status": "awaiting_payment"})

        assert await actions.tip(9, "12.5") is True

        body = FakeBackend.body(fake_backend.calls("POST", "/api/sessions/9/tip")[0])
        assert body == {"tip_amount": 12.5}
        assert feedback.last.message == "Bill updated"

    @pytest.mark.asyncio
    async def test_full_payment(self, fake_backend, actions, store, paid_feed, feedback):
        """Test a full payment closes the session and reloads the paid list."""
        fake_backend.add("POST", "/api/sessions/9/confirm-payment", {"status": "paid"})
        fake_backend.add(
            "GET", "/api/sessions/paid-recent", {"sessions": [{"id": 9, "total_amount": 55}]}
        )

        assert await actions.confirm_payment(9) == "paid"

        assert store.get(1).session_status == "paid"
        assert store.get(2).session_status == "paid"
        assert [session.id for session in paid_feed.sessions] == [9]
        assert feedback.last.message == "Payment confirmed, bill closed"

    @pytest.mark.asyncio
    async def test_partial_payment(self, fake_backend, actions, store, feedback):
        """Test paying selected orders marks only those orders."""
        fake_backend.add(
            "POST", "/api/sessions/9/confirm-payment", {"status": "awaiting_payment_confirmation"}
        )

        await actions.confirm_payment(9, [2])

        assert store.get(2).payment_status == "paid"
        assert store.get(1).payment_status is None
        assert store.get(1).session_status == "open"
        assert feedback.last.message == "Partial payment confirmed (1 order)"
        body = FakeBackend.body(fake_backend.calls("POST", "/api/sessions/9/confirm-payment")[0])
        assert body == {"order_ids": [2]}

    @pytest.mark.asyncio
    async def test_payment_failure(self, fake_backend, actions, store, feedback):
        """Test a failed payment changes nothing."""
        fake_backend.add("POST", "/api/sessions/9/confirm-payment", (500, {"error": "Terminal offline"}))

        assert await actions.confirm_payment(9) is None

        assert store.get(1).session_status == "open"
        assert feedback.last.message == "Terminal offline"


class TestTickets:
    """Test ticket resend and printing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["", "not-an-email", "anonimo+1@pronto.local"])
    async def test_resend_rejects_bad_address(self, fake_backend, actions, email):
        """Test placeholder and malformed addresses are refused."""
        with pytest.raises(ValidationError):
            await actions.resend_ticket(9, email)
        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_resend(self, fake_backend, actions, feedback):
        """Test the ticket is resent to the normalized address."""
        fake_backend.add("POST", "/api/sessions/9/resend", {"status": "sent"})

        assert await actions.resend_ticket(9, " Ana@Example.com ") is True

        body = FakeBackend.body(fake_backend.calls("POST", "/api/sessions/9/resend")[0])
        assert body == {"email": "ana@example.com"}
        assert feedback.last.message == "Ticket resent to ana@example.com"

    @pytest.mark.asyncio
    async def test_ticket(self, fake_backend, actions, feedback):
        """Test ticket text is returned and bad responses reported."""
        fake_backend.add("GET", "/api/sessions/9/ticket", {"ticket": "TABLE M01\nTotal 55.00"})
        fake_backend.add("GET", "/api/sessions/8/ticket", {"ticket": None})

        assert await actions.ticket(9) == "TABLE M01\nTotal 55.00"
        assert await actions.ticket(8) is None
        assert feedback.last.message == "Invalid ticket response from the server"

    def test_pdf_url(self, actions):
        """Test the PDF ticket URL."""
        assert actions.ticket_pdf_url(9) == "http://backend.test/api/sessions/9/ticket.pdf"
