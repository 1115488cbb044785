"""Tests for the Stripe connection flow."""

from unittest.mock import MagicMock

import pytest

from mrrboard.errors import ApiError, NetworkError, UnauthorizedError
from mrrboard.integrations.models import Platform
from mrrboard.providers.base import FlowState, TimerNavigator
from mrrboard.providers.stripe import StripeConnectFlow, StripeConnector


@pytest.fixture
def on_success():
    return MagicMock()


@pytest.fixture
def flow(client, navigator, on_success):
    return StripeConnectFlow(client, navigator=navigator, success_callback=on_success, redirect_delay_s=2.0)


class TestValidation:

    def test_empty_key_is_rejected_without_a_request(self, flow, client):
        assert flow.submit("   ") is False

        assert flow.state == FlowState.ERROR
        assert flow.error == "Please enter your Stripe Secret Key"
        assert "secret_key" in flow.field_errors
        client.create_integration.assert_not_called()

    def test_wrong_prefix_is_rejected_without_a_request(self, flow, client):
        assert flow.submit("pk_test_123") is False

        assert flow.error == 'Invalid Stripe Secret Key format. It should start with "sk_"'
        client.create_integration.assert_not_called()


class TestSubmit:

    def test_success(self, flow, client, navigator, on_success):
        assert flow.submit("  sk_test_abc  ") is True

        client.create_integration.assert_called_once_with(
            Platform.STRIPE, "Stripe Integration", {"secret_key": "sk_test_abc"}
        )
        assert flow.state == FlowState.SUCCESS
        assert flow.message == "Stripe Connected Successfully!"
        on_success.assert_called_once_with()
        assert navigator.requests == [("/integrations", 2.0)]
        assert navigator.pending == {"to": "/integrations", "after_ms": 2000}

    def test_backend_message_is_shown_verbatim(self, flow, client, navigator, on_success):
        client.create_integration.side_effect = ApiError("Invalid API Key provided", status_code=422)

        assert flow.submit("sk_test_bad") is False

        assert flow.state == FlowState.ERROR
        assert flow.error == "Invalid API Key provided"
        assert flow.secret_key == "sk_test_bad"
        on_success.assert_not_called()
        assert navigator.requests == []

    def test_network_failure_uses_fallback_text(self, flow, client):
        client.create_integration.side_effect = NetworkError("timed out")

        assert flow.submit("sk_test_abc") is False
        assert flow.error == "Failed to connect to Stripe"

    def test_retry_after_failure(self, flow, client):
        client.create_integration.side_effect = [ApiError(None, status_code=500), {"success": True}]

        assert flow.submit("sk_test_abc") is False
        assert flow.submit() is True
        assert client.create_integration.call_count == 2

    def test_unauthorized_propagates(self, flow, client, on_success):
        client.create_integration.side_effect = UnauthorizedError(None, status_code=401)

        with pytest.raises(UnauthorizedError):
            flow.submit("sk_test_abc")

        assert flow.state == FlowState.IDLE
        assert flow.error is None
        on_success.assert_not_called()

    def test_disposed_flow_ignores_late_response(self, flow, client, navigator, on_success):
        def respond(*args, **kwargs):
            flow.dispose()
            return {"success": True}

        client.create_integration.side_effect = respond

        assert flow.submit("sk_test_abc") is False
        on_success.assert_not_called()
        assert navigator.requests == []

    def test_reset_clears_key_and_outcome(self, flow):
        flow.submit("pk_wrong")
        flow.reset()

        assert flow.secret_key == ""
        assert flow.state == FlowState.IDLE
        assert flow.error is None
        assert flow.field_errors == {}

    def test_snapshot(self, flow):
        flow.secret_key = "sk_test_abc"
        snap = flow.snapshot()
        assert snap["platform"] == "stripe"
        assert snap["state"] == "idle"
        assert snap["can_submit"] is True
        assert "secret_key" not in snap


def test_connector_builds_flow(client, navigator):
    flow = StripeConnector().create_flow(client, navigator=navigator, existing=None)
    assert isinstance(flow, StripeConnectFlow)


class TestTimerNavigator:

    def test_immediate_navigation(self):
        go = MagicMock()
        TimerNavigator(go).navigate("/integrations")
        go.assert_called_once_with("/integrations")

    def test_delayed_navigation_can_be_cancelled(self):
        go = MagicMock()
        nav = TimerNavigator(go)

        nav.navigate("/integrations", delay_s=60)
        nav.cancel_all()

        go.assert_not_called()
