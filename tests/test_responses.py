"""Tests for the response template table."""

from __future__ import annotations

import pytest

from skyvoice.responses import (
    CANCELLATION_FAILED,
    FLOW_TEMPLATES,
    RESPONSE_TEMPLATES,
    render_flow,
    render_intent,
)

REPLY_KEYS = {"success", "intent", "user_id", "response_text", "screen_action", "data", "next_step"}


class TestRenderIntent:
    @pytest.mark.parametrize("intent", sorted(RESPONSE_TEMPLATES))
    def test_every_intent_renders_full_shape(self, intent):
        reply = render_intent(intent, "u1")
        assert set(reply) == REPLY_KEYS
        assert reply["intent"] == intent
        assert reply["response_text"]
        assert set(reply["screen_action"]) == {"navigate_to", "show_section"}
        assert set(reply["next_step"]) == {"expected_input", "prompt"}

    def test_others_becomes_general_inquiry(self):
        reply = render_intent("others", "u1")
        assert reply["intent"] == "general_inquiry"
        assert reply["screen_action"]["navigate_to"] == "HomeScreen"
        assert "various airline services" in reply["response_text"]

    def test_unknown_label_uses_default(self):
        assert render_intent("time_travel", "u1")["intent"] == "general_inquiry"

    def test_flight_booking_carries_results(self):
        data = render_intent("flight_booking", "u1")["data"]
        assert [f["flight_id"] for f in data["flights"]] == ["AA123", "AA456"]
        assert data["search_params"]["destination"] == "Miami"

    def test_data_is_copied(self):
        first = render_intent("flight_booking", "u1")
        first["data"]["flights"].clear()
        assert len(render_intent("flight_booking", "u1")["data"]["flights"]) == 2


class TestRenderFlow:
    @pytest.mark.parametrize("outcome", sorted(FLOW_TEMPLATES))
    def test_every_outcome_renders(self, outcome):
        reply = render_flow(outcome, "u1")
        assert set(reply) == REPLY_KEYS
        assert reply["intent"] == outcome

    def test_failure_is_not_success(self):
        assert render_flow(CANCELLATION_FAILED, "u1")["success"] is False

    def test_overrides_replace_keys(self):
        reply = render_flow("booking_cancellation_confirmed", "u1", data={"cancelled_flight": {"flight": "AA1"}})
        assert reply["data"] == {"cancelled_flight": {"flight": "AA1"}}
