"""Response templates for the voice dialogue, keyed by intent label.

Each template is what the client app needs to react to a turn: the text
to speak, the screen to navigate to, a data payload and a description of
what the user is expected to say next.  Adding an intent means adding an
entry to ``RESPONSE_TEMPLATES``; no control flow changes.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping

GENERAL_INQUIRY = "general_inquiry"


@dataclass(frozen=True)
class ResponseTemplate:
    text: str
    navigate_to: str
    show_section: str
    expected_input: str
    prompt: str
    data: Mapping[str, Any] = field(default_factory=dict)
    # Emitted intent label when it differs from the lookup key.
    intent: str | None = None

    def render(self, intent: str, user_id: str, *, success: bool = True) -> dict[str, Any]:
        return {
            "success": success,
            "intent": self.intent or intent,
            "user_id": user_id,
            "response_text": self.text,
            "screen_action": {
                "navigate_to": self.navigate_to,
                "show_section": self.show_section,
            },
            "data": copy.deepcopy(dict(self.data)),
            "next_step": {
                "expected_input": self.expected_input,
                "prompt": self.prompt,
            },
        }


_SAMPLE_FLIGHT_RESULTS = {
    "flights": [
        {
            "flight_id": "AA123",
            "airline": "American Airlines",
            "departure": {"time": "08:00 AM", "airport": "JFK", "date": "2025-08-21"},
            "arrival": {"time": "11:30 AM", "airport": "MIA", "date": "2025-08-21"},
            "price": "$299",
            "duration": "3h 30m",
            "stops": "Direct",
        },
        {
            "flight_id": "AA456",
            "airline": "American Airlines",
            "departure": {"time": "02:15 PM", "airport": "LGA", "date": "2025-08-21"},
            "arrival": {"time": "05:45 PM", "airport": "MIA", "date": "2025-08-21"},
            "price": "$349",
            "duration": "3h 30m",
            "stops": "Direct",
        },
    ],
    "search_params": {
        "origin": "New York",
        "destination": "Miami",
        "departure_date": "2025-08-21",
        "passengers": 1,
    },
}


RESPONSE_TEMPLATES: dict[str, ResponseTemplate] = {
    "flight_booking": ResponseTemplate(
        text="I found flights from New York to Miami for tomorrow. Here are your options:",
        navigate_to="BookScreen",
        show_section="flight_results",
        expected_input="flight_selection",
        prompt="Which flight would you like to book?",
        data=_SAMPLE_FLIGHT_RESULTS,
    ),
    "flight_cancellation": ResponseTemplate(
        text=(
            "I can help you cancel your flight. Please provide your confirmation "
            "number so I can locate your booking."
        ),
        navigate_to="TripsScreen",
        show_section="confirmation_input",
        expected_input="confirmation_number",
        prompt="Please say your confirmation number",
    ),
    "flight_change": ResponseTemplate(
        text=(
            "I can help you change your flight. Please provide your confirmation "
            "number and I'll show you available options."
        ),
        navigate_to="RescheduleScreen",
        show_section="confirmation_input",
        expected_input="confirmation_number",
        prompt="Please provide your booking confirmation number",
    ),
    "flight_checkin": ResponseTemplate(
        text=(
            "I can help you check in for your flight. Please provide your "
            "confirmation number or last name to get started."
        ),
        navigate_to="CheckinScreen",
        show_section="checkin_input",
        expected_input="checkin_details",
        prompt="Please say your confirmation number or last name",
    ),
    "baggage_inquiry": ResponseTemplate(
        text=(
            "I can help you with baggage information. Are you looking to track "
            "your baggage, learn about baggage policies, or file a claim?"
        ),
        navigate_to="BaggageScreen",
        show_section="baggage_options",
        expected_input="baggage_action",
        prompt="What would you like to do regarding baggage?",
    ),
    "flight_status": ResponseTemplate(
        text="I can check your flight status. Please provide your flight number or confirmation number.",
        navigate_to="StatusScreen",
        show_section="status_input",
        expected_input="flight_identifier",
        prompt="Please say your flight number or confirmation number",
    ),
    "seat_selection": ResponseTemplate(
        text=(
            "I can help you select or change your seat. Please provide your "
            "confirmation number to view available seats."
        ),
        navigate_to="SeatScreen",
        show_section="seat_map",
        expected_input="confirmation_number",
        prompt="Please provide your booking confirmation number",
    ),
    "payment_inquiry": ResponseTemplate(
        text=(
            "I can help you with payment-related questions including refunds, "
            "payment methods, and billing issues. What specific payment "
            "assistance do you need?"
        ),
        navigate_to="PaymentScreen",
        show_section="payment_options",
        expected_input="payment_issue",
        prompt="Please describe your payment-related question",
    ),
    "special_assistance": ResponseTemplate(
        text=(
            "I can help you arrange special assistance including wheelchair "
            "service, dietary requirements, or other accessibility needs. What "
            "assistance do you require?"
        ),
        navigate_to="AssistanceScreen",
        show_section="assistance_options",
        expected_input="assistance_type",
        prompt="What type of special assistance do you need?",
    ),
    "connecting_flights": ResponseTemplate(
        text=(
            "I can help you with connecting flight information including layover "
            "details, terminal changes, and connection assistance. What would "
            "you like to know?"
        ),
        navigate_to="ConnectionScreen",
        show_section="connection_info",
        expected_input="connection_question",
        prompt="What connecting flight information do you need?",
    ),
    "loyalty_program": ResponseTemplate(
        text=(
            "I can help you with frequent flyer program questions including miles "
            "balance, status, upgrades, and redemptions. What would you like to "
            "know about your loyalty account?"
        ),
        navigate_to="LoyaltyScreen",
        show_section="loyalty_info",
        expected_input="loyalty_question",
        prompt="What loyalty program information do you need?",
    ),
    "travel_documents": ResponseTemplate(
        text=(
            "I can help you with travel document requirements including passport, "
            "visa, and ID information for your destination. Where are you "
            "traveling to?"
        ),
        navigate_to="DocumentsScreen",
        show_section="document_requirements",
        expected_input="destination",
        prompt="What destination do you need document information for?",
    ),
    "weather_related": ResponseTemplate(
        text=(
            "I can help you with weather-related flight information including "
            "delays, cancellations, and rebooking options due to weather "
            "conditions. What weather information do you need?"
        ),
        navigate_to="WeatherScreen",
        show_section="weather_updates",
        expected_input="weather_question",
        prompt="What weather-related assistance do you need?",
    ),
    "pricing_inquiry": ResponseTemplate(
        text=(
            "I can help you with pricing information including fare details, "
            "discounts, and price comparisons. What pricing information are you "
            "looking for?"
        ),
        navigate_to="PricingScreen",
        show_section="price_info",
        expected_input="pricing_question",
        prompt="What pricing information do you need?",
    ),
    GENERAL_INQUIRY: ResponseTemplate(
        text=(
            "I can help you with flight booking, rescheduling, baggage tracking, "
            "or other airline services. What would you like to do?"
        ),
        navigate_to="HomeScreen",
        show_section="voice_options",
        expected_input="service_selection",
        prompt="Please tell me what you'd like help with",
    ),
}

# Unknown and low-confidence intents ("others") land here.
DEFAULT_TEMPLATE = ResponseTemplate(
    text=(
        "I can help you with various airline services including booking flights, "
        "managing reservations, checking flight status, and baggage assistance. "
        "How can I help you today?"
    ),
    navigate_to="HomeScreen",
    show_section="voice_options",
    expected_input="service_selection",
    prompt="What airline service do you need help with?",
    intent=GENERAL_INQUIRY,
)


def template_for(intent: str) -> ResponseTemplate:
    return RESPONSE_TEMPLATES.get(intent, DEFAULT_TEMPLATE)


def render_intent(intent: str, user_id: str) -> dict[str, Any]:
    """Build the reply for a classified intent."""
    return template_for(intent).render(intent, user_id)


# ── Follow-up flow replies ──────────────────────────────────────────

CANCELLATION_CONFIRMED = "booking_cancellation_confirmed"
CANCELLATION_FAILED = "booking_cancellation_failed"
NO_UPCOMING_TRIPS = "no_upcoming_trips"
FLIGHT_CHANGE_CONFIRMED = "flight_change_confirmed"
CHECKIN_CONFIRMED = "checkin_confirmed"

FLOW_TEMPLATES: dict[str, ResponseTemplate] = {
    CANCELLATION_CONFIRMED: ResponseTemplate(
        text="Your booking has been cancelled.",
        navigate_to="TripsScreen",
        show_section="cancellation_confirmation",
        expected_input="cancellation_complete",
        prompt="Your booking has been cancelled. Is there anything else I can help you with?",
    ),
    NO_UPCOMING_TRIPS: ResponseTemplate(
        text="I couldn't find any upcoming trips on your account, so there is nothing to cancel.",
        navigate_to="TripsScreen",
        show_section="upcoming_trips",
        expected_input="service_selection",
        prompt="Is there anything else I can help you with?",
    ),
    CANCELLATION_FAILED: ResponseTemplate(
        text=(
            "I'm sorry, I wasn't able to cancel your booking right now. Please try "
            "again in a moment or contact our support team."
        ),
        navigate_to="TripsScreen",
        show_section="confirmation_input",
        expected_input="confirmation_number",
        prompt="Would you like to try again with your confirmation number?",
    ),
    FLIGHT_CHANGE_CONFIRMED: ResponseTemplate(
        text="I found your booking. Here are available alternative flights:",
        navigate_to="RescheduleScreen",
        show_section="available_flights",
        expected_input="flight_selection",
        prompt="Which new flight would you like to select?",
        data={
            "original_booking": {
                "confirmation_number": "ABC123",
                "flight_number": "AA456",
                "route": "JFK → MIA",
                "original_date": "2025-08-21",
            },
            "alternative_flights": [],
        },
    ),
    CHECKIN_CONFIRMED: ResponseTemplate(
        text="Found your booking! You can now check in for your flight.",
        navigate_to="CheckinScreen",
        show_section="checkin_details",
        expected_input="checkin_complete",
        prompt="Would you like to select seats or complete check-in?",
        data={
            "booking": {
                "confirmation_number": "ABC123",
                "passenger_name": "John Doe",
                "flight_number": "AA456",
                "route": "JFK → MIA",
                "date": "2025-08-21",
                "time": "08:00 AM",
            }
        },
    ),
}


def render_flow(outcome: str, user_id: str, **overrides: Any) -> dict[str, Any]:
    """Build a follow-up reply; *overrides* replace top-level keys (e.g. ``data``)."""
    reply = FLOW_TEMPLATES[outcome].render(
        outcome, user_id, success=outcome != CANCELLATION_FAILED,
    )
    reply.update(overrides)
    return reply
