"""Turn-level dialogue handling for the voice app, built on LangGraph.

Architecture:
  Every utterance runs through a small ``StateGraph``:

    detect_followup → (cancellation | change | checkin)   → END
                    → classify → respond                 → END

  ``detect_followup`` checks whether the text looks like a confirmation
  code *and* the user recently asked to cancel, change or check in.  If
  so, the matching flow node answers the turn directly and classification
  is skipped.  Otherwise the text is classified by the
  :class:`~skyvoice.services.intent_matcher.IntentMatcher`, the raw label is
  appended to the user's intent history and the response template for
  that label is rendered.

  The per-user "awaiting confirmation" state is not stored in the graph.
  It is derived from :class:`~skyvoice.services.intent_history.IntentHistory`:
  a pending flow is simply a flow intent still present in the last five
  labels, and resolving the flow removes it.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any, Optional

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from skyvoice.responses import (
    CANCELLATION_CONFIRMED,
    CANCELLATION_FAILED,
    CHECKIN_CONFIRMED,
    FLIGHT_CHANGE_CONFIRMED,
    NO_UPCOMING_TRIPS,
    render_flow,
    render_intent,
)
from skyvoice.services.booking_client import BookingAPIError, BookingManagementClient
from skyvoice.services.intent_history import IntentHistory
from skyvoice.services.intent_matcher import IntentMatcher

logger = logging.getLogger(__name__)

CODE_PHRASES = ("confirmation number", "confirmation code", "booking reference")
_ALNUM_CODE = re.compile(r"\b[A-Z]{2,}\d{2,}\b")
_NUMERIC_CODE = re.compile(r"\b\d{6,}\b")

# Checked in this order when several flows are pending.
PENDING_FLOWS = (
    ("flight_cancellation", "cancellation"),
    ("flight_change", "change"),
    ("flight_checkin", "checkin"),
)


def looks_like_code(text: str) -> bool:
    """True when *text* mentions or contains a confirmation/reference code."""
    lowered = text.lower()
    if any(phrase in lowered for phrase in CODE_PHRASES):
        return True
    return bool(_ALNUM_CODE.search(text) or _NUMERIC_CODE.search(text))


def _trip_time(trip: dict[str, Any]) -> datetime:
    raw = trip.get("date") or trip.get("departure_date") or ""
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return datetime.max
    # Naive dates are taken as UTC; aware ones are converted first.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.replace(tzinfo=None)


def earliest_trip(trips: list[dict[str, Any]]) -> dict[str, Any]:
    """Pick the chronologically first trip; undated trips sort last."""
    return min(trips, key=_trip_time)


# ── State schema ─────────────────────────────────────────────────────


class DialogueState(TypedDict, total=False):
    """State flowing through the dialogue graph for a single turn.

    ``flow`` is set by ``detect_followup`` and read by the conditional
    edge.  ``reply`` is the structured response returned to the client.
    """

    text: str
    user_id: str
    context: dict[str, Any]
    flow: Optional[str]
    intent: str
    confidence: float
    reply: dict[str, Any]


class DialogueStateMachine:
    """Drive one dialogue turn per :meth:`process` call."""

    def __init__(
        self,
        matcher: IntentMatcher,
        history: IntentHistory,
        bookings: BookingManagementClient,
        *,
        threshold: float | None = None,
    ) -> None:
        self._matcher = matcher
        self._history = history
        self._bookings = bookings
        self._threshold = threshold
        self._graph = self._build_graph()

    @property
    def history(self) -> IntentHistory:
        return self._history

    # ── Nodes ────────────────────────────────────────────────────────

    def _detect_followup(self, state: DialogueState) -> dict:
        text, user_id = state["text"], state["user_id"]
        if not looks_like_code(text):
            return {"flow": None}

        recent = self._history.recent(user_id)
        for intent, flow in PENDING_FLOWS:
            if intent in recent:
                logger.info("User %s provided a code for pending %s", user_id, flow)
                return {"flow": flow}

        logger.debug("Code-like text from %s with no pending flow", user_id)
        return {"flow": None}

    def _cancellation(self, state: DialogueState) -> dict:
        user_id = state["user_id"]
        try:
            trips = self._bookings.get_upcoming_trips(user_id)
            if not trips:
                self._history.resolve(user_id, "flight_cancellation")
                return {"reply": render_flow(NO_UPCOMING_TRIPS, user_id)}

            trip = earliest_trip(trips)
            booking_id = trip.get("booking_id")
            if not booking_id:
                raise BookingAPIError("Upcoming trip has no booking id")
            cancelled = self._bookings.cancel_booking(str(booking_id))
        except BookingAPIError as exc:
            logger.warning("Cancellation for %s failed: %s", user_id, exc)
            return {"reply": render_flow(CANCELLATION_FAILED, user_id)}

        if not cancelled:
            logger.warning("Cancellation of %s was not confirmed", booking_id)
            return {"reply": render_flow(CANCELLATION_FAILED, user_id)}

        self._history.resolve(user_id, "flight_cancellation")
        flight = {
            "booking_id": booking_id,
            "confirmation_number": trip.get("confirmation_number"),
            "flight": trip.get("flight"),
            "route": trip.get("route"),
            "date": trip.get("date"),
            "total_amount": trip.get("total_amount"),
        }
        text = "Your booking has been cancelled."
        if flight["flight"] and flight["route"]:
            text = f"Your flight {flight['flight']} ({flight['route']}) has been cancelled."
        return {
            "reply": render_flow(
                CANCELLATION_CONFIRMED, user_id,
                response_text=text, data={"cancelled_flight": flight},
            )
        }

    def _change(self, state: DialogueState) -> dict:
        self._history.resolve(state["user_id"], "flight_change")
        return {"reply": render_flow(FLIGHT_CHANGE_CONFIRMED, state["user_id"])}

    def _checkin(self, state: DialogueState) -> dict:
        self._history.resolve(state["user_id"], "flight_checkin")
        return {"reply": render_flow(CHECKIN_CONFIRMED, state["user_id"])}

    def _classify(self, state: DialogueState) -> dict:
        match = self._matcher.classify(state["text"], self._threshold)
        # The raw label goes into history, including "others".
        self._history.append(state["user_id"], match.intent)
        return {"intent": match.intent, "confidence": match.confidence}

    def _respond(self, state: DialogueState) -> dict:
        return {"reply": render_intent(state["intent"], state["user_id"])}

    # ── Graph assembly ───────────────────────────────────────────────

    @staticmethod
    def _route(state: DialogueState) -> str:
        return state.get("flow") or "classify"

    def _build_graph(self):
        graph = StateGraph(DialogueState)
        graph.add_node("detect_followup", self._detect_followup)
        graph.add_node("cancellation", self._cancellation)
        graph.add_node("change", self._change)
        graph.add_node("checkin", self._checkin)
        graph.add_node("classify", self._classify)
        graph.add_node("respond", self._respond)

        graph.set_entry_point("detect_followup")
        graph.add_conditional_edges(
            "detect_followup",
            self._route,
            {
                "cancellation": "cancellation",
                "change": "change",
                "checkin": "checkin",
                "classify": "classify",
            },
        )
        graph.add_edge("classify", "respond")
        for node in ("cancellation", "change", "checkin", "respond"):
            graph.add_edge(node, END)
        return graph.compile()

    def process(
        self, text: str, user_id: str, context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Handle one utterance and return the structured reply."""
        if not text or not text.strip():
            raise ValueError("Text is required")
        result = self._graph.invoke(
            {"text": text, "user_id": user_id, "context": context or {}},
        )
        return result["reply"]
