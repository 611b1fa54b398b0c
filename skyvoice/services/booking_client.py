"""HTTP client for the booking-management endpoints used by the voice
cancellation flow: list a traveller's upcoming trips, cancel a booking.

Timeouts, connection errors and 5xx responses are retried with
exponential backoff; 4xx responses are not.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from skyvoice.config import BOOKING_API_BASE_URL, BOOKING_API_KEY, REQUEST_TIMEOUT_SECONDS
from skyvoice.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

_CANCELLED_STATUSES = frozenset({"cancelled", "canceled", "success"})

# Upstream payloads use camelCase; the rest of the app uses snake_case.
_TRIP_FIELDS = {
    "bookingId": "booking_id",
    "confirmationNumber": "confirmation_number",
    "totalAmount": "total_amount",
}


def _normalize_trip(trip: dict[str, Any]) -> dict[str, Any]:
    return {_TRIP_FIELDS.get(k, k): v for k, v in trip.items()}


class BookingAPIError(Exception):
    """Raised when a booking-management call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class BookingManagementClient:
    """Trip lookup and cancellation over the booking-management REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self._base_url = (base_url or BOOKING_API_BASE_URL).rstrip("/")
        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else BOOKING_API_KEY
        if key:
            headers["x-api-key"] = key
        self._client = httpx.Client(base_url=self._base_url, headers=headers, timeout=timeout)

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.timed("booking-api", operation):
                    response = self._client.request(method, path, params=params, json=json_body)
                    if response.status_code >= 400:
                        raise BookingAPIError(
                            f"Booking API error {response.status_code}: {response.text}",
                            status_code=response.status_code,
                        )
                return response.json()

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_error = exc
                logger.warning(
                    "Booking API %s attempt %d/%d failed (%s)",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )
            except BookingAPIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "Booking API %s server error on attempt %d/%d",
                        operation, attempt, MAX_RETRIES,
                    )
                else:
                    raise
            except ValueError as exc:
                raise BookingAPIError(f"Booking API returned invalid JSON: {exc}") from exc

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise BookingAPIError(
            f"Booking API {operation} failed after {MAX_RETRIES} attempts: {last_error}"
        )

    def get_upcoming_trips(self, user_id: str) -> list[dict[str, Any]]:
        """Return the user's upcoming trips.

        Each trip carries ``booking_id``, ``confirmation_number``, ``route``,
        ``date``, ``flight`` and ``total_amount``; camelCase keys from the
        API are renamed.
        """
        data = self._request(
            "GET", f"/users/{user_id}/trips",
            operation="get_upcoming_trips",
            params={"status": "upcoming"},
        )
        trips = data.get("trips", []) if isinstance(data, dict) else data
        return [_normalize_trip(t) for t in trips or [] if isinstance(t, dict)]

    def cancel_booking(self, booking_id: str) -> bool:
        """Cancel *booking_id*.  ``True`` only if the API reports success."""
        data = self._request(
            "POST", f"/bookings/{booking_id}/cancel",
            operation="cancel_booking",
            json_body={"bookingId": booking_id},
        )
        if not isinstance(data, dict):
            return False
        if data.get("success") is True:
            return True
        return str(data.get("status", "")).lower() in _CANCELLED_STATUSES

    def close(self) -> None:
        self._client.close()
