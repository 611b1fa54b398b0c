"""Tests for the booking-management HTTP client."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from skyvoice.services.booking_client import (
    INITIAL_BACKOFF_SECONDS,
    MAX_RETRIES,
    BookingAPIError,
    BookingManagementClient,
)


@pytest.fixture
def client():
    client = BookingManagementClient(base_url="http://bookings.test", api_key="k-1")
    yield client
    client.close()


class TestGetUpcomingTrips:
    def test_returns_trips_with_snake_case_keys(self, client, mock_http_response):
        body = {"trips": [{"bookingId": "BK1", "confirmationNumber": "ABC123", "flight": "AA456", "date": "2025-08-21"}]}
        with patch.object(client._client, "request", return_value=mock_http_response(body)) as req:
            trips = client.get_upcoming_trips("user-1")

        assert trips == [{"booking_id": "BK1", "confirmation_number": "ABC123", "flight": "AA456", "date": "2025-08-21"}]
        method, path = req.call_args[0]
        assert (method, path) == ("GET", "/users/user-1/trips")
        assert req.call_args[1]["params"] == {"status": "upcoming"}

    def test_accepts_bare_list(self, client, mock_http_response):
        with patch.object(client._client, "request", return_value=mock_http_response([{"booking_id": "BK2"}])):
            assert client.get_upcoming_trips("u") == [{"booking_id": "BK2"}]

    def test_empty(self, client, mock_http_response):
        with patch.object(client._client, "request", return_value=mock_http_response({"trips": []})):
            assert client.get_upcoming_trips("u") == []

    def test_sends_api_key(self, client):
        assert client._client.headers["x-api-key"] == "k-1"


class TestCancelBooking:
    @pytest.mark.parametrize(
        "body",
        [{"success": True}, {"status": "cancelled"}, {"status": "CANCELED"}, {"status": "success"}],
    )
    def test_success_statuses(self, client, mock_http_response, body):
        with patch.object(client._client, "request", return_value=mock_http_response(body)) as req:
            assert client.cancel_booking("BK1") is True
        assert req.call_args[0] == ("POST", "/bookings/BK1/cancel")

    @pytest.mark.parametrize("body", [{"success": False}, {"status": "pending"}, {}, ["odd"]])
    def test_anything_else_is_not_success(self, client, mock_http_response, body):
        with patch.object(client._client, "request", return_value=mock_http_response(body)):
            assert client.cancel_booking("BK1") is False


class TestRetries:
    def test_client_error_is_not_retried(self, client, mock_http_response):
        with patch.object(
            client._client, "request", return_value=mock_http_response({"error": "nope"}, 404),
        ) as req:
            with pytest.raises(BookingAPIError) as exc_info:
                client.get_upcoming_trips("u")
        assert exc_info.value.status_code == 404
        assert req.call_count == 1

    @patch("skyvoice.services.booking_client.time.sleep")
    def test_server_error_retried_then_succeeds(self, mock_sleep, client, mock_http_response):
        responses = [mock_http_response({}, 503), mock_http_response({"success": True})]
        with patch.object(client._client, "request", side_effect=responses) as req:
            assert client.cancel_booking("BK1") is True
        assert req.call_count == 2
        mock_sleep.assert_called_once_with(INITIAL_BACKOFF_SECONDS)

    @patch("skyvoice.services.booking_client.time.sleep")
    def test_timeouts_exhaust_retries(self, mock_sleep, client):
        with patch.object(
            client._client, "request", side_effect=httpx.ReadTimeout("slow"),
        ) as req:
            with pytest.raises(BookingAPIError, match=f"after {MAX_RETRIES} attempts"):
                client.get_upcoming_trips("u")
        assert req.call_count == MAX_RETRIES
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("skyvoice.services.booking_client.time.sleep")
    def test_connect_errors_are_retried(self, mock_sleep, client, mock_http_response):
        side_effect = [httpx.ConnectError("refused"), mock_http_response({"trips": []})]
        with patch.object(client._client, "request", side_effect=side_effect):
            assert client.get_upcoming_trips("u") == []

    def test_invalid_json(self, client, mock_http_response):
        response = mock_http_response(None)
        response.json.side_effect = ValueError("Expecting value")
        with patch.object(client._client, "request", return_value=response):
            with pytest.raises(BookingAPIError, match="invalid JSON"):
                client.get_upcoming_trips("u")
