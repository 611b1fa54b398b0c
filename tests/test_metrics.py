"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from skyvoice.services.metrics import MAX_BATCH_SIZE, NAMESPACE, MetricsClient


def _dims(datum: dict) -> dict[str, str]:
    return {d["Name"]: d["Value"] for d in datum["Dimensions"]}


class TestMetricsRecording:
    """Verify that record_success / record_failure buffer the right data."""

    def _make_client(self, *, enabled: bool = False) -> MetricsClient:
        with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
            return MetricsClient()

    def test_record_success_appends_count_and_latency(self):
        client = self._make_client()
        client.record_success("bedrock-agent", "invoke_agent", latency_ms=123.4)
        names = [m["MetricName"] for m in client._buffer]
        assert names == ["RemoteCall/Count", "RemoteCall/Latency"]

    def test_record_failure_without_latency(self):
        client = self._make_client()
        client.record_failure("booking-api", "cancel_booking", error_type="ReadTimeout")
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"RemoteCall/Count", "RemoteCall/Errors"}

    def test_record_failure_with_latency(self):
        client = self._make_client()
        client.record_failure("bedrock-embeddings", "invoke_model", error_type="ClientError", latency_ms=80)
        assert len(client._buffer) == 3

    def test_dimensions(self):
        client = self._make_client()
        client.record_success("bedrock-agent", "invoke_agent", latency_ms=10)
        client.record_failure("bedrock-agent", "invoke_agent", error_type="ClientError")
        count_ok, latency, count_fail, errors = client._buffer
        assert _dims(count_ok) == {"Service": "bedrock-agent", "Status": "success"}
        assert _dims(latency) == {"Service": "bedrock-agent", "Operation": "invoke_agent"}
        assert _dims(count_fail)["Status"] == "failure"
        assert _dims(errors)["ErrorType"] == "ClientError"


class TestTimed:
    def test_records_success(self):
        client = MetricsClient(enabled=False)
        with client.timed("booking-api", "get_upcoming_trips"):
            pass
        assert _dims(client._buffer[0])["Status"] == "success"

    def test_records_failure_and_reraises(self):
        client = MetricsClient(enabled=False)
        with pytest.raises(KeyError):
            with client.timed("booking-api", "cancel_booking"):
                raise KeyError("boom")
        errors = [m for m in client._buffer if m["MetricName"] == "RemoteCall/Errors"]
        assert _dims(errors[0])["ErrorType"] == "KeyError"


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_sends_nothing_and_clears(self):
        client = MetricsClient(enabled=False)
        client.record_success("bedrock-agent", "invoke_agent", latency_ms=100.0)
        assert client.flush() == 0
        assert client._buffer == []

    def test_flush_when_enabled_calls_put_metric_data(self):
        client = MetricsClient(enabled=True)
        mock_cw = MagicMock()
        client._cw_client = mock_cw

        client.record_success("bedrock-agent", "invoke_agent", latency_ms=100.0)
        sent = client.flush()
        client.close()

        assert sent == 2
        kwargs = mock_cw.put_metric_data.call_args.kwargs
        assert kwargs["Namespace"] == NAMESPACE == "SkyVoice"
        assert len(kwargs["MetricData"]) == 2

    def test_flush_splits_large_batches(self):
        client = MetricsClient(enabled=True)
        mock_cw = MagicMock()
        client._cw_client = mock_cw
        for _ in range(MAX_BATCH_SIZE):
            client.record_success("bedrock-agent", "invoke_agent", latency_ms=1.0)

        assert client.flush() == 2 * MAX_BATCH_SIZE
        assert mock_cw.put_metric_data.call_count == 2
        client.close()

    def test_cloudwatch_failure_is_logged_not_raised(self):
        client = MetricsClient(enabled=True)
        client._cw_client = MagicMock()
        client._cw_client.put_metric_data.side_effect = RuntimeError("throttled")
        client.record_success("bedrock-agent", "invoke_agent", latency_ms=1.0)
        assert client.flush() == 0
        client.close()

    def test_flush_empty_buffer_returns_zero(self):
        client = MetricsClient(enabled=True)
        assert client.flush() == 0
        client.close()
