"""Tests for the Prometheus exposition helpers."""

from educonnect.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestPrometheusMetrics:
    def test_reservation_outcomes_are_counted(self):
        before = _sample("educonnect_reservation_attempts_total", {"outcome": "already_booked"})

        prometheus_metrics.record_reservation("already_booked")

        after = _sample("educonnect_reservation_attempts_total", {"outcome": "already_booked"})
        assert after == before + 1

    def test_errors_recorded_with_type(self):
        labels = {
            "service": "ReservationService",
            "operation": "reserve",
            "error_type": "SlotAlreadyBookedException",
        }
        before = _sample("educonnect_errors_total", labels)

        prometheus_metrics.record_service_operation(
            "ReservationService", "reserve", 0.01, "error", "SlotAlreadyBookedException"
        )

        assert _sample("educonnect_errors_total", labels) == before + 1

    def test_exposition_reflects_new_samples(self):
        """Recording invalidates the cached payload."""
        prometheus_metrics.get_metrics()
        prometheus_metrics.record_notification("booked", "error")

        payload = prometheus_metrics.get_metrics().decode()

        assert 'educonnect_notification_dispatch_total{kind="booked",status="error"}' in payload

    def test_content_type(self):
        assert prometheus_metrics.get_content_type().startswith("text/plain")
