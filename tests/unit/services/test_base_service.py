"""
Unit tests for BaseService transaction handling and instrumentation.

These tests isolate the service plumbing from the database using mocks.
"""

from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from educonnect.core.exceptions import (
    RepositoryException,
    ServiceException,
    SlotAlreadyBookedException,
    StoreUnavailableException,
)
from educonnect.services.base import BaseService


class SampleService(BaseService):
    @BaseService.measure_operation("do_work")
    def do_work(self, fail: bool = False) -> str:
        if fail:
            raise SlotAlreadyBookedException("s1")
        return "done"


class TestInitialization:
    def test_logger_uses_class_name(self):
        """Logger is named after the concrete service class."""
        service = SampleService(Mock(spec=Session))

        assert service.logger.name == "SampleService"

    def test_clock_defaults_to_utc_now(self):
        service = SampleService(Mock(spec=Session))

        assert service.now().utcoffset().total_seconds() == 0

    def test_custom_clock(self):
        marker = object()
        service = SampleService(Mock(spec=Session), clock=lambda: marker)

        assert service.now() is marker


class TestTransactionManagement:
    def test_commit_on_success(self):
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)

        with service.transaction() as session:
            assert session is mock_db

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_domain_errors_roll_back_and_propagate(self):
        """Typed failures pass through untouched."""
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)

        with pytest.raises(SlotAlreadyBookedException):
            with service.transaction():
                raise SlotAlreadyBookedException("s1")

        mock_db.rollback.assert_called_once()
        mock_db.commit.assert_not_called()

    def test_commit_failure_is_not_retried(self):
        """A failing commit is attempted once and converted to ServiceException."""
        mock_db = Mock(spec=Session)
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("constraint"))
        service = SampleService(mock_db)

        with pytest.raises(ServiceException):
            with service.transaction():
                pass

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_called_once()

    def test_connection_loss_becomes_store_unavailable(self):
        mock_db = Mock(spec=Session)
        mock_db.commit.side_effect = OperationalError(
            "COMMIT", {}, Exception("server closed the connection unexpectedly")
        )
        service = SampleService(mock_db)

        with pytest.raises(StoreUnavailableException):
            with service.transaction():
                pass

    def test_wrapped_repository_error_becomes_service_exception(self):
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)

        with pytest.raises(ServiceException):
            with service.transaction():
                raise RepositoryException("Query failed")

        mock_db.rollback.assert_called_once()


class TestRead:
    def test_returns_value(self):
        service = SampleService(Mock(spec=Session))

        assert service.read("op", lambda: "slot") == "slot"

    @patch("educonnect.database.time.sleep")
    def test_rolls_back_before_retrying(self, mock_sleep):
        """An invalidated connection is released before the next attempt."""
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)
        wrapped = RepositoryException("Failed to retrieve AvailabilitySlot")
        wrapped.__cause__ = OperationalError(
            "SELECT", {}, Exception("server closed the connection unexpectedly")
        )
        func = Mock(side_effect=[wrapped, "slot"])

        assert service.read("get_slot", func) == "slot"
        mock_db.rollback.assert_called_once()

    def test_non_transient_repository_error_is_typed(self):
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)

        with pytest.raises(ServiceException) as exc_info:
            service.read("get_slot", Mock(side_effect=RepositoryException("Query failed")))

        assert not isinstance(exc_info.value, StoreUnavailableException)
        mock_db.rollback.assert_called_once()

    @patch("educonnect.database.time.sleep")
    def test_exhausted_retries_are_store_unavailable(self, mock_sleep):
        mock_db = Mock(spec=Session)
        service = SampleService(mock_db)
        func = Mock(
            side_effect=OperationalError("SELECT", {}, Exception("could not connect to server"))
        )

        with pytest.raises(StoreUnavailableException):
            service.read("get_slot", func)

        assert mock_db.rollback.call_count >= 1


class TestMeasureOperation:
    def setup_method(self):
        SampleService(Mock(spec=Session)).reset_metrics()

    def test_success_and_failure_are_counted(self):
        service = SampleService(Mock(spec=Session))

        assert service.do_work() == "done"
        with pytest.raises(SlotAlreadyBookedException):
            service.do_work(fail=True)

        metrics = service.get_metrics()["do_work"]
        assert metrics["count"] == 2
        assert metrics["success_count"] == 1
        assert metrics["failure_count"] == 1

    @patch("educonnect.services.base.prometheus_metrics")
    def test_prometheus_receives_error_type(self, mock_metrics):
        service = SampleService(Mock(spec=Session))

        with pytest.raises(SlotAlreadyBookedException):
            service.do_work(fail=True)

        kwargs = mock_metrics.record_service_operation.call_args.kwargs
        assert kwargs["service"] == "SampleService"
        assert kwargs["operation"] == "do_work"
        assert kwargs["status"] == "error"
        assert kwargs["error_type"] == "SlotAlreadyBookedException"

    @patch("educonnect.services.base.prometheus_metrics")
    def test_metrics_failure_does_not_break_operation(self, mock_metrics):
        mock_metrics.record_service_operation.side_effect = RuntimeError("registry gone")
        service = SampleService(Mock(spec=Session))

        assert service.do_work() == "done"
