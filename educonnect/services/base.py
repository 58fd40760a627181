# educonnect/services/base.py
"""
Base Service Pattern for the EduConnect booking core.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error handling
- Performance monitoring
"""

from contextlib import contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, utc_now
from ..core.config import settings
from ..core.enums import ParticipantRole
from ..core.exceptions import (
    NotAuthorizedException,
    RepositoryException,
    ServiceException,
    StoreUnavailableException,
    ValidationException,
    is_transient_store_error,
)
from ..database import with_db_retry
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.participant import Caller

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    # Class-level metrics storage
    _class_metrics: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            db: Database session (one per request / unit of work)
            clock: Source of "now"; defaults to the UTC wall clock
        """
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically

        The commit is attempted exactly once. Domain exceptions raised inside
        the block roll back and propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise _to_service_exception(e) from e
        except Exception as e:
            self.logger.debug(f"Transaction rolled back: {type(e).__name__}")
            self.db.rollback()
            raise

    @staticmethod
    def require_caller(caller: Caller, role: ParticipantRole) -> str:
        """Return the caller's participant id if it acts in ``role``."""
        if not isinstance(caller, Caller):
            raise ValidationException(
                "caller is required", code="VALIDATION_ERROR", details={"field": "caller"}
            )
        if caller.role != role:
            raise NotAuthorizedException(
                f"This action requires the {role.value} role",
                details={"participant_id": caller.participant_id, "role": caller.role.value},
            )
        return caller.participant_id

    def read(self, op_name: str, func: Callable[[], T]) -> T:
        """
        Run a read-only store call, retrying transient failures.

        The session is rolled back before every retry and after a final
        failure, which surfaces as StoreUnavailableException or
        ServiceException.
        """
        try:
            return with_db_retry(op_name, func, session=self.db)
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Read {op_name} failed: {str(e)}")
            self.db.rollback()
            raise _to_service_exception(e) from e
        except StoreUnavailableException:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("reserve")
            def reserve(self, ...):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time
                    self._record_metric(operation_name, elapsed, success)

                    if elapsed > settings.slow_operation_threshold_seconds:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    try:
                        prometheus_metrics.record_service_operation(
                            service=self.__class__.__name__,
                            operation=operation_name,
                            duration=elapsed,
                            status="success" if success else "error",
                            error_type=error_type,
                        )
                    except Exception as metrics_error:
                        self.logger.debug(f"Metrics recording failed: {metrics_error}")

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        class_name = self.__class__.__name__
        metrics = BaseService._class_metrics.setdefault(class_name, {})
        metric_data = metrics.setdefault(
            operation,
            {
                "count": 0,
                "total_time": 0.0,
                "success_count": 0,
                "failure_count": 0,
            },
        )
        metric_data["count"] += 1
        metric_data["total_time"] += elapsed
        if success:
            metric_data["success_count"] += 1
        else:
            metric_data["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get performance metrics for this service.

        Returns:
            Dictionary with metrics for each measured operation
        """
        result = {}
        for operation, data in BaseService._class_metrics.get(self.__class__.__name__, {}).items():
            count = data["count"]
            if count == 0:
                continue
            result[operation] = {
                "count": count,
                "avg_time": data["total_time"] / count,
                "success_count": data["success_count"],
                "failure_count": data["failure_count"],
            }
        return result

    def reset_metrics(self) -> None:
        """Reset all metrics for this service."""
        BaseService._class_metrics.pop(self.__class__.__name__, None)


def _is_connection_failure(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return is_transient_store_error(exc)


def _to_service_exception(exc: Exception) -> ServiceException:
    """Type a store failure; repository errors are judged by their cause."""
    cause = exc.__cause__ if isinstance(exc, RepositoryException) else exc
    if isinstance(cause, SQLAlchemyError) and _is_connection_failure(cause):
        return StoreUnavailableException(details={"error": type(cause).__name__})
    return ServiceException(f"Database operation failed: {str(exc)}")
