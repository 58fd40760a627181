# educonnect/repositories/base_repository.py
"""
Base Repository Pattern for the EduConnect booking core.

Provides the foundation for the store classes with:
- Common read operations
- Type safety with generics
- Transaction support (managed by services)
- Rowcount-checked conditional statements

Repositories never commit. The coordinating service owns the transaction
so that a reservation or cancellation touches both stores atomically.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with the data access patterns shared by stores.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, *, refresh: bool = False) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        ``refresh`` bypasses the identity map so that rows changed by a
        conditional statement are reloaded.
        """
        try:
            return self.db.get(self.model, id, populate_existing=refresh)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}") from e

    def count(self, **kwargs: Any) -> int:
        """Count entities matching given criteria."""
        try:
            stmt = select(func.count()).select_from(self.model).filter_by(**kwargs)
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting records: {str(e)}")
            raise RepositoryException(f"Failed to count records: {str(e)}") from e

    # Protected helper methods for use by subclasses

    def _execute_query(self, stmt: Executable) -> List[T]:
        """Execute an ORM select with error handling; rows always reload from the store."""
        try:
            result = self.db.execute(stmt.execution_options(populate_existing=True))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}") from e

    def _execute_conditional(self, stmt: Executable, op_name: str) -> int:
        """
        Execute a conditional UPDATE/DELETE and return the affected row count.

        The WHERE clause carries the precondition; zero rows means it did
        not hold at write time.
        """
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Conditional write {op_name} failed: {str(e)}")
            raise RepositoryException(f"Conditional write {op_name} failed: {str(e)}") from e
