# backend/app/repositories/base_repository.py
"""
Base Repository Pattern for the slot recovery backend.

Provides the foundation for all repository classes with:
- Common read/create operations
- Tagged results for inserts that may race a concurrent writer
- Conditional (compare-and-swap) status transitions
- Transaction support (managed by services)

Repositories never commit; the calling service or job decides when a unit
of work ends.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session
import ulid

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class InsertOutcome(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class InsertResult(Generic[T]):
    """Result of an insert guarded by a uniqueness constraint."""

    outcome: InsertOutcome
    entity: Optional[T] = None

    @property
    def created(self) -> bool:
        return self.outcome is InsertOutcome.CREATED


def get_dialect_name(session: Session, default: str = "postgresql") -> str:
    """Return the SQLAlchemy dialect name of the session's bind."""
    try:
        bind = session.get_bind()
    except SQLAlchemyError:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

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

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Context manager that commits/rolls back the underlying session."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("Repository transaction failed: %s", exc)
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error(
                "Integrity error creating %s: %s", self.model.__name__, exc, exc_info=True
            )
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def insert_unique(self, **values: Any) -> InsertResult[T]:
        """
        Insert a row, reporting a uniqueness conflict as ALREADY_EXISTS.

        Any unique constraint or unique index on the table counts as a
        conflict, including partial indexes.
        """
        values.setdefault("id", str(ulid.ULID()))
        dialect = self.dialect_name
        try:
            if dialect == "postgresql":
                stmt = pg_insert(self.model).values(**values).on_conflict_do_nothing()
                created = self.db.execute(stmt).rowcount == 1
            elif dialect == "sqlite":
                stmt = sqlite_insert(self.model).values(**values).on_conflict_do_nothing()
                created = self.db.execute(stmt).rowcount == 1
            else:
                # Generic fallback: a savepoint keeps the outer transaction usable
                try:
                    with self.db.begin_nested():
                        self.db.execute(insert(self.model).values(**values))
                    created = True
                except IntegrityError:
                    created = False
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to insert {self.model.__name__}: {str(e)}")

        if not created:
            return InsertResult(InsertOutcome.ALREADY_EXISTS)
        return InsertResult(InsertOutcome.CREATED, self.get_by_id(values["id"]))

    def transition_status(
        self, id: str, expected_status: str, new_status: str, **values: Any
    ) -> bool:
        """
        Compare-and-swap on ``status``.

        Returns False when the row was not in ``expected_status``; that means a
        concurrent actor already moved it on and is not an error.
        """
        try:
            stmt = (
                update(self.model)
                .where(self.model.id == id, self.model.status == expected_status)
                .values(status=new_status, **values)
            )
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")
        return result.rowcount == 1

    def flush(self) -> None:
        """Flush pending ORM changes."""
        self.db.flush()

    def refresh(self, instance: T) -> None:
        """Refresh an instance from the database."""
        self.db.refresh(instance)

    def find_by(self, **kwargs) -> List[T]:
        """Find entities by exact-match criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find records: {str(e)}")

    def find_one_by(self, **kwargs) -> Optional[T]:
        """Find a single entity by exact-match criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding one by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find record: {str(e)}")

    def count(self, **kwargs) -> int:
        """Count entities matching given criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting records: {str(e)}")
            raise RepositoryException(f"Failed to count records: {str(e)}")

    # Protected helper methods for use by subclasses

    def _build_query(self) -> Query:
        """Get base query for the model."""
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        """Execute query with error handling."""
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")
