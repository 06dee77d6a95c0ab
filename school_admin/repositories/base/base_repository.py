"""
Base repository with standardized CRUD operations and error handling.

Repositories only flush: committing belongs to the service that owns the
unit of work, so several repository calls (and per-student savepoints)
can share one transaction.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from school_admin.core.exceptions import (
    EntityNotFoundError,
    RepositoryError,
    handle_database_exception,
)
from school_admin.core.logging import get_logger
from school_admin.models.base import BaseModel

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one mapped model.

    Provides CRUD operations, criteria queries, pagination and the
    translation of driver errors into application exceptions.
    """

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    # ==================== Transaction Management ====================

    @contextmanager
    def savepoint(self):
        """
        Nested transaction: work inside is undone on error while the
        enclosing transaction survives.

        Usage:
            with repository.savepoint():
                repository.create(entity)
        """
        with self.db.begin_nested():
            yield self.db

    def flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError as e:
            raise handle_database_exception(e) from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Flush failed: {str(e)}") from e

    # ==================== Create Operations ====================

    def create(self, entity: ModelType) -> ModelType:
        """
        Add a new entity and flush it so generated keys are available.

        Raises:
            DuplicateEntryError / CheckConstraintError / ForeignKeyViolationError:
                When the database rejects the row
        """
        self.db.add(entity)
        self.flush()
        logger.debug(f"Created {self.model.__name__} with id: {entity.id}")
        return entity

    def create_from_dict(self, data: Dict[str, Any]) -> ModelType:
        return self.create(self.model(**data))

    def create_many(self, entities: Sequence[ModelType]) -> List[ModelType]:
        self.db.add_all(entities)
        self.flush()
        return list(entities)

    # ==================== Read Operations ====================

    def find_by_id(self, entity_id: Any) -> Optional[ModelType]:
        """Get entity by primary key, or None."""
        if entity_id is None:
            return None
        return self.db.get(self.model, entity_id)

    def get_by_id(self, entity_id: Any) -> ModelType:
        """
        Get entity by primary key.

        Raises:
            EntityNotFoundError: If no row has this key
        """
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise EntityNotFoundError(self._resource_name(), entity_id)
        return entity

    def find_in_school(self, school_id: int, entity_id: Any) -> Optional[ModelType]:
        """Get a school-scoped entity, hiding rows that belong to other schools."""
        entity = self.find_by_id(entity_id)
        if entity is None or getattr(entity, "school_id", school_id) != school_id:
            return None
        return entity

    def find_one_by(self, **criteria: Any) -> Optional[ModelType]:
        stmt = self._apply_criteria(select(self.model), criteria).limit(1)
        return self.db.scalars(stmt).first()

    def find_by_criteria(
        self,
        criteria: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Any]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ModelType]:
        """
        Find entities matching equality criteria.

        List or tuple values match with IN; None values are skipped.
        """
        stmt = self._apply_criteria(select(self.model), criteria or {})
        stmt = stmt.order_by(*(order_by if order_by is not None else [self.model.id]))
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def count_by_criteria(self, criteria: Optional[Dict[str, Any]] = None) -> int:
        stmt = self._apply_criteria(select(func.count()).select_from(self.model), criteria or {})
        return self.db.scalar(stmt) or 0

    def exists(self, **criteria: Any) -> bool:
        return self.find_one_by(**criteria) is not None

    def paginate(
        self,
        stmt: Select,
        offset: int,
        limit: int,
    ) -> Tuple[List[ModelType], int]:
        """Run a select with offset/limit and return (rows, total)."""
        total = self.db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        rows = list(self.db.scalars(stmt.offset(offset).limit(limit)))
        return rows, total

    # ==================== Update / Delete ====================

    def update(self, entity: ModelType, data: Dict[str, Any]) -> ModelType:
        """Apply a partial update (unknown keys are rejected)."""
        for key, value in data.items():
            if not hasattr(self.model, key):
                raise RepositoryError(f"{self.model.__name__} has no attribute '{key}'")
            setattr(entity, key, value)
        self.flush()
        return entity

    def delete(self, entity: ModelType) -> None:
        self.db.delete(entity)
        self.flush()

    # ==================== Helpers ====================

    def _apply_criteria(self, stmt, criteria: Dict[str, Any]):
        for key, value in criteria.items():
            if value is None:
                continue
            column = getattr(self.model, key)
            if isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def _resource_name(self) -> str:
        return self.model.__name__
