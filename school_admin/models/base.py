"""
Base model configuration for SQLAlchemy ORM.

Provides the declarative base, the abstract model every table derives
from and reusable column helpers.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import DateTime, Enum, Integer, Numeric
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.sql import func

Base = declarative_base()


def enum_column(enum_cls: Type[PyEnum], name: str) -> Enum:
    """Portable enum column storing the member values"""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


def money_column(precision: int = 10) -> Numeric:
    return Numeric(precision=precision, scale=2, asdecimal=True)


class TimestampMixin:
    """Creation and update timestamps maintained by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class BaseModel(Base):
    """
    Abstract base model with an integer primary key.
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
