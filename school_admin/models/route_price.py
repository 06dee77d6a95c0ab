"""
Route Price Model

Monthly transport fee keyed by (school, route, class, category head). The
category head is mandatory: there is no "applies to all" wildcard.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_admin.models.base import BaseModel, TimestampMixin, enum_column, money_column
from school_admin.models.enums import RecordStatus

if TYPE_CHECKING:
    from school_admin.models.school import CategoryHead, Route, SchoolClass


class RoutePrice(TimestampMixin, BaseModel):
    __tablename__ = "route_prices"
    __table_args__ = (
        UniqueConstraint(
            "school_id", "route_id", "class_id", "category_head_id",
            name="uq_route_prices_school_route_class_category",
        ),
        CheckConstraint("amount >= 0", name="ck_route_prices_amount"),
    )

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("school_classes.id", ondelete="CASCADE"), nullable=False)
    category_head_id: Mapped[int] = mapped_column(ForeignKey("category_heads.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus, "record_status"), nullable=False, default=RecordStatus.ACTIVE
    )

    route: Mapped["Route"] = relationship()
    school_class: Mapped["SchoolClass"] = relationship()
    category_head: Mapped["CategoryHead"] = relationship()
