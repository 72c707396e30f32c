"""
SQLAlchemy models for orders and their step history.
Used by postgres_real when USE_POSTGRES_ORDERS and DATABASE_URL are set.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class OrderRecord(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    flow: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="in_progress", nullable=False, index=True)
    current_step: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    submission_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    completed_steps: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # list[str]
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    events: Mapped[list["OrderStepEventRecord"]] = relationship(
        "OrderStepEventRecord",
        back_populates="order",
        order_by="OrderStepEventRecord.created_at",
        cascade="all, delete-orphan",
    )


class OrderStepEventRecord(Base):
    __tablename__ = "order_step_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    step_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    field_errors: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    order: Mapped["OrderRecord"] = relationship("OrderRecord", back_populates="events")
