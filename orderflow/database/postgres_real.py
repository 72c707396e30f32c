"""
Real Postgres-backed order store for production when USE_POSTGRES_ORDERS and DATABASE_URL are set.
Implements the same interface as orderflow.database.postgres (in-memory stub).

ORM rows never leave this module: every method returns detached `Order` /
`OrderStepEvent` dataclasses built from copies of the row data.
"""

from __future__ import annotations

import copy
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from orderflow.database.models import Base, OrderRecord, OrderStepEventRecord
from orderflow.database.postgres import ORDER_STATUSES, Order, OrderStepEvent, utcnow
from orderflow.errors import ConcurrentUpdateError, OrderNotFoundError


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    if s.startswith("postgres://"):
        s = "postgresql+psycopg://" + s[len("postgres://"):]
    elif s.startswith("postgresql://"):
        s = "postgresql+psycopg://" + s[len("postgresql://"):]
    return s


def _to_order(row: OrderRecord) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        flow=row.flow,
        current_step=row.current_step,
        status=row.status,
        submission_data=copy.deepcopy(row.submission_data or {}),
        completed_steps=list(row.completed_steps or []),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_event(row: OrderStepEventRecord) -> OrderStepEvent:
    return OrderStepEvent(
        id=row.id,
        order_id=row.order_id,
        step_id=row.step_id,
        status=row.status,
        field_errors=dict(row.field_errors or {}),
        created_at=row.created_at,
    )


class PostgresDB:
    """
    Order store using SQLAlchemy. Use when DATABASE_URL is set and
    USE_POSTGRES_ORDERS=true.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        engine_kwargs: Dict[str, Any] = {"pool_pre_ping": True}
        if not connection_string.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10)
        self.engine = create_engine(connection_string, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        with self.engine.connect():
            return True

    @contextmanager
    def _session(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #
    def create_order(self, user_id: str, flow: str, first_step: str) -> Order:
        with self._session() as s:
            now = utcnow()
            row = OrderRecord(
                id=str(uuid4()),
                user_id=user_id,
                flow=flow,
                status="in_progress",
                current_step=first_step,
                submission_data={},
                completed_steps=[],
                version=0,
                created_at=now,
                updated_at=now,
            )
            s.add(row)
            s.flush()
            s.refresh(row)
            return _to_order(row)

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._session() as s:
            row = s.get(OrderRecord, order_id)
            return _to_order(row) if row else None

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        """Newest first."""
        with self._session() as s:
            stmt = select(OrderRecord)
            if user_id is not None:
                stmt = stmt.where(OrderRecord.user_id == user_id)
            if status is not None:
                stmt = stmt.where(OrderRecord.status == status)
            stmt = stmt.order_by(OrderRecord.created_at.desc())
            return [_to_order(r) for r in s.execute(stmt).scalars().all()]

    def save_order(self, order: Order) -> Order:
        if order.status not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status: {order.status}")
        with self._session() as s:
            # Row lock so the version check and the write happen together.
            row = s.get(OrderRecord, order.id, with_for_update=True)
            if row is None:
                raise OrderNotFoundError(order.id)
            if row.version != order.version:
                raise ConcurrentUpdateError(order.id, order.version, row.version)
            row.status = order.status
            row.current_step = order.current_step
            # New containers so SQLAlchemy sees the JSON columns as changed.
            row.submission_data = copy.deepcopy(order.submission_data)
            row.completed_steps = list(order.completed_steps)
            row.version = order.version + 1
            row.updated_at = utcnow()
            s.flush()
            s.refresh(row)
            return _to_order(row)

    # ------------------------------------------------------------------ #
    # Step history
    # ------------------------------------------------------------------ #
    def add_step_event(
        self,
        order_id: str,
        step_id: str,
        status: str,
        field_errors: Optional[Dict[str, str]] = None,
    ) -> OrderStepEvent:
        with self._session() as s:
            row = OrderStepEventRecord(
                id=str(uuid4()),
                order_id=order_id,
                step_id=step_id,
                status=status,
                field_errors=dict(field_errors or {}),
                created_at=utcnow(),
            )
            s.add(row)
            s.flush()
            s.refresh(row)
            return _to_event(row)

    def list_step_events(self, order_id: str) -> List[OrderStepEvent]:
        with self._session() as s:
            stmt = (
                select(OrderStepEventRecord)
                .where(OrderStepEventRecord.order_id == order_id)
                .order_by(OrderStepEventRecord.created_at.asc())
            )
            return [_to_event(r) for r in s.execute(stmt).scalars().all()]
