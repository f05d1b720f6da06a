from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, JSON, Text
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow

class OutboxEvent(Base):
    """Side effect recorded in the same transaction as the change that caused it.

    Delivered after commit by ``services.events.dispatch_pending``; undelivered rows
    (``dispatched_at`` NULL) are retried on the next dispatch until they are parked.
    """
    __tablename__ = 'outbox_events'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    # set once attempts reach OUTBOX_MAX_ATTEMPTS; parked rows are skipped by dispatch
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)
