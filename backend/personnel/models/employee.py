from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, ForeignKey, func
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow

class Employee(Base):
    __tablename__ = 'employees'
    # Status constants
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_INACTIVE = 'INACTIVE'
    STATUS_SUSPENDED = 'SUSPENDED'
    STATUS_ON_LEAVE = 'ON_LEAVE'
    STATUS_TERMINATED = 'TERMINATED'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_SUSPENDED, STATUS_ON_LEAVE, STATUS_TERMINATED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, nullable=False)
    rank: Mapped[str] = mapped_column(String(64), nullable=False)
    rank_level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # Globally unique; NULL once released (termination) or never assigned.
    badge_number: Mapped[Optional[str]] = mapped_column(String(16), unique=True, nullable=True)
    department: Mapped[str] = mapped_column(String(255), nullable=False, default='Patrol')
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    hired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship('User', back_populates='employee')

    @property
    def display_name(self) -> str:
        from personnel.services.ranks import format_display_name
        return format_display_name(self.badge_number, self.user.display_name if self.user else '')

# Status flow: ACTIVE <-> INACTIVE | SUSPENDED | ON_LEAVE; any non-terminated -> TERMINATED (terminal).


class RankHistory(Base):
    """Append-only record of every rank level change."""
    __tablename__ = 'rank_history'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    old_level: Mapped[int] = mapped_column(Integer, nullable=False)
    new_level: Mapped[int] = mapped_column(Integer, nullable=False)
    old_badge: Mapped[Optional[str]] = mapped_column(String(16))
    new_badge: Mapped[Optional[str]] = mapped_column(String(16))
    reason: Mapped[Optional[str]] = mapped_column(String(255))
    actor_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
