from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, Index, text, func
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow

class AcademyModule(Base):
    __tablename__ = 'academy_modules'
    CATEGORY_JUNIOR_OFFICER = 'JUNIOR_OFFICER'
    CATEGORY_OFFICER = 'OFFICER'
    ALL_CATEGORIES = (CATEGORY_JUNIOR_OFFICER, CATEGORY_OFFICER)
    # Category -> rank the completed category qualifies for
    TARGET_RANKS = {
        CATEGORY_JUNIOR_OFFICER: 'Junior Officer',
        CATEGORY_OFFICER: 'Officer',
    }
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AcademyProgress(Base):
    __tablename__ = 'academy_progress'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey('academy_modules.id', ondelete='CASCADE'), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    module = relationship('AcademyModule')

    __table_args__ = (UniqueConstraint('employee_id', 'module_id', name='uq_academy_progress'),)


class UprankRequest(Base):
    __tablename__ = 'uprank_requests'
    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    current_rank: Mapped[str] = mapped_column(String(64), nullable=False)
    target_rank: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    achievements: Mapped[Optional[str]] = mapped_column(Text)
    is_academy_request: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    requested_by_id: Mapped[int] = mapped_column(Integer, nullable=False)
    processed_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # At most one PENDING request per employee.
        Index(
            'uq_uprank_pending_employee', 'employee_id', unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
    )

# Status flow: PENDING -> APPROVED | REJECTED (both terminal).


class UprankLock(Base):
    """Blocks new uprank requests for an employee until ``locked_until``."""
    __tablename__ = 'uprank_locks'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    team: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    locked_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
