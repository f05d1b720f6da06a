from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, Text, func
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow, as_utc

class Sanction(Base):
    __tablename__ = 'sanctions'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_REVOKED = 'REVOKED'
    # Read-side only; never stored.
    STATUS_EXPIRED = 'EXPIRED'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_REVOKED)
    COMPONENTS = ('warning', 'fine', 'measure')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    has_warning: Mapped[bool] = mapped_column(Boolean, default=False)
    warning_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    has_fine: Mapped[bool] = mapped_column(Boolean, default=False)
    fine_amount: Mapped[Optional[int]] = mapped_column(Integer)
    fine_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    has_measure: Mapped[bool] = mapped_column(Boolean, default=False)
    measure: Mapped[Optional[str]] = mapped_column(Text)
    measure_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    issued_by_id: Mapped[int] = mapped_column(Integer, nullable=False)
    revoked_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship('Employee')

    def has_component(self, component: str) -> bool:
        return bool(getattr(self, f'has_{component}'))

    @property
    def present_components(self):
        return [c for c in self.COMPONENTS if self.has_component(c)]

    @property
    def all_components_completed(self) -> bool:
        return all(getattr(self, f'{c}_completed') for c in self.present_components)

    def effective_status(self, now: Optional[datetime] = None) -> str:
        if self.status == self.STATUS_ACTIVE and self.expires_at is not None:
            if as_utc(self.expires_at) <= (now or utcnow()):
                return self.STATUS_EXPIRED
        return self.status

# Status flow: ACTIVE -> REVOKED (terminal). EXPIRED is derived from expires_at.
