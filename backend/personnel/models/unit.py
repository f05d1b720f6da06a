from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, ForeignKey, UniqueConstraint
from personnel.models.authz import Base

class Unit(Base):
    __tablename__ = 'units'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    roles = relationship('UnitRole', back_populates='unit', cascade='all, delete-orphan')

class UnitRole(Base):
    """One external-platform role tag scoped to a unit (membership or rank inside that unit)."""
    __tablename__ = 'unit_roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey('units.id', ondelete='CASCADE'), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(64), nullable=False)
    external_role_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    is_base: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    unit = relationship('Unit', back_populates='roles')

    __table_args__ = (UniqueConstraint('unit_id', 'label', name='uq_unit_role_label'),)
