from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import BigInteger, Integer, String, DateTime, CheckConstraint, event, func
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow

class Treasury(Base):
    """Singleton row (id=1) holding the materialized pool balances."""
    __tablename__ = 'treasury'
    SINGLETON_ID = 1
    POOL_REGULAR = 'REGULAR'
    POOL_UNTRACKED = 'UNTRACKED'
    ALL_POOLS = (POOL_REGULAR, POOL_UNTRACKED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    regular_cash: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    untracked_cash: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('regular_cash >= 0', name='ck_treasury_regular_non_negative'),
        CheckConstraint('untracked_cash >= 0', name='ck_treasury_untracked_non_negative'),
    )

    @classmethod
    def balance_column(cls, pool: str):
        return cls.regular_cash if pool == cls.POOL_REGULAR else cls.untracked_cash

    def balance(self, pool: str) -> int:
        return self.regular_cash if pool == self.POOL_REGULAR else self.untracked_cash


class TreasuryTransaction(Base):
    __tablename__ = 'treasury_transactions'
    TYPE_DEPOSIT = 'DEPOSIT'
    TYPE_WITHDRAWAL = 'WITHDRAWAL'
    ALL_TYPES = (TYPE_DEPOSIT, TYPE_WITHDRAWAL)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    pool: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_employee_id: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (CheckConstraint('amount > 0', name='ck_treasury_tx_amount_positive'),)


@event.listens_for(TreasuryTransaction, 'before_update')
def _reject_transaction_update(mapper, connection, target):
    raise RuntimeError('Treasury transactions are append-only')


@event.listens_for(TreasuryTransaction, 'before_delete')
def _reject_transaction_delete(mapper, connection, target):
    raise RuntimeError('Treasury transactions are append-only')
