from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, JSON, Text, func
from personnel.models.authz import Base
from personnel.utils.timeutil import utcnow

class Application(Base):
    __tablename__ = 'applications'
    # Status constants (pipeline order)
    STATUS_CRITERIA = 'CRITERIA'
    STATUS_QUESTIONS = 'QUESTIONS'
    STATUS_ONBOARDING = 'ONBOARDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_REJECTED = 'REJECTED'
    ALL_STATUSES = (STATUS_CRITERIA, STATUS_QUESTIONS, STATUS_ONBOARDING, STATUS_COMPLETED, STATUS_REJECTED)
    OPEN_STATUSES = (STATUS_CRITERIA, STATUS_QUESTIONS, STATUS_ONBOARDING)
    STEPS = {STATUS_CRITERIA: 1, STATUS_QUESTIONS: 2, STATUS_ONBOARDING: 3, STATUS_COMPLETED: 4}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    applicant_name: Mapped[str] = mapped_column(String(128), nullable=False)
    discord_id: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    discord_username: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_CRITERIA, index=True)
    # Status the application was rejected from; keeps the derived step meaningful.
    rejected_from: Mapped[Optional[str]] = mapped_column(String(16))
    criteria_answers: Mapped[dict] = mapped_column(JSON, default=dict)
    answered_question_ids: Mapped[list] = mapped_column(JSON, default=list)
    onboarding_completed_ids: Mapped[list] = mapped_column(JSON, default=list)
    onboarding_bonus_emitted: Mapped[bool] = mapped_column(Boolean, default=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    id_card_path: Mapped[Optional[str]] = mapped_column(String(255))
    employee_id: Mapped[Optional[int]] = mapped_column(ForeignKey('employees.id'))
    created_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    processed_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def step(self) -> int:
        if self.status == self.STATUS_REJECTED:
            return self.STEPS.get(self.rejected_from or self.STATUS_CRITERIA, 1)
        return self.STEPS[self.status]

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

# Status flow: CRITERIA -> QUESTIONS -> ONBOARDING -> COMPLETED; REJECTED from any open status.


class ApplicationCriterion(Base):
    __tablename__ = 'application_criteria'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ApplicationQuestion(Base):
    __tablename__ = 'application_questions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class OnboardingItem(Base):
    __tablename__ = 'onboarding_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class BlacklistEntry(Base):
    __tablename__ = 'blacklist'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    discord_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(128))
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    added_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
