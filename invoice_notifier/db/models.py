from datetime import datetime
from typing import Optional, Any
from uuid import UUID, uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, JSON, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from invoice_notifier.db.session import Base
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.utils.timestamps import utcnow

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")

class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String, nullable=False)

    # Lifecycle
    state: Mapped[JobState] = mapped_column(String, default=JobState.WAITING, index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)

    # Scheduling
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    available_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    processed_on: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_on: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Number of times the job has been handed to a worker
    attempts: Mapped[int] = mapped_column(Integer, default=0)

    # Payload / outcome
    data: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    result: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType, nullable=True)
    failed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    lease: Mapped[Optional["JobLease"]] = relationship("JobLease", back_populates="job", uselist=False, cascade="all, delete-orphan")
    logs: Mapped[list["JobLog"]] = relationship("JobLog", back_populates="job", cascade="all, delete-orphan", order_by="JobLog.id")
    events: Mapped[list["JobEventLog"]] = relationship("JobEventLog", back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        # Poll query: state=waiting + available_at <= now
        Index("ix_jobs_poll", "state", "available_at"),
    )

class JobLease(Base):
    __tablename__ = "job_leases"

    job_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    lease_token: Mapped[UUID] = mapped_column(Uuid, default=uuid4)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    last_heartbeat_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    job: Mapped["Job"] = relationship("Job", back_populates="lease")

class JobLog(Base):
    __tablename__ = "job_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    job: Mapped["Job"] = relationship("Job", back_populates="logs")

class JobEventLog(Base):
    __tablename__ = "job_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), index=True)

    event_type: Mapped[JobEvent] = mapped_column(String, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Context (worker_id, error message, delivery number)
    meta: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)

    job: Mapped["Job"] = relationship("Job", back_populates="events")
