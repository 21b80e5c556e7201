from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ficqueue.core.states import BatchKind, JobState


def utc_now() -> datetime:
    # Stored naive; SQLite drops tzinfo anyway.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class QueueJob(Base):
    __tablename__ = "parse_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    state: Mapped[JobState] = mapped_column(
        SAEnum(JobState, native_enum=False, values_callable=_enum_values, length=20),
        default=JobState.PENDING,
        nullable=False,
    )
    fast_path_candidate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    batch_kind: Mapped[Optional[BatchKind]] = mapped_column(
        SAEnum(BatchKind, native_enum=False, values_callable=_enum_values, length=20),
        nullable=True,
    )
    requesters: Mapped[str] = mapped_column(Text, default="", nullable=False)
    result: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stuck: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extra_tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    subscribers: Mapped[List["Subscriber"]] = relationship(
        back_populates="job",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Subscriber.id",
    )

    @property
    def requester_ids(self) -> List[str]:
        return [r for r in (self.requesters or "").split(",") if r]

    def __repr__(self) -> str:
        return f"<QueueJob {self.id} {self.state.value} {self.source_url}>"


class Subscriber(Base):
    __tablename__ = "parse_queue_subscribers"
    __table_args__ = (UniqueConstraint("job_id", "requester_id", name="uq_subscriber_job_requester"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("parse_queue.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    delivery_channel_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    job: Mapped[QueueJob] = relationship(back_populates="subscribers")


class ConfigEntry(Base):
    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class Work(Base):
    __tablename__ = "works"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )


class Series(Base):
    __tablename__ = "series"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    work_ids: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )
