"""
Persistent job queue and subscriber registry.

Every mutation after submission is made by the dispatcher, one job at a
time, so the only concurrency guard needed is the unique source URL.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ficqueue.core.errors import FicQueueError
from ficqueue.core.states import (
    ACTIVE_STATES,
    STUCK_MARKER,
    BatchKind,
    JobState,
    check_transition,
)
from ficqueue.store.models import QueueJob, Subscriber, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnqueueResult:
    job_id: int
    # created, processing, done, error or other
    status: str
    created: bool


def _join_status(state: JobState) -> str:
    if state in ACTIVE_STATES:
        return "processing"
    if state in (JobState.DONE, JobState.SERIES_DONE):
        return "done"
    if state == JobState.ERROR:
        return "error"
    return "other"


class JobStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def enqueue(
        self,
        url: str,
        requester_id: Union[str, Iterable[str]],
        fast_path: bool = False,
        notes: Optional[str] = None,
        extra_tags: Optional[str] = None,
        batch_kind: Optional[BatchKind] = None,
        channel_id: Optional[str] = None,
    ) -> EnqueueResult:
        """
        Queue ``url`` for parsing, or subscribe the requester(s) to the job
        already queued for it.
        """
        if isinstance(requester_id, str):
            requester_ids = [requester_id]
        else:
            requester_ids = list(requester_id)
        unique_ids = list(dict.fromkeys(requester_ids))

        async with self._sessions() as session:
            job = QueueJob(
                source_url=url,
                state=JobState.PENDING,
                fast_path_candidate=fast_path,
                batch_kind=batch_kind,
                requesters=",".join(requester_ids),
                notes=notes,
                extra_tags=extra_tags,
            )
            job.subscribers = [
                Subscriber(requester_id=r, delivery_channel_id=channel_id) for r in unique_ids
            ]
            session.add(job)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
            else:
                logger.info(f"Queued job {job.id} for {url} (fast path: {fast_path})")
                return EnqueueResult(job.id, "created", True)

        async with self._sessions() as session:
            existing = await session.scalar(select(QueueJob).where(QueueJob.source_url == url))
            if existing is None:
                raise FicQueueError(f"Job for {url} vanished while joining it")
            for rid in unique_ids:
                await self._add_subscriber(session, existing.id, rid, channel_id)
            await session.commit()
            logger.info(f"Joined existing job {existing.id} for {url} ({existing.state.value})")
            return EnqueueResult(existing.id, _join_status(existing.state), False)

    async def _add_subscriber(
        self,
        session: AsyncSession,
        job_id: int,
        requester_id: str,
        channel_id: Optional[str] = None,
    ) -> bool:
        found = await session.scalar(
            select(Subscriber.id).where(
                Subscriber.job_id == job_id, Subscriber.requester_id == requester_id
            )
        )
        if found is not None:
            return False
        session.add(
            Subscriber(job_id=job_id, requester_id=requester_id, delivery_channel_id=channel_id)
        )
        return True

    async def subscribe(
        self, job_id: int, requester_id: str, channel_id: Optional[str] = None
    ) -> bool:
        """Add a subscriber; returns False if already subscribed."""
        async with self._sessions() as session:
            added = await self._add_subscriber(session, job_id, requester_id, channel_id)
            await session.commit()
        if added:
            logger.info(f"Subscribed {requester_id} to job {job_id}")
        return added

    async def is_idle(self) -> bool:
        """True when nothing is pending or processing."""
        async with self._sessions() as session:
            active = await session.scalar(
                select(func.count(QueueJob.id)).where(QueueJob.state.in_(list(ACTIVE_STATES)))
            )
        return not active

    async def get(self, job_id: int) -> Optional[QueueJob]:
        async with self._sessions() as session:
            return await session.get(QueueJob, job_id)

    async def claim_next(self) -> Optional[QueueJob]:
        """Move the oldest pending job to processing and return it."""
        async with self._sessions() as session:
            job = await session.scalar(
                select(QueueJob)
                .where(QueueJob.state == JobState.PENDING)
                .order_by(QueueJob.submitted_at, QueueJob.id)
                .limit(1)
            )
            if job is None:
                return None
            check_transition(job.state, JobState.PROCESSING)
            job.state = JobState.PROCESSING
            await session.commit()
            logger.info(f"Claimed job {job.id} for {job.source_url}")
            return job

    async def finish(
        self,
        job_id: int,
        state: JobState,
        result: Optional[Any] = None,
        reason: Optional[str] = None,
    ) -> QueueJob:
        async with self._sessions() as session:
            job = await session.get(QueueJob, job_id)
            if job is None:
                raise FicQueueError(f"Job {job_id} not found")
            check_transition(job.state, state)
            job.state = state
            job.result = result
            job.failure_reason = reason
            await session.commit()
            logger.info(f"Job {job_id} -> {state.value}" + (f" ({reason})" if reason else ""))
            return job

    async def list_in_states(self, *states: JobState, stuck: Optional[bool] = None) -> List[QueueJob]:
        """Snapshot of jobs in ``states``, oldest submitted first."""
        query = select(QueueJob).where(QueueJob.state.in_(list(states)))
        if stuck is not None:
            query = query.where(QueueJob.stuck == stuck)
        query = query.order_by(QueueJob.submitted_at, QueueJob.id)
        async with self._sessions() as session:
            return list((await session.scalars(query)).all())

    async def list_subscribers(self, job_id: int) -> List[Subscriber]:
        async with self._sessions() as session:
            rows = await session.scalars(
                select(Subscriber).where(Subscriber.job_id == job_id).order_by(Subscriber.id)
            )
            return list(rows.all())

    async def reclaim_stuck(self, threshold: float, now: Optional[datetime] = None) -> List[int]:
        """
        Force pending/processing jobs untouched for ``threshold`` seconds to
        error, flagged as stuck.
        """
        cutoff = (now or utc_now()) - timedelta(seconds=threshold)
        async with self._sessions() as session:
            jobs = (
                await session.scalars(
                    select(QueueJob)
                    .where(QueueJob.state.in_(list(ACTIVE_STATES)), QueueJob.updated_at < cutoff)
                    .order_by(QueueJob.submitted_at, QueueJob.id)
                )
            ).all()
            for job in jobs:
                previous = job.state
                job.state = JobState.ERROR
                job.stuck = True
                job.failure_reason = (
                    f"Job {STUCK_MARKER} in '{previous.value}' for over "
                    f"{int(threshold)}s and was dropped"
                )
                logger.warning(f"Reclaimed stuck job {job.id} ({job.source_url})")
            await session.commit()
            return [job.id for job in jobs]

    async def delete(self, job_id: int) -> bool:
        """Delete a job together with its subscribers."""
        async with self._sessions() as session:
            job = await session.get(QueueJob, job_id)
            if job is None:
                return False
            await session.delete(job)
            await session.commit()
        logger.info(f"Deleted job {job_id}")
        return True
