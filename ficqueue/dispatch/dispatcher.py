"""
Queue poller.

Each tick runs its passes one after another: work the pending queue, then
route rejections, completions and plain failures, then reclaim stuck jobs.
Every pass works from a snapshot, oldest job first, and one job's failure
never stops the rest of the pass. A job is deleted only after its
notification went out.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ficqueue.config.settings import settings
from ficqueue.core.states import JobState
from ficqueue.dispatch.notifications import (
    CompletionNotice,
    FailureNotice,
    LoggingNotifier,
    MentionEveryone,
    MentionPreferences,
    Notifier,
    RejectionNotice,
    StuckNotice,
)
from ficqueue.dispatch.processor import JobProcessor, Outcome
from ficqueue.dispatch.rendering import (
    completion_content,
    render_series_summary,
    render_work_summary,
)
from ficqueue.store.config_store import ConfigStore
from ficqueue.store.jobs import JobStore
from ficqueue.store.models import QueueJob
from ficqueue.store.results import ResultStore

logger = logging.getLogger(__name__)


def stuck_message(url: str) -> str:
    return (
        f"Hey, just a heads up: your fic parsing job for {url} got stuck in the "
        f"queue and I had to drop it. Please submit it again if you still want it."
    )


class Dispatcher:
    def __init__(
        self,
        jobs: JobStore,
        config: ConfigStore,
        results: ResultStore,
        processor: JobProcessor,
        notifier: Optional[Notifier] = None,
        preferences: Optional[MentionPreferences] = None,
        poll_interval: float = settings.POLL_INTERVAL,
        stuck_threshold: float = settings.STUCK_JOB_THRESHOLD,
        jobs_per_tick: int = settings.JOBS_PER_TICK,
    ):
        self.jobs = jobs
        self.config = config
        self.results = results
        self.processor = processor
        self.notifier = notifier or LoggingNotifier()
        self.preferences = preferences or MentionEveryone()
        self.poll_interval = poll_interval
        self.stuck_threshold = stuck_threshold
        self.jobs_per_tick = jobs_per_tick

    async def tick(self):
        await self.process_pending()
        await self.rejection_pass()
        await self.completion_pass()
        await self.failure_pass()
        await self.reclamation_pass()

    async def run_forever(self):
        logger.info(f"Dispatcher polling every {self.poll_interval:.0f}s")
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.exception(f"Dispatcher tick failed: {e}")
            await asyncio.sleep(self.poll_interval)

    async def process_pending(self) -> int:
        """Claim and process up to ``jobs_per_tick`` pending jobs."""
        processed = 0
        for _ in range(self.jobs_per_tick):
            job = await self.jobs.claim_next()
            if job is None:
                break
            try:
                outcome = await self.processor.process(job)
            except Exception as e:
                logger.error(f"Job {job.id} failed: {e}")
                outcome = Outcome(JobState.ERROR, reason=str(e) or type(e).__name__)
            try:
                await self.jobs.finish(job.id, outcome.state, outcome.result, outcome.reason)
            except Exception as e:
                logger.exception(f"Could not record outcome for job {job.id}: {e}")
            processed += 1
        return processed

    async def _mentions(self, job: QueueJob) -> List[str]:
        mentions: List[str] = []
        for subscriber in await self.jobs.list_subscribers(job.id):
            rid = subscriber.requester_id
            if rid not in mentions and await self.preferences.wants_mention(rid):
                mentions.append(rid)
        return mentions

    async def _channel(self, key: str, pass_name: str, count: int) -> Optional[str]:
        channel_id = await self.config.get(key)
        if not channel_id:
            logger.warning(
                f"{pass_name}: '{key}' is not configured, leaving {count} job(s) for next tick"
            )
        return channel_id

    async def rejection_pass(self) -> int:
        jobs = await self.jobs.list_in_states(JobState.NOTP)
        if not jobs:
            return 0
        channel_id = await self._channel(settings.MODERATION_CHANNEL_KEY, "Rejection pass", len(jobs))
        if not channel_id:
            return 0

        handled = 0
        for job in jobs:
            try:
                await self._reject(job, channel_id)
                handled += 1
            except Exception as e:
                logger.exception(f"Rejection pass failed for job {job.id}: {e}")
        return handled

    async def _reject(self, job: QueueJob, channel_id: str):
        submitters = job.requester_ids
        mentions = list(submitters)
        for rid in await self._mentions(job):
            if rid not in mentions:
                mentions.append(rid)

        title = (job.result or {}).get("title")
        notice = RejectionNotice(
            job_id=job.id,
            channel_id=channel_id,
            url=job.source_url,
            reason=job.failure_reason,
            title=title,
            submitter_ids=submitters,
            mention_ids=mentions,
        )
        message_id = await self.notifier.post_rejection(notice)
        await self.notifier.open_thread(channel_id, message_id, f"Rejected: {title or job.source_url}"[:100])
        logger.info(f"Routed rejected job {job.id} to moderation")
        await self.jobs.delete(job.id)

    async def _render_result(self, job: QueueJob) -> Optional[Dict[str, Any]]:
        result = job.result or {}
        if job.state == JobState.SERIES_DONE:
            series_id = result.get("series_id")
            found = await self.results.get_series_with_works(series_id) if series_id else None
            if found is None:
                return None
            return render_series_summary(*found)

        work_id = result.get("work_id")
        work = await self.results.get_work(work_id) if work_id else None
        if work is None:
            return None
        return render_work_summary(work)

    async def completion_pass(self) -> int:
        jobs = await self.jobs.list_in_states(JobState.DONE, JobState.SERIES_DONE)
        if not jobs:
            return 0
        channel_id = await self._channel(settings.RESULTS_CHANNEL_KEY, "Completion pass", len(jobs))
        if not channel_id:
            return 0

        handled = 0
        for job in jobs:
            try:
                if await self._complete(job, channel_id):
                    handled += 1
            except Exception as e:
                logger.exception(f"Completion pass failed for job {job.id}: {e}")
        return handled

    async def _complete(self, job: QueueJob, channel_id: str) -> bool:
        summary = await self._render_result(job)
        if summary is None:
            logger.warning(
                f"Result for job {job.id} ({job.source_url}) not found; leaving it for inspection"
            )
            return False

        mentions = [] if job.fast_path_candidate else await self._mentions(job)
        await self.notifier.post_completion(
            CompletionNotice(
                job_id=job.id,
                channel_id=channel_id,
                url=job.source_url,
                content=completion_content(job.source_url),
                summary=summary,
                mention_ids=mentions,
            )
        )
        logger.info(f"Posted completion for job {job.id} ({len(mentions)} mentions)")
        await self.jobs.delete(job.id)
        return True

    async def failure_pass(self) -> int:
        jobs = await self.jobs.list_in_states(JobState.ERROR, stuck=False)
        if not jobs:
            return 0
        channel_id = await self._channel(settings.RESULTS_CHANNEL_KEY, "Failure pass", len(jobs))
        if not channel_id:
            return 0

        handled = 0
        for job in jobs:
            try:
                mentions = [] if job.fast_path_candidate else await self._mentions(job)
                await self.notifier.post_failure(
                    FailureNotice(
                        job_id=job.id,
                        channel_id=channel_id,
                        url=job.source_url,
                        reason=job.failure_reason,
                        mention_ids=mentions,
                    )
                )
                await self.jobs.delete(job.id)
                handled += 1
            except Exception as e:
                logger.exception(f"Failure pass failed for job {job.id}: {e}")
        return handled

    async def reclamation_pass(self) -> int:
        """
        Flag jobs idle past the staleness threshold, then message each of
        their subscribers directly and drop them.
        """
        try:
            await self.jobs.reclaim_stuck(self.stuck_threshold)
        except Exception as e:
            logger.exception(f"Stuck job sweep failed: {e}")

        handled = 0
        for job in await self.jobs.list_in_states(JobState.ERROR, stuck=True):
            try:
                for subscriber in await self.jobs.list_subscribers(job.id):
                    if not await self.preferences.wants_mention(subscriber.requester_id):
                        continue
                    try:
                        await self.notifier.send_direct(
                            StuckNotice(
                                job_id=job.id,
                                requester_id=subscriber.requester_id,
                                url=job.source_url,
                                content=stuck_message(job.source_url),
                            )
                        )
                    except Exception as e:
                        logger.warning(
                            f"Could not message {subscriber.requester_id} about job {job.id}: {e}"
                        )
                await self.jobs.delete(job.id)
                handled += 1
            except Exception as e:
                logger.exception(f"Reclamation failed for job {job.id}: {e}")
        return handled
