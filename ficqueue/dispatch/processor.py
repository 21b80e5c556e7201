"""
Drives one claimed job through fetch, extraction, validation and the
acceptance policy, producing the terminal state to record.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ficqueue.browser.fetch import fetch_html
from ficqueue.browser.pool import BrowserPool
from ficqueue.config.settings import settings
from ficqueue.core.errors import ExtractionError
from ficqueue.core.states import BatchKind, JobState
from ficqueue.extraction.extractor import extract
from ficqueue.extraction.series import is_series_url, parse_series
from ficqueue.store.models import QueueJob
from ficqueue.store.results import ResultStore
from ficqueue.validation.policy import check_acceptance
from ficqueue.validation.schema import NormalizedMetadata, validate, validate_series

logger = logging.getLogger(__name__)

Fetcher = Callable[[BrowserPool, str], Awaitable[str]]


@dataclass
class Outcome:
    state: JobState
    result: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None


def split_tags(extra_tags: Optional[str]) -> List[str]:
    if not extra_tags:
        return []
    return [tag.strip() for tag in extra_tags.split(",") if tag.strip()]


class JobProcessor:
    def __init__(
        self,
        pool: BrowserPool,
        results: ResultStore,
        fetcher: Fetcher = fetch_html,
        series_max_works: int = settings.SERIES_MAX_WORKS,
        required_fandom: str = settings.REQUIRED_FANDOM,
        canonical_pairing: str = settings.CANONICAL_PAIRING,
    ):
        self.pool = pool
        self.results = results
        self.fetcher = fetcher
        self.series_max_works = series_max_works
        self.required_fandom = required_fandom
        self.canonical_pairing = canonical_pairing

    async def process(self, job: QueueJob) -> Outcome:
        """
        Exceptions propagate; the dispatcher records them as the job's error.
        """
        if job.batch_kind == BatchKind.COLLECTION or is_series_url(job.source_url):
            return await self._process_series(job)
        return await self._process_work(job)

    async def _parse_work(self, url: str) -> NormalizedMetadata:
        markup = await self.fetcher(self.pool, url)
        extracted = extract(markup, url)
        return validate(extracted.to_record())

    def _policy_outcome(self, metadata: NormalizedMetadata) -> Optional[Outcome]:
        decision = check_acceptance(
            metadata.fandom_tags,
            metadata.relationship_tags,
            required_fandom=self.required_fandom,
            canonical_pairing=self.canonical_pairing,
        )
        if decision.accepted:
            return None
        logger.info(f"Rejected '{metadata.title}': {decision.reason}")
        return Outcome(
            JobState.NOTP,
            result={"title": metadata.title, "url": metadata.url},
            reason=decision.reason,
        )

    async def _process_work(self, job: QueueJob) -> Outcome:
        metadata = await self._parse_work(job.source_url)
        rejected = self._policy_outcome(metadata)
        if rejected is not None:
            return rejected

        work_id = await self.results.save_work(
            metadata,
            url=job.source_url,
            notes=job.notes,
            extra_tags=split_tags(job.extra_tags),
        )
        return Outcome(JobState.DONE, result={"work_id": work_id, "title": metadata.title})

    async def _process_series(self, job: QueueJob) -> Outcome:
        markup = await self.fetcher(self.pool, job.source_url)
        parsed = parse_series(markup, job.source_url)
        series = validate_series(dataclasses.asdict(parsed))

        members = [w for w in parsed.works if w.url][: self.series_max_works]
        if len(parsed.works) > self.series_max_works:
            logger.info(
                f"Series '{series.title}' has {len(parsed.works)} works; "
                f"parsing the first {self.series_max_works}"
            )

        work_ids: List[int] = []
        primary_checked = False
        for member in members:
            try:
                metadata = await self._parse_work(member.url)
            except Exception as e:
                logger.warning(f"Skipping series work {member.url}: {e}")
                continue

            if not primary_checked:
                primary_checked = True
                rejected = self._policy_outcome(metadata)
                if rejected is not None:
                    rejected.result = {"title": series.title, "url": job.source_url}
                    return rejected

            work_ids.append(
                await self.results.save_work(
                    metadata,
                    url=member.url,
                    notes=job.notes,
                    extra_tags=split_tags(job.extra_tags),
                )
            )

        if not work_ids:
            raise ExtractionError(f"No works in series {job.source_url} could be parsed")

        series_id = await self.results.save_series(series, work_ids, url=job.source_url)
        return Outcome(
            JobState.SERIES_DONE,
            result={"series_id": series_id, "work_ids": work_ids, "title": series.title},
        )
