import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ficqueue.store.models import Series, Work
from ficqueue.validation.schema import NormalizedMetadata, NormalizedSeries

logger = logging.getLogger(__name__)


class ResultStore:
    """Parsed works and series, keyed by URL."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def save_work(
        self,
        metadata: NormalizedMetadata,
        url: Optional[str] = None,
        notes: Optional[str] = None,
        extra_tags: Optional[List[str]] = None,
    ) -> int:
        """Insert or refresh the work stored under its URL and return its id."""
        url = url or metadata.url
        payload = metadata.model_dump(mode="json")
        payload["notes"] = notes
        payload["extra_tags"] = list(extra_tags or [])
        async with self._sessions() as session:
            work = await session.scalar(select(Work).where(Work.url == url))
            if work is None:
                work = Work(url=url, title=metadata.title, payload=payload)
                session.add(work)
            else:
                work.title = metadata.title
                work.payload = payload
            await session.commit()
            logger.info(f"Saved work {work.id}: '{metadata.title}'")
            return work.id

    async def save_series(
        self, series: NormalizedSeries, work_ids: Sequence[int], url: Optional[str] = None
    ) -> int:
        url = url or series.url
        payload = series.model_dump(mode="json")
        async with self._sessions() as session:
            row = await session.scalar(select(Series).where(Series.url == url))
            if row is None:
                row = Series(url=url, title=series.title, payload=payload, work_ids=list(work_ids))
                session.add(row)
            else:
                row.title = series.title
                row.payload = payload
                row.work_ids = list(work_ids)
            await session.commit()
            logger.info(f"Saved series {row.id}: '{series.title}' ({len(work_ids)} works)")
            return row.id

    async def get_work(self, work_id: int) -> Optional[Work]:
        async with self._sessions() as session:
            return await session.get(Work, work_id)

    async def get_series_with_works(self, series_id: int) -> Optional[Tuple[Series, List[Work]]]:
        """The series row and its member works in series order."""
        async with self._sessions() as session:
            series = await session.get(Series, series_id)
            if series is None:
                return None
            ids = list(series.work_ids or [])
            if not ids:
                return series, []
            rows = (await session.scalars(select(Work).where(Work.id.in_(ids)))).all()
            by_id = {w.id: w for w in rows}
            return series, [by_id[i] for i in ids if i in by_id]
