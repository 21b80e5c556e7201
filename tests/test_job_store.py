"""Job store tests against an in-memory SQLite database."""

from datetime import timedelta

import pytest
from sqlalchemy import delete, select

from ficqueue.core.errors import InvalidTransitionError
from ficqueue.core.states import STUCK_MARKER, BatchKind, JobState
from ficqueue.store.models import QueueJob, Subscriber, utc_now

URL = "https://archiveofourown.org/works/1"
OTHER_URL = "https://archiveofourown.org/works/2"


async def test_enqueue_creates_job_and_subscriber(job_store):
    result = await job_store.enqueue(URL, "u1", notes="great fic", extra_tags="Road Trips, Angst")

    assert result.created
    assert result.status == "created"

    job = await job_store.get(result.job_id)
    assert job.state == JobState.PENDING
    assert job.requester_ids == ["u1"]
    assert job.notes == "great fic"
    assert job.fast_path_candidate is False
    assert [s.requester_id for s in await job_store.list_subscribers(job.id)] == ["u1"]


async def test_second_submission_joins_existing_job(job_store):
    first = await job_store.enqueue(URL, "u1")
    second = await job_store.enqueue(URL, "u2")

    assert not second.created
    assert second.job_id == first.job_id
    assert second.status == "processing"

    subscribers = await job_store.list_subscribers(first.job_id)
    assert [s.requester_id for s in subscribers] == ["u1", "u2"]
    assert len(await job_store.list_in_states(*JobState)) == 1


async def test_joining_does_not_duplicate_subscribers(job_store):
    first = await job_store.enqueue(URL, "u1")
    await job_store.enqueue(URL, "u1")

    assert await job_store.subscribe(first.job_id, "u1") is False
    assert await job_store.subscribe(first.job_id, "u2") is True
    assert len(await job_store.list_subscribers(first.job_id)) == 2


async def test_join_reports_terminal_state(job_store):
    first = await job_store.enqueue(URL, "u1")
    await job_store.claim_next()
    await job_store.finish(first.job_id, JobState.DONE, result={"work_id": 1})

    assert (await job_store.enqueue(URL, "u2")).status == "done"


async def test_collection_submission_keeps_all_requesters(job_store):
    result = await job_store.enqueue(
        "https://archiveofourown.org/series/5", ["u1", "u2"], batch_kind=BatchKind.COLLECTION
    )
    job = await job_store.get(result.job_id)

    assert job.batch_kind == BatchKind.COLLECTION
    assert job.requester_ids == ["u1", "u2"]
    assert len(await job_store.list_subscribers(job.id)) == 2


async def test_is_idle(job_store):
    assert await job_store.is_idle()
    await job_store.enqueue(URL, "u1")
    assert not await job_store.is_idle()


async def test_claim_next_takes_oldest_pending(job_store):
    first = await job_store.enqueue(URL, "u1")
    second = await job_store.enqueue(OTHER_URL, "u1")

    claimed = await job_store.claim_next()
    assert claimed.id == first.job_id
    assert claimed.state == JobState.PROCESSING

    assert (await job_store.claim_next()).id == second.job_id
    assert await job_store.claim_next() is None


async def test_finish_records_result(job_store):
    created = await job_store.enqueue(URL, "u1")
    await job_store.claim_next()
    job = await job_store.finish(created.job_id, JobState.NOTP, reason="Detected Multishipping: x")

    assert job.state == JobState.NOTP
    assert job.failure_reason == "Detected Multishipping: x"


async def test_finish_rejects_invalid_transition(job_store):
    created = await job_store.enqueue(URL, "u1")
    with pytest.raises(InvalidTransitionError):
        await job_store.finish(created.job_id, JobState.DONE)


async def test_terminal_job_cannot_be_reset(job_store):
    created = await job_store.enqueue(URL, "u1")
    await job_store.claim_next()
    await job_store.finish(created.job_id, JobState.ERROR, reason="boom")
    with pytest.raises(InvalidTransitionError):
        await job_store.finish(created.job_id, JobState.PROCESSING)


async def test_reclaim_stuck_forces_stale_jobs_to_error(job_store):
    done = await job_store.enqueue("https://archiveofourown.org/works/3", "u3")
    await job_store.claim_next()
    await job_store.finish(done.job_id, JobState.DONE, result={"work_id": 1})
    processing = await job_store.enqueue(OTHER_URL, "u2")
    await job_store.claim_next()
    pending = await job_store.enqueue(URL, "u1")

    later = utc_now() + timedelta(hours=1)
    reclaimed = await job_store.reclaim_stuck(900, now=later)

    assert reclaimed == [processing.job_id, pending.job_id]
    for job_id in reclaimed:
        job = await job_store.get(job_id)
        assert job.state == JobState.ERROR
        assert job.stuck is True
        assert STUCK_MARKER in job.failure_reason
    assert (await job_store.get(done.job_id)).state == JobState.DONE


async def test_reclaim_ignores_fresh_jobs(job_store):
    await job_store.enqueue(URL, "u1")
    assert await job_store.reclaim_stuck(900) == []


async def test_list_in_states_filters_stuck(job_store):
    stale = await job_store.enqueue(URL, "u1")
    failed = await job_store.enqueue(OTHER_URL, "u1")
    await job_store.claim_next()
    await job_store.claim_next()
    await job_store.finish(failed.job_id, JobState.ERROR, reason="404")
    await job_store.reclaim_stuck(0, now=utc_now() + timedelta(hours=1))

    assert [j.id for j in await job_store.list_in_states(JobState.ERROR, stuck=True)] == [stale.job_id]
    assert [j.id for j in await job_store.list_in_states(JobState.ERROR, stuck=False)] == [failed.job_id]


async def test_delete_removes_job_and_subscribers(job_store):
    created = await job_store.enqueue(URL, "u1")
    await job_store.subscribe(created.job_id, "u2")

    assert await job_store.delete(created.job_id)
    assert await job_store.get(created.job_id) is None
    assert await job_store.list_subscribers(created.job_id) == []
    assert await job_store.delete(created.job_id) is False


async def test_database_cascade_removes_subscribers(job_store, sessions):
    created = await job_store.enqueue(URL, ["u1", "u2"])

    async with sessions() as session:
        await session.execute(delete(QueueJob).where(QueueJob.id == created.job_id))
        await session.commit()
        remaining = (await session.scalars(select(Subscriber))).all()

    assert remaining == []


async def test_config_store_round_trip(config_store):
    assert await config_store.get("fic_queue_channel") is None
    await config_store.set("fic_queue_channel", "123")
    await config_store.set("fic_queue_channel", "456")
    assert await config_store.get("fic_queue_channel") == "456"
