"""End-to-end dispatcher tests: real store and extractor, stand-in fetcher and notifier."""

import re
from datetime import timedelta

import pytest
import pytest_asyncio

from ficqueue.core.errors import FetchError
from ficqueue.core.states import BatchKind, JobState
from ficqueue.dispatch.dispatcher import Dispatcher
from ficqueue.dispatch.notifications import MentionPreferences, Notifier
from ficqueue.dispatch.processor import JobProcessor
from ficqueue.store.models import utc_now

from pages import SERIES_PAGE, work_page

URL = "https://archiveofourown.org/works/1"
OTHER_URL = "https://archiveofourown.org/works/2"
SERIES_URL = "https://archiveofourown.org/series/999"

RESULTS_CHANNEL = "results-chan"
MOD_CHANNEL = "mod-chan"


class RecordingNotifier(Notifier):
    def __init__(self, fail_urls=()):
        self.fail_urls = set(fail_urls)
        self.rejections = []
        self.threads = []
        self.completions = []
        self.failures = []
        self.directs = []

    def _check(self, url):
        if url in self.fail_urls:
            raise RuntimeError(f"send failed for {url}")

    async def post_rejection(self, notice):
        self._check(notice.url)
        self.rejections.append(notice)
        return f"msg-{notice.job_id}"

    async def open_thread(self, channel_id, message_id, name):
        self.threads.append((channel_id, message_id, name))

    async def post_completion(self, notice):
        self._check(notice.url)
        self.completions.append(notice)

    async def post_failure(self, notice):
        self._check(notice.url)
        self.failures.append(notice)

    async def send_direct(self, notice):
        self.directs.append(notice)


class OptOut(MentionPreferences):
    def __init__(self, *opted_out):
        self.opted_out = set(opted_out)

    async def wants_mention(self, requester_id):
        return requester_id not in self.opted_out


def make_fetcher(pages):
    async def fetcher(pool, url):
        page = pages[url]
        if isinstance(page, Exception):
            raise page
        return page

    return fetcher


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def build_dispatcher(job_store, config_store, result_store, notifier):
    def build(pages, preferences=None, **kwargs):
        processor = JobProcessor(
            pool=None,
            results=result_store,
            fetcher=make_fetcher(pages),
            series_max_works=kwargs.pop("series_max_works", 5),
        )
        return Dispatcher(
            jobs=job_store,
            config=config_store,
            results=result_store,
            processor=processor,
            notifier=notifier,
            preferences=preferences,
            **kwargs,
        )

    return build


@pytest_asyncio.fixture
async def channels(config_store):
    await config_store.set("fic_queue_channel", RESULTS_CHANNEL)
    await config_store.set("modmail_channel", MOD_CHANNEL)


async def test_completed_job_notifies_all_subscribers_once(
    build_dispatcher, job_store, notifier, channels
):
    dispatcher = build_dispatcher({URL: work_page()})
    created = await job_store.enqueue(URL, "u1")
    await job_store.subscribe(created.job_id, "u2")

    await dispatcher.tick()

    assert len(notifier.completions) == 1
    notice = notifier.completions[0]
    assert notice.channel_id == RESULTS_CHANNEL
    assert notice.mention_ids == ["u1", "u2"]
    assert URL in notice.content
    assert notice.summary["title"] == "The Long Way Home"
    assert notice.summary["words"] == 12345

    assert await job_store.get(created.job_id) is None
    assert await job_store.list_subscribers(created.job_id) == []

    await dispatcher.tick()
    assert len(notifier.completions) == 1


async def test_fast_path_job_has_no_mentions(build_dispatcher, job_store, notifier, channels):
    dispatcher = build_dispatcher({URL: work_page()})
    created = await job_store.enqueue(URL, "u1", fast_path=True)
    await job_store.subscribe(created.job_id, "u2")

    await dispatcher.tick()

    assert notifier.completions[0].mention_ids == []


async def test_opted_out_subscribers_are_not_mentioned(
    build_dispatcher, job_store, notifier, channels
):
    dispatcher = build_dispatcher({URL: work_page()}, preferences=OptOut("u2"))
    created = await job_store.enqueue(URL, "u1")
    await job_store.subscribe(created.job_id, "u2")

    await dispatcher.tick()

    assert notifier.completions[0].mention_ids == ["u1"]


async def test_completed_work_is_stored_with_submission_hints(
    build_dispatcher, job_store, result_store, channels
):
    dispatcher = build_dispatcher({URL: work_page()})
    created = await job_store.enqueue(URL, "u1", notes="read this", extra_tags="Angst, Fluff")

    await dispatcher.process_pending()
    job = await job_store.get(created.job_id)
    assert job.state == JobState.DONE

    work = await result_store.get_work(job.result["work_id"])
    assert work.url == URL
    assert work.payload["notes"] == "read this"
    assert work.payload["extra_tags"] == ["Angst", "Fluff"]


async def test_policy_rejection_goes_to_moderation(
    build_dispatcher, job_store, notifier, channels
):
    page = work_page(relationships=("Dean Winchester/Lisa Braeden",))
    dispatcher = build_dispatcher({URL: page}, preferences=OptOut("u3"))
    created = await job_store.enqueue(URL, "u1")
    await job_store.subscribe(created.job_id, "u2")
    await job_store.subscribe(created.job_id, "u3")

    await dispatcher.tick()

    assert notifier.completions == []
    assert len(notifier.rejections) == 1
    notice = notifier.rejections[0]
    assert notice.channel_id == MOD_CHANNEL
    assert notice.reason == "Detected Multishipping: Dean Winchester/Lisa Braeden"
    assert notice.submitter_ids == ["u1"]
    assert notice.mention_ids == ["u1", "u2"]
    assert notifier.threads == [(MOD_CHANNEL, f"msg-{created.job_id}", "Rejected: The Long Way Home")]
    assert await job_store.get(created.job_id) is None


async def test_missing_moderation_channel_leaves_job_for_next_tick(
    build_dispatcher, job_store, config_store, notifier
):
    page = work_page(relationships=("Castiel/Meg Masters",))
    dispatcher = build_dispatcher({URL: page})
    created = await job_store.enqueue(URL, "u1")

    await dispatcher.tick()
    assert notifier.rejections == []
    assert (await job_store.get(created.job_id)).state == JobState.NOTP

    await config_store.set("modmail_channel", MOD_CHANNEL)
    await dispatcher.tick()
    assert len(notifier.rejections) == 1
    assert await job_store.get(created.job_id) is None


async def test_missing_result_leaves_job_in_place(build_dispatcher, job_store, notifier, channels):
    dispatcher = build_dispatcher({})
    created = await job_store.enqueue(URL, "u1")
    await job_store.claim_next()
    await job_store.finish(created.job_id, JobState.DONE, result={"work_id": 999})

    await dispatcher.completion_pass()

    assert notifier.completions == []
    assert (await job_store.get(created.job_id)).state == JobState.DONE


async def test_fetch_failure_posts_failure_notice(build_dispatcher, job_store, notifier, channels):
    dispatcher = build_dispatcher({URL: FetchError(f"Page not found (404): {URL}", status=404)})
    created = await job_store.enqueue(URL, "u1")

    await dispatcher.tick()

    assert len(notifier.failures) == 1
    assert "404" in notifier.failures[0].reason
    assert notifier.failures[0].mention_ids == ["u1"]
    assert notifier.directs == []
    assert await job_store.get(created.job_id) is None


async def test_invalid_metadata_becomes_failure_notice(
    build_dispatcher, job_store, notifier, channels
):
    untitled = re.sub(r"<title>.*?</title>", "", work_page(title=""))
    dispatcher = build_dispatcher({URL: untitled})
    created = await job_store.enqueue(URL, "u1")

    await dispatcher.process_pending()
    job = await job_store.get(created.job_id)
    assert job.state == JobState.ERROR
    assert job.failure_reason.startswith("Metadata failed validation: title")

    await dispatcher.failure_pass()
    assert len(notifier.failures) == 1
    assert notifier.failures[0].reason == job.failure_reason
    assert notifier.completions == []
    assert await job_store.get(created.job_id) is None


async def test_stuck_job_gets_direct_notice_per_subscriber(
    build_dispatcher, job_store, notifier, channels
):
    dispatcher = build_dispatcher({}, jobs_per_tick=0)
    created = await job_store.enqueue(URL, "u1")
    await job_store.subscribe(created.job_id, "u2")
    await job_store.reclaim_stuck(900, now=utc_now() + timedelta(hours=1))

    await dispatcher.tick()

    assert [d.requester_id for d in notifier.directs] == ["u1", "u2"]
    assert all(URL in d.content for d in notifier.directs)
    assert notifier.failures == []
    assert notifier.completions == []
    assert await job_store.get(created.job_id) is None


async def test_one_failing_send_does_not_stop_the_pass(
    build_dispatcher, job_store, notifier, channels
):
    notifier.fail_urls.add(URL)
    dispatcher = build_dispatcher({URL: work_page(), OTHER_URL: work_page(title="Second")}, jobs_per_tick=2)
    first = await job_store.enqueue(URL, "u1")
    second = await job_store.enqueue(OTHER_URL, "u1")

    await dispatcher.tick()

    assert [n.url for n in notifier.completions] == [OTHER_URL]
    assert (await job_store.get(first.job_id)).state == JobState.DONE
    assert await job_store.get(second.job_id) is None


async def test_series_job_completes_as_series(
    build_dispatcher, job_store, result_store, notifier, channels
):
    pages = {
        SERIES_URL: SERIES_PAGE,
        "https://archiveofourown.org/works/111": work_page(title="Part One"),
        "https://archiveofourown.org/works/222": FetchError("HTTP 500", status=500),
        "https://archiveofourown.org/works/333": work_page(title="Part Three"),
    }
    dispatcher = build_dispatcher(pages)
    created = await job_store.enqueue(SERIES_URL, "u1", batch_kind=BatchKind.COLLECTION)

    await dispatcher.process_pending()
    job = await job_store.get(created.job_id)
    assert job.state == JobState.SERIES_DONE

    series, works = await result_store.get_series_with_works(job.result["series_id"])
    assert series.title == "Road Trip Verse"
    assert [w.title for w in works] == ["Part One", "Part Three"]

    await dispatcher.completion_pass()
    summary = notifier.completions[0].summary
    assert summary["kind"] == "series"
    assert [w["title"] for w in summary["works"]] == ["Part One", "Part Three"]


async def test_series_respects_member_cap(build_dispatcher, job_store, result_store, channels):
    pages = {
        SERIES_URL: SERIES_PAGE,
        "https://archiveofourown.org/works/111": work_page(title="Part One"),
    }
    dispatcher = build_dispatcher(pages, series_max_works=1)
    created = await job_store.enqueue(SERIES_URL, "u1")

    await dispatcher.process_pending()
    job = await job_store.get(created.job_id)

    assert job.state == JobState.SERIES_DONE
    assert len(job.result["work_ids"]) == 1


async def test_series_rejected_when_primary_work_fails_policy(
    build_dispatcher, job_store, channels
):
    pages = {
        SERIES_URL: SERIES_PAGE,
        "https://archiveofourown.org/works/111": work_page(
            relationships=("Dean Winchester/Lisa Braeden",)
        ),
        "https://archiveofourown.org/works/222": work_page(),
        "https://archiveofourown.org/works/333": work_page(),
    }
    dispatcher = build_dispatcher(pages)
    created = await job_store.enqueue(SERIES_URL, "u1")

    await dispatcher.process_pending()
    job = await job_store.get(created.job_id)

    assert job.state == JobState.NOTP
    assert "Multishipping" in job.failure_reason
