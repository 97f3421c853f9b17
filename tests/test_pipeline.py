"""Crawl orchestrator tests (in-memory store, fake adapters and extractor)."""
from datetime import datetime, timedelta, timezone

import pytest

from aihub.services.discovery import pipeline
from aihub.services.discovery.exceptions import ScrapeError
from aihub.services.discovery.pipeline import (
    DEFAULT_SOURCES,
    create_slug,
    mark_stale_runs_failed,
    run_daily_crawl,
)
from aihub.services.discovery.sources import DiscoveredCandidate, SourceType
from aihub.services.discovery.validator import ValidationReport

HIGH_CONFIDENCE = "Chatbot and GPT copilot for conversational chat"
LOW_CONFIDENCE = "Widgets for everyone"


class StaticSource:
    """Adapter stand-in returning a fixed candidate list (or raising)."""

    source_type = SourceType.HACKERNEWS

    def __init__(self, name, candidates=None, error=None):
        self.name = name
        self.candidates = candidates or []
        self.error = error
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.candidates)


class FakeExtractor:
    """Returns canned metadata per URL; unknown URLs fail like a 404."""

    def __init__(self, make_metadata, pages):
        self.make_metadata = make_metadata
        self.pages = pages
        self.calls = []

    async def __call__(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise ScrapeError(url=url, reason="HTTP 404", status_code=404)
        if isinstance(page, Exception):
            raise page
        return self.make_metadata(*page)


class FakeValidator:
    def __init__(self):
        self.calls = []

    async def __call__(self, store, service_ids):
        self.calls.append(list(service_ids))
        return ValidationReport(total_checked=len(service_ids), passed=len(service_ids))


@pytest.fixture
def hn_source(store):
    return store.add_source(name="HN", type="hackernews", url="https://hn.example", priority=10)


@pytest.fixture
def crawl(store, make_metadata):
    """Run a crawl with adapters keyed by source name."""
    async def _crawl(adapters, pages=None, **kwargs):
        extractor = FakeExtractor(make_metadata, pages or {})
        validator = kwargs.pop("validator", FakeValidator())
        result = await run_daily_crawl(
            store,
            adapter_factory=lambda source: adapters[source.name],
            extractor=extractor,
            validator=validator,
            **kwargs
        )
        return result, extractor
    return _crawl


class TestNewServiceScenario:
    @pytest.mark.asyncio
    async def test_single_candidate_is_auto_approved(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://new.ai", title="New AI")])}
        validator = FakeValidator()

        result, _ = await crawl(
            adapters,
            pages={"https://new.ai": ("New AI", HIGH_CONFIDENCE)},
            validator=validator,
        )

        assert result.status == "completed"
        assert result.sources_checked == 1
        assert result.urls_discovered == 1
        assert result.urls_new == 1
        assert result.services_created == 1
        assert result.urls_duplicate == 0
        assert result.errors == []

        services = store.list_services()
        assert len(services) == 1
        service = services[0]
        assert service.source == "auto"
        assert service.slug == "new-ai"
        assert service.category == "text-generation"
        assert service.pricing_model == "free"

        logs = store.list_logs()
        assert len(logs) == 1
        assert logs[0].status == "approved"
        assert logs[0].service_id == service.id
        assert logs[0].normalized_url == "new.ai"
        assert logs[0].source_id == hn_source.id

        assert validator.calls == [[service.id]]
        assert result.validation.total_checked == 1

        run = store.get_crawl_run(result.run_id)
        assert run.status == "completed"
        assert run.completed_at is not None
        assert run.services_created == 1
        assert run.error_message is None

        assert hn_source.last_crawled is not None

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [
            DiscoveredCandidate(url="https://new.ai", title="New AI"),
            DiscoveredCandidate(url="https://other.ai", title="Other"),
        ])}
        pages = {"https://new.ai": ("New AI", HIGH_CONFIDENCE), "https://other.ai": ("Other", LOW_CONFIDENCE)}

        await crawl(adapters, pages=pages)
        logs_before = len(store.list_logs())
        services_before = len(store.list_services())

        second, extractor = await crawl(adapters, pages=pages)

        assert len(store.list_logs()) == logs_before
        assert len(store.list_services()) == services_before
        assert second.urls_new == 0
        assert second.services_created == 0
        assert second.urls_duplicate == 2
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_validation_can_be_skipped(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://new.ai")])}
        validator = FakeValidator()

        result, _ = await crawl(
            adapters,
            pages={"https://new.ai": ("New AI", HIGH_CONFIDENCE)},
            validator=validator,
            validate=False,
        )

        assert result.services_created == 1
        assert validator.calls == []
        assert result.validation is None


class TestCandidateOutcomes:
    @pytest.mark.asyncio
    async def test_low_confidence_is_queued_for_review(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://widgets.io", title="Widgets")])}

        result, _ = await crawl(adapters, pages={"https://widgets.io": ("Acme Widgets", LOW_CONFIDENCE)})

        assert result.urls_new == 1
        assert result.services_created == 0
        assert store.list_services() == []
        log = store.list_logs()[0]
        assert log.status == "pending"
        assert log.title == "Acme Widgets"
        assert log.service_id is None

    @pytest.mark.asyncio
    async def test_extraction_failure_is_logged_as_error(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://gone.ai", title="Gone")])}

        result, _ = await crawl(adapters, pages={})

        assert result.urls_new == 1
        assert result.status == "completed"
        log = store.list_logs()[0]
        assert log.status == "error"
        assert "HTTP 404" in log.error_message
        assert log.title == "Gone"

    @pytest.mark.asyncio
    async def test_error_message_is_truncated(self, store, hn_source, crawl):
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://noisy.ai")])}

        await crawl(adapters, pages={"https://noisy.ai": RuntimeError("x" * 1000)})

        assert len(store.list_logs()[0].error_message) == 500

    @pytest.mark.asyncio
    async def test_similar_name_is_logged_as_duplicate(self, store, hn_source, crawl):
        existing = store.create_service(
            slug="acme-studios", url="https://b.com", name="Acme Studios", category="video"
        )
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://z.com", title="Acme Studio")])}

        result, extractor = await crawl(adapters)

        assert result.urls_duplicate == 1
        assert result.urls_new == 0
        assert extractor.calls == []
        log = store.list_logs()[0]
        assert log.status == "duplicate"
        assert log.duplicate_of_id == existing.id
        assert log.similarity_score == pytest.approx(1 - 1 / 12)

    @pytest.mark.asyncio
    async def test_same_domain_is_flagged_but_still_approved(self, store, hn_source, crawl):
        acme = store.create_service(slug="acme", url="https://a.com/x", name="Acme", category="productivity")
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://a.com/chat", title="Acme Chat")])}

        result, _ = await crawl(adapters, pages={"https://a.com/chat": ("Acme Chat", HIGH_CONFIDENCE)})

        assert result.services_created == 1
        log = store.list_logs()[0]
        assert log.status == "approved"
        assert log.duplicate_of_id == acme.id
        assert log.similarity_score == 0.7

    @pytest.mark.asyncio
    async def test_slug_collision_gets_timestamp_suffix(self, store, hn_source, crawl):
        store.create_service(slug="new-ai", url="https://other.com", name="Something Else", category="video")
        adapters = {"HN": StaticSource("HN", [DiscoveredCandidate(url="https://new.ai")])}

        await crawl(adapters, pages={"https://new.ai": ("New AI", HIGH_CONFIDENCE)})

        created = [s for s in store.list_services() if s.source == "auto"]
        assert len(created) == 1
        assert created[0].slug.startswith("new-ai-")
        assert created[0].slug != "new-ai"

    @pytest.mark.asyncio
    async def test_racing_run_is_treated_as_duplicate(self, store, hn_source, make_metadata):
        """Another run logs the same URL between the pre-check and our insert."""
        async def racing_extractor(url):
            store.create_log(
                discovered_url=url,
                normalized_url="race.ai",
                domain="race.ai",
                status="pending",
            )
            return make_metadata("Race AI", HIGH_CONFIDENCE)

        result = await run_daily_crawl(
            store,
            adapter_factory=lambda source: StaticSource("HN", [DiscoveredCandidate(url="https://race.ai")]),
            extractor=racing_extractor,
            validate=False,
        )

        assert result.status == "completed"
        assert result.errors == []
        assert result.services_created == 0
        assert result.urls_duplicate == 1
        assert store.list_services() == []
        assert len(store.list_logs()) == 1


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failing_source_does_not_abort_run(self, store, crawl):
        store.add_source(name="Broken", type="producthunt", url="https://broken.example", priority=10)
        store.add_source(name="HN", type="hackernews", url="https://hn.example", priority=5)
        adapters = {
            "Broken": StaticSource("Broken", error=RuntimeError("boom")),
            "HN": StaticSource("HN", [DiscoveredCandidate(url="https://new.ai")]),
        }

        result, _ = await crawl(adapters, pages={"https://new.ai": ("New AI", HIGH_CONFIDENCE)})

        assert result.status == "completed"
        assert result.sources_checked == 2
        assert result.errors == ["[Broken] Source error: boom"]
        assert result.urls_new == 1
        assert result.services_created == 1
        assert store.get_crawl_run(result.run_id).error_message == "[Broken] Source error: boom"

    @pytest.mark.asyncio
    async def test_failing_candidate_does_not_stop_source(self, store, hn_source, crawl, monkeypatch):
        real_check = pipeline.check_duplicate

        def flaky_check(url, name, store):
            if url == "https://bad.ai":
                raise RuntimeError("kaboom")
            return real_check(url, name, store)

        monkeypatch.setattr(pipeline, "check_duplicate", flaky_check)
        adapters = {"HN": StaticSource("HN", [
            DiscoveredCandidate(url="https://bad.ai"),
            DiscoveredCandidate(url="https://new.ai"),
        ])}

        result, _ = await crawl(adapters, pages={"https://new.ai": ("New AI", HIGH_CONFIDENCE)})

        assert result.errors == ["[HN] https://bad.ai: kaboom"]
        assert result.services_created == 1

    @pytest.mark.asyncio
    async def test_unknown_source_type_is_recorded(self, store, make_metadata):
        store.add_source(name="Feed", type="rss", url="https://feed.example", priority=1)

        result = await run_daily_crawl(store, extractor=FakeExtractor(make_metadata, {}))

        assert result.status == "completed"
        assert result.sources_checked == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("[Feed] Source error: Unknown source type: rss")

    @pytest.mark.asyncio
    async def test_run_error_text_is_truncated(self, store, crawl):
        for i in range(5):
            store.add_source(name=f"S{i}", type="hackernews", url=f"https://s{i}.example", priority=i)
        adapters = {f"S{i}": StaticSource(f"S{i}", error=RuntimeError("e" * 600)) for i in range(5)}

        result, _ = await crawl(adapters)

        assert len(result.errors) == 5
        assert len(store.get_crawl_run(result.run_id).error_message) == 2000

    @pytest.mark.asyncio
    async def test_fatal_error_marks_run_failed(self, store, crawl, monkeypatch):
        def broken(limit):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(store, "get_active_sources", broken)

        result, _ = await crawl({})

        assert result.status == "failed"
        assert result.errors == ["Fatal: database unavailable"]
        run = store.get_crawl_run(result.run_id)
        assert run.status == "failed"
        assert run.error_message == "database unavailable"
        assert run.completed_at is not None

    @pytest.mark.asyncio
    async def test_notifier_failure_is_ignored(self, store, hn_source, crawl):
        async def notifier(result):
            raise RuntimeError("slack down")

        result, _ = await crawl({"HN": StaticSource("HN")}, notifier=notifier)

        assert result.status == "completed"

    @pytest.mark.asyncio
    async def test_notifier_receives_result(self, store, hn_source, crawl):
        received = []

        async def notifier(result):
            received.append(result)

        result, _ = await crawl({"HN": StaticSource("HN")}, notifier=notifier)

        assert received == [result]


class TestSourceSelection:
    @pytest.mark.asyncio
    async def test_defaults_are_seeded_when_none_configured(self, store):
        order = []

        def factory(source):
            order.append(source.type)
            return StaticSource(source.name)

        result = await run_daily_crawl(store, adapter_factory=factory)

        assert len(store.list_sources()) == len(DEFAULT_SOURCES)
        assert result.sources_checked == 4
        assert order == ["hackernews", "producthunt", "theresanai", "github"]

    def test_seeding_is_idempotent(self, store):
        pipeline.seed_default_sources(store)
        pipeline.seed_default_sources(store)
        assert len(store.list_sources()) == len(DEFAULT_SOURCES)

    @pytest.mark.asyncio
    async def test_at_most_five_sources_by_priority(self, store):
        for i in range(7):
            store.add_source(name=f"S{i}", type="hackernews", url=f"https://s{i}.example", priority=i)
        store.add_source(name="Off", type="hackernews", url="https://off.example", priority=100, is_active=False)
        seen = []

        def factory(source):
            seen.append(source.name)
            return StaticSource(source.name)

        result = await run_daily_crawl(store, adapter_factory=factory)

        assert result.sources_checked == 5
        assert seen == ["S6", "S5", "S4", "S3", "S2"]


class TestCreateSlug:
    @pytest.mark.parametrize("name, expected", [
        ("Hello World!", "hello-world"),
        ("New  AI -- Beta", "new-ai-beta"),
        ("챗GPT 도우미", "gpt"),
        ("한국어", "service"),
        ("", "service"),
    ])
    def test_slug(self, name, expected):
        assert create_slug(name) == expected


class TestStaleRuns:
    def test_old_running_runs_are_marked_failed(self, store):
        stale = store.create_crawl_run()
        stale.started_at = datetime.now(timezone.utc) - timedelta(hours=2)
        fresh = store.create_crawl_run()

        assert mark_stale_runs_failed(store, timedelta(minutes=30)) == 1

        assert store.get_crawl_run(stale.id).status == "failed"
        assert store.get_crawl_run(stale.id).error_message
        assert store.get_crawl_run(fresh.id).status == "running"

    def test_nothing_stale(self, store):
        store.create_crawl_run()
        assert mark_stale_runs_failed(store) == 0
