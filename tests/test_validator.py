"""Post-hoc validation of crawler-created services."""
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from aihub.services.discovery.validator import (
    check_name_quality,
    check_url_alive,
    is_name_just_domain,
    validate_crawled_services,
)

HEALTHY_DESCRIPTION = "Chatbot and GPT copilot for conversational chat"


def ok(request):
    return httpx.Response(200)


def add_service(store, name, url, description=HEALTHY_DESCRIPTION, category="text-generation", **fields):
    fields.setdefault("source", "auto")
    slug = name.lower().replace(" ", "-").replace("/", "-")
    return store.create_service(
        slug=slug, url=url, name=name, description=description, category=category, **fields
    )


def warning_types(report):
    return [w.type for w in report.warnings]


class TestCheckUrlAlive:
    @pytest.mark.asyncio
    async def test_success(self, mock_http):
        async with mock_http(ok) as client:
            assert await check_url_alive(client, "https://new.ai") == (True, 200)

    @pytest.mark.asyncio
    async def test_bot_wall_counts_as_alive(self, mock_http):
        async with mock_http(lambda request: httpx.Response(403)) as client:
            assert await check_url_alive(client, "https://new.ai") == (True, 403)

    @pytest.mark.asyncio
    async def test_not_found_is_dead(self, mock_http):
        async with mock_http(lambda request: httpx.Response(404)) as client:
            assert await check_url_alive(client, "https://new.ai") == (False, 404)

    @pytest.mark.asyncio
    async def test_falls_back_to_get_when_head_fails(self, mock_http):
        methods = []

        def handler(request):
            methods.append(request.method)
            if request.method == "HEAD":
                raise httpx.RemoteProtocolError("HEAD not supported", request=request)
            return httpx.Response(200)

        async with mock_http(handler) as client:
            assert await check_url_alive(client, "https://new.ai") == (True, 200)
        assert methods == ["HEAD", "GET"]

    @pytest.mark.asyncio
    async def test_no_response_at_all(self, mock_http):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with mock_http(handler) as client:
            assert await check_url_alive(client, "https://new.ai") == (False, None)

    @pytest.mark.asyncio
    async def test_follows_public_redirect(self, mock_http):
        def handler(request):
            if request.url.host == "new.ai":
                return httpx.Response(301, headers={"Location": "https://www.new.ai/"})
            return httpx.Response(200)

        async with mock_http(handler) as client:
            assert await check_url_alive(client, "https://new.ai") == (True, 200)

    @pytest.mark.asyncio
    async def test_redirect_to_internal_host_is_dead(self, mock_http):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            return httpx.Response(302, headers={"Location": "http://169.254.169.254/latest/meta-data/"})

        async with mock_http(handler) as client:
            assert await check_url_alive(client, "https://new.ai") == (False, None)
        assert hosts == ["new.ai"]


class TestNameChecks:
    @pytest.mark.parametrize("name", ["notion.so", "Notion", " NOTION.SO "])
    def test_domain_names(self, name):
        assert is_name_just_domain(name, "https://www.notion.so/product")

    def test_real_name_is_not_domain(self):
        assert not is_name_just_domain("Notion AI", "https://notion.so")

    def test_github_page_title(self):
        assert check_name_quality("GitHub - acme/llm-agent: LLM agents") is not None

    def test_pipe_or_long_names(self):
        assert check_name_quality("Acme | The best AI tool") is not None
        assert check_name_quality("A" * 61) is not None
        assert check_name_quality("Acme") is None


class TestValidateCrawledServices:
    @pytest.mark.asyncio
    async def test_healthy_service_passes(self, store, mock_http):
        service = add_service(store, "New AI", "https://new.ai")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert report.total_checked == 1
        assert report.passed == 1
        assert report.warnings == []
        assert report.to_dict() == {"total_checked": 1, "passed": 1, "warnings": []}

    @pytest.mark.asyncio
    async def test_dead_url_is_an_error(self, store, mock_http):
        service = add_service(store, "New AI", "https://new.ai")

        async with mock_http(lambda request: httpx.Response(404)) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert report.passed == 0
        assert len(report.warnings) == 1
        warning = report.warnings[0]
        assert warning.type == "url_dead"
        assert warning.severity == "error"
        assert "status: 404" in warning.message
        assert warning.service_name == "New AI"
        assert report.error_count == 1

    @pytest.mark.asyncio
    async def test_unreachable_url_reports_timeout(self, store, mock_http):
        service = add_service(store, "New AI", "https://new.ai")

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_http(handler) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert "status: timeout" in report.warnings[0].message

    @pytest.mark.asyncio
    async def test_internal_url_is_never_probed(self, store, mock_http):
        service = add_service(store, "Local AI", "http://127.0.0.1:8080")

        def handler(request):
            raise AssertionError("internal URL was probed")

        async with mock_http(handler) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert warning_types(report)[0] == "url_dead"
        assert report.warnings[0].severity == "error"

    @pytest.mark.asyncio
    async def test_missing_description(self, store, mock_http):
        service = add_service(store, "Plain Notes", "https://plain.io", description=None, category="productivity")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert warning_types(report) == ["missing_description"]
        assert report.warnings[0].severity == "warning"
        assert report.warning_count == 1

    @pytest.mark.asyncio
    async def test_name_is_domain(self, store, mock_http):
        service = add_service(
            store, "notion.so", "https://notion.so", description="Notes and docs", category="productivity"
        )

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert warning_types(report) == ["name_is_domain"]

    @pytest.mark.asyncio
    async def test_bad_name(self, store, mock_http):
        service = add_service(store, "GitHub - acme/llm-agent", "https://github.com/acme/llm-agent")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert "bad_name" in warning_types(report)

    @pytest.mark.asyncio
    async def test_category_disagreement(self, store, mock_http):
        service = add_service(
            store, "Pixel Studio", "https://pixel.studio", description="Stable diffusion art", category="video"
        )

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert warning_types(report) == ["wrong_category"]
        assert "image-generation" in report.warnings[0].message

    @pytest.mark.asyncio
    async def test_confident_classifier_does_not_second_guess(self, store, mock_http):
        # five of the ten productivity keywords: confidence at the drift threshold
        service = add_service(
            store,
            "Flow",
            "https://flow.app",
            description="Productivity workflow automation for project management and notion",
            category="video",
        )

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        assert "wrong_category" not in warning_types(report)

    @pytest.mark.asyncio
    async def test_similar_name_is_a_warning(self, store, mock_http):
        add_service(store, "Writer", "https://writer.com", source="user")
        service = add_service(store, "Writerly", "https://writerly.ai")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        duplicates = [w for w in report.warnings if w.type == "possible_duplicate"]
        assert len(duplicates) == 1
        assert duplicates[0].severity == "warning"
        assert '"Writer"' in duplicates[0].message

    @pytest.mark.asyncio
    async def test_nearly_identical_name_is_an_error(self, store, mock_http):
        add_service(store, "Voicebot", "https://voicebot.io", source="user")
        service = add_service(store, "Voicebox", "https://voicebox.ai")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [service.id], client=client)

        duplicates = [w for w in report.warnings if w.type == "possible_duplicate"]
        assert len(duplicates) == 1
        assert duplicates[0].severity == "error"

    @pytest.mark.asyncio
    async def test_default_checks_recent_auto_services_only(self, store, mock_http):
        add_service(store, "New AI", "https://new.ai")
        add_service(
            store, "Old AI", "https://old.ai",
            created_at=datetime.now(timezone.utc) - timedelta(days=2),
        )
        add_service(store, "Hand Made", "https://handmade.ai", source="user")
        probed = []

        def handler(request):
            probed.append(request.url.host)
            return httpx.Response(200)

        async with mock_http(handler) as client:
            report = await validate_crawled_services(store, client=client)

        assert report.total_checked == 1
        assert probed == ["new.ai"]

    @pytest.mark.asyncio
    async def test_explicit_ids_include_any_source(self, store, mock_http):
        user_service = add_service(store, "Hand Made", "https://handmade.ai", source="user")

        async with mock_http(ok) as client:
            report = await validate_crawled_services(store, [user_service.id], client=client)

        assert report.total_checked == 1

    @pytest.mark.asyncio
    async def test_nothing_to_check(self, store):
        report = await validate_crawled_services(store)
        assert report.total_checked == 0
        assert report.warnings == []
