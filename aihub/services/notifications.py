"""Slack webhook notifications for crawl and validation reports."""
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import httpx

from aihub.settings import settings

if TYPE_CHECKING:
    from aihub.services.discovery.pipeline import CrawlResult
    from aihub.services.discovery.validator import ValidationReport

logger = logging.getLogger(__name__)

MAX_CRAWL_ERRORS = 5
CRAWL_ERROR_PREVIEW_LENGTH = 100
MAX_VALIDATION_ISSUES = 10


async def send_slack_message(
    text: str,
    blocks: Optional[list[dict[str, Any]]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """
    Post a message to the configured Slack webhook.

    Returns:
        True when Slack accepted the message; False when no webhook is
        configured or the request failed. Never raises.
    """
    if not settings.SLACK_WEBHOOK_URL:
        logger.warning("SLACK_WEBHOOK_URL not configured, skipping notification")
        return False

    payload: dict[str, Any] = {"text": text}
    if blocks:
        payload["blocks"] = blocks

    try:
        if client is not None:
            response = await client.post(settings.SLACK_WEBHOOK_URL, json=payload, timeout=settings.HTTP_TIMEOUT)
        else:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as own_client:
                response = await own_client.post(settings.SLACK_WEBHOOK_URL, json=payload)
    except httpx.HTTPError as e:
        logger.error(f"Failed to send Slack message: {e!r}")
        return False

    if not response.is_success:
        logger.error(f"Slack webhook returned HTTP {response.status_code}")
    return response.is_success


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_crawl_report(result: "CrawlResult") -> tuple[str, list[dict[str, Any]]]:
    """Build the Slack text and blocks for a finished crawl."""
    has_errors = bool(result.errors)
    if has_errors:
        emoji, status = ":warning:", "Completed with errors"
    elif result.services_created > 0:
        emoji, status = ":tada:", "Completed"
    else:
        emoji, status = ":white_check_mark:", "Completed"
    if result.status == "failed":
        emoji, status = ":rotating_light:", "Failed"

    summary = f"*New services: {result.services_created}*"
    if has_errors:
        lines = [f"• {e[:CRAWL_ERROR_PREVIEW_LENGTH]}" for e in result.errors[:MAX_CRAWL_ERRORS]]
        if len(result.errors) > MAX_CRAWL_ERRORS:
            lines.append(f"...and {len(result.errors) - MAX_CRAWL_ERRORS} more")
        summary += f"\n\n*Errors ({len(result.errors)})*\n" + "\n".join(lines)

    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": f"{emoji} Daily AI service crawl"}},
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Status:*\n{status}"},
                {"type": "mrkdwn", "text": f"*Run at:*\n{_timestamp()}"},
                {"type": "mrkdwn", "text": f"*Sources checked:*\n{result.sources_checked}"},
                {"type": "mrkdwn", "text": f"*URLs discovered:*\n{result.urls_discovered}"},
                {"type": "mrkdwn", "text": f"*New URLs:*\n{result.urls_new}"},
                {"type": "mrkdwn", "text": f"*Duplicates:*\n{result.urls_duplicate}"},
            ],
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": summary}},
        {"type": "context", "elements": [{"type": "mrkdwn", "text": f"Crawl Run ID: `{result.run_id}`"}]},
    ]
    return f"{emoji} Daily AI service crawl: {status}", blocks


def format_validation_report(report: "ValidationReport") -> tuple[str, list[dict[str, Any]]]:
    """Build the Slack text and blocks for a validation pass."""
    has_issues = bool(report.warnings)
    emoji = ":warning:" if has_issues else ":white_check_mark:"

    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": f"{emoji} Crawled data validation report"}},
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Checked at:*\n{_timestamp()}"},
                {"type": "mrkdwn", "text": f"*Services checked:*\n{report.total_checked}"},
                {"type": "mrkdwn", "text": f"*Passed:*\n{report.passed}"},
                {"type": "mrkdwn", "text": f"*Issues:*\n:red_circle: {report.error_count} / :large_yellow_circle: {report.warning_count}"},
            ],
        },
    ]

    if has_issues:
        grouped: "OrderedDict[str, list[str]]" = OrderedDict()
        for warning in report.warnings[:MAX_VALIDATION_ISSUES]:
            marker = ":red_circle:" if warning.severity == "error" else ":large_yellow_circle:"
            grouped.setdefault(warning.service_name, []).append(f"{marker} {warning.message}")

        lines = []
        for name, issues in grouped.items():
            lines.append(f"*{name}*")
            lines.extend(f"  {issue}" for issue in issues)
        if len(report.warnings) > MAX_VALIDATION_ISSUES:
            lines.append(f"...and {len(report.warnings) - MAX_VALIDATION_ISSUES} more")

        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}})

    return f"{emoji} Crawled data validation finished", blocks


async def send_crawl_report(result: "CrawlResult", client: Optional[httpx.AsyncClient] = None) -> bool:
    text, blocks = format_crawl_report(result)
    return await send_slack_message(text, blocks, client=client)


async def send_validation_report(report: "ValidationReport", client: Optional[httpx.AsyncClient] = None) -> bool:
    """Send a validation report; an empty pass is not worth a message and counts as sent."""
    if report.total_checked == 0:
        return True
    text, blocks = format_validation_report(report)
    return await send_slack_message(text, blocks, client=client)


async def send_crawl_notifications(result: "CrawlResult") -> bool:
    """Send the crawl report, followed by the validation report when one was produced."""
    sent = await send_crawl_report(result)
    if result.validation is not None:
        sent = await send_validation_report(result.validation) and sent
    return sent
