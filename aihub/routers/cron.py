"""Scheduler-invoked endpoints for the discovery pipeline."""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from aihub.db import get_db
from aihub.services.discovery.pipeline import mark_stale_runs_failed, run_daily_crawl
from aihub.services.discovery.store import DiscoveryStore, SqlAlchemyDiscoveryStore
from aihub.services.discovery.validator import validate_crawled_services
from aihub.services.notifications import (
    send_crawl_notifications,
    send_slack_message,
    send_validation_report,
)
from aihub.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Require "Authorization: Bearer <CRON_SECRET>"; without a configured secret nothing passes."""
    expected = f"Bearer {settings.CRON_SECRET}" if settings.CRON_SECRET else None
    if not expected or not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_store(db: Session = Depends(get_db)) -> DiscoveryStore:
    return SqlAlchemyDiscoveryStore(db)


@router.get("/discover", dependencies=[Depends(verify_cron_secret)])
async def discover(store: DiscoveryStore = Depends(get_store)):
    """Run the daily crawl. Crawl failures are reported in the body, not as HTTP errors."""
    logger.info("[Cron] Starting daily AI service discovery")

    try:
        stale = mark_stale_runs_failed(store)
        if stale:
            logger.warning(f"[Cron] Marked {stale} stale crawl run(s) as failed")
    except Exception as e:
        logger.error(f"[Cron] Could not clean up stale crawl runs: {e}")

    result = await run_daily_crawl(store, notifier=send_crawl_notifications)
    logger.info(f"[Cron] Crawl {result.run_id} finished with status {result.status}")

    return {"success": result.status == "completed", **result.to_dict()}


@router.get("/validate", dependencies=[Depends(verify_cron_secret)])
async def validate(store: DiscoveryStore = Depends(get_store)):
    """Validate services the crawler created in the last 24 hours."""
    logger.info("[Cron:Validate] Starting validation")
    try:
        report = await validate_crawled_services(store)
    except Exception as e:
        logger.error(f"[Cron:Validate] Fatal error: {e}")
        await send_slack_message(f":rotating_light: Crawled data validation failed: {e}")
        return JSONResponse(status_code=500, content={"error": "Validation failed"})

    logger.info(
        f"[Cron:Validate] {report.total_checked} checked, {report.passed} passed, "
        f"{len(report.warnings)} issues"
    )
    await send_validation_report(report)

    return {"success": True, **report.to_dict()}
