"""Liveness and readiness endpoints."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aihub.db import get_db
from aihub.models import CrawlRun
from aihub.settings import settings
from aihub.workflows.scheduler import get_scheduler

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "healthy", "env": settings.ENV}


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    """Database connectivity plus the latest crawl run and scheduler state."""
    try:
        db.execute(text("SELECT 1"))
        last_run = db.query(CrawlRun).order_by(CrawlRun.started_at.desc()).first()
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "database": "disconnected", "error": str(e)},
        )

    return {
        "status": "ready",
        "database": "connected",
        "scheduler": get_scheduler().state,
        "last_crawl": {
            "id": last_run.id,
            "status": last_run.status,
            "started_at": last_run.started_at.isoformat() if last_run.started_at else None,
        } if last_run else None,
    }
