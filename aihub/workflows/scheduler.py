"""Discovery job scheduler.

Runs the daily crawl and the follow-up validation pass from a bounded
in-process job queue. Validation walks recent services in fixed-size
windows: each processed window enqueues the next one until the list is
exhausted, so a large backlog never has to fit in a single job.
"""
import asyncio
import logging
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, ContextManager, Iterator, Optional

from aihub.db import SessionLocal
from aihub.services.discovery.pipeline import mark_stale_runs_failed, run_daily_crawl
from aihub.services.discovery.store import DiscoveryStore, SqlAlchemyDiscoveryStore
from aihub.services.discovery.validator import DEFAULT_LOOKBACK, validate_crawled_services
from aihub.services.notifications import send_crawl_notifications, send_validation_report
from aihub.settings import settings

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], ContextManager[DiscoveryStore]]

DISCOVER = "discover"
VALIDATE = "validate"


@contextmanager
def session_store() -> Iterator[DiscoveryStore]:
    """A SQLAlchemy store over a fresh session, closed afterwards."""
    db = SessionLocal()
    try:
        yield SqlAlchemyDiscoveryStore(db)
    finally:
        db.close()


class DiscoveryScheduler:
    """Background loop that drains a bounded queue of discovery jobs."""

    def __init__(
        self,
        store_factory: StoreFactory = session_store,
        queue_size: Optional[int] = None,
        batch_size: Optional[int] = None,
        interval_seconds: Optional[int] = None,
    ) -> None:
        self.store_factory = store_factory
        self.queue_size = queue_size or settings.SCHEDULER_QUEUE_SIZE
        self.batch_size = batch_size or settings.SCHEDULER_VALIDATION_BATCH_SIZE
        self.interval_seconds = interval_seconds or settings.SCHEDULER_INTERVAL_SECONDS
        self.state: str = "stopped"  # running | stopped
        self.queue: deque[dict[str, Any]] = deque()
        self.current_job: Optional[dict[str, Any]] = None
        self.next_run_at: Optional[datetime] = None
        self.history: deque[dict[str, Any]] = deque(maxlen=50)
        self._task: Optional[asyncio.Task] = None

    # Public API

    def enqueue(self, job: dict[str, Any]) -> bool:
        """Add a job; returns False (and drops it) when the queue is full."""
        if len(self.queue) >= self.queue_size:
            logger.warning(f"[Scheduler] Queue full ({self.queue_size}), dropping {job}")
            return False
        self.queue.append(job)
        return True

    def enqueue_daily_jobs(self) -> None:
        self.enqueue({"job": DISCOVER})
        self.enqueue({"job": VALIDATE, "offset": 0, "limit": self.batch_size})

    async def start(self) -> None:
        if self.state == "running":
            return
        self.state = "running"
        logger.info("[Scheduler] Started")
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Cancel the loop and wait for it; an in-flight job is interrupted."""
        if self.state == "stopped" and self._task is None:
            return
        self.state = "stopped"
        logger.info("[Scheduler] Stopping")
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "current_job": self.current_job,
            "queued": list(self.queue),
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "history": list(self.history),
        }

    async def process_next(self) -> Optional[dict[str, Any]]:
        """Run the oldest queued job; returns its summary, or None if the queue is empty."""
        if not self.queue:
            return None

        job = self.queue.popleft()
        self.current_job = job
        try:
            if job["job"] == DISCOVER:
                summary = await self._run_discover()
            elif job["job"] == VALIDATE:
                summary = await self._run_validate(job.get("offset", 0), job.get("limit", self.batch_size))
            else:
                raise ValueError(f"Unknown job: {job['job']}")
        except Exception as e:
            logger.error(f"[Scheduler] Job {job} failed: {e}")
            summary = {"error": str(e)}
        finally:
            self.current_job = None

        entry = {"job": job, "finished_at": datetime.now(timezone.utc).isoformat(), **summary}
        self.history.appendleft(entry)
        return entry

    # Internal

    async def _run_discover(self) -> dict[str, Any]:
        with self.store_factory() as store:
            try:
                stale = mark_stale_runs_failed(store)
                if stale:
                    logger.warning(f"[Scheduler] {stale} stale crawl run(s) marked failed")
            except Exception as e:
                logger.error(f"[Scheduler] Could not clean up stale crawl runs: {e}")
            result = await run_daily_crawl(store, notifier=send_crawl_notifications)
        return {"crawl_run_id": result.run_id, "status": result.status, "services_created": result.services_created}

    async def _run_validate(self, offset: int, limit: int) -> dict[str, Any]:
        with self.store_factory() as store:
            since = datetime.now(timezone.utc) - DEFAULT_LOOKBACK
            service_ids = [s.id for s in store.get_recent_auto_services(since)]
            window = service_ids[offset:offset + limit]
            if not window:
                return {"total_checked": 0, "passed": 0, "issues": 0}

            report = await validate_crawled_services(store, window)

        await send_validation_report(report)

        if offset + limit < len(service_ids):
            self.enqueue({"job": VALIDATE, "offset": offset + limit, "limit": limit})

        return {"total_checked": report.total_checked, "passed": report.passed, "issues": len(report.warnings)}

    async def _run_loop(self) -> None:
        try:
            while self.state == "running":
                if not self.queue:
                    now = datetime.now(timezone.utc)
                    if self.next_run_at is not None and now < self.next_run_at:
                        await asyncio.sleep(1)
                        continue
                    self.enqueue_daily_jobs()
                    self.next_run_at = now + timedelta(seconds=self.interval_seconds)

                await self.process_next()
        except asyncio.CancelledError:
            logger.warning("[Scheduler] Task cancelled")
        except Exception as e:
            logger.error(f"[Scheduler] Loop crashed: {e}")
            self.state = "stopped"


_scheduler: Optional[DiscoveryScheduler] = None


def get_scheduler() -> DiscoveryScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DiscoveryScheduler()
    return _scheduler
