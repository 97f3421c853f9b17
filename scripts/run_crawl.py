#!/usr/bin/env python3
"""Run the discovery crawl or the validation pass locally.

Usage:
    python scripts/run_crawl.py discover              # crawl active sources
    python scripts/run_crawl.py discover --no-validate
    python scripts/run_crawl.py validate              # check last 24h of auto services
    python scripts/run_crawl.py validate --ids ID ID  # check specific services
    python scripts/run_crawl.py discover --notify     # also post to Slack
"""
import argparse
import asyncio
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aihub.db import SessionLocal
from aihub.middleware import setup_logging
from aihub.services.discovery.pipeline import mark_stale_runs_failed, run_daily_crawl
from aihub.services.discovery.store import SqlAlchemyDiscoveryStore
from aihub.services.discovery.validator import validate_crawled_services
from aihub.services.notifications import send_crawl_notifications, send_validation_report


async def discover(store, args) -> int:
    stale = mark_stale_runs_failed(store)
    if stale:
        print(f"Marked {stale} stale run(s) as failed")

    result = await run_daily_crawl(
        store,
        notifier=send_crawl_notifications if args.notify else None,
        validate=not args.no_validate,
    )

    print(f"\nCrawl run {result.run_id}: {result.status}")
    print(f"=======")
    print(f"Sources checked:  {result.sources_checked}")
    print(f"URLs discovered:  {result.urls_discovered}")
    print(f"New URLs:         {result.urls_new}")
    print(f"Duplicates:       {result.urls_duplicate}")
    print(f"Services created: {result.services_created}")
    if result.errors:
        print(f"\nErrors:")
        for error in result.errors:
            print(f"  {error}")
    if result.validation:
        print_report(result.validation)

    return 0 if result.status == "completed" else 1


async def validate(store, args) -> int:
    report = await validate_crawled_services(store, args.ids or None)
    print_report(report)
    if args.notify:
        await send_validation_report(report)
    return 0


def print_report(report) -> None:
    print(f"\nValidation: {report.total_checked} checked, {report.passed} passed")
    for warning in report.warnings:
        print(f"  [{warning.severity:7s}] {warning.service_name}: {warning.type} - {warning.message}")


def main():
    parser = argparse.ArgumentParser(description="Run the AI service discovery pipeline")
    parser.add_argument("job", choices=["discover", "validate"], help="Job to run")
    parser.add_argument("--no-validate", action="store_true", help="Skip validating newly created services")
    parser.add_argument("--ids", nargs="*", help="Service ids to validate (default: last 24h of auto services)")
    parser.add_argument("--notify", action="store_true", help="Send Slack reports")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()

    try:
        store = SqlAlchemyDiscoveryStore(db)
        job = discover if args.job == "discover" else validate
        sys.exit(asyncio.run(job(store, args)))
    finally:
        db.close()


if __name__ == "__main__":
    main()
