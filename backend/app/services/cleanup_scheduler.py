"""
Cleanup Scheduler Service

Sweeps per-request upload caches left behind by crashed or killed workers.
Normal requests remove their own cache directory; this only catches orphans.
Uses APScheduler for the periodic job.
"""

import logging
import shutil
from datetime import datetime, timedelta
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

JOB_ID = "sweep_stale_upload_caches"


async def cleanup_stale_caches(
    cache_root: str | None = None,
    prefix: str | None = None,
    ttl_hours: int | None = None,
) -> dict:
    """
    Delete cache directories older than the TTL.

    Only directories whose name starts with the cache prefix are considered;
    anything else under the cache root is left alone.

    Returns:
        dict: Summary of cleanup operation with counts
    """
    root = Path(cache_root or settings.UXIO_CACHE_ROOT)
    prefix = prefix or settings.UXIO_CACHE_PREFIX
    ttl = settings.STALE_CACHE_TTL_HOURS if ttl_hours is None else ttl_hours
    cutoff = datetime.now() - timedelta(hours=ttl)

    cleanup_summary = {
        "directories_scanned": 0,
        "folders_deleted": 0,
        "errors": 0,
    }

    if not root.exists():
        logger.debug(f"Cache root does not exist: {root}")
        return cleanup_summary

    try:
        for cache_dir in root.iterdir():
            if not cache_dir.name.startswith(prefix) or not cache_dir.is_dir():
                continue

            cleanup_summary["directories_scanned"] += 1

            try:
                folder_mtime = datetime.fromtimestamp(cache_dir.stat().st_mtime)

                if folder_mtime < cutoff:
                    shutil.rmtree(cache_dir)
                    cleanup_summary["folders_deleted"] += 1
                    logger.info(f"Removed stale upload cache: {cache_dir}")

            except OSError as e:
                cleanup_summary["errors"] += 1
                logger.error(f"Failed to clean up cache {cache_dir}: {e}")

    except OSError as e:
        cleanup_summary["errors"] += 1
        logger.error(f"Failed to scan cache root {root}: {e}")

    logger.info(
        f"Stale cache sweep completed: {cleanup_summary['folders_deleted']} folders deleted, "
        f"{cleanup_summary['errors']} errors"
    )

    return cleanup_summary


def start_cleanup_scheduler():
    """
    Start the sweep scheduler.

    Safe to call multiple times - will not add duplicate jobs.
    """
    if scheduler.running:
        logger.debug("Scheduler already running")
        return

    if not scheduler.get_job(JOB_ID):
        scheduler.add_job(
            cleanup_stale_caches,
            "interval",
            hours=settings.CLEANUP_INTERVAL_HOURS,
            id=JOB_ID,
            name="Sweep stale upload caches",
            replace_existing=True,
        )
        logger.info(
            f"Scheduled cache sweep: every {settings.CLEANUP_INTERVAL_HOURS} hour(s), "
            f"TTL: {settings.STALE_CACHE_TTL_HOURS} hours"
        )

    scheduler.start()
    logger.info("Cleanup scheduler started")


def stop_cleanup_scheduler():
    """Stop the cleanup scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Cleanup scheduler stopped")


def get_scheduler_status() -> dict:
    """
    Get current scheduler status for health checks.

    Returns:
        dict: Scheduler status including running state and job info
    """
    job = scheduler.get_job(JOB_ID)
    return {
        "running": scheduler.running,
        "job_scheduled": job is not None,
        "next_run": str(job.next_run_time) if job else None,
        "interval_hours": settings.CLEANUP_INTERVAL_HOURS,
        "ttl_hours": settings.STALE_CACHE_TTL_HOURS,
    }
