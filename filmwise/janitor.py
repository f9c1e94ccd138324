"""
Image janitor.

Uploads are recorded with `is_used = 0` and only flipped once a movie points
at them. Uploads that never got attached are removed here, together with
their stored asset, once they are older than `max_age_hours`.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask

from .errors import StoreError
from .images import release_image, unused_images

logger = logging.getLogger(__name__)

DEFAULT_JANITOR_SETTINGS = {
    "interval_hours": 6,
    "max_age_hours": 24,
    "run_on_startup": False,
    "timezone": "UTC",
}


def purge_unused_images(max_age_hours: float) -> int:
    """Delete unattached uploads older than `max_age_hours`. Needs an app context."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
    stale = unused_images(cutoff.strftime("%Y-%m-%d %H:%M:%S"))
    for image in stale:
        release_image(image)
    if stale:
        logger.info("purged %d unused image(s)", len(stale))
    return len(stale)


class ImageJanitor:
    """Runs `purge_unused_images` on an APScheduler interval."""

    def __init__(self, app: Flask, settings: Optional[dict] = None):
        self.app = app
        self.settings = {**DEFAULT_JANITOR_SETTINGS, **(settings or {})}
        self.scheduler = BackgroundScheduler(timezone=self.settings["timezone"])
        self.last_run_time: Optional[datetime] = None
        self.last_run_status: str = "Never run"
        self.run_count: int = 0
        self.removed_total: int = 0

    def run_job(self) -> int:
        self.run_count += 1
        start_time = time.time()
        logger.info("image janitor run %d started", self.run_count)
        removed = 0
        try:
            with self.app.app_context():
                removed = purge_unused_images(self.settings["max_age_hours"])
        except StoreError as e:
            self.last_run_status = f"Failed: {e}"
            logger.error("image janitor run %d failed: %s", self.run_count, e, exc_info=True)
        else:
            self.last_run_status = "Success"
            self.removed_total += removed
            logger.info(
                "image janitor run %d removed %d image(s) in %.2f seconds",
                self.run_count,
                removed,
                time.time() - start_time,
            )
        self.last_run_time = datetime.now()
        return removed

    def start(self) -> None:
        interval_hours = self.settings["interval_hours"]
        self.scheduler.add_job(
            self.run_job,
            trigger=IntervalTrigger(hours=interval_hours, timezone=self.settings["timezone"]),
            id="image_janitor_job",
            name="Unused image cleanup",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("image janitor scheduled every %s hours", interval_hours)

        if self.settings.get("run_on_startup"):
            self.run_job()

    def stop(self) -> None:
        logger.info("stopping image janitor")
        self.scheduler.shutdown()

    def get_status(self) -> dict:
        jobs = self.scheduler.get_jobs()
        next_run = getattr(jobs[0], "next_run_time", None) if jobs else None
        return {
            "running": self.scheduler.running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_run_status": self.last_run_status,
            "total_runs": self.run_count,
            "removed_total": self.removed_total,
            "interval_hours": self.settings["interval_hours"],
            "max_age_hours": self.settings["max_age_hours"],
            "next_run_time": next_run.isoformat() if next_run else None,
        }
