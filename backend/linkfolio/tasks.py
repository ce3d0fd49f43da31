"""
Periodic maintenance.
Repairs folder references left pointing at deleted or missing folders.
"""

import asyncio
from typing import Optional

from .config import settings
from .database import SessionLocal
from .logging_config import get_logger
from .services.folders import reconcile_folder_references

logger = get_logger(__name__)


async def reconcile_folders() -> int:
    """Run one reconciliation pass on its own session."""
    db = SessionLocal()
    try:
        return reconcile_folder_references(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Folder reconciliation failed: {e}")
        return 0
    finally:
        db.close()


class BackgroundTaskRunner:
    """Runs reconcile_folders right away and then every interval_hours."""

    def __init__(self, interval_hours: Optional[float] = None):
        hours = interval_hours or settings.CLEANUP_INTERVAL_HOURS
        self.interval_seconds = hours * 3600
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def _maintain(self):
        while True:
            try:
                await reconcile_folders()
            except Exception as e:
                logger.error(f"Maintenance pass crashed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._maintain())
        logger.info(f"Folder maintenance scheduled every {self.interval_seconds / 3600:g}h")

    def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            logger.info("Folder maintenance stopped")


task_runner = BackgroundTaskRunner()
