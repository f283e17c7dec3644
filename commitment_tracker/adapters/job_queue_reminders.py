"""JobQueue reminder adapter — implements ReminderQueue.

Backs reminders with python-telegram-bot's JobQueue so they run on the
bot's event loop. Jobs are named by key, which is how they are found
again for cancellation.
"""

from __future__ import annotations

import logging

from telegram.ext import ContextTypes, JobQueue

from commitment_tracker.ports.reminder_port import ReminderCallback

logger = logging.getLogger(__name__)


class JobQueueReminders:
    """telegram.ext.JobQueue implementation of ReminderQueue."""

    def __init__(self, job_queue: JobQueue) -> None:
        self._job_queue = job_queue

    def schedule(self, key: str, delay_seconds: float, callback: ReminderCallback) -> None:
        async def _run(context: ContextTypes.DEFAULT_TYPE) -> None:
            await callback()

        self._job_queue.run_once(_run, when=delay_seconds, name=key)
        logger.debug("Queued job '%s' in %.0fs", key, delay_seconds)

    def cancel(self, key: str) -> int:
        jobs = self._job_queue.get_jobs_by_name(key)
        for job in jobs:
            job.schedule_removal()
        return len(jobs)
