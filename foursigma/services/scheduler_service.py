"""
Four Sigma Background Scheduler Service

Purges expired game sessions on a fixed interval using APScheduler.
Sessions are only ever read through SessionStore, which already treats
expired rows as missing, so purging is housekeeping and never affects
correctness.
"""

import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from foursigma import db
from foursigma.services.session_store import SessionStore
from foursigma.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired_sessions"


class SchedulerService:
    """Manages background housekeeping jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.purge_stats = {
            "last_run": None,
            "total_runs": 0,
            "failed_runs": 0,
            "sessions_purged": 0,
            "last_error": None,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        interval = self.app.config.get("SESSION_CLEANUP_INTERVAL_MINUTES", 15)

        self.scheduler.add_job(
            func=self.purge_expired_sessions,
            trigger=IntervalTrigger(minutes=interval),
            id=PURGE_JOB_ID,
            name="Purge Expired Sessions",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        logger.info(f"Session purge scheduled every {interval} minutes")

    def purge_expired_sessions(self):
        """Delete expired sessions; safe to call outside the scheduler"""
        with self.app.app_context():
            self.purge_stats["total_runs"] += 1
            try:
                purged = SessionStore().purge_expired()
            except Exception as e:
                db.session.rollback()
                self.purge_stats["failed_runs"] += 1
                self.purge_stats["last_error"] = str(e)
                logger.error(f"Error purging expired sessions: {e}", exc_info=True)
                return 0

            self.purge_stats["sessions_purged"] += purged
            self.purge_stats["last_error"] = None
            self.purge_stats["last_run"] = get_utc_time().isoformat()
            return purged

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.purge_stats}


# Global scheduler instance
scheduler_service = SchedulerService()
