"""
APScheduler Setup for Background Jobs

Handles draft housekeeping:
- Draft sweep: Every DRAFT_SWEEP_INTERVAL_MINUTES (default 30)

Note: Jobs run with database connection from app context.
"""
import os
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DRAFT_SWEEP_INTERVAL_MINUTES = int(os.getenv("DRAFT_SWEEP_INTERVAL_MINUTES", "30"))

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Job status tracking
job_status = {
    "last_run": None,
    "draft_sweep": {"runs": 0, "last_result": None}
}


async def run_draft_sweep():
    """Job: Delete drafts abandoned without cleanup."""
    from movetogether.database import Database
    from movetogether.services.scheduler.draft_sweeper import DraftSweeper

    try:
        db = Database.get_db()
        if db is None:
            logger.warning("[SCHEDULER] Database not connected, skipping draft_sweep")
            return

        sweeper = DraftSweeper(db)
        result = await sweeper.sweep_orphaned_drafts()

        job_status["draft_sweep"]["runs"] += 1
        job_status["draft_sweep"]["last_result"] = result
        job_status["last_run"] = datetime.utcnow().isoformat()

        if result.get("processed", 0) > 0:
            logger.info(f"[SCHEDULER] draft_sweep: {result['processed']} drafts deleted")

    except Exception as e:
        logger.error(f"[SCHEDULER] draft_sweep job failed: {str(e)}")


def setup_scheduler():
    """Configure the scheduled jobs."""
    scheduler.remove_all_jobs()

    scheduler.add_job(
        run_draft_sweep,
        IntervalTrigger(minutes=DRAFT_SWEEP_INTERVAL_MINUTES),
        id="draft_sweep",
        name="Delete orphaned draft competitions",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info(f"[SCHEDULER] Draft sweep every {DRAFT_SWEEP_INTERVAL_MINUTES} minutes")


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("[SCHEDULER] Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Get current scheduler status for monitoring."""
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None
            }
            for job in scheduler.get_jobs()
        ],
        "job_status": job_status
    }
