from __future__ import annotations
import uuid
from zoneinfo import ZoneInfo
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from .config import settings
from .pipeline.orchestrator import run_refresh, run_weekly

_log = structlog.get_logger()
_scheduler: BackgroundScheduler | None = None

def get_scheduler() -> BackgroundScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone=ZoneInfo(settings.local_tz))
    return _scheduler

def schedule_jobs(sched: BackgroundScheduler | None = None):
    sched = sched or get_scheduler()
    tz = ZoneInfo(settings.local_tz)
    hour = settings.daily_refresh_hour
    sched.add_job(daily_job, CronTrigger(hour=hour, minute=0, timezone=tz), id="daily_refresh", replace_existing=True)
    # Weekly report runs its own forced refresh, so it goes half an hour after the daily one.
    sched.add_job(
        weekly_job,
        CronTrigger(day_of_week=settings.weekly_report_day, hour=hour, minute=30, timezone=tz),
        id="weekly_report",
        replace_existing=True,
    )
    sched.start()
    _log.info("scheduler_started", daily_hour=hour, weekly_day=settings.weekly_report_day, tz=settings.local_tz)
    return sched

def shutdown():
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        _log.info("scheduler_stopped")
    _scheduler = None

def daily_job():
    run_id = str(uuid.uuid4())
    try:
        run_refresh(run_id)
    except Exception as e:
        _log.error("scheduled_refresh_failed", run_id=run_id, err=str(e))

def weekly_job():
    run_id = str(uuid.uuid4())
    try:
        run_weekly(run_id)
    except Exception as e:
        _log.error("scheduled_weekly_failed", run_id=run_id, err=str(e))
