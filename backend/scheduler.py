"""
Shared APScheduler instance. The app lifespan registers the periodic
maintenance job here and shuts the scheduler down on exit.
"""
from apscheduler.schedulers.background import BackgroundScheduler

scheduler = BackgroundScheduler()


def schedule_interval(job, minutes: int, job_id: str) -> None:
    scheduler.add_job(job, "interval", minutes=minutes, id=job_id, replace_existing=True)
