"""
Celery configuration for long-running solve jobs.
"""

from celery import Celery

from courtplan.core.config import (
    REDIS_URL, TASK_TIME_LIMIT_SECONDS, TASK_SOFT_TIME_LIMIT_SECONDS
)

# Create Celery app
celery_app = Celery(
    "courtplan",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["courtplan.tasks.solve_tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=TASK_TIME_LIMIT_SECONDS,
    task_soft_time_limit=TASK_SOFT_TIME_LIMIT_SECONDS,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
)
