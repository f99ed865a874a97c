from celery import Celery
from kombu import Queue

from perfwatch.platform.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - scan.audit: Lighthouse scan requests and rescans. Each task owns one
      Chrome process at a time, so worker concurrency bounds the number of
      browsers running on a host.
    """
    celery_app = Celery(
        "perfwatch",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,
        # Stores task args with the result so the task owner can be checked
        result_extended=True,

        task_routes={
            "perfwatch.features.scan.workers.tasks.run_scan_task": {"queue": "scan.audit"},
            "perfwatch.features.scan.workers.tasks.rescan_task": {"queue": "scan.audit"},
            "perfwatch.features.scan.workers.tasks.rescan_group_task": {"queue": "scan.audit"},
        },

        task_queues=(
            Queue("default"),
            Queue("scan.audit"),
        ),

        task_default_queue="default",

        # One audit request at a time per worker process
        worker_prefetch_multiplier=1,

        task_acks_late=True,
        task_reject_on_worker_lost=True,
    )

    celery_app.autodiscover_tasks(["perfwatch.features.scan.workers"])

    return celery_app


celery_app = create_celery_app()
