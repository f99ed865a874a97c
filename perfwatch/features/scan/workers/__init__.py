"""Celery workers module - imports task modules so they're registered with Celery."""

from perfwatch.features.scan.workers import tasks  # noqa: F401
