"""
Central Celery application object for the Stockroom backend.

Usage
-----
* **Worker**: ``celery -A stockroom.core.celery_app worker -Q default,imports --loglevel=info``

The broker/result backend URLs can be overridden via environment variables:

    CELERY_BROKER_URL   (default: redis://localhost:6379/0)
    CELERY_RESULT_BACKEND (default: same as broker)
"""

from __future__ import annotations

import os
from datetime import timedelta

from celery import Celery
from kombu import Exchange, Queue

# --------------------------------------------------------------------------- #
# Configuration via environment variables                                     #
# --------------------------------------------------------------------------- #

BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", BROKER_URL)
TIMEZONE: str = os.getenv("APP_TIMEZONE", "Asia/Kolkata")

# --------------------------------------------------------------------------- #
# Celery application                                                          #
# --------------------------------------------------------------------------- #

celery_app = Celery(
    "stockroom",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=[
        "stockroom.services.import_tasks",
    ],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Reliability
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # PROGRESS states are only visible while the task runs if STARTED is tracked
    task_track_started=True,
    # Time
    timezone=TIMEZONE,
    enable_utc=True,
    # Queues / routing
    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("imports", Exchange("imports"), routing_key="imports"),
    ),
    # Result expiry
    result_expires=timedelta(days=1),
)


def init_celery() -> None:  # called from FastAPI startup
    """
    Import all task modules so ``.delay`` from the API process never hits
    *NotRegistered*.
    """
    from importlib import import_module

    for module in celery_app.conf.include:
        import_module(module)
