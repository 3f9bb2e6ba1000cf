"""
Celery background task for large item-master imports.

The web process hands over the decoded CSV text plus the caller's conflict
decisions; the worker runs the same prepare → apply path as the synchronous
endpoint and reports batch progress through the ``PROGRESS`` task state::

    {"processed": 20, "total": 57, "percent": 35}

Exposed task:
* ``imports.item_master(csv_text, file_name, decisions, user_id)``
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from celery import states
from celery.result import AsyncResult
from sqlmodel import Session

from stockroom.core.celery_app import celery_app
from stockroom.core.database import engine
from stockroom.services.csv_import import ImportKind, ProgressCallback, import_csv
from stockroom.services.errors import ImportBlockedError

logger = logging.getLogger(__name__)


def run_item_master_import(
    csv_text: str,
    *,
    file_name: str = "",
    decisions: Mapping | None = None,
    user_id: str | None = None,
    on_progress: ProgressCallback | None = None,
    session: Session | None = None,
) -> dict[str, Any]:
    """Run one item-master import to completion and return its report."""
    start = time.perf_counter()
    if session is None:
        with Session(engine) as ses:
            result = import_csv(
                ses, csv_text, ImportKind.ITEM_MASTER, decisions,
                file_name=file_name, on_progress=on_progress, user_id=user_id,
            )
    else:
        result = import_csv(
            session, csv_text, ImportKind.ITEM_MASTER, decisions,
            file_name=file_name, on_progress=on_progress, user_id=user_id,
        )
    payload = result.to_dict()
    payload["elapsed_sec"] = round(time.perf_counter() - start, 3)
    return payload


@celery_app.task(
    bind=True,
    name="imports.item_master",
    queue="imports",
    acks_late=True,
)
def import_item_master_task(
    self,
    csv_text: str,
    file_name: str = "",
    decisions: dict | None = None,
    user_id: str | None = None,
) -> dict[str, Any]:
    def report(processed: int, total: int, percent: int) -> None:
        self.update_state(
            state="PROGRESS",
            meta={"processed": processed, "total": total, "percent": percent},
        )

    logger.info("imports.item_master[%s]: start file=%s", self.request.id, file_name)
    try:
        return run_item_master_import(
            csv_text,
            file_name=file_name,
            decisions=decisions,
            user_id=user_id,
            on_progress=report,
        )
    except ImportBlockedError as exc:
        # a blocked file is a normal outcome for the caller, not a task failure
        return {
            "success": 0,
            "errors": [],
            "validation_errors": [e.to_dict() for e in exc.errors],
            "total": None,
        }


def get_import_status(task_id: str) -> dict[str, Any]:
    """Translate the Celery task state into the polling payload."""
    res = AsyncResult(task_id, app=celery_app)
    state = res.state
    if state == states.PENDING:
        return {"task_id": task_id, "status": "pending"}
    if state == states.STARTED:
        return {"task_id": task_id, "status": "running"}
    if state == "PROGRESS":
        return {"task_id": task_id, "status": "running", "progress": res.info or {}}
    if state == states.SUCCESS:
        return {"task_id": task_id, "status": "completed", "result": res.result}
    if state == states.FAILURE:
        return {"task_id": task_id, "status": "failed", "error": str(res.result)}
    return {"task_id": task_id, "status": state.lower()}
