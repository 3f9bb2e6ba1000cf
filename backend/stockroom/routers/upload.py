"""
CSV upload router.

Endpoints:

* GET  /v1/upload/item_master/template   – blank template with two sample rows
* GET  /v1/upload/item_master/export     – current item master, re-importable
* POST /v1/upload/item_master/preview    – validate + list conflicts, no writes
* POST /v1/upload/item_master            – import (``decisions`` form field)
* POST /v1/upload/item_master/async      – same, in a Celery worker
* GET  /v1/upload/tasks/{task_id}        – async import status / progress
* POST /v1/upload/opening_stock          – upsert opening balances

``decisions`` is a JSON object mapping display row → ``skip|update|error``,
e.g. ``{"3": "update", "7": "skip"}``.  Conflicting rows it does not mention
are skipped.

Each upload is a single CSV file (multipart/form-data).  Per-row failures
are returned in the body and, when there are any, also written to an error
CSV served under ``/files``.
"""

from __future__ import annotations

import io
import json
import logging
import os
from pathlib import Path
from typing import Annotated, Optional
from uuid import uuid4

import pandas as pd
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from stockroom.core.database import get_session
from stockroom.services.csv_import import (
    ImportKind,
    apply_import,
    export_item_master_csv,
    item_master_template_csv,
    prepare_import,
)
from stockroom.services.errors import ImportBlockedError, ImportFormatError, ImportInProgressError
from stockroom.services.import_tasks import get_import_status, import_item_master_task
from stockroom.utils.file_parser import read_upload_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/upload", tags=["upload"])

ERROR_DIR = Path(os.getenv("UPLOAD_ERROR_DIR", "/tmp/upload_errors"))

UploadDep = Annotated[UploadFile, File(...)]
SesDep = Annotated[Session, Depends(get_session)]
UserDep = Annotated[Optional[str], Header(alias="X-User-Id")]
DecisionsDep = Annotated[Optional[str], Form()]


# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #
def _save_error_csv(errors: list[dict], base_url: str = "") -> str:
    """
    Save ``[{'row': int, 'message': str}, ...]`` as CSV under ``ERROR_DIR``
    and return its URL.  The app mounts ``StaticFiles`` at ``/files``.
    """
    if not errors:
        return ""
    ERROR_DIR.mkdir(parents=True, exist_ok=True)
    fname = f"err_{uuid4().hex}.csv"
    fpath = ERROR_DIR / fname
    pd.DataFrame(errors).to_csv(fpath, index=False, encoding="utf-8-sig")
    logger.info("Saved error CSV: %s (%d errors)", fpath, len(errors))
    if base_url:
        return f"{base_url.rstrip('/')}/files/{fname}"
    return f"/files/{fname}"


def _parse_decisions(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        decisions = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"decisions is not valid JSON: {e}")
    if not isinstance(decisions, dict):
        raise HTTPException(status_code=400, detail="decisions must be a JSON object {row: action}")
    return decisions


def _blocked(exc: ImportBlockedError, base_url: str) -> HTTPException:
    errors = [e.to_dict() for e in exc.errors]
    return HTTPException(
        status_code=422,
        detail={
            "message": str(exc),
            "validation_errors": errors,
            "error_csv_url": _save_error_csv(
                [{"row": e["row"], "field": e["field"], "message": e["message"]} for e in errors],
                base_url,
            ) or None,
        },
    )


def _csv_response(text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(text.encode("utf-8-sig")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _run_import(
    ses: Session,
    file: UploadFile,
    kind: ImportKind,
    request: Request,
    decisions: dict | None = None,
    user_id: str | None = None,
) -> dict:
    base_url = str(request.base_url).rstrip("/")
    text, filename = read_upload_text(file)
    plan = prepare_import(ses, text, kind, file_name=filename)
    try:
        result = apply_import(ses, plan, decisions, user_id=user_id)
    except ImportBlockedError as e:
        raise _blocked(e, base_url)

    summary = result.to_dict()
    summary["file_name"] = filename
    summary["skipped"] = result.total - result.success - len(result.errors)
    summary["error_csv_url"] = _save_error_csv(summary["errors"], base_url) or None
    return summary


# --------------------------------------------------------------------------- #
# item master                                                                 #
# --------------------------------------------------------------------------- #
@router.get("/item_master/template")
async def item_master_template():
    return _csv_response(item_master_template_csv(), "item_master_template.csv")


@router.get("/item_master/export")
async def item_master_export(ses: SesDep):
    try:
        return _csv_response(export_item_master_csv(ses), "item_master_export.csv")
    except Exception as e:
        logger.exception("item master export failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/item_master/preview")
async def preview_item_master(file: UploadDep, ses: SesDep):
    try:
        text, filename = read_upload_text(file)
        plan = prepare_import(ses, text, ImportKind.ITEM_MASTER, file_name=filename)
        return plan.to_dict()
    except ImportFormatError as e:
        logger.exception("item master preview failed: invalid file")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("item master preview failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/item_master")
async def upload_item_master(
    file: UploadDep,
    ses: SesDep,
    request: Request,
    decisions: DecisionsDep = None,
    x_user_id: UserDep = None,
):
    chosen = _parse_decisions(decisions)
    try:
        return _run_import(ses, file, ImportKind.ITEM_MASTER, request, chosen, x_user_id)
    except HTTPException:
        raise
    except ImportInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        logger.exception("item master upload failed: invalid file")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("item master upload failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/item_master/async", status_code=202)
async def upload_item_master_async(
    file: UploadDep,
    ses: SesDep,
    request: Request,
    decisions: DecisionsDep = None,
    x_user_id: UserDep = None,
):
    """Validate now, apply in the ``imports`` worker queue; poll ``/tasks/{id}``."""
    chosen = _parse_decisions(decisions)
    try:
        text, filename = read_upload_text(file)
        plan = prepare_import(ses, text, ImportKind.ITEM_MASTER, file_name=filename)
        if plan.blocked:
            raise _blocked(ImportBlockedError(plan.validation_errors), str(request.base_url))
        task = import_item_master_task.delay(
            text,
            file_name=filename,
            decisions={str(k): v for k, v in chosen.items()},
            user_id=x_user_id,
        )
    except HTTPException:
        raise
    except ValueError as e:
        logger.exception("async item master upload failed: invalid file")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("async item master upload failed")
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("queued item master import %s (%s rows)", task.id, plan.total_rows)
    return {"task_id": task.id, "status": "queued", "total_rows": plan.total_rows}


@router.get("/tasks/{task_id}")
async def import_task_status(task_id: str):
    try:
        return get_import_status(task_id)
    except Exception as e:
        logger.exception("task status lookup failed")
        raise HTTPException(status_code=500, detail=str(e))


# --------------------------------------------------------------------------- #
# opening stock                                                               #
# --------------------------------------------------------------------------- #
@router.post("/opening_stock")
async def upload_opening_stock(
    file: UploadDep,
    ses: SesDep,
    request: Request,
    x_user_id: UserDep = None,
):
    try:
        return _run_import(ses, file, ImportKind.OPENING_STOCK, request, None, x_user_id)
    except HTTPException:
        raise
    except ImportInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        logger.exception("opening stock upload failed: invalid file")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("opening stock upload failed")
        raise HTTPException(status_code=500, detail=str(e))
