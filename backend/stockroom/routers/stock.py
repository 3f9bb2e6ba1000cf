"""
Stock summary router.

* GET /v1/stock/summary              – one row per item, lowest stock first
* GET /v1/stock/summary/{item_code}
* GET /v1/stock/dashboard            – headline counts + recent movements

Summary rows use the ``stock_summary`` view field names.  ``days_of_cover``
fields carry ``999999`` for "stock on hand, no consumption"; ``cover_kind``
tells the three cases apart without relying on the sentinel.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from stockroom.core.database import get_session
from stockroom.services.stock_summary import compute_stock_summary, dashboard_overview

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/stock", tags=["stock"])

SesDep = Annotated[Session, Depends(get_session)]


@router.get("/summary")
def get_stock_summary(
    ses: SesDep,
    as_of: Optional[date] = Query(None, description="Reference UTC day for the trailing windows (default: today in UTC)"),
    item_code: Optional[str] = None,
    mismatch_only: bool = False,
):
    try:
        rows = compute_stock_summary(ses, today=as_of, item_code=item_code)
    except Exception as e:
        logger.exception("stock summary failed")
        raise HTTPException(status_code=500, detail=str(e))
    if mismatch_only:
        rows = [r for r in rows if r.validation_status == "MISMATCH"]
    return [r.as_view_dict() for r in rows]


@router.get("/summary/{item_code}")
def get_item_stock_summary(item_code: str, ses: SesDep, as_of: Optional[date] = None):
    try:
        rows = compute_stock_summary(ses, today=as_of, item_code=item_code)
    except Exception as e:
        logger.exception("stock summary failed for %s", item_code)
        raise HTTPException(status_code=500, detail=str(e))
    if not rows:
        raise HTTPException(status_code=404, detail=f"Item '{item_code}' not found")
    return rows[0].as_view_dict()


@router.get("/dashboard")
def get_dashboard(ses: SesDep, recent: int = Query(5, ge=1, le=50)):
    try:
        return dashboard_overview(ses, recent=recent)
    except Exception as e:
        logger.exception("dashboard failed")
        raise HTTPException(status_code=500, detail=str(e))
