"""
GRN / issue entry router.

* POST /v1/transactions/grn
* POST /v1/transactions/issue
* GET  /v1/transactions/grn/recent
* GET  /v1/transactions/issue/recent
* GET  /v1/transactions/issuable    – items with a positive balance
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from stockroom.core.database import get_session
from stockroom.services.errors import UnknownItemError
from stockroom.services.transactions import (
    GrnIn,
    IssueIn,
    items_with_stock,
    recent_grns,
    recent_issues,
    record_grn,
    record_issue,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/transactions", tags=["transactions"])

SesDep = Annotated[Session, Depends(get_session)]


@router.post("/grn", status_code=201)
def post_grn(body: GrnIn, ses: SesDep):
    try:
        return record_grn(ses, body).model_dump(mode="json")
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/issue", status_code=201)
def post_issue(body: IssueIn, ses: SesDep):
    try:
        return record_issue(ses, body).model_dump(mode="json")
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/grn/recent")
def get_recent_grns(ses: SesDep, limit: int = Query(10, ge=1, le=500)):
    return recent_grns(ses, limit=limit)


@router.get("/issue/recent")
def get_recent_issues(ses: SesDep, limit: int = Query(10, ge=1, le=500)):
    return recent_issues(ses, limit=limit)


@router.get("/issuable")
def get_issuable(ses: SesDep):
    return items_with_stock(ses)
