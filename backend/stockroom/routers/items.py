"""
Item master / category router.

* GET  /v1/items            – list (``q``, ``active_only``, paging)
* POST /v1/items            – single-entry create, code generated
* GET  /v1/items/code       – preview the code a row would get
* GET  /v1/categories
* POST /v1/categories
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field as PField
from sqlmodel import Session

from stockroom.core.database import get_session
from stockroom.services.items import (
    create_category,
    create_item,
    generate_item_code,
    list_categories,
    list_items,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["items"])

SesDep = Annotated[Session, Depends(get_session)]


class ItemIn(BaseModel):
    item_name: str = PField(min_length=1)
    category_id: int
    uom: str = PField(min_length=1)
    qualifier: Optional[str] = None
    gsm: Optional[float] = None
    size_mm: Optional[str] = None
    usage_type: Optional[str] = None
    status: str = "active"


class CategoryIn(BaseModel):
    category_name: str = PField(min_length=1)
    description: Optional[str] = None


@router.get("/items")
def get_items(
    ses: SesDep,
    q: Optional[str] = None,
    active_only: bool = False,
    limit: int = Query(200, ge=1, le=5000),
    offset: int = Query(0, ge=0),
):
    return list_items(ses, q=q, active_only=active_only, limit=limit, offset=offset)


@router.post("/items", status_code=201)
def post_item(body: ItemIn, ses: SesDep):
    try:
        item = create_item(ses, **body.model_dump())
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return item.model_dump(mode="json")


@router.get("/items/code")
def preview_item_code(
    category_name: str,
    qualifier: Optional[str] = None,
    size_mm: Optional[str] = None,
    gsm: Optional[float] = None,
):
    try:
        return {"item_code": generate_item_code(category_name, qualifier, size_mm, gsm)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/categories")
def get_categories(ses: SesDep):
    return [c.model_dump(mode="json") for c in list_categories(ses)]


@router.post("/categories", status_code=201)
def post_category(body: CategoryIn, ses: SesDep):
    try:
        cat = create_category(ses, body.category_name, body.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("category created: %s", cat.category_name)
    return cat.model_dump(mode="json")
