"""
GRN (goods receipt) and issue entry.

Both logs are append-only; every accepted entry moves ``stock.current_qty``
in the same transaction so the running balance and the logs stay in step.
An issue larger than the balance is accepted (the stock summary flags
anything odd); quantities themselves must be positive.
"""

from __future__ import annotations

import logging
import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field as PField
from sqlmodel import Session, select

from stockroom.models import GrnLog, IssueLog, Item, Stock
from stockroom.services.errors import UnknownItemError

logger = logging.getLogger(__name__)


class GrnIn(BaseModel):
    grn_number: str = PField(min_length=1)
    item_code: str = PField(min_length=1)
    qty_received: float = PField(gt=0)
    uom: Optional[str] = "PCS"
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    amount_inr: Optional[float] = None
    date: Optional[dt.date] = None
    remarks: Optional[str] = None


class IssueIn(BaseModel):
    item_code: str = PField(min_length=1)
    qty_issued: float = PField(gt=0)
    purpose: str = PField(min_length=1)
    date: Optional[dt.date] = None
    remarks: Optional[str] = None


def _locked_stock(session: Session, item_code: str) -> Stock:
    stock = session.exec(
        select(Stock).where(Stock.item_code == item_code).with_for_update()
    ).first()
    if stock is None:
        raise UnknownItemError(item_code)
    return stock


def record_grn(session: Session, data: GrnIn) -> GrnLog:
    stock = _locked_stock(session, data.item_code)
    entry = GrnLog(**data.model_dump())
    if entry.date is None:
        entry.date = date.today()
    stock.current_qty = float(stock.current_qty or 0) + float(data.qty_received)
    stock.updated_at = datetime.utcnow()
    session.add(entry)
    session.add(stock)
    session.commit()
    session.refresh(entry)
    logger.info("record_grn: %s item=%s qty=%s balance=%s", entry.grn_number, entry.item_code, entry.qty_received, stock.current_qty)
    return entry


def record_issue(session: Session, data: IssueIn) -> IssueLog:
    stock = _locked_stock(session, data.item_code)
    entry = IssueLog(**data.model_dump())
    if entry.date is None:
        entry.date = date.today()
    stock.current_qty = float(stock.current_qty or 0) - float(data.qty_issued)
    stock.updated_at = datetime.utcnow()
    session.add(entry)
    session.add(stock)
    session.commit()
    session.refresh(entry)
    if stock.current_qty < 0:
        logger.warning("record_issue: %s balance went negative (%s)", entry.item_code, stock.current_qty)
    return entry


def _with_item_name(session: Session, model, limit: int) -> list[dict]:
    stmt = (
        select(model, Item.item_name, Item.uom)
        .join(Item, Item.item_code == model.item_code, isouter=True)
        .order_by(model.created_at.desc(), model.id.desc())
        .limit(limit)
    )
    out = []
    for entry, item_name, item_uom in session.exec(stmt).all():
        row = entry.model_dump(mode="json")
        row["item_name"] = item_name
        row["item_uom"] = item_uom
        out.append(row)
    return out


def recent_grns(session: Session, limit: int = 10) -> list[dict]:
    return _with_item_name(session, GrnLog, limit)


def recent_issues(session: Session, limit: int = 10) -> list[dict]:
    return _with_item_name(session, IssueLog, limit)


def items_with_stock(session: Session) -> list[dict]:
    """Active items that can be issued (balance > 0), by name."""
    stmt = (
        select(Item.item_code, Item.item_name, Item.uom, Stock.current_qty)
        .join(Stock, Stock.item_code == Item.item_code)
        .where(Item.status == "active", Stock.current_qty > 0)
        .order_by(Item.item_name)
    )
    return [
        {"item_code": c, "item_name": n, "uom": u, "current_qty": float(q or 0)}
        for c, n, u, q in session.exec(stmt).all()
    ]
