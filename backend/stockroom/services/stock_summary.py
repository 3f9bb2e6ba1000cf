from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from sqlalchemy import case, func, select as _sa_select
from sqlmodel import Session

from stockroom.models import Category, GrnLog, IssueLog, Item, Stock

# Trailing consumption windows (days). 30 is the primary window.
WINDOWS: tuple[int, ...] = (7, 30, 90)
PRIMARY_WINDOW = 30

# |calculated − current| above this is flagged as MISMATCH
MISMATCH_TOLERANCE = 0.01

# Wire value for "stock on hand but no consumption in the window".
# Kept for consumers of the stock_summary view; in Python use CoverKind.
UNBOUNDED_COVER = 999999


class CoverKind(str, Enum):
    FINITE = "finite"
    UNBOUNDED = "unbounded"   # stock > 0, no recent consumption
    NONE = "none"             # no stock, no consumption


@dataclass(frozen=True)
class DaysOfCover:
    kind: CoverKind
    days: Optional[float] = None

    def to_wire(self) -> float:
        if self.kind is CoverKind.FINITE:
            return float(self.days)
        if self.kind is CoverKind.UNBOUNDED:
            return float(UNBOUNDED_COVER)
        return 0.0


@dataclass(frozen=True)
class StockSummaryRow:
    item_code: str
    item_name: Optional[str]
    category_name: Optional[str]
    opening_qty: float
    current_qty: float
    total_received: float
    total_issued: float
    calculated_qty: float
    validation_status: str
    issued: dict[int, float] = field(default_factory=dict)
    consumption_rate: dict[int, float] = field(default_factory=dict)
    cover: dict[int, DaysOfCover] = field(default_factory=dict)

    @property
    def days_of_cover(self) -> DaysOfCover:
        return self.cover[PRIMARY_WINDOW]

    def as_view_dict(self) -> dict:
        """Flatten to the ``stock_summary`` view field set (sentinel on the wire)."""
        return {
            "item_code": self.item_code,
            "item_name": self.item_name,
            "category_name": self.category_name,
            "opening_qty": self.opening_qty,
            "total_grn_qty": self.total_received,
            "total_issued_qty": self.total_issued,
            "current_qty": self.current_qty,
            "calculated_qty": self.calculated_qty,
            "issue_7d": self.issued[7],
            "issue_30d": self.issued[30],
            "issue_90d": self.issued[90],
            "days_of_cover": self.cover[30].to_wire(),
            "days_of_cover_7d": self.cover[7].to_wire(),
            "days_of_cover_90d": self.cover[90].to_wire(),
            "stock_validation_status": self.validation_status,
            "consumption_rate_7d": self.consumption_rate[7],
            "consumption_rate_30d": self.consumption_rate[30],
            "consumption_rate_90d": self.consumption_rate[90],
            "cover_kind": self.cover[30].kind.value,
        }


# --------------------------------------------------------------------------- #
# pure calculations                                                           #
# --------------------------------------------------------------------------- #
def _round_half_up(value: float, places: int) -> float:
    """SQL-style ROUND (half away from zero) instead of Python's banker's rounding."""
    q = Decimal(1).scaleb(-places)
    d = Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP)
    return float(d)


def consumption_rate(issued: float, window: int) -> float:
    """Average daily issue over *window* days, 3 decimals; 0 when nothing was issued."""
    if not issued:
        return 0.0
    return _round_half_up(issued / float(window), 3)


def days_of_cover(current_qty: float, issued: float, window: int) -> DaysOfCover:
    """
    * issued > 0        → current / (issued / window), 1 decimal
    * stock on hand     → UNBOUNDED (no consumption to divide by)
    * otherwise         → NONE (reported as 0)
    """
    if issued and issued > 0:
        return DaysOfCover(CoverKind.FINITE, _round_half_up(current_qty / (issued / float(window)), 1))
    if current_qty > 0:
        return DaysOfCover(CoverKind.UNBOUNDED)
    return DaysOfCover(CoverKind.NONE)


def validation_status(calculated_qty: float, current_qty: float) -> str:
    return "MISMATCH" if abs(calculated_qty - current_qty) > MISMATCH_TOLERANCE else "OK"


def summarize(
    *,
    item_code: str,
    item_name: Optional[str],
    category_name: Optional[str],
    opening_qty: float,
    current_qty: float,
    total_received: float,
    total_issued: float,
    issued: dict[int, float],
) -> StockSummaryRow:
    opening_qty = float(opening_qty or 0)
    current_qty = float(current_qty or 0)
    total_received = float(total_received or 0)
    total_issued = float(total_issued or 0)
    calculated = opening_qty + total_received - total_issued
    issued = {w: float(issued.get(w) or 0) for w in WINDOWS}
    return StockSummaryRow(
        item_code=item_code,
        item_name=item_name,
        category_name=category_name,
        opening_qty=opening_qty,
        current_qty=current_qty,
        total_received=total_received,
        total_issued=total_issued,
        calculated_qty=calculated,
        validation_status=validation_status(calculated, current_qty),
        issued=issued,
        consumption_rate={w: consumption_rate(issued[w], w) for w in WINDOWS},
        cover={w: days_of_cover(current_qty, issued[w], w) for w in WINDOWS},
    )


# --------------------------------------------------------------------------- #
# query                                                                       #
# --------------------------------------------------------------------------- #
def utc_today() -> date:
    """Today's date in UTC, the clock movement timestamps are stored in."""
    return datetime.utcnow().date()


def window_start(today: date, window: int) -> datetime:
    """Inclusive lower bound of a trailing window (midnight, ``today − window``)."""
    return datetime.combine(today - timedelta(days=window), time.min)


def compute_stock_summary(
    session: Session,
    *,
    today: date | None = None,
    item_code: str | None = None,
) -> list[StockSummaryRow]:
    """
    One row per item: all-time receipt/issue totals, the three trailing issue
    windows and the derived consumption / cover metrics.

    Windows are UTC days; ``today`` defaults to :func:`utc_today`.
    Rows come back ordered by ``current_qty`` ascending (lowest stock first).
    Datastore errors propagate to the caller.
    """
    today = today or utc_today()

    grn = (
        _sa_select(
            GrnLog.item_code.label("item_code"),
            func.sum(GrnLog.qty_received).label("total_grn_qty"),
        )
        .group_by(GrnLog.item_code)
        .subquery("grn_totals")
    )

    window_cols = [
        func.sum(
            case((IssueLog.created_at >= window_start(today, w), IssueLog.qty_issued), else_=0)
        ).label(f"issue_{w}d")
        for w in WINDOWS
    ]
    iss = (
        _sa_select(
            IssueLog.item_code.label("item_code"),
            func.sum(IssueLog.qty_issued).label("total_issued_qty"),
            *window_cols,
        )
        .group_by(IssueLog.item_code)
        .subquery("issue_totals")
    )

    current = func.coalesce(Stock.current_qty, 0)
    stmt = (
        _sa_select(
            Item.item_code,
            Item.item_name,
            Category.category_name,
            func.coalesce(Stock.opening_qty, 0).label("opening_qty"),
            current.label("current_qty"),
            func.coalesce(grn.c.total_grn_qty, 0).label("total_grn_qty"),
            func.coalesce(iss.c.total_issued_qty, 0).label("total_issued_qty"),
            *[func.coalesce(iss.c[f"issue_{w}d"], 0).label(f"issue_{w}d") for w in WINDOWS],
        )
        .select_from(Item)
        .outerjoin(Stock, Stock.item_code == Item.item_code)
        .outerjoin(Category, Category.id == Item.category_id)
        .outerjoin(grn, grn.c.item_code == Item.item_code)
        .outerjoin(iss, iss.c.item_code == Item.item_code)
        .order_by(current, Item.item_code)
    )
    if item_code:
        stmt = stmt.where(Item.item_code == item_code)

    rows = []
    for r in session.exec(stmt).all():
        m = r._mapping
        rows.append(
            summarize(
                item_code=m["item_code"],
                item_name=m["item_name"],
                category_name=m["category_name"],
                opening_qty=m["opening_qty"],
                current_qty=m["current_qty"],
                total_received=m["total_grn_qty"],
                total_issued=m["total_issued_qty"],
                issued={w: m[f"issue_{w}d"] for w in WINDOWS},
            )
        )
    return rows


# --------------------------------------------------------------------------- #
# dashboard                                                                   #
# --------------------------------------------------------------------------- #
LOW_STOCK_THRESHOLD = 10


def dashboard_overview(session: Session, *, today: date | None = None, recent: int = 5) -> dict:
    """Headline numbers for the dashboard cards plus the latest movements."""
    from stockroom.services.transactions import recent_grns, recent_issues

    summary = compute_stock_summary(session, today=today)
    grns = recent_grns(session, limit=recent)
    issues = recent_issues(session, limit=recent)
    return {
        "total_items": len(summary),
        "low_stock_items": sum(1 for r in summary if r.current_qty < LOW_STOCK_THRESHOLD),
        "total_stock_qty": sum(r.current_qty for r in summary),
        "mismatch_items": sum(1 for r in summary if r.validation_status == "MISMATCH"),
        "recent_transactions": len(grns) + len(issues),
        "recent_grns": grns,
        "recent_issues": issues,
        "stock": [r.as_view_dict() for r in summary],
    }
