from datetime import date, datetime, timedelta

import pytest

from stockroom.models import GrnLog, IssueLog, Item, Stock
from stockroom.services.stock_summary import (
    UNBOUNDED_COVER,
    CoverKind,
    compute_stock_summary,
    consumption_rate,
    dashboard_overview,
    days_of_cover,
    validation_status,
    window_start,
)
from stockroom.services import stock_summary
from stockroom.services.transactions import GrnIn, IssueIn, record_grn, record_issue

TODAY = date(2025, 7, 18)
NOW = datetime(2025, 7, 18, 10, 30)


def _item(session, code, *, opening=0.0, current=0.0, category=None):
    session.add(Item(item_code=code, item_name=f"{code} name", category_id=category.id if category else None))
    session.add(Stock(item_code=code, opening_qty=opening, current_qty=current))
    session.commit()


def _issue(session, code, qty, when):
    session.add(IssueLog(item_code=code, qty_issued=qty, purpose="production", created_at=when))
    session.commit()


# --------------------------------------------------------------------------- #
# pure functions                                                              #
# --------------------------------------------------------------------------- #
def test_consumption_rate_rounds_half_up():
    assert consumption_rate(30, 7) == 4.286
    assert consumption_rate(0.5, 8) == 0.063
    assert consumption_rate(0, 30) == 0.0


def test_days_of_cover_cases():
    finite = days_of_cover(120, 30, 7)
    assert finite.kind is CoverKind.FINITE
    assert finite.days == 28.0

    unbounded = days_of_cover(50, 0, 30)
    assert unbounded.kind is CoverKind.UNBOUNDED
    assert unbounded.to_wire() == UNBOUNDED_COVER

    none = days_of_cover(0, 0, 30)
    assert none.kind is CoverKind.NONE
    assert none.to_wire() == 0


def test_validation_status_tolerance():
    assert validation_status(120.0, 120.005) == "OK"
    assert validation_status(120.0, 119.98) == "MISMATCH"


def test_window_start_is_midnight():
    assert window_start(TODAY, 7) == datetime(2025, 7, 11)


# --------------------------------------------------------------------------- #
# aggregation over the tables                                                 #
# --------------------------------------------------------------------------- #
def test_summary_receipt_and_issue(session, categories):
    _item(session, "RAW-A", opening=100, current=120, category=categories["Raw Materials"])
    session.add(GrnLog(grn_number="GRN-1", item_code="RAW-A", qty_received=50, created_at=NOW - timedelta(days=10)))
    session.commit()
    _issue(session, "RAW-A", 30, NOW - timedelta(days=5))

    [row] = compute_stock_summary(session, today=TODAY)
    assert row.category_name == "Raw Materials"
    assert row.total_received == 50
    assert row.total_issued == 30
    assert row.calculated_qty == 120
    assert row.validation_status == "OK"
    assert row.issued == {7: 30, 30: 30, 90: 30}
    assert row.consumption_rate[7] == 4.286
    assert row.cover[7].days == 28.0
    assert row.consumption_rate[30] == 1.0
    assert row.days_of_cover.days == 120.0

    view = row.as_view_dict()
    assert view["days_of_cover_7d"] == 28.0
    assert view["stock_validation_status"] == "OK"
    assert view["cover_kind"] == "finite"


def test_window_boundaries(session):
    _item(session, "X", current=10)
    _issue(session, "X", 1, window_start(TODAY, 7))                                # inclusive
    _issue(session, "X", 2, window_start(TODAY, 7) - timedelta(microseconds=1))    # day 8
    _issue(session, "X", 4, window_start(TODAY, 30) - timedelta(hours=1))          # only 90d
    _issue(session, "X", 8, window_start(TODAY, 90) - timedelta(days=1))           # outside all

    [row] = compute_stock_summary(session, today=TODAY)
    assert row.issued == {7: 1, 30: 3, 90: 7}
    assert row.total_issued == 15


def test_default_day_is_utc_today(session, monkeypatch):
    monkeypatch.setattr(stock_summary, "utc_today", lambda: TODAY)
    _item(session, "X", current=10)
    _issue(session, "X", 1, window_start(TODAY, 7))
    _issue(session, "X", 2, window_start(TODAY, 7) - timedelta(microseconds=1))

    [row] = compute_stock_summary(session)
    assert row.issued == {7: 1, 30: 3, 90: 3}


def test_no_consumption_uses_sentinel(session):
    _item(session, "IDLE", opening=50, current=50)
    _item(session, "EMPTY")

    rows = {r.item_code: r for r in compute_stock_summary(session, today=TODAY)}
    idle = rows["IDLE"]
    assert idle.days_of_cover.kind is CoverKind.UNBOUNDED
    assert idle.as_view_dict()["days_of_cover"] == 999999
    assert idle.consumption_rate == {7: 0.0, 30: 0.0, 90: 0.0}

    empty = rows["EMPTY"]
    assert empty.days_of_cover.kind is CoverKind.NONE
    assert empty.as_view_dict()["days_of_cover"] == 0


def test_mismatch_and_ordering(session):
    _item(session, "HIGH", opening=100, current=100)
    _item(session, "DRIFT", opening=100, current=95)
    _item(session, "LOW", opening=3, current=3)

    rows = compute_stock_summary(session, today=TODAY)
    assert [r.item_code for r in rows] == ["LOW", "DRIFT", "HIGH"]
    status = {r.item_code: r.validation_status for r in rows}
    assert status == {"LOW": "OK", "DRIFT": "MISMATCH", "HIGH": "OK"}


def test_item_without_stock_row_still_listed(session):
    session.add(Item(item_code="NEW", item_name="New item"))
    session.commit()
    [row] = compute_stock_summary(session, today=TODAY)
    assert row.current_qty == 0
    assert row.category_name is None
    assert row.validation_status == "OK"


def test_single_item_filter(session):
    _item(session, "A", current=1)
    _item(session, "B", current=2)
    rows = compute_stock_summary(session, today=TODAY, item_code="B")
    assert [r.item_code for r in rows] == ["B"]


def test_transactions_keep_summary_consistent(session):
    _item(session, "P", opening=10, current=10)
    record_grn(session, GrnIn(grn_number="G-7", item_code="P", qty_received=5))
    record_issue(session, IssueIn(item_code="P", qty_issued=12, purpose="job"))

    [row] = compute_stock_summary(session)
    assert row.current_qty == pytest.approx(3)
    assert row.calculated_qty == pytest.approx(3)
    assert row.validation_status == "OK"
    assert row.issued[7] == 12


def test_dashboard_counts(session):
    _item(session, "A", opening=5, current=5)
    _item(session, "B", opening=100, current=90)
    record_grn(session, GrnIn(grn_number="G-1", item_code="B", qty_received=1))

    dash = dashboard_overview(session, today=TODAY)
    assert dash["total_items"] == 2
    assert dash["low_stock_items"] == 1
    assert dash["mismatch_items"] == 1
    assert dash["total_stock_qty"] == pytest.approx(96)
    assert dash["recent_transactions"] == 1
    assert dash["recent_grns"][0]["item_name"] == "B name"
