import pytest
from sqlmodel import select

from stockroom.models import Category, CsvUploadLog, ImportLock, Item, Stock
from stockroom.services import csv_import
from stockroom.services.csv_import import (
    BATCH_SIZE,
    ConflictAction,
    ImportKind,
    apply_import,
    export_item_master_csv,
    import_csv,
    import_lock,
    item_master_template_csv,
    map_headers,
    prepare_import,
)
from stockroom.services.errors import (
    DuplicateColumnsError,
    ImportBlockedError,
    ImportInProgressError,
    MissingColumnsError,
    ParseError,
)
from stockroom.services.import_tasks import run_item_master_import

HEADER = "item_name,category_name,uom,qualifier,gsm,size_mm,usage_type,status"


def _csv(*rows: str, header: str = HEADER) -> str:
    return "\n".join((header,) + rows) + "\n"


def _items(session):
    return session.exec(select(Item)).all()


# --------------------------------------------------------------------------- #
# headers                                                                     #
# --------------------------------------------------------------------------- #
def test_headers_case_insensitive():
    pos = map_headers([" ITEM_NAME", "Category_Name", "extra", "UoM"], ImportKind.ITEM_MASTER)
    assert pos == {"item_name": 0, "category_name": 1, "uom": 3}


def test_missing_columns_listed(session):
    with pytest.raises(MissingColumnsError) as exc:
        prepare_import(session, _csv("Bolt,PCS", header="item_name,uom"), ImportKind.ITEM_MASTER)
    assert exc.value.missing == ["category_name"]
    assert "category_name" in str(exc.value)


def test_duplicate_columns_rejected(session):
    with pytest.raises(DuplicateColumnsError) as exc:
        prepare_import(
            session,
            _csv("a,b,Paper,PCS", header="Item_Name,item_name,category_name,uom"),
            ImportKind.ITEM_MASTER,
        )
    assert exc.value.field == "item_name"


def test_empty_file(session):
    with pytest.raises(ParseError):
        prepare_import(session, "\n \n", ImportKind.ITEM_MASTER)


# --------------------------------------------------------------------------- #
# validation                                                                  #
# --------------------------------------------------------------------------- #
def test_blank_item_name_blocks_batch(session, categories):
    plan = prepare_import(
        session,
        _csv(",Raw Materials,PCS", "Bolt,Raw Materials,PCS"),
        ImportKind.ITEM_MASTER,
    )
    assert plan.blocked
    assert len(plan.validation_errors) == 1
    err = plan.validation_errors[0]
    assert (err.row, err.field) == (2, "item_name")
    assert plan.conflicts == []

    with pytest.raises(ImportBlockedError):
        apply_import(session, plan)
    assert _items(session) == []


def test_every_row_problem_is_reported(session, categories):
    plan = prepare_import(
        session,
        _csv(
            "Bolt,Unknown Cat,PCS",
            "Nut,raw materials,,,abc",
            "Washer,Raw Materials,PCS,,,,,retired",
        ),
        ImportKind.ITEM_MASTER,
    )
    found = [(e.row, e.field) for e in plan.validation_errors]
    assert found == [(2, "category_name"), (3, "uom"), (3, "gsm"), (4, "status")]
    assert plan.validation_errors[0].data["item_name"] == "Bolt"


@pytest.mark.parametrize("gsm", ["NaN", "nan", "inf", "-Infinity"])
def test_non_finite_gsm_rejected(session, categories, gsm):
    plan = prepare_import(session, _csv(f"Sheet,Paper,PCS,,{gsm}"), ImportKind.ITEM_MASTER)
    assert plan.blocked
    [err] = plan.validation_errors
    assert (err.row, err.field, err.message) == (2, "gsm", "GSM must be a valid number")


# --------------------------------------------------------------------------- #
# conflicts                                                                   #
# --------------------------------------------------------------------------- #
def _existing(session, categories, code="RAW-PREMIUM-100X200-80G"):
    session.add(Item(item_code=code, item_name="Old name", category_id=categories["Raw Materials"].id, uom="PCS"))
    session.add(Stock(item_code=code, opening_qty=7, current_qty=7))
    session.commit()


def test_conflicts_default_skip_and_update_one(session, categories):
    _existing(session, categories)
    text = _csv(
        "Premium sheet A,Raw Materials,PCS,PREMIUM,80,100x200,Production,active",
        "Premium sheet B,Raw Materials,PCS,premium,80.0,100X200,Production,active",
    )
    plan = prepare_import(session, text, ImportKind.ITEM_MASTER)
    assert not plan.blocked
    assert [(c.row, c.item_code, c.action) for c in plan.conflicts] == [
        (2, "RAW-PREMIUM-100X200-80G", ConflictAction.SKIP),
        (3, "RAW-PREMIUM-100X200-80G", ConflictAction.SKIP),
    ]

    result = apply_import(session, plan, {2: ConflictAction.UPDATE})
    assert result.to_dict() == {"success": 1, "errors": [], "total": 2}

    item = session.get(Item, "RAW-PREMIUM-100X200-80G")
    assert item.item_name == "Premium sheet A"
    assert item.gsm == 80.0
    assert item.updated_at is not None
    # stock untouched by an update
    assert session.get(Stock, item.item_code).current_qty == 7


def test_conflict_error_action(session, categories):
    _existing(session, categories, code="PAP")
    plan = prepare_import(session, _csv("Plain paper,Paper,REAM"), ImportKind.ITEM_MASTER)
    result = apply_import(session, plan, {"2": "error"})
    assert result.success == 0
    assert [e.to_dict() for e in result.errors] == [{"row": 2, "message": "Item code PAP already exists"}]


def test_reimport_is_idempotent(session, categories):
    text = _csv(
        "Bolt,Raw Materials,PCS,M6",
        "Nut,Raw Materials,PCS,M8",
        "Box,Finished Goods,PCS",
    )
    first = import_csv(session, text, ImportKind.ITEM_MASTER)
    assert first.success == 3

    again = import_csv(session, text, ImportKind.ITEM_MASTER)
    assert again.to_dict() == {"success": 0, "errors": [], "total": 3}
    assert len(_items(session)) == 3


def test_export_round_trip(session, categories):
    import_csv(
        session,
        _csv("Kraft,Paper,SHT,kraft,120,,Packing,active", "Label,Finished Goods,PCS,,,50x25,,inactive"),
        ImportKind.ITEM_MASTER,
    )
    exported = export_item_master_csv(session)
    assert exported.splitlines()[0] == HEADER

    plan = prepare_import(session, exported, ImportKind.ITEM_MASTER)
    assert not plan.blocked
    assert sorted(c.item_code for c in plan.conflicts) == ["FIN-50X25", "PAP-KRAFT-120G"]


def test_export_keeps_large_gsm_exact(session, categories):
    import_csv(session, _csv("Board,Paper,SHT,,1234567"), ImportKind.ITEM_MASTER)
    exported = export_item_master_csv(session)
    assert "Board,Paper,SHT,,1234567," in exported
    plan = prepare_import(session, exported, ImportKind.ITEM_MASTER)
    assert [c.item_code for c in plan.conflicts] == ["PAP-1234567G"]


def test_template_is_importable(session, categories):
    plan = prepare_import(session, item_master_template_csv(), ImportKind.ITEM_MASTER)
    assert not plan.blocked
    assert plan.total_rows == 2


# --------------------------------------------------------------------------- #
# apply                                                                       #
# --------------------------------------------------------------------------- #
def test_new_rows_get_zeroed_stock_and_audit(session, categories):
    result = import_csv(
        session,
        _csv("Bolt,Raw Materials,PCS,M6,,,Maintenance"),
        ImportKind.ITEM_MASTER,
        file_name="items.csv",
        user_id="u-1",
    )
    assert result.success == 1
    item = session.get(Item, "RAW-M6")
    assert item.status == "active"
    assert item.usage_type == "Maintenance"
    stock = session.get(Stock, "RAW-M6")
    assert (stock.opening_qty, stock.current_qty) == (0, 0)

    [log] = session.exec(select(CsvUploadLog)).all()
    assert (log.user_id, log.file_name, log.file_type) == ("u-1", "items.csv", "item_master")
    assert (log.total_rows, log.success_rows, log.error_rows) == (1, 1, 0)


def test_audit_failure_does_not_change_result(session, categories, monkeypatch):
    def broken_log(**kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(csv_import, "CsvUploadLog", broken_log)
    result = import_csv(session, _csv("Bolt,Raw Materials,PCS,M6"), ImportKind.ITEM_MASTER, file_name="items.csv")

    assert result.to_dict() == {"success": 1, "errors": [], "total": 1}
    session.expire_all()
    assert session.get(Item, "RAW-M6") is not None
    assert session.get(Stock, "RAW-M6").current_qty == 0
    assert session.exec(select(CsvUploadLog)).all() == []
    assert session.exec(select(ImportLock)).all() == []


def test_partial_failure_keeps_going(session, categories):
    session.add(Category(category_name="Temp"))
    session.commit()

    rows = []
    for i in range(12):
        category = "Temp" if i == 7 else "Paper"
        rows.append(f"Sheet {i + 1},{category},PCS,Q{i + 1}")
    plan = prepare_import(session, _csv(*rows), ImportKind.ITEM_MASTER)
    assert not plan.blocked

    temp = session.exec(select(Category).where(Category.category_name == "Temp")).one()
    session.delete(temp)
    session.commit()

    progress = []
    result = apply_import(session, plan, on_progress=lambda *a: progress.append(a))

    assert result.success == 11
    assert result.total == 12
    assert [e.row for e in result.errors] == [9]
    assert "Temp" in result.errors[0].message
    # rows after the failure were still written
    for i in range(8, 12):
        assert session.get(Item, f"PAP-Q{i + 1}") is not None
    assert BATCH_SIZE == 10
    assert progress == [(10, 12, 83), (12, 12, 100)]


def test_duplicate_code_within_file_fails_second_row(session, categories):
    result = import_csv(
        session,
        _csv("Bolt A,Raw Materials,PCS,M6", "Bolt B,Raw Materials,PCS,M6"),
        ImportKind.ITEM_MASTER,
    )
    assert result.success == 1
    assert [e.row for e in result.errors] == [3]
    assert session.get(Item, "RAW-M6").item_name == "Bolt A"


def test_custom_code_generator(session, categories):
    result = import_csv(
        session,
        _csv("A,Paper,PCS,x", "B,Paper,PCS,y"),
        ImportKind.ITEM_MASTER,
        code_generator=lambda cat, qualifier, size, gsm: f"CUSTOM-{qualifier}",
    )
    assert result.success == 2
    assert {i.item_code for i in _items(session)} == {"CUSTOM-x", "CUSTOM-y"}


def test_invalid_decision_rejected(session, categories):
    plan = prepare_import(session, _csv("Bolt,Raw Materials,PCS"), ImportKind.ITEM_MASTER)
    with pytest.raises(ValueError):
        apply_import(session, plan, {2: "overwrite"})


# --------------------------------------------------------------------------- #
# lock                                                                        #
# --------------------------------------------------------------------------- #
def test_lock_blocks_second_import(session, categories):
    plan = prepare_import(session, _csv("Bolt,Raw Materials,PCS"), ImportKind.ITEM_MASTER)
    with import_lock(session, holder="other-import"):
        with pytest.raises(ImportInProgressError) as exc:
            apply_import(session, plan)
        assert exc.value.holder == "other-import"
    assert _items(session) == []

    # released: the same plan now goes through
    assert apply_import(session, plan).success == 1
    assert session.get(ImportLock, "item_master") is None


# --------------------------------------------------------------------------- #
# opening stock                                                               #
# --------------------------------------------------------------------------- #
def test_opening_stock_upserts(session, categories):
    _existing(session, categories, code="RAW-M6")
    text = _csv(
        "RAW-M6,250,,,",
        "NEW-1,\"1,200\",New thing,paper,KG",
        "NEW-2,5,,Brand New Cat,",
        header="item_code,opening_qty,item_name,category,uom",
    )
    result = import_csv(session, text, ImportKind.OPENING_STOCK)
    assert result.to_dict() == {"success": 3, "errors": [], "total": 3}

    stock = session.get(Stock, "RAW-M6")
    assert (stock.opening_qty, stock.current_qty) == (250, 250)
    assert session.get(Item, "RAW-M6").item_name == "Old name"

    new1 = session.get(Item, "NEW-1")
    assert new1.category_id == categories["Paper"].id
    assert new1.uom == "KG"
    assert session.get(Stock, "NEW-1").current_qty == 1200

    new2 = session.get(Item, "NEW-2")
    assert new2.item_name == "NEW-2"
    assert new2.uom == "PCS"
    cat = session.get(Category, new2.category_id)
    assert cat.category_name == "Brand New Cat"


def test_opening_stock_validation(session):
    text = _csv("A,ten", ",5", "B,", header="Item_Code,Opening_Qty")
    plan = prepare_import(session, text, ImportKind.OPENING_STOCK)
    assert [(e.row, e.field) for e in plan.validation_errors] == [
        (2, "opening_qty"),
        (3, "item_code"),
        (4, "opening_qty"),
    ]
    assert plan.conflicts == []


@pytest.mark.parametrize("qty", ["inf", "-inf", "NaN", "1e999"])
def test_opening_stock_non_finite_qty_rejected(session, qty):
    plan = prepare_import(session, _csv(f"A,{qty}", header="item_code,opening_qty"), ImportKind.OPENING_STOCK)
    [err] = plan.validation_errors
    assert (err.row, err.field) == (2, "opening_qty")
    with pytest.raises(ImportBlockedError):
        apply_import(session, plan)
    assert session.get(Stock, "A") is None


# --------------------------------------------------------------------------- #
# worker entry point                                                          #
# --------------------------------------------------------------------------- #
def test_run_item_master_import_reports_progress(session, categories):
    seen = []
    payload = run_item_master_import(
        _csv("Bolt,Raw Materials,PCS"),
        file_name="bolt.csv",
        on_progress=lambda *a: seen.append(a),
        session=session,
    )
    assert payload["success"] == 1
    assert payload["total"] == 1
    assert seen == [(1, 1, 100)]
