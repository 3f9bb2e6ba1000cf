import importlib

import pytest

from stockroom.models import Item, Stock
from stockroom.services.items import (
    create_category,
    create_item,
    find_category,
    format_gsm,
    generate_item_code,
    get_or_create_category,
    list_items,
)


@pytest.mark.parametrize(
    "args, expected",
    [
        (("Raw Materials", "PREMIUM", "100x200", 80.0), "RAW-PREMIUM-100X200-80G"),
        (("Finished Goods", None, None, None), "FIN"),
        (("Paper", "", "", 70.5), "PAP-70.5G"),
        (("  ink & toner", "matte black", "A 4", None), "INK-MATTEBLACK-A4"),
    ],
)
def test_generate_item_code(args, expected):
    assert generate_item_code(*args) == expected


@pytest.mark.parametrize(
    "gsm, expected",
    [(80.0, "80"), (120, "120"), (70.50, "70.5"), (1234567, "1234567"), (80.00001, "80.00001"), (0.0, "0")],
)
def test_format_gsm(gsm, expected):
    assert format_gsm(gsm) == expected


def test_generate_item_code_distinguishes_close_gsm():
    codes = {generate_item_code("Paper", gsm=g) for g in (1234567, 1234568, 80.0, 80.00001)}
    assert codes == {"PAP-1234567G", "PAP-1234568G", "PAP-80G", "PAP-80.00001G"}


def test_generate_item_code_needs_category():
    with pytest.raises(ValueError):
        generate_item_code("  --  ")


def test_find_category_is_case_insensitive(session, categories):
    assert find_category(session, "raw materials").id == categories["Raw Materials"].id
    assert find_category(session, "Unknown") is None


def test_get_or_create_category_reuses_existing(session, categories):
    assert get_or_create_category(session, "PAPER").id == categories["Paper"].id
    new = get_or_create_category(session, "Inks")
    session.commit()
    assert new.id is not None
    assert new.description == "Auto-created from CSV import"


def test_create_category_rejects_duplicate(session, categories):
    with pytest.raises(ValueError):
        create_category(session, "finished goods")


def test_create_item_inserts_zeroed_stock(session, categories):
    item = create_item(
        session,
        item_name="Kraft sheet",
        category_id=categories["Paper"].id,
        uom="SHT",
        qualifier="Kraft",
        gsm=120,
    )
    assert item.item_code == "PAP-KRAFT-120G"
    assert item.auto_code == item.item_code
    stock = session.get(Stock, item.item_code)
    assert (stock.opening_qty, stock.current_qty) == (0, 0)


def test_create_item_duplicate_code(session, categories):
    kwargs = dict(item_name="Bolt", category_id=categories["Raw Materials"].id, uom="PCS", qualifier="M6")
    create_item(session, **kwargs)
    with pytest.raises(ValueError, match="already exists"):
        create_item(session, **kwargs)


def test_create_item_custom_generator(session, categories):
    item = create_item(
        session,
        item_name="Widget",
        category_id=categories["Finished Goods"].id,
        uom="PCS",
        code_generator=lambda cat, q, s, g: "CUSTOM-1",
    )
    assert item.item_code == "CUSTOM-1"


def test_create_item_unknown_category(session):
    with pytest.raises(LookupError):
        create_item(session, item_name="X", category_id=999, uom="PCS")


def test_list_items_joins_category_and_stock(session, categories):
    session.add(Item(item_code="ORPHAN", item_name="No category"))
    session.add(Stock(item_code="ORPHAN", opening_qty=4, current_qty=4))
    session.commit()
    create_item(session, item_name="Glue", category_id=categories["Raw Materials"].id, uom="KG")

    rows = {r["item_code"]: r for r in list_items(session)}
    assert rows["ORPHAN"]["category_name"] == "Uncategorized"
    assert rows["ORPHAN"]["current_qty"] == 4
    assert rows["RAW"]["category_name"] == "Raw Materials"

    assert [r["item_code"] for r in list_items(session, q="glue")] == ["RAW"]


@pytest.mark.parametrize("module", ["stockroom.models.item", "stockroom.models.flow"])
def test_model_modules_have_docstrings(module):
    mod = importlib.import_module(module)
    assert mod.__doc__ and mod.__doc__.strip()
