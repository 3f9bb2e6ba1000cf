"""Item master helpers: item-code generation, category lookup, single-entry create."""

from __future__ import annotations

import logging
import re
import unicodedata
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from stockroom.models import Category, Item, Stock, ITEM_STATUSES

logger = logging.getLogger(__name__)

# (category_name, qualifier, size_mm, gsm) -> item_code
CodeGenerator = Callable[[str, Optional[str], Optional[str], Optional[float]], str]

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_SIZE_RE = re.compile(r"[^A-Za-z0-9.]")


# --------------------------------------------------------------------------- #
# item code                                                                   #
# --------------------------------------------------------------------------- #
def format_gsm(gsm: float) -> str:
    """Plain decimal text without exponent or trailing zeros: 80.0 → '80', 1234567 → '1234567'."""
    txt = format(Decimal(str(float(gsm))).normalize(), "f")
    return "0" if txt in ("-0", "0") else txt


def _code_part(value: str, pattern: re.Pattern = _NON_ALNUM_RE) -> str:
    txt = unicodedata.normalize("NFKC", str(value)).strip()
    return pattern.sub("", txt).upper()


def generate_item_code(
    category_name: str,
    qualifier: Optional[str] = None,
    size_mm: Optional[str] = None,
    gsm: Optional[float] = None,
) -> str:
    """
    Deterministic item code: ``PREFIX[-QUALIFIER][-SIZE][-<gsm>G]``.

    * PREFIX   – first three alphanumerics of the category, upper-cased
    * QUALIFIER – alphanumerics only, upper-cased
    * SIZE     – ``100 x 200`` → ``100X200``
    * gsm      – ``80.0`` → ``80G``, ``70.5`` → ``70.5G``

    Same inputs always give the same code, which is what import conflict
    detection relies on.
    """
    prefix = _code_part(category_name or "")[:3]
    if not prefix:
        raise ValueError("Category name is required to generate an item code")

    parts = [prefix]
    if qualifier and _code_part(qualifier):
        parts.append(_code_part(qualifier))
    if size_mm and _code_part(size_mm, _SIZE_RE):
        parts.append(_code_part(size_mm, _SIZE_RE))
    if gsm is not None:
        parts.append(f"{format_gsm(gsm)}G")
    return "-".join(parts)


# --------------------------------------------------------------------------- #
# categories                                                                  #
# --------------------------------------------------------------------------- #
def find_category(session: Session, name: str | None) -> Category | None:
    """Case-insensitive category lookup."""
    if not name or not name.strip():
        return None
    stmt = select(Category).where(func.lower(Category.category_name) == name.strip().lower())
    return session.exec(stmt).first()


def get_or_create_category(session: Session, name: str) -> Category:
    """Return the matching category, creating it when absent (no commit)."""
    cat = find_category(session, name)
    if cat is not None:
        return cat
    cat = Category(category_name=name.strip(), description="Auto-created from CSV import")
    session.add(cat)
    session.flush()
    logger.info("category auto-created: %s (id=%s)", cat.category_name, cat.id)
    return cat


def list_categories(session: Session) -> list[Category]:
    return list(session.exec(select(Category).order_by(Category.category_name)).all())


def create_category(session: Session, name: str, description: str | None = None) -> Category:
    if not name or not name.strip():
        raise ValueError("Category name is required")
    if find_category(session, name) is not None:
        raise ValueError(f"Category '{name.strip()}' already exists")
    cat = Category(category_name=name.strip(), description=description)
    session.add(cat)
    session.commit()
    session.refresh(cat)
    return cat


# --------------------------------------------------------------------------- #
# items                                                                       #
# --------------------------------------------------------------------------- #
def create_item(
    session: Session,
    *,
    item_name: str,
    category_id: int,
    uom: str,
    qualifier: str | None = None,
    gsm: float | None = None,
    size_mm: str | None = None,
    usage_type: str | None = None,
    status: str = "active",
    code_generator: CodeGenerator = generate_item_code,
) -> Item:
    """Single-entry create: generate the code, insert the item and a zeroed stock row."""
    if not item_name or not item_name.strip():
        raise ValueError("Item name is required")
    if not uom or not uom.strip():
        raise ValueError("UOM is required")
    status = (status or "active").lower()
    if status not in ITEM_STATUSES:
        raise ValueError('Status must be either "active" or "inactive"')

    category = session.get(Category, category_id)
    if category is None:
        raise LookupError(f"Category id={category_id} not found")

    item_code = code_generator(category.category_name, qualifier or "", size_mm or "", gsm)
    if session.get(Item, item_code) is not None:
        raise ValueError(f"Item code {item_code} already exists")

    item = Item(
        item_code=item_code,
        item_name=item_name.strip(),
        category_id=category.id,
        qualifier=qualifier or None,
        gsm=gsm,
        size_mm=size_mm or None,
        uom=uom.strip(),
        usage_type=usage_type or None,
        status=status,
        auto_code=item_code,
    )
    session.add(item)
    session.add(Stock(item_code=item_code, opening_qty=0, current_qty=0))
    session.commit()
    session.refresh(item)
    logger.info("create_item: %s (%s)", item.item_code, item.item_name)
    return item


def list_items(
    session: Session,
    *,
    q: str | None = None,
    active_only: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> list[dict]:
    """Items joined with category name and current stock (newest first)."""
    stmt = (
        select(Item, Category.category_name, Stock.current_qty)
        .join(Category, Category.id == Item.category_id, isouter=True)
        .join(Stock, Stock.item_code == Item.item_code, isouter=True)
    )
    if q:
        like = f"%{q.lower()}%"
        stmt = stmt.where(or_(func.lower(Item.item_name).like(like), func.lower(Item.item_code).like(like)))
    if active_only:
        stmt = stmt.where(Item.status == "active")
    stmt = stmt.order_by(Item.created_at.desc(), Item.item_code).offset(offset).limit(limit)

    out = []
    for item, category_name, current_qty in session.exec(stmt).all():
        row = item.model_dump(mode="json")
        row["category_name"] = category_name or "Uncategorized"
        row["current_qty"] = float(current_qty or 0)
        out.append(row)
    return out


def touch(item: Item) -> None:
    item.updated_at = datetime.utcnow()
