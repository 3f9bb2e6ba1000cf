"""
CSV bulk import for the item master and opening stock.

An upload goes through::

    parse → header check → row validation → conflict detection
          → (caller resolves conflicts) → apply in batches → audit log

* :func:`prepare_import` covers everything up to conflict detection and
  returns an :class:`ImportPlan`.  Any validation error blocks the whole file.
* The caller builds a ``{row: ConflictAction}`` mapping for the conflicting
  rows (default ``skip``) and hands it to :func:`apply_import`.
* Apply processes rows in batches of :data:`BATCH_SIZE`, keeping file order.
  Each row commits or rolls back on its own, so one bad row never stops the
  rest; failures are collected as :class:`RowApplyError`.
* Row numbers are display numbers: data row index + :data:`HEADER_OFFSET`
  (header line + 1-based counting), so they match what a spreadsheet shows.

Item-master rows must reference an existing category; opening-stock rows
create missing categories on the fly.
"""

from __future__ import annotations

import io
import logging
import math
import os
import unicodedata
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterator, Mapping, Optional, Sequence, Union
from uuid import uuid4

import pandas as pd
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from stockroom.models import Category, CsvUploadLog, ImportLock, Item, Stock, ITEM_STATUSES
from stockroom.services.errors import (
    DuplicateColumnsError,
    ImportBlockedError,
    ImportInProgressError,
    MissingColumnsError,
)
from stockroom.services.items import (
    CodeGenerator,
    find_category,
    format_gsm,
    generate_item_code,
    get_or_create_category,
    touch,
)
from stockroom.utils.file_parser import normalize_header, parse_csv_text

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
HEADER_OFFSET = 2

# Both import kinds write item_master, so they share one lock.
LOCK_TARGET = "item_master"
# A lock older than this is assumed to belong to a dead worker.
LOCK_STALE_AFTER = timedelta(seconds=int(os.getenv("IMPORT_LOCK_STALE_SECONDS", "1800")))

# processed rows, rows to process, percent
ProgressCallback = Callable[[int, int, int], None]


class ImportKind(str, Enum):
    ITEM_MASTER = "item_master"
    OPENING_STOCK = "opening_stock"


class ConflictAction(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    ERROR = "error"


REQUIRED_COLUMNS: dict[ImportKind, tuple[str, ...]] = {
    ImportKind.ITEM_MASTER: ("item_name", "category_name", "uom"),
    ImportKind.OPENING_STOCK: ("item_code", "opening_qty"),
}
OPTIONAL_COLUMNS: dict[ImportKind, tuple[str, ...]] = {
    ImportKind.ITEM_MASTER: ("qualifier", "gsm", "size_mm", "usage_type", "status"),
    ImportKind.OPENING_STOCK: ("item_name", "category", "uom"),
}


# --------------------------------------------------------------------------- #
# records                                                                     #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class ItemMasterRow:
    row: int
    item_name: str
    category_name: str
    uom: str
    qualifier: Optional[str] = None
    gsm: Optional[str] = None
    size_mm: Optional[str] = None
    usage_type: Optional[str] = None
    status: Optional[str] = None

    @property
    def gsm_value(self) -> Optional[float]:
        return _parse_number(self.gsm)

    def data(self) -> dict:
        d = asdict(self)
        d.pop("row")
        return d


@dataclass(frozen=True)
class OpeningStockRow:
    row: int
    item_code: str
    opening_qty: str
    item_name: Optional[str] = None
    category: Optional[str] = None
    uom: Optional[str] = None

    def data(self) -> dict:
        d = asdict(self)
        d.pop("row")
        return d


ImportRow = Union[ItemMasterRow, OpeningStockRow]


@dataclass(frozen=True)
class RowValidationError:
    row: int
    field: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RowApplyError:
    row: int
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "message": self.message}


@dataclass
class ConflictItem:
    row: int
    item_code: str
    item_name: str
    action: ConflictAction = ConflictAction.SKIP

    def to_dict(self) -> dict:
        return {"row": self.row, "item_code": self.item_code, "item_name": self.item_name, "action": self.action.value}


@dataclass
class ImportPlan:
    kind: ImportKind
    rows: list
    validation_errors: list[RowValidationError] = field(default_factory=list)
    conflicts: list[ConflictItem] = field(default_factory=list)
    file_name: str = ""

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def blocked(self) -> bool:
        return bool(self.validation_errors)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "file_name": self.file_name,
            "total_rows": self.total_rows,
            "blocked": self.blocked,
            "rows": [dict(row=r.row, **r.data()) for r in self.rows],
            "validation_errors": [e.to_dict() for e in self.validation_errors],
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


@dataclass
class ImportResult:
    success: int
    errors: list[RowApplyError]
    total: int

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "errors": [e.to_dict() for e in self.errors],
            "total": self.total,
        }


class _RowFailure(Exception):
    """Expected per-row failure; message goes into the report verbatim."""


# --------------------------------------------------------------------------- #
# headers & rows                                                              #
# --------------------------------------------------------------------------- #
def map_headers(columns: Sequence[str], kind: ImportKind) -> dict[str, int]:
    """
    Map known field names to column positions.

    Matching is case-insensitive (see :func:`normalize_header`).  Unknown
    columns are ignored, two columns resolving to the same known field raise
    :class:`DuplicateColumnsError`, and absent required fields raise
    :class:`MissingColumnsError` listing all of them.
    """
    known = REQUIRED_COLUMNS[kind] + OPTIONAL_COLUMNS[kind]
    positions: dict[str, int] = {}
    seen: dict[str, list[str]] = {}
    for pos, col in enumerate(columns):
        key = normalize_header(col)
        if key not in known:
            continue
        seen.setdefault(key, []).append(str(col))
        if key in positions:
            raise DuplicateColumnsError(key, seen[key])
        positions[key] = pos

    missing = [c for c in REQUIRED_COLUMNS[kind] if c not in positions]
    if missing:
        raise MissingColumnsError(missing)
    return positions


def _cell(values: tuple, positions: Mapping[str, int], name: str) -> Optional[str]:
    pos = positions.get(name)
    if pos is None:
        return None
    val = values[pos]
    if val is None:
        return None
    val = str(val).strip()
    return val


def _opt(value: Optional[str]) -> Optional[str]:
    return value if value else None


def build_rows(df: pd.DataFrame, kind: ImportKind) -> list[ImportRow]:
    positions = map_headers(list(df.columns), kind)
    rows: list[ImportRow] = []
    for idx, values in enumerate(df.itertuples(index=False, name=None)):
        display_row = idx + HEADER_OFFSET
        if kind is ImportKind.ITEM_MASTER:
            rows.append(
                ItemMasterRow(
                    row=display_row,
                    item_name=_cell(values, positions, "item_name") or "",
                    category_name=_cell(values, positions, "category_name") or "",
                    uom=_cell(values, positions, "uom") or "",
                    qualifier=_opt(_cell(values, positions, "qualifier")),
                    gsm=_opt(_cell(values, positions, "gsm")),
                    size_mm=_opt(_cell(values, positions, "size_mm")),
                    usage_type=_opt(_cell(values, positions, "usage_type")),
                    status=_opt(_cell(values, positions, "status")),
                )
            )
        else:
            code = _cell(values, positions, "item_code") or ""
            rows.append(
                OpeningStockRow(
                    row=display_row,
                    item_code=unicodedata.normalize("NFKC", code).strip(),
                    opening_qty=_cell(values, positions, "opening_qty") or "",
                    item_name=_opt(_cell(values, positions, "item_name")),
                    category=_opt(_cell(values, positions, "category")),
                    uom=_opt(_cell(values, positions, "uom")),
                )
            )
    return rows


# --------------------------------------------------------------------------- #
# validation                                                                  #
# --------------------------------------------------------------------------- #
def _parse_number(val: Optional[str]) -> Optional[float]:
    """'1,234.5' → 1234.5; blank → None; non-numeric or non-finite → ValueError."""
    if val is None or str(val).strip() == "":
        return None
    txt = unicodedata.normalize("NFKC", str(val)).replace(",", "").strip()
    num = float(txt)
    if not math.isfinite(num):
        raise ValueError(f"not a finite number: {val!r}")
    return num


def _is_number(val: Optional[str]) -> bool:
    try:
        _parse_number(val)
    except ValueError:
        return False
    return True


def validate_item_master_row(row: ItemMasterRow, category_names: set[str]) -> list[RowValidationError]:
    """All problems of one row (*category_names* must be lower-cased)."""
    errors: list[RowValidationError] = []
    data = row.data()

    def err(field_name: str, message: str) -> None:
        errors.append(RowValidationError(row=row.row, field=field_name, message=message, data=data))

    if not row.item_name.strip():
        err("item_name", "Item name is required")

    if not row.category_name.strip():
        err("category_name", "Category name is required")
    elif row.category_name.strip().lower() not in category_names:
        err("category_name", f"Category '{row.category_name}' does not exist")

    if not row.uom.strip():
        err("uom", "UOM is required")

    if row.gsm and not _is_number(row.gsm):
        err("gsm", "GSM must be a valid number")

    if row.status and row.status.lower() not in ITEM_STATUSES:
        err("status", 'Status must be either "active" or "inactive"')

    return errors


def validate_opening_stock_row(row: OpeningStockRow) -> list[RowValidationError]:
    errors: list[RowValidationError] = []
    data = row.data()
    if not row.item_code:
        errors.append(RowValidationError(row.row, "item_code", "Item code is required", data))
    if not row.opening_qty:
        errors.append(RowValidationError(row.row, "opening_qty", "Opening quantity is required", data))
    elif not _is_number(row.opening_qty):
        errors.append(RowValidationError(row.row, "opening_qty", "Opening quantity must be a valid number", data))
    return errors


def validate_rows(session: Session, rows: Sequence[ImportRow], kind: ImportKind) -> list[RowValidationError]:
    errors: list[RowValidationError] = []
    if kind is ImportKind.ITEM_MASTER:
        names = {c.lower() for c in session.exec(select(Category.category_name)).all()}
        for row in rows:
            errors.extend(validate_item_master_row(row, names))
    else:
        for row in rows:
            errors.extend(validate_opening_stock_row(row))
    return errors


# --------------------------------------------------------------------------- #
# conflicts                                                                   #
# --------------------------------------------------------------------------- #
def _derive_code(category: Category, row: ItemMasterRow, code_generator: CodeGenerator) -> str:
    return code_generator(category.category_name, row.qualifier or "", row.size_mm or "", row.gsm_value)


def detect_conflicts(
    session: Session,
    rows: Sequence[ItemMasterRow],
    *,
    code_generator: CodeGenerator = generate_item_code,
) -> list[ConflictItem]:
    """Rows whose derived item code already exists in the item master."""
    conflicts: list[ConflictItem] = []
    for row in rows:
        category = find_category(session, row.category_name)
        if category is None:
            continue
        try:
            code = _derive_code(category, row, code_generator)
        except Exception:
            # apply will report this row's code failure
            logger.warning("detect_conflicts: code generation failed for row %s", row.row, exc_info=True)
            continue
        if session.get(Item, code) is not None:
            conflicts.append(ConflictItem(row=row.row, item_code=code, item_name=row.item_name))
    return conflicts


def normalize_decisions(decisions: Mapping | None) -> dict[int, ConflictAction]:
    """Accept ``{row: action}`` with int/str keys and enum/str values."""
    out: dict[int, ConflictAction] = {}
    for key, action in (decisions or {}).items():
        try:
            out[int(key)] = ConflictAction(str(getattr(action, "value", action)).lower())
        except ValueError as exc:
            raise ValueError(f"Invalid conflict decision for row {key!r}: {action!r}") from exc
    return out


# --------------------------------------------------------------------------- #
# prepare                                                                     #
# --------------------------------------------------------------------------- #
def prepare_import(
    session: Session,
    source: Union[str, pd.DataFrame],
    kind: Union[ImportKind, str],
    *,
    file_name: str = "",
    code_generator: CodeGenerator = generate_item_code,
) -> ImportPlan:
    """
    Parse, check headers, validate every row and (when clean) find conflicts.

    Raises ``ParseError`` / ``MissingColumnsError`` / ``DuplicateColumnsError``
    for structural problems; row problems are returned in the plan.
    """
    kind = ImportKind(kind)
    df = source if isinstance(source, pd.DataFrame) else parse_csv_text(source)
    rows = build_rows(df, kind)

    plan = ImportPlan(kind=kind, rows=rows, file_name=file_name)
    plan.validation_errors = validate_rows(session, rows, kind)
    if not plan.validation_errors and kind is ImportKind.ITEM_MASTER:
        plan.conflicts = detect_conflicts(session, rows, code_generator=code_generator)

    logger.info(
        "prepare_import[%s]: file=%s rows=%s validation_errors=%s conflicts=%s",
        kind.value, file_name, len(rows), len(plan.validation_errors), len(plan.conflicts),
    )
    return plan


# --------------------------------------------------------------------------- #
# lock                                                                        #
# --------------------------------------------------------------------------- #
@contextmanager
def import_lock(session: Session, target: str = LOCK_TARGET, holder: str | None = None) -> Iterator[ImportLock]:
    """Hold the advisory import lock on *target* for the duration of the block."""
    holder = holder or uuid4().hex
    existing = session.get(ImportLock, target)
    if existing is not None:
        if datetime.utcnow() - existing.acquired_at <= LOCK_STALE_AFTER:
            raise ImportInProgressError(target, existing.holder)
        logger.warning("import_lock: taking over stale lock on %s held by %s", target, existing.holder)
        session.delete(existing)
        session.commit()

    session.add(ImportLock(target=target, holder=holder))
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        current = session.get(ImportLock, target)
        raise ImportInProgressError(target, current.holder if current else None) from exc

    try:
        yield session.get(ImportLock, target)
    finally:
        session.rollback()
        lock = session.get(ImportLock, target)
        if lock is not None and lock.holder == holder:
            session.delete(lock)
            session.commit()


# --------------------------------------------------------------------------- #
# apply                                                                       #
# --------------------------------------------------------------------------- #
def _db_message(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip().splitlines()[0]


def _apply_item_master_row(
    session: Session,
    row: ItemMasterRow,
    action: Optional[ConflictAction],
    code_generator: CodeGenerator,
) -> None:
    category = find_category(session, row.category_name)
    if category is None:
        raise _RowFailure(f"Category '{row.category_name}' not found")

    try:
        code = _derive_code(category, row, code_generator)
    except Exception as exc:
        raise _RowFailure(f"Error generating item code: {exc}") from exc

    status = (row.status or "active").lower()

    if action is ConflictAction.ERROR:
        raise _RowFailure(f"Item code {code} already exists")

    if action is ConflictAction.UPDATE:
        item = session.get(Item, code)
        if item is None:
            raise _RowFailure(f"Error updating item: item {code} no longer exists")
        item.item_name = row.item_name
        item.category_id = category.id
        item.qualifier = row.qualifier
        item.gsm = row.gsm_value
        item.size_mm = row.size_mm
        item.uom = row.uom
        item.usage_type = row.usage_type
        item.status = status
        touch(item)
        session.add(item)
        try:
            session.commit()
        except SQLAlchemyError as exc:
            raise _RowFailure(f"Error updating item: {_db_message(exc)}") from exc
        return

    session.add(
        Item(
            item_code=code,
            item_name=row.item_name,
            category_id=category.id,
            qualifier=row.qualifier,
            gsm=row.gsm_value,
            size_mm=row.size_mm,
            uom=row.uom,
            usage_type=row.usage_type,
            status=status,
            auto_code=code,
        )
    )
    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise _RowFailure(f"Error inserting item: {_db_message(exc)}") from exc
    session.add(Stock(item_code=code, opening_qty=0, current_qty=0))
    try:
        session.commit()
    except SQLAlchemyError as exc:
        raise _RowFailure(f"Error initialising stock: {_db_message(exc)}") from exc


def _apply_opening_stock_row(session: Session, row: OpeningStockRow) -> None:
    qty = _parse_number(row.opening_qty) or 0.0

    category_id = None
    if row.category:
        category_id = get_or_create_category(session, row.category).id

    item = session.get(Item, row.item_code)
    if item is None:
        item = Item(
            item_code=row.item_code,
            item_name=row.item_name or row.item_code,
            category_id=category_id,
            uom=row.uom or "PCS",
            status="active",
        )
    else:
        item.item_name = row.item_name or item.item_name or row.item_code
        if category_id is not None:
            item.category_id = category_id
        item.uom = row.uom or item.uom or "PCS"
        item.status = "active"
        touch(item)
    session.add(item)

    stock = session.get(Stock, row.item_code)
    if stock is None:
        stock = Stock(item_code=row.item_code)
    stock.opening_qty = qty
    stock.current_qty = qty
    stock.updated_at = datetime.utcnow()
    session.add(stock)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        raise _RowFailure(f"Error saving opening stock: {_db_message(exc)}") from exc


def _run_batches(
    session: Session,
    rows: Sequence[ImportRow],
    apply_row: Callable[[ImportRow], None],
    on_progress: ProgressCallback | None,
) -> tuple[int, list[RowApplyError]]:
    success = 0
    errors: list[RowApplyError] = []
    total = len(rows)
    processed = 0

    for start in range(0, total, BATCH_SIZE):
        batch = rows[start:start + BATCH_SIZE]
        for row in batch:
            try:
                apply_row(row)
            except _RowFailure as exc:
                session.rollback()
                errors.append(RowApplyError(row=row.row, message=str(exc)))
            except Exception as exc:
                session.rollback()
                logger.exception("import: row %s failed unexpectedly", row.row)
                errors.append(RowApplyError(row=row.row, message=str(exc) or exc.__class__.__name__))
            else:
                success += 1
        processed += len(batch)
        percent = round(processed / total * 100)
        logger.info("import: batch done %s/%s (%s%%)", processed, total, percent)
        if on_progress is not None:
            on_progress(processed, total, percent)

    return success, errors


def write_audit_log(
    session: Session,
    *,
    plan: ImportPlan,
    result: ImportResult,
    user_id: str | None = None,
) -> None:
    """Record the upload in ``csv_upload_log``; a failure here is only logged."""
    try:
        session.add(
            CsvUploadLog(
                user_id=user_id,
                file_name=plan.file_name or f"{plan.kind.value}.csv",
                file_type=plan.kind.value,
                total_rows=result.total,
                success_rows=result.success,
                error_rows=len(result.errors),
                errors=[e.to_dict() for e in result.errors],
            )
        )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("csv_upload_log write failed (file=%s)", plan.file_name)


def apply_import(
    session: Session,
    plan: ImportPlan,
    decisions: Mapping | None = None,
    *,
    code_generator: CodeGenerator = generate_item_code,
    on_progress: ProgressCallback | None = None,
    user_id: str | None = None,
    lock_holder: str | None = None,
) -> ImportResult:
    """
    Apply a prepared plan.

    *decisions* maps display row → :class:`ConflictAction` for conflicting
    rows; conflicting rows without a decision keep their default (``skip``).
    Raises :class:`ImportBlockedError` if the plan has validation errors and
    :class:`ImportInProgressError` if another import holds the lock.
    """
    if plan.kind is ImportKind.ITEM_MASTER:
        return apply_item_master_import(
            session,
            plan,
            decisions,
            code_generator=code_generator,
            on_progress=on_progress,
            user_id=user_id,
            lock_holder=lock_holder,
        )
    return apply_opening_stock_import(
        session, plan, on_progress=on_progress, user_id=user_id, lock_holder=lock_holder
    )


def apply_item_master_import(
    session: Session,
    plan: ImportPlan,
    decisions: Mapping | None = None,
    *,
    code_generator: CodeGenerator = generate_item_code,
    on_progress: ProgressCallback | None = None,
    user_id: str | None = None,
    lock_holder: str | None = None,
) -> ImportResult:
    """Insert new rows, update / skip / reject conflicting ones."""
    if plan.blocked:
        raise ImportBlockedError(plan.validation_errors)

    chosen = normalize_decisions(decisions)
    actions: dict[int, ConflictAction] = {c.row: chosen.get(c.row, c.action) for c in plan.conflicts}
    to_process = [r for r in plan.rows if actions.get(r.row) is not ConflictAction.SKIP]

    def apply_row(row: ItemMasterRow) -> None:
        _apply_item_master_row(session, row, actions.get(row.row), code_generator)

    return _apply(session, plan, to_process, apply_row, on_progress, user_id, lock_holder)


def apply_opening_stock_import(
    session: Session,
    plan: ImportPlan,
    *,
    on_progress: ProgressCallback | None = None,
    user_id: str | None = None,
    lock_holder: str | None = None,
) -> ImportResult:
    """Upsert item + stock for every row; there is no conflict review."""
    if plan.blocked:
        raise ImportBlockedError(plan.validation_errors)

    def apply_row(row: OpeningStockRow) -> None:
        _apply_opening_stock_row(session, row)

    return _apply(session, plan, plan.rows, apply_row, on_progress, user_id, lock_holder)


def _apply(
    session: Session,
    plan: ImportPlan,
    to_process: Sequence[ImportRow],
    apply_row: Callable[[ImportRow], None],
    on_progress: ProgressCallback | None,
    user_id: str | None,
    lock_holder: str | None,
) -> ImportResult:
    with import_lock(session, LOCK_TARGET, holder=lock_holder):
        logger.info(
            "apply_import[%s]: file=%s rows=%s skipped=%s",
            plan.kind.value, plan.file_name, len(to_process), plan.total_rows - len(to_process),
        )
        success, errors = _run_batches(session, to_process, apply_row, on_progress)

    result = ImportResult(success=success, errors=errors, total=plan.total_rows)
    write_audit_log(session, plan=plan, result=result, user_id=user_id)
    logger.info(
        "apply_import[%s]: done total=%s success=%s errors=%s",
        plan.kind.value, result.total, result.success, len(result.errors),
    )
    return result


def import_csv(
    session: Session,
    source: Union[str, pd.DataFrame],
    kind: Union[ImportKind, str],
    decisions: Mapping | None = None,
    *,
    file_name: str = "",
    code_generator: CodeGenerator = generate_item_code,
    on_progress: ProgressCallback | None = None,
    user_id: str | None = None,
) -> ImportResult:
    """Prepare + apply in one call (used by the upload endpoints and the Celery task)."""
    plan = prepare_import(session, source, kind, file_name=file_name, code_generator=code_generator)
    return apply_import(
        session,
        plan,
        decisions,
        code_generator=code_generator,
        on_progress=on_progress,
        user_id=user_id,
    )


# --------------------------------------------------------------------------- #
# template / export                                                           #
# --------------------------------------------------------------------------- #
ITEM_MASTER_COLUMNS = REQUIRED_COLUMNS[ImportKind.ITEM_MASTER] + OPTIONAL_COLUMNS[ImportKind.ITEM_MASTER]

_TEMPLATE_SAMPLES = [
    ["Sample Item 1", "Raw Materials", "PCS", "PREMIUM", "80", "100x200", "Production", "active"],
    ["Sample Item 2", "Finished Goods", "KG", "", "150", "", "Maintenance", "active"],
]


def _to_csv(rows: list[list[str]]) -> str:
    buf = io.StringIO()
    pd.DataFrame(rows, columns=list(ITEM_MASTER_COLUMNS)).to_csv(buf, index=False, lineterminator="\n")
    return buf.getvalue()


def item_master_template_csv() -> str:
    return _to_csv(_TEMPLATE_SAMPLES)


def export_item_master_csv(session: Session) -> str:
    """Current items in template column order (re-importable)."""
    stmt = (
        select(Item, Category.category_name)
        .join(Category, Category.id == Item.category_id, isouter=True)
        .order_by(Item.item_code)
    )
    rows = []
    for item, category_name in session.exec(stmt).all():
        rows.append([
            item.item_name,
            category_name or "",
            item.uom,
            item.qualifier or "",
            "" if item.gsm is None else format_gsm(item.gsm),
            item.size_mm or "",
            item.usage_type or "",
            item.status,
        ])
    return _to_csv(rows)
