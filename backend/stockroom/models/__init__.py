"""
Aggregate export for all SQLModel table classes.

Having each model re-exported here guarantees that
`import stockroom.models` will register every table in
`SQLModel.metadata`, so Alembic can discover them
during `--autogenerate`.
"""

# --- Item master -----------------------------------------------------------
from .item import Category, Item, ITEM_STATUSES  # noqa: F401

# --- Stock balance ---------------------------------------------------------
from .stock import Stock  # noqa: F401

# --- Flow (receipt / issue) ------------------------------------------------
from .flow import GrnLog, IssueLog  # noqa: F401

# --- Import bookkeeping ----------------------------------------------------
from .upload_log import CsvUploadLog, ImportLock  # noqa: F401

__all__ = [
    "Category",
    "Item",
    "ITEM_STATUSES",
    "Stock",
    "GrnLog",
    "IssueLog",
    "CsvUploadLog",
    "ImportLock",
]
