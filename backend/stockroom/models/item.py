"""Item master and category models.

``item_code`` is the primary key of ``item_master``; it is either supplied by
the user (opening-stock import) or derived from category + qualifier + size +
gsm by the item-code generator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


ITEM_STATUSES = ("active", "inactive")


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    category_name: str = Field(index=True, unique=True, description="Category name (matched case-insensitively)")
    description: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class Item(SQLModel, table=True):
    __tablename__ = "item_master"

    item_code: str = Field(primary_key=True, description="Unique item code")
    item_name: str = Field(index=True, description="Display name")
    category_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)

    # code-generation inputs
    qualifier: Optional[str] = Field(default=None)
    gsm: Optional[float] = Field(default=None, description="Paper weight (g/m2)")
    size_mm: Optional[str] = Field(default=None, description="e.g. 100x200")

    uom: str = Field(default="PCS", description="Unit of measure")
    usage_type: Optional[str] = Field(default=None)
    status: str = Field(default="active", index=True, description="active / inactive")
    auto_code: Optional[str] = Field(default=None, description="Code produced by the generator")

    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None)
