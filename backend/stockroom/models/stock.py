from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Stock(SQLModel, table=True):
    """One running balance per item.

    ``current_qty`` is mutated by every accepted GRN / issue.  It is expected
    to equal ``opening_qty + Σreceipts − Σissues``; drift is reported by the
    stock summary as ``MISMATCH`` but never enforced.
    """

    __tablename__ = "stock"

    item_code: str = Field(primary_key=True, foreign_key="item_master.item_code")
    opening_qty: float = Field(default=0, description="Baseline quantity")
    current_qty: float = Field(default=0, description="Running balance")
    updated_at: Optional[datetime] = Field(default=None)
