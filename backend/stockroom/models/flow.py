"""Stock movement (goods receipt / issue) transaction models.

Both logs are append-only.  Trailing consumption windows are measured on
``created_at``.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class GrnLog(SQLModel, table=True):
    """Goods receipt note (inbound)."""

    __tablename__ = "grn_log"

    # primary key (surrogate)
    id: Optional[int] = Field(default=None, primary_key=True)

    grn_number: str = Field(index=True, description="GRN document number")
    item_code: str = Field(foreign_key="item_master.item_code", index=True)

    # payload
    qty_received: float = Field(description="Received quantity")
    uom: Optional[str] = Field(default=None)
    vendor: Optional[str] = Field(default=None)
    invoice_number: Optional[str] = Field(default=None)
    amount_inr: Optional[float] = Field(default=None, description="Invoice amount (INR)")
    date: Optional[dt.date] = Field(default=None, description="Document date")
    remarks: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False, index=True)


class IssueLog(SQLModel, table=True):
    """Stock issue (outbound / consumption)."""

    __tablename__ = "issue_log"

    id: Optional[int] = Field(default=None, primary_key=True)

    item_code: str = Field(foreign_key="item_master.item_code", index=True)

    qty_issued: float = Field(description="Issued quantity")
    purpose: Optional[str] = Field(default=None)
    date: Optional[dt.date] = Field(default=None, description="Document date")
    remarks: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False, index=True)
