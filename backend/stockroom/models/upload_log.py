from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class CsvUploadLog(SQLModel, table=True):
    """Audit row written once per completed CSV import (informational only)."""

    __tablename__ = "csv_upload_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    file_name: str
    file_type: str = Field(description="item_master / opening_stock")
    total_rows: int = Field(default=0)
    success_rows: int = Field(default=0)
    error_rows: int = Field(default=0)
    errors: Optional[list] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class ImportLock(SQLModel, table=True):
    """Advisory lock: at most one import per target collection.

    Acquired by inserting the row (primary-key collision means somebody else
    holds it) and released by deleting it.
    """

    __tablename__ = "import_lock"

    target: str = Field(primary_key=True, description="Locked collection, e.g. item_master")
    holder: Optional[str] = Field(default=None, description="Import identifier")
    acquired_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
