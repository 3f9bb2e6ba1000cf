"""initial stockroom schema + stock_summary view

Revision ID: 3f9a1c2b7d40
Revises:
Create Date: 2025-07-18 07:04:06.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _cover(window: int) -> str:
    return f"""
    CASE
      WHEN COALESCE(iss.issue_{window}d, 0) > 0
      THEN ROUND((COALESCE(s.current_qty, 0) / (iss.issue_{window}d / {window}.0))::numeric, 1)
      WHEN COALESCE(s.current_qty, 0) > 0 THEN 999999
      ELSE 0
    END"""


def _rate(window: int) -> str:
    return f"""
    CASE
      WHEN COALESCE(iss.issue_{window}d, 0) > 0
      THEN ROUND((iss.issue_{window}d / {window}.0)::numeric, 3)
      ELSE 0
    END"""


def _window_sum(window: int) -> str:
    return (
        f"SUM(CASE WHEN created_at >= CURRENT_DATE - INTERVAL '{window} days' "
        f"THEN qty_issued ELSE 0 END) AS issue_{window}d"
    )


STOCK_SUMMARY_VIEW = f"""
CREATE VIEW stock_summary AS
SELECT
  im.item_code,
  im.item_name,
  c.category_name,
  COALESCE(s.opening_qty, 0) AS opening_qty,
  COALESCE(grn.total_grn_qty, 0) AS total_grn_qty,
  COALESCE(iss.total_issued_qty, 0) AS total_issued_qty,
  COALESCE(s.current_qty, 0) AS current_qty,
  COALESCE(s.opening_qty, 0) + COALESCE(grn.total_grn_qty, 0) - COALESCE(iss.total_issued_qty, 0) AS calculated_qty,
  COALESCE(iss.issue_7d, 0) AS issue_7d,
  COALESCE(iss.issue_30d, 0) AS issue_30d,
  COALESCE(iss.issue_90d, 0) AS issue_90d,
  {_cover(30)} AS days_of_cover,
  {_cover(7)} AS days_of_cover_7d,
  {_cover(90)} AS days_of_cover_90d,
  CASE
    WHEN ABS(COALESCE(s.opening_qty, 0) + COALESCE(grn.total_grn_qty, 0)
             - COALESCE(iss.total_issued_qty, 0) - COALESCE(s.current_qty, 0)) > 0.01
    THEN 'MISMATCH'
    ELSE 'OK'
  END AS stock_validation_status,
  {_rate(7)} AS consumption_rate_7d,
  {_rate(30)} AS consumption_rate_30d,
  {_rate(90)} AS consumption_rate_90d
FROM item_master im
LEFT JOIN stock s ON s.item_code = im.item_code
LEFT JOIN categories c ON c.id = im.category_id
LEFT JOIN (
  SELECT item_code, SUM(qty_received) AS total_grn_qty
  FROM grn_log
  GROUP BY item_code
) grn ON grn.item_code = im.item_code
LEFT JOIN (
  SELECT item_code,
         SUM(qty_issued) AS total_issued_qty,
         {_window_sum(7)},
         {_window_sum(30)},
         {_window_sum(90)}
  FROM issue_log
  GROUP BY item_code
) iss ON iss.item_code = im.item_code
ORDER BY COALESCE(s.current_qty, 0) ASC
"""


def upgrade() -> None:
    """Upgrade schema: create all tables; add the stock_summary view on PostgreSQL."""
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category_name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_categories_category_name", "categories", ["category_name"], unique=True)

    op.create_table(
        "item_master",
        sa.Column("item_code", sa.String(), primary_key=True),
        sa.Column("item_name", sa.String(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("qualifier", sa.String(), nullable=True),
        sa.Column("gsm", sa.Float(), nullable=True),
        sa.Column("size_mm", sa.String(), nullable=True),
        sa.Column("uom", sa.String(), nullable=False),
        sa.Column("usage_type", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("auto_code", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_item_master_item_name", "item_master", ["item_name"])
    op.create_index("ix_item_master_category_id", "item_master", ["category_id"])
    op.create_index("ix_item_master_status", "item_master", ["status"])

    op.create_table(
        "stock",
        sa.Column("item_code", sa.String(), sa.ForeignKey("item_master.item_code"), primary_key=True),
        sa.Column("opening_qty", sa.Float(), nullable=False),
        sa.Column("current_qty", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "grn_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("grn_number", sa.String(), nullable=False),
        sa.Column("item_code", sa.String(), sa.ForeignKey("item_master.item_code"), nullable=False),
        sa.Column("qty_received", sa.Float(), nullable=False),
        sa.Column("uom", sa.String(), nullable=True),
        sa.Column("vendor", sa.String(), nullable=True),
        sa.Column("invoice_number", sa.String(), nullable=True),
        sa.Column("amount_inr", sa.Float(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_grn_log_grn_number", "grn_log", ["grn_number"])
    op.create_index("ix_grn_log_item_code", "grn_log", ["item_code"])
    op.create_index("ix_grn_log_created_at", "grn_log", ["created_at"])

    op.create_table(
        "issue_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_code", sa.String(), sa.ForeignKey("item_master.item_code"), nullable=False),
        sa.Column("qty_issued", sa.Float(), nullable=False),
        sa.Column("purpose", sa.String(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_issue_log_item_code", "issue_log", ["item_code"])
    op.create_index("ix_issue_log_created_at", "issue_log", ["created_at"])

    op.create_table(
        "csv_upload_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("file_type", sa.String(), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("success_rows", sa.Integer(), nullable=False),
        sa.Column("error_rows", sa.Integer(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_csv_upload_log_user_id", "csv_upload_log", ["user_id"])

    op.create_table(
        "import_lock",
        sa.Column("target", sa.String(), primary_key=True),
        sa.Column("holder", sa.String(), nullable=True),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
    )

    bind = op.get_bind()
    if bind is not None and getattr(bind, "dialect", None) and bind.dialect.name == "postgresql":
        op.execute("DROP VIEW IF EXISTS stock_summary")
        op.execute(STOCK_SUMMARY_VIEW)


def downgrade() -> None:
    """Downgrade schema: drop the view and every table."""
    bind = op.get_bind()
    if bind is not None and getattr(bind, "dialect", None) and bind.dialect.name == "postgresql":
        op.execute("DROP VIEW IF EXISTS stock_summary")
    for table in ("import_lock", "csv_upload_log", "issue_log", "grn_log", "stock", "item_master", "categories"):
        op.drop_table(table)
