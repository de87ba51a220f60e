"""Create ingest_batches and bateo_ventas_rows tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_bateo_ingest_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ingest_batches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("range_start", sa.Date(), nullable=False),
        sa.Column("range_end", sa.Date(), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("run_id", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "bateo_ventas_rows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("ingest_batches.id"), nullable=False),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
    )
    op.create_index("ix_bateo_ventas_rows_batch_id", "bateo_ventas_rows", ["batch_id"])


def downgrade() -> None:
    op.drop_index("ix_bateo_ventas_rows_batch_id", table_name="bateo_ventas_rows")
    op.drop_table("bateo_ventas_rows")
    op.drop_table("ingest_batches")
