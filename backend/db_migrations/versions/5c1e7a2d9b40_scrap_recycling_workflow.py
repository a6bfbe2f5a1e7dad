"""scrap records + recycling batches + drobilka processes + recyclings

Revision ID: 5c1e7a2d9b40
Revises:
Create Date: 2026-10-19 10:12:41.518203
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e7a2d9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.String(length=36)
QTY = sa.Numeric(12, 3)
TABLE_KW = dict(mysql_engine="InnoDB", mysql_charset="utf8mb4", mysql_collate="utf8mb4_unicode_ci")

SCRAP_TYPE = ("HARD", "SOFT")


def upgrade():
    # 001) recycling_batches; active_key is set only while IN_PROGRESS -> at most one active batch
    op.create_table(
        "recycling_batches",
        sa.Column("batch_id", ID, primary_key=True, nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum("IN_PROGRESS", "COMPLETED", name="batch_status_enum"), nullable=False),
        sa.Column("active_key", sa.String(length=16), nullable=True),
        sa.Column("total_hard_scrap", QTY, nullable=False, server_default="0"),
        sa.Column("total_soft_scrap", QTY, nullable=False, server_default="0"),
        sa.Column("final_vt_quantity", QTY, nullable=True),
        sa.Column("started_by", sa.String(length=128), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_by", sa.String(length=128), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("batch_number", name="uq_batch_number"),
        sa.UniqueConstraint("active_key", name="uq_batch_active"),
        **TABLE_KW,
    )

    # 002) scrap_records
    op.create_table(
        "scrap_records",
        sa.Column("scrap_id", ID, primary_key=True, nullable=False),
        sa.Column("scrap_type", sa.Enum(*SCRAP_TYPE, name="scrap_type_enum"), nullable=False),
        sa.Column("quantity", QTY, nullable=False),
        sa.Column("unit_of_measure", sa.String(length=16), nullable=False, server_default="KG"),
        sa.Column(
            "status",
            sa.Enum("PENDING", "CONFIRMED", "IN_RECYCLING", "RECYCLED", "WRITTEN_OFF", name="scrap_status_enum"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("reported_by", sa.String(length=128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmed_by", sa.String(length=128), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("recycling_batch_id", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["recycling_batch_id"], ["recycling_batches.batch_id"], name="fk_scrap_batch"),
        **TABLE_KW,
    )
    op.create_index("idx_scrap_status_type", "scrap_records", ["status", "scrap_type"])
    op.create_index("idx_scrap_batch", "scrap_records", ["recycling_batch_id"])

    # 003) drobilka_processes (grinding runs under a batch)
    op.create_table(
        "drobilka_processes",
        sa.Column("process_id", ID, primary_key=True, nullable=False),
        sa.Column("batch_id", ID, nullable=False),
        sa.Column("drobilka_type", sa.Enum(*SCRAP_TYPE, name="drobilka_type_enum"), nullable=False),
        sa.Column("input_quantity", QTY, nullable=False),
        sa.Column("output_quantity", QTY, nullable=True),
        sa.Column("work_center", sa.String(length=64), nullable=False),
        sa.Column("lead_operator", sa.String(length=128), nullable=False),
        sa.Column("operators", sa.JSON, nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["batch_id"], ["recycling_batches.batch_id"], name="fk_drobilka_batch"),
        **TABLE_KW,
    )
    op.create_index("idx_drobilka_batch", "drobilka_processes", ["batch_id", "drobilka_type", "started_at"])

    # 004) recyclings (audit: one row per scrap record consumed by a batch)
    op.create_table(
        "recyclings",
        sa.Column("recycling_id", ID, primary_key=True, nullable=False),
        sa.Column("scrap_id", ID, nullable=False),
        sa.Column("batch_id", ID, nullable=False),
        sa.Column("recycled_quantity", QTY, nullable=False),
        sa.Column("recycled_by", sa.String(length=128), nullable=False),
        sa.Column("recycled_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["scrap_id"], ["scrap_records.scrap_id"], name="fk_recycling_scrap"),
        sa.ForeignKeyConstraint(["batch_id"], ["recycling_batches.batch_id"], name="fk_recycling_batch"),
        **TABLE_KW,
    )
    op.create_index("idx_recyclings_batch", "recyclings", ["batch_id", "recycled_at"])


def downgrade():
    op.drop_index("idx_recyclings_batch", table_name="recyclings")
    op.drop_table("recyclings")
    op.drop_index("idx_drobilka_batch", table_name="drobilka_processes")
    op.drop_table("drobilka_processes")
    op.drop_index("idx_scrap_batch", table_name="scrap_records")
    op.drop_index("idx_scrap_status_type", table_name="scrap_records")
    op.drop_table("scrap_records")
    op.drop_table("recycling_batches")
