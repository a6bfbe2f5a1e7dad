# scrapline/models.py
# Schema as SQLAlchemy Core tables. The queries themselves are plain text() SQL;
# this metadata feeds alembic autogenerate and the test database.
import sqlalchemy as sa

metadata = sa.MetaData()

ID = sa.String(length=36)
QTY = sa.Numeric(12, 3)

SCRAP_TYPES = ("HARD", "SOFT")
SCRAP_STATUSES = ("PENDING", "CONFIRMED", "IN_RECYCLING", "RECYCLED", "WRITTEN_OFF")
BATCH_STATUSES = ("IN_PROGRESS", "COMPLETED")

# value held in recycling_batches.active_key while a batch is running; NULL otherwise
ACTIVE_KEY = "ACTIVE"

scrap_records = sa.Table(
    "scrap_records",
    metadata,
    sa.Column("scrap_id", ID, primary_key=True),
    sa.Column("scrap_type", sa.Enum(*SCRAP_TYPES, name="scrap_type_enum"), nullable=False),
    sa.Column("quantity", QTY, nullable=False),
    sa.Column("unit_of_measure", sa.String(length=16), nullable=False, server_default="KG"),
    sa.Column(
        "status",
        sa.Enum(*SCRAP_STATUSES, name="scrap_status_enum"),
        nullable=False,
        server_default="PENDING",
    ),
    sa.Column("reason", sa.String(length=64), nullable=False),
    sa.Column("reported_by", sa.String(length=128), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Column("confirmed_by", sa.String(length=128), nullable=True),
    sa.Column("confirmed_at", sa.DateTime(), nullable=True),
    sa.Column("recycling_batch_id", ID, sa.ForeignKey("recycling_batches.batch_id"), nullable=True),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.Index("idx_scrap_status_type", "status", "scrap_type"),
    sa.Index("idx_scrap_batch", "recycling_batch_id"),
)

recycling_batches = sa.Table(
    "recycling_batches",
    metadata,
    sa.Column("batch_id", ID, primary_key=True),
    sa.Column("batch_number", sa.Integer(), nullable=False),
    sa.Column("status", sa.Enum(*BATCH_STATUSES, name="batch_status_enum"), nullable=False),
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
)

drobilka_processes = sa.Table(
    "drobilka_processes",
    metadata,
    sa.Column("process_id", ID, primary_key=True),
    sa.Column("batch_id", ID, sa.ForeignKey("recycling_batches.batch_id"), nullable=False),
    sa.Column("drobilka_type", sa.Enum(*SCRAP_TYPES, name="drobilka_type_enum"), nullable=False),
    sa.Column("input_quantity", QTY, nullable=False),
    sa.Column("output_quantity", QTY, nullable=True),
    sa.Column("work_center", sa.String(length=64), nullable=False),
    sa.Column("lead_operator", sa.String(length=128), nullable=False),
    sa.Column("operators", sa.JSON, nullable=False),
    sa.Column("started_at", sa.DateTime(), nullable=False),
    sa.Column("completed_at", sa.DateTime(), nullable=True),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Index("idx_drobilka_batch", "batch_id", "drobilka_type", "started_at"),
)

recyclings = sa.Table(
    "recyclings",
    metadata,
    sa.Column("recycling_id", ID, primary_key=True),
    sa.Column("scrap_id", ID, sa.ForeignKey("scrap_records.scrap_id"), nullable=False),
    sa.Column("batch_id", ID, sa.ForeignKey("recycling_batches.batch_id"), nullable=False),
    sa.Column("recycled_quantity", QTY, nullable=False),
    sa.Column("recycled_by", sa.String(length=128), nullable=False),
    sa.Column("recycled_at", sa.DateTime(), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Index("idx_recyclings_batch", "batch_id", "recycled_at"),
)
