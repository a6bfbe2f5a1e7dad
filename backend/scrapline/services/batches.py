# scrapline/services/batches.py
"""Recycling batch lifecycle: NONE -> IN_PROGRESS -> COMPLETED.

The database is the serializing authority. ``recycling_batches.active_key`` is
unique and only set while a batch is IN_PROGRESS, so two callers racing to
start a batch cannot both succeed; every other transition is a conditional
UPDATE whose row count tells whether this caller won.
"""
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
import uuid, logging

from scrapline.errors import (
    NotFoundError,
    ConflictError,
    InvalidStateError,
    PreconditionFailedError,
)
from scrapline.models import ACTIVE_KEY
from scrapline.schemas.common import db_now, to_qty
from scrapline.schemas.recycling import BatchStartIn, BatchCompleteIn, RecyclingBatchOut, RecyclingOut
from scrapline.services import drobilka, events, gate

logger = logging.getLogger("scrapline.batches")

BATCH_COLUMNS = """batch_id, batch_number, status, total_hard_scrap, total_soft_scrap,
                   final_vt_quantity, started_by, started_at, completed_by, completed_at, notes"""


# ---------- Helpers ----------

def batch_from_row(row) -> RecyclingBatchOut:
    d = dict(row)
    d["total_hard_scrap"] = to_qty(d["total_hard_scrap"])
    d["total_soft_scrap"] = to_qty(d["total_soft_scrap"])
    if d.get("final_vt_quantity") is not None:
        d["final_vt_quantity"] = to_qty(d["final_vt_quantity"])
    return RecyclingBatchOut.model_validate(d)

def _fetch_batch_row(db: Session, batch_id: str):
    return db.execute(
        text(f"SELECT {BATCH_COLUMNS} FROM recycling_batches WHERE batch_id = :bid"),
        {"bid": batch_id},
    ).mappings().first()

def _active_batch_row(db: Session):
    return db.execute(
        text(f"""
            SELECT {BATCH_COLUMNS}
              FROM recycling_batches
             WHERE status = 'IN_PROGRESS'
             ORDER BY batch_number
             LIMIT 1
        """)
    ).mappings().first()

def _next_batch_number(db: Session) -> int:
    n = db.execute(text("SELECT COALESCE(MAX(batch_number), 0) FROM recycling_batches")).scalar()
    return int(n or 0) + 1

def _claimed_totals(db: Session, batch_id: str) -> dict[str, object]:
    rows = db.execute(
        text("""
            SELECT scrap_type, COALESCE(SUM(quantity), 0) AS total
              FROM scrap_records
             WHERE recycling_batch_id = :bid
             GROUP BY scrap_type
        """),
        {"bid": batch_id},
    ).mappings().all()
    return {r["scrap_type"]: to_qty(r["total"]) for r in rows}


# ---------- Queries ----------

def get_batch(db: Session, batch_id: str) -> RecyclingBatchOut:
    row = _fetch_batch_row(db, batch_id)
    if not row:
        raise NotFoundError(f"Recycling batch {batch_id} does not exist")
    return batch_from_row(row)

def get_active_batch(db: Session) -> Optional[RecyclingBatchOut]:
    row = _active_batch_row(db)
    return batch_from_row(row) if row else None

def list_batches(db: Session, status: Optional[str] = None) -> list[RecyclingBatchOut]:
    rows = db.execute(
        text(f"""
            SELECT {BATCH_COLUMNS}
              FROM recycling_batches
             WHERE (:status IS NULL OR status = :status)
             ORDER BY batch_number DESC
        """),
        {"status": status},
    ).mappings().all()
    return [batch_from_row(r) for r in rows]

def list_recyclings(db: Session, batch_id: Optional[str] = None) -> list[RecyclingOut]:
    rows = db.execute(
        text("""
            SELECT recycling_id, scrap_id, batch_id, recycled_quantity,
                   recycled_by, recycled_at, notes
              FROM recyclings
             WHERE (:bid IS NULL OR batch_id = :bid)
             ORDER BY recycled_at DESC, recycling_id
        """),
        {"bid": batch_id},
    ).mappings().all()
    out = []
    for r in rows:
        d = dict(r)
        d["recycled_quantity"] = to_qty(d["recycled_quantity"])
        out.append(RecyclingOut.model_validate(d))
    return out


# ---------- Commands ----------

def start_batch(db: Session, payload: BatchStartIn) -> RecyclingBatchOut:
    """Open a new batch over all uncollected scrap.

    Claims every open, unclaimed scrap record and stores the claimed totals, so
    the snapshot and the claim come from the same rows.
    """
    active = _active_batch_row(db)
    if active:
        db.rollback()
        raise ConflictError(
            f"Recycling batch #{active['batch_number']} is already in progress; complete it first"
        )

    batch_id = str(uuid.uuid4())
    try:
        number = _next_batch_number(db)
        db.execute(
            text("""
                INSERT INTO recycling_batches(
                    batch_id, batch_number, status, active_key,
                    total_hard_scrap, total_soft_scrap, started_by, started_at, notes
                )
                VALUES (:id, :num, 'IN_PROGRESS', :akey, 0, 0, :by, :now, :notes)
            """),
            {
                "id": batch_id,
                "num": number,
                "akey": ACTIVE_KEY,
                "by": payload.started_by,
                "now": db_now(),
                "notes": payload.notes,
            },
        )
        db.execute(
            text("""
                UPDATE scrap_records
                   SET status = 'IN_RECYCLING', recycling_batch_id = :bid
                 WHERE status IN ('PENDING', 'CONFIRMED')
                   AND recycling_batch_id IS NULL
            """),
            {"bid": batch_id},
        )
        totals = _claimed_totals(db, batch_id)
        hard = totals.get("HARD", to_qty(0))
        soft = totals.get("SOFT", to_qty(0))
        if hard + soft <= 0:
            db.rollback()
            raise InvalidStateError("Nothing to process: there is no uncollected hard or soft scrap")

        db.execute(
            text("""
                UPDATE recycling_batches
                   SET total_hard_scrap = :hard, total_soft_scrap = :soft
                 WHERE batch_id = :bid
            """),
            {"bid": batch_id, "hard": str(hard), "soft": str(soft)},
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Batch start by %s lost the race for the active slot", payload.started_by)
        raise ConflictError("Another recycling batch was started at the same time")

    batch = get_batch(db, batch_id)
    logger.info(
        "Recycling batch #%s (%s) started by %s: hard=%s soft=%s",
        batch.batch_number, batch_id, batch.started_by, batch.total_hard_scrap, batch.total_soft_scrap,
    )
    events.publish("BATCH_STARTED", batch=batch)
    return batch

def complete_batch(db: Session, batch_id: str, payload: BatchCompleteIn) -> RecyclingBatchOut:
    """Close the batch, record the VT output and turn claimed scrap into RECYCLED."""
    batch = get_batch(db, batch_id)
    if batch.status != "IN_PROGRESS":
        db.rollback()
        raise InvalidStateError(f"Recycling batch #{batch.batch_number} is already {batch.status}")

    processes = drobilka.list_processes(db, batch_id)
    reasons = gate.blocking_reasons(batch, processes)
    if reasons:
        db.rollback()
        raise PreconditionFailedError(
            f"Recycling batch #{batch.batch_number} cannot be completed yet: " + "; ".join(reasons),
            reasons=reasons,
        )

    now = db_now()
    recycled_by = payload.completed_by or batch.started_by
    res = db.execute(
        text("""
            UPDATE recycling_batches
               SET status = 'COMPLETED', active_key = NULL,
                   final_vt_quantity = :vt, completed_by = :by, completed_at = :now,
                   notes = COALESCE(:notes, notes)
             WHERE batch_id = :bid AND status = 'IN_PROGRESS'
        """),
        {"bid": batch_id, "vt": str(payload.final_vt_quantity), "by": recycled_by, "now": now, "notes": payload.notes},
    )
    if res.rowcount == 0:
        db.rollback()
        raise InvalidStateError(f"Recycling batch #{batch.batch_number} was completed by someone else")

    claimed = db.execute(
        text("""
            SELECT scrap_id, quantity
              FROM scrap_records
             WHERE recycling_batch_id = :bid AND status = 'IN_RECYCLING'
        """),
        {"bid": batch_id},
    ).mappings().all()
    if claimed:
        db.execute(
            text("""
                INSERT INTO recyclings(
                    recycling_id, scrap_id, batch_id, recycled_quantity,
                    recycled_by, recycled_at, notes
                )
                VALUES (:id, :sid, :bid, :qty, :by, :now, :notes)
            """),
            [
                {
                    "id": str(uuid.uuid4()),
                    "sid": r["scrap_id"],
                    "bid": batch_id,
                    "qty": str(to_qty(r["quantity"])),
                    "by": recycled_by,
                    "now": now,
                    "notes": f"Recycled in batch #{batch.batch_number}",
                }
                for r in claimed
            ],
        )
        db.execute(
            text("""
                UPDATE scrap_records
                   SET status = 'RECYCLED'
                 WHERE recycling_batch_id = :bid AND status = 'IN_RECYCLING'
            """),
            {"bid": batch_id},
        )
    db.commit()

    done = get_batch(db, batch_id)
    logger.info(
        "Recycling batch #%s completed by %s: vt=%s, %d scrap record(s) recycled",
        done.batch_number, recycled_by, done.final_vt_quantity, len(claimed),
    )
    events.publish("BATCH_COMPLETED", batch=done)
    return done
