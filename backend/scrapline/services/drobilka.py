# scrapline/services/drobilka.py
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Optional
import uuid, json, logging

from scrapline.errors import NotFoundError, InvalidStateError, InvalidQuantityError
from scrapline.schemas.common import db_now, to_qty
from scrapline.schemas.drobilka import DrobilkaStartIn, DrobilkaCompleteIn, DrobilkaProcessOut
from scrapline.services import events

logger = logging.getLogger("scrapline.drobilka")

PROCESS_COLUMNS = """process_id, batch_id, drobilka_type, input_quantity, output_quantity,
                     work_center, lead_operator, operators, started_at, completed_at, notes"""


# ---------- Helpers ----------

def _parse_json(value):
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", "ignore")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return []
    return value

def process_from_row(row) -> DrobilkaProcessOut:
    d = dict(row)
    d["input_quantity"] = to_qty(d["input_quantity"])
    if d.get("output_quantity") is not None:
        d["output_quantity"] = to_qty(d["output_quantity"])
    d["operators"] = [str(o) for o in (_parse_json(d.get("operators")) or [])]
    return DrobilkaProcessOut.model_validate(d)


# ---------- Queries ----------

def get_process(db: Session, process_id: str) -> DrobilkaProcessOut:
    row = db.execute(
        text(f"SELECT {PROCESS_COLUMNS} FROM drobilka_processes WHERE process_id = :pid"),
        {"pid": process_id},
    ).mappings().first()
    if not row:
        raise NotFoundError(f"Drobilka process {process_id} does not exist")
    return process_from_row(row)

def list_processes(db: Session, batch_id: Optional[str] = None) -> list[DrobilkaProcessOut]:
    rows = db.execute(
        text(f"""
            SELECT {PROCESS_COLUMNS}
              FROM drobilka_processes
             WHERE (:bid IS NULL OR batch_id = :bid)
             ORDER BY started_at, process_id
        """),
        {"bid": batch_id},
    ).mappings().all()
    return [process_from_row(r) for r in rows]


# ---------- Commands ----------

def start_process(db: Session, payload: DrobilkaStartIn) -> DrobilkaProcessOut:
    """Start a grinding run. The owning batch must be IN_PROGRESS when the row lands."""
    process_id = str(uuid.uuid4())
    res = db.execute(
        text("""
            INSERT INTO drobilka_processes(
                process_id, batch_id, drobilka_type, input_quantity, output_quantity,
                work_center, lead_operator, operators, started_at, completed_at, notes
            )
            SELECT :id, b.batch_id, :dtype, :inq, NULL, :wc, :lead, :ops, :now, NULL, :notes
              FROM recycling_batches b
             WHERE b.batch_id = :bid
               AND b.status = 'IN_PROGRESS'
        """),
        {
            "id": process_id,
            "bid": payload.batch_id,
            "dtype": payload.drobilka_type,
            "inq": str(payload.input_quantity),
            "wc": payload.work_center,
            "lead": payload.lead_operator,
            "ops": json.dumps(payload.operators),
            "now": db_now(),
            "notes": payload.notes,
        },
    )
    if res.rowcount == 0:
        db.rollback()
        status = db.execute(
            text("SELECT status FROM recycling_batches WHERE batch_id = :bid"),
            {"bid": payload.batch_id},
        ).scalar()
        if status is None:
            raise NotFoundError(f"Recycling batch {payload.batch_id} does not exist")
        raise InvalidStateError(
            f"Recycling batch {payload.batch_id} is {status}; drobilka runs need an active batch"
        )
    db.commit()

    process = get_process(db, process_id)
    logger.info(
        "Drobilka %s started: %s line, batch %s, input %s",
        process_id, process.drobilka_type, process.batch_id, process.input_quantity,
    )
    events.publish("PROCESS_STARTED", process=process)
    return process

def complete_process(db: Session, process_id: str, payload: DrobilkaCompleteIn) -> DrobilkaProcessOut:
    """Close a grinding run. One way only: a completed run stays as it is.

    Batch readiness is not checked here; that belongs to complete_batch.
    """
    current = get_process(db, process_id)
    if current.completed_at is not None:
        db.rollback()
        raise InvalidStateError(
            f"Drobilka process {process_id} was already completed at {current.completed_at.isoformat()}"
        )
    if payload.output_quantity > current.input_quantity:
        db.rollback()
        raise InvalidQuantityError(
            f"Output {payload.output_quantity} exceeds the run's input of {current.input_quantity}"
        )

    res = db.execute(
        text("""
            UPDATE drobilka_processes
               SET completed_at = :now, output_quantity = :outq, notes = COALESCE(:notes, notes)
             WHERE process_id = :pid AND completed_at IS NULL
        """),
        {"pid": process_id, "now": db_now(), "outq": str(payload.output_quantity), "notes": payload.notes},
    )
    if res.rowcount == 0:
        db.rollback()
        raise InvalidStateError(f"Drobilka process {process_id} was already completed")
    db.commit()

    process = get_process(db, process_id)
    logger.info("Drobilka %s completed: output %s", process_id, process.output_quantity)
    events.publish("PROCESS_COMPLETED", process=process)
    return process
