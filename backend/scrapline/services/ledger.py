# scrapline/services/ledger.py
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Optional
import uuid, logging

from scrapline.config import settings
from scrapline.errors import NotFoundError, InvalidStateError
from scrapline.schemas.common import db_now, to_qty
from scrapline.schemas.scraps import (
    ScrapReportIn,
    ScrapConfirmIn,
    ScrapWriteOffIn,
    ScrapOut,
    CurrentTotalsOut,
)

logger = logging.getLogger("scrapline.ledger")

SCRAP_COLUMNS = """scrap_id, scrap_type, quantity, unit_of_measure, status, reason,
                   reported_by, notes, confirmed_by, confirmed_at, recycling_batch_id, created_at"""


# ---------- Helpers ----------

def scrap_from_row(row) -> ScrapOut:
    d = dict(row)
    d["quantity"] = to_qty(d["quantity"])
    return ScrapOut.model_validate(d)

def _fetch_scrap_row(db: Session, scrap_id: str):
    return db.execute(
        text(f"SELECT {SCRAP_COLUMNS} FROM scrap_records WHERE scrap_id = :sid"),
        {"sid": scrap_id},
    ).mappings().first()


# ---------- Queries ----------

def current_totals(db: Session) -> CurrentTotalsOut:
    """Uncollected scrap per class: open records that no batch has claimed yet."""
    rows = db.execute(
        text("""
            SELECT scrap_type, COALESCE(SUM(quantity), 0) AS total
              FROM scrap_records
             WHERE status IN ('PENDING', 'CONFIRMED')
               AND recycling_batch_id IS NULL
             GROUP BY scrap_type
        """)
    ).mappings().all()
    by_type = {r["scrap_type"]: to_qty(r["total"]) for r in rows}
    return CurrentTotalsOut(
        hard_scrap=by_type.get("HARD", to_qty(0)),
        soft_scrap=by_type.get("SOFT", to_qty(0)),
        unit_of_measure=settings.scrap_unit,
    )

def get_scrap(db: Session, scrap_id: str) -> ScrapOut:
    row = _fetch_scrap_row(db, scrap_id)
    if not row:
        raise NotFoundError(f"Scrap record {scrap_id} does not exist")
    return scrap_from_row(row)

def list_scraps(
    db: Session,
    status: Optional[str] = None,
    scrap_type: Optional[str] = None,
    batch_id: Optional[str] = None,
) -> list[ScrapOut]:
    rows = db.execute(
        text(f"""
            SELECT {SCRAP_COLUMNS}
              FROM scrap_records
             WHERE (:status IS NULL OR status = :status)
               AND (:stype IS NULL OR scrap_type = :stype)
               AND (:bid IS NULL OR recycling_batch_id = :bid)
             ORDER BY created_at DESC, scrap_id
        """),
        {"status": status, "stype": scrap_type, "bid": batch_id},
    ).mappings().all()
    return [scrap_from_row(r) for r in rows]


# ---------- Commands ----------

def report_scrap(db: Session, payload: ScrapReportIn) -> ScrapOut:
    scrap_id = str(uuid.uuid4())
    unit = (payload.unit_of_measure or settings.scrap_unit).strip().upper()
    db.execute(
        text("""
            INSERT INTO scrap_records(
                scrap_id, scrap_type, quantity, unit_of_measure, status,
                reason, reported_by, notes, created_at
            )
            VALUES (:id, :stype, :qty, :unit, 'PENDING', :reason, :by, :notes, :now)
        """),
        {
            "id": scrap_id,
            "stype": payload.scrap_type,
            "qty": str(payload.quantity),
            "unit": unit,
            "reason": payload.reason,
            "by": payload.reported_by,
            "notes": payload.notes,
            "now": db_now(),
        },
    )
    db.commit()
    logger.info("Scrap %s reported: %s %s %s", scrap_id, payload.scrap_type, payload.quantity, unit)
    return get_scrap(db, scrap_id)

def confirm_scrap(db: Session, scrap_id: str, payload: ScrapConfirmIn) -> ScrapOut:
    res = db.execute(
        text("""
            UPDATE scrap_records
               SET status = 'CONFIRMED', confirmed_by = :by, confirmed_at = :now
             WHERE scrap_id = :sid AND status = 'PENDING'
        """),
        {"sid": scrap_id, "by": payload.confirmed_by, "now": db_now()},
    )
    if res.rowcount == 0:
        db.rollback()
        current = get_scrap(db, scrap_id)
        raise InvalidStateError(
            f"Scrap record {scrap_id} is {current.status}; only PENDING records can be confirmed"
        )
    db.commit()
    logger.info("Scrap %s confirmed by %s", scrap_id, payload.confirmed_by)
    return get_scrap(db, scrap_id)

def write_off_scrap(db: Session, scrap_id: str, payload: ScrapWriteOffIn) -> ScrapOut:
    res = db.execute(
        text("""
            UPDATE scrap_records
               SET status = 'WRITTEN_OFF', notes = COALESCE(:notes, notes)
             WHERE scrap_id = :sid
               AND status IN ('PENDING', 'CONFIRMED')
               AND recycling_batch_id IS NULL
        """),
        {"sid": scrap_id, "notes": payload.notes},
    )
    if res.rowcount == 0:
        db.rollback()
        current = get_scrap(db, scrap_id)
        raise InvalidStateError(
            f"Scrap record {scrap_id} is {current.status} and can no longer be written off"
        )
    db.commit()
    logger.info("Scrap %s written off", scrap_id)
    return get_scrap(db, scrap_id)
