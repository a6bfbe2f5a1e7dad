# scrapline/services/workflow.py
from sqlalchemy.orm import Session
from typing import Optional

from scrapline.schemas.common import now_utc
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import RecyclingBatchOut, WorkflowSnapshot
from scrapline.schemas.scraps import CurrentTotalsOut
from scrapline.services import batches, drobilka, gate, ledger


def build_snapshot(
    totals: CurrentTotalsOut,
    batch: Optional[RecyclingBatchOut],
    processes: list[DrobilkaProcessOut],
) -> WorkflowSnapshot:
    """Assemble a full view and evaluate the completion gate against it."""
    if batch is None:
        return WorkflowSnapshot(totals=totals, fetched_at=now_utc())

    owned = [p for p in processes if p.batch_id == batch.batch_id]
    if batch.status == "IN_PROGRESS":
        reasons = gate.blocking_reasons(batch, owned)
    else:
        reasons = [f"Recycling batch #{batch.batch_number} is already {batch.status}"]
    return WorkflowSnapshot(
        totals=totals,
        active_batch=batch,
        processes=owned,
        can_complete=not reasons,
        blocking_reasons=reasons,
        fetched_at=now_utc(),
    )


def read_snapshot(db: Session) -> WorkflowSnapshot:
    totals = ledger.current_totals(db)
    batch = batches.get_active_batch(db)
    processes = drobilka.list_processes(db, batch.batch_id) if batch else []
    return build_snapshot(totals, batch, processes)
