# scrapline/routers/recycling.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from scrapline.db import get_db
from scrapline.schemas.common import BatchStatus
from scrapline.schemas.recycling import (
    BatchStartIn,
    BatchCompleteIn,
    RecyclingBatchOut,
    RecyclingOut,
    WorkflowSnapshot,
)
from scrapline.schemas.scraps import CurrentTotalsOut
from scrapline.services import batches, ledger, workflow

router = APIRouter(prefix="/recycling", tags=["recycling"])


# ---------------------------
# TOTALS / ACTIVE / WORKFLOW
# ---------------------------
@router.get("/current-totals", response_model=CurrentTotalsOut)
def current_totals(db: Session = Depends(get_db)):
    return ledger.current_totals(db)

@router.get("/active", response_model=Optional[RecyclingBatchOut])
def active_batch(db: Session = Depends(get_db)):
    return batches.get_active_batch(db)

@router.get("/workflow", response_model=WorkflowSnapshot)
def workflow_snapshot(db: Session = Depends(get_db)):
    return workflow.read_snapshot(db)


# ---------------------------
# BATCHES
# ---------------------------
@router.get("/batches", response_model=list[RecyclingBatchOut])
def list_batches(status: Optional[BatchStatus] = None, db: Session = Depends(get_db)):
    return batches.list_batches(db, status=status)

@router.post("/batches", status_code=201, response_model=RecyclingBatchOut)
def start_batch(payload: BatchStartIn, db: Session = Depends(get_db)):
    return batches.start_batch(db, payload)

@router.get("/batches/{batch_id}", response_model=RecyclingBatchOut)
def get_batch(batch_id: str, db: Session = Depends(get_db)):
    return batches.get_batch(db, batch_id)

@router.post("/batches/{batch_id}/complete", response_model=RecyclingBatchOut)
def complete_batch(batch_id: str, payload: BatchCompleteIn, db: Session = Depends(get_db)):
    return batches.complete_batch(db, batch_id, payload)


# ---------------------------
# HISTORY (audit of recycled scrap)
# ---------------------------
@router.get("/history", response_model=list[RecyclingOut])
def recycling_history(batch_id: Optional[str] = None, db: Session = Depends(get_db)):
    return batches.list_recyclings(db, batch_id=batch_id)
