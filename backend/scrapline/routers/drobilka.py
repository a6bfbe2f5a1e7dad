# scrapline/routers/drobilka.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from scrapline.db import get_db
from scrapline.schemas.drobilka import DrobilkaStartIn, DrobilkaCompleteIn, DrobilkaProcessOut
from scrapline.services import drobilka

router = APIRouter(prefix="/drobilka", tags=["drobilka"])


@router.get("", response_model=list[DrobilkaProcessOut])
def list_processes(batch_id: Optional[str] = None, db: Session = Depends(get_db)):
    return drobilka.list_processes(db, batch_id=batch_id)

@router.post("", status_code=201, response_model=DrobilkaProcessOut)
def start_process(payload: DrobilkaStartIn, db: Session = Depends(get_db)):
    return drobilka.start_process(db, payload)

@router.get("/{process_id}", response_model=DrobilkaProcessOut)
def get_process(process_id: str, db: Session = Depends(get_db)):
    return drobilka.get_process(db, process_id)

@router.post("/{process_id}/complete", response_model=DrobilkaProcessOut)
def complete_process(process_id: str, payload: DrobilkaCompleteIn, db: Session = Depends(get_db)):
    return drobilka.complete_process(db, process_id, payload)
