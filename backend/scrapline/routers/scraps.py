# scrapline/routers/scraps.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from scrapline.db import get_db
from scrapline.schemas.common import ScrapStatus, ScrapType
from scrapline.schemas.scraps import ScrapReportIn, ScrapConfirmIn, ScrapWriteOffIn, ScrapOut
from scrapline.services import ledger

router = APIRouter(prefix="/scraps", tags=["scraps"])


# REPORT (operator on the line)
@router.post("", status_code=201, response_model=ScrapOut)
def report_scrap(payload: ScrapReportIn, db: Session = Depends(get_db)):
    return ledger.report_scrap(db, payload)

# LIST (optional filters)
@router.get("", response_model=list[ScrapOut])
def list_scraps(
    status: Optional[ScrapStatus] = None,
    scrap_type: Optional[ScrapType] = None,
    batch_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return ledger.list_scraps(db, status=status, scrap_type=scrap_type, batch_id=batch_id)

@router.get("/{scrap_id}", response_model=ScrapOut)
def get_scrap(scrap_id: str, db: Session = Depends(get_db)):
    return ledger.get_scrap(db, scrap_id)

# CONFIRM (quality control)
@router.post("/{scrap_id}/confirm", response_model=ScrapOut)
def confirm_scrap(scrap_id: str, payload: ScrapConfirmIn, db: Session = Depends(get_db)):
    return ledger.confirm_scrap(db, scrap_id, payload)

# WRITE-OFF (not recyclable)
@router.post("/{scrap_id}/write-off", response_model=ScrapOut)
def write_off_scrap(scrap_id: str, payload: ScrapWriteOffIn, db: Session = Depends(get_db)):
    return ledger.write_off_scrap(db, scrap_id, payload)
