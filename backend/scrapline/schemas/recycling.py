# scrapline/schemas/recycling.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .common import BatchStatus, to_utc
from .drobilka import DrobilkaProcessOut
from .scraps import CurrentTotalsOut

class BatchStartIn(BaseModel):
    started_by: str = Field(min_length=1, max_length=128)
    notes: Optional[str] = None

class BatchCompleteIn(BaseModel):
    final_vt_quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)
    completed_by: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None

class RecyclingBatchOut(BaseModel):
    batch_id: str
    batch_number: int
    status: BatchStatus
    total_hard_scrap: Decimal
    total_soft_scrap: Decimal
    final_vt_quantity: Optional[Decimal] = None
    started_by: str
    started_at: datetime
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def _v_utc(cls, v):
        return to_utc(v) if v is not None else v

class RecyclingOut(BaseModel):
    recycling_id: str
    scrap_id: str
    batch_id: str
    recycled_quantity: Decimal
    recycled_by: str
    recycled_at: datetime
    notes: Optional[str] = None

    @field_validator("recycled_at")
    @classmethod
    def _v_utc(cls, v):
        return to_utc(v)

class WorkflowSnapshot(BaseModel):
    """Everything an observer needs to render the workflow, read in one go."""
    totals: CurrentTotalsOut
    active_batch: Optional[RecyclingBatchOut] = None
    processes: list[DrobilkaProcessOut] = Field(default_factory=list)
    can_complete: bool = False
    blocking_reasons: list[str] = Field(default_factory=list)
    fetched_at: datetime
