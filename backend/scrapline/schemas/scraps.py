# scrapline/schemas/scraps.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .common import ScrapType, ScrapStatus, to_utc

class ScrapReportIn(BaseModel):
    scrap_type: ScrapType
    quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)
    unit_of_measure: Optional[str] = Field(None, max_length=16)
    reason: str = Field(min_length=1, max_length=64)
    reported_by: str = Field(min_length=1, max_length=128)
    notes: Optional[str] = None

    @field_validator("reason", "reported_by")
    @classmethod
    def _v_strip(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class ScrapConfirmIn(BaseModel):
    confirmed_by: str = Field(min_length=1, max_length=128)

class ScrapWriteOffIn(BaseModel):
    notes: Optional[str] = None

class ScrapOut(BaseModel):
    scrap_id: str
    scrap_type: ScrapType
    quantity: Decimal
    unit_of_measure: str
    status: ScrapStatus
    reason: str
    reported_by: str
    notes: Optional[str] = None
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    recycling_batch_id: Optional[str] = None
    created_at: datetime

    @field_validator("created_at", "confirmed_at")
    @classmethod
    def _v_utc(cls, v):
        return to_utc(v) if v is not None else v

class CurrentTotalsOut(BaseModel):
    hard_scrap: Decimal
    soft_scrap: Decimal
    unit_of_measure: str

    @property
    def total(self) -> Decimal:
        return self.hard_scrap + self.soft_scrap
