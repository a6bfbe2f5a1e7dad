# scrapline/schemas/drobilka.py
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from scrapline.config import settings
from .common import ScrapType, to_utc

class DrobilkaStartIn(BaseModel):
    batch_id: str = Field(min_length=1, max_length=36)
    drobilka_type: ScrapType
    input_quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)
    work_center: str = Field(min_length=1, max_length=64)
    operators: list[str]
    lead_operator: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None

    @field_validator("operators")
    @classmethod
    def _v_operators(cls, v: list[str]):
        ops = [str(o).strip() for o in v]
        if not ops:
            raise ValueError("at least one operator is required")
        if any(not o for o in ops):
            raise ValueError("operator ids must not be blank")
        if len(set(ops)) != len(ops):
            raise ValueError("an operator can only be listed once")
        lo, hi = settings.drobilka_min_operators, settings.drobilka_max_operators
        if len(ops) < lo:
            raise ValueError(f"at least {lo} operators are required")
        if len(ops) > hi:
            raise ValueError(f"at most {hi} operators are allowed")
        return ops

    @model_validator(mode="after")
    def _v_lead(self):
        # the lead defaults to the first operator picked
        if not self.lead_operator:
            self.lead_operator = self.operators[0]
        elif self.lead_operator not in self.operators:
            raise ValueError("lead_operator must be one of the operators")
        return self

class DrobilkaCompleteIn(BaseModel):
    output_quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)
    notes: Optional[str] = None

class DrobilkaProcessOut(BaseModel):
    process_id: str
    batch_id: str
    drobilka_type: ScrapType
    input_quantity: Decimal
    output_quantity: Optional[Decimal] = None
    work_center: str
    lead_operator: str
    operators: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def _v_utc(cls, v):
        return to_utc(v) if v is not None else v

    @property
    def is_active(self) -> bool:
        return self.completed_at is None
