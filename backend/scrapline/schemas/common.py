# scrapline/schemas/common.py
from typing import Any, Literal
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

# Types
ScrapType = Literal["HARD", "SOFT"]
SCRAP_TYPES: tuple[ScrapType, ...] = ("HARD", "SOFT")

# Statuses
ScrapStatus = Literal["PENDING", "CONFIRMED", "IN_RECYCLING", "RECYCLED", "WRITTEN_OFF"]
BatchStatus = Literal["IN_PROGRESS", "COMPLETED"]

QTY_STEP = Decimal("0.001")

# UTC helpers
def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def db_now() -> str:
    """Naive UTC timestamp as bound into DATETIME columns (MySQL and SQLite both take this form)."""
    return now_utc().strftime("%Y-%m-%d %H:%M:%S.%f")

def to_qty(value: Any) -> Decimal:
    # SQLite hands back int/float for NUMERIC, MySQL a Decimal; str() keeps both exact enough
    if value is None:
        return Decimal("0").quantize(QTY_STEP)
    return Decimal(str(value)).quantize(QTY_STEP, rounding=ROUND_HALF_UP)
