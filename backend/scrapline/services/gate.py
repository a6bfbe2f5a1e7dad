# scrapline/services/gate.py
"""Completion gate for recycling batches.

A batch feeds two grinding lines that run side by side. The combined output can
only be weighed once each line has finished at least one run, so a batch is
ready when it owns at least one completed HARD process and at least one
completed SOFT process. Runs still active on either line do not block, and the
order in which the lines finished does not matter.

Nothing here is cached: callers re-evaluate on every refresh.
"""
from typing import Iterable

from scrapline.schemas.common import SCRAP_TYPES
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import RecyclingBatchOut

_LINE_NAMES = {"HARD": "Hard", "SOFT": "Soft"}


def _owned(batch: RecyclingBatchOut, processes: Iterable[DrobilkaProcessOut]) -> list[DrobilkaProcessOut]:
    return [p for p in processes if p.batch_id == batch.batch_id]


def blocking_reasons(batch: RecyclingBatchOut, processes: Iterable[DrobilkaProcessOut]) -> list[str]:
    """One message per line that has no completed run yet; empty when ready."""
    owned = _owned(batch, processes)
    reasons: list[str] = []
    for line in SCRAP_TYPES:
        runs = [p for p in owned if p.drobilka_type == line]
        if any(p.completed_at is not None for p in runs):
            continue
        name = _LINE_NAMES[line]
        if not runs:
            reasons.append(f"{name} scrap line has not been started")
        else:
            reasons.append(f"{name} scrap line is not yet complete ({len(runs)} run(s) still active)")
    return reasons


def can_complete(batch: RecyclingBatchOut, processes: Iterable[DrobilkaProcessOut]) -> bool:
    return not blocking_reasons(batch, processes)
