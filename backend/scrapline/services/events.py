# scrapline/services/events.py
"""In-process state-changed notifications.

Every successful workflow command publishes one ``WorkflowEvent`` after its
transaction commits. Subscribers (dashboards, a local ``WorkflowPoller``) use it
to refresh right away instead of waiting for the next poll tick. Delivery is
synchronous, in the thread that ran the command.
"""
from pydantic import BaseModel
from typing import Callable, Literal, Optional
from datetime import datetime
import logging
import threading

from scrapline.schemas.common import now_utc
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import RecyclingBatchOut

logger = logging.getLogger("scrapline.events")

EventKind = Literal["BATCH_STARTED", "BATCH_COMPLETED", "PROCESS_STARTED", "PROCESS_COMPLETED"]

class WorkflowEvent(BaseModel):
    kind: EventKind
    batch: Optional[RecyclingBatchOut] = None
    process: Optional[DrobilkaProcessOut] = None
    occurred_at: datetime

Subscriber = Callable[[WorkflowEvent], None]

_subscribers: list[Subscriber] = []
_lock = threading.Lock()


def subscribe(callback: Subscriber) -> Callable[[], None]:
    """Register ``callback``; returns a function that unregisters it."""
    with _lock:
        _subscribers.append(callback)

    def _unsubscribe() -> None:
        with _lock:
            if callback in _subscribers:
                _subscribers.remove(callback)

    return _unsubscribe


def publish(
    kind: EventKind,
    batch: Optional[RecyclingBatchOut] = None,
    process: Optional[DrobilkaProcessOut] = None,
) -> WorkflowEvent:
    event = WorkflowEvent(kind=kind, batch=batch, process=process, occurred_at=now_utc())
    with _lock:
        targets = list(_subscribers)
    for cb in targets:
        try:
            cb(event)
        except Exception:
            # the command has already committed at this point
            logger.exception("Workflow event subscriber failed for %s", kind)
    return event


def clear_subscribers() -> None:
    with _lock:
        _subscribers.clear()
