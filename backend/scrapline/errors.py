# scrapline/errors.py
"""Error taxonomy shared by the services, the HTTP layer and the API client.

Every failure carries a stable ``code`` so a caller on the other side of the
wire can rebuild the same exception type and show which precondition failed.
"""
from typing import Any, Optional


class WorkflowError(Exception):
    code = "WORKFLOW_ERROR"
    status_code = 400

    def __init__(self, detail: str, reasons: Optional[list[str]] = None):
        super().__init__(detail)
        self.detail = detail
        self.reasons = list(reasons or [])

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.detail, "code": self.code, "reasons": self.reasons}


class NotFoundError(WorkflowError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(WorkflowError):
    """A single-active-instance invariant would be violated."""
    code = "CONFLICT"
    status_code = 409


class InvalidStateError(WorkflowError):
    """The entity is in the wrong lifecycle state for the operation."""
    code = "INVALID_STATE"
    status_code = 409


class PreconditionFailedError(WorkflowError):
    """The completion gate refused to finalize a batch."""
    code = "PRECONDITION_FAILED"
    status_code = 412


class InvalidQuantityError(WorkflowError):
    code = "INVALID_QUANTITY"
    status_code = 422


class TransientIOError(WorkflowError):
    """The system of record could not be reached. Safe to retry."""
    code = "TRANSIENT_IO"
    status_code = 503


_BY_CODE = {
    cls.code: cls
    for cls in (
        NotFoundError,
        ConflictError,
        InvalidStateError,
        PreconditionFailedError,
        InvalidQuantityError,
        TransientIOError,
    )
}


def error_from_payload(status_code: int, payload: Any) -> WorkflowError:
    """Rebuild a WorkflowError from an error response body."""
    if not isinstance(payload, dict):
        payload = {}
    detail = payload.get("detail")
    if not isinstance(detail, str):
        detail = f"Request failed with status {status_code}"
    reasons = payload.get("reasons") or []
    cls = _BY_CODE.get(str(payload.get("code") or ""))
    if cls is None:
        if status_code >= 500:
            cls = TransientIOError
        elif status_code == 404:
            cls = NotFoundError
        else:
            cls = WorkflowError
    return cls(detail, reasons=[str(r) for r in reasons])
