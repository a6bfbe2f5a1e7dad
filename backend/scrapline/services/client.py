# scrapline/services/client.py
"""Async HTTP client for the recycling workflow API.

Used by dashboards and automation, and as the default source of a
``WorkflowPoller``. Transport failures and 5xx answers become
``TransientIOError``; every other error body is turned back into the
``WorkflowError`` subclass the server raised, reasons included. A 2xx body
that does not fit the expected model is also a ``TransientIOError``.
"""
from decimal import Decimal
from typing import Any, Optional, TypeVar
import logging

import httpx
from pydantic import BaseModel, ValidationError

from scrapline.config import settings
from scrapline.errors import TransientIOError, error_from_payload
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import RecyclingBatchOut
from scrapline.schemas.scraps import CurrentTotalsOut

logger = logging.getLogger("scrapline.client")

T = TypeVar("T", bound=BaseModel)


class RecyclingApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if client is None:
            t = timeout if timeout is not None else settings.api_timeout_seconds
            client = httpx.AsyncClient(
                base_url=base_url or settings.api_base_url,
                timeout=httpx.Timeout(t, connect=min(t, 3.0)),
                headers={"Accept": "application/json"},
            )
        self._client = client

    async def __aenter__(self) -> "RecyclingApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransientIOError(f"{method} {url} failed: {type(e).__name__}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            err = error_from_payload(resp.status_code, body)
            logger.debug("%s %s -> %s %s", method, url, resp.status_code, err.code)
            raise err
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransientIOError(f"{method} {url} returned a body that is not JSON") from e

    def _parse(self, model: type[T], data: Any, what: str) -> T:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise TransientIOError(f"{what} returned an unexpected body") from e

    # ---------- Queries ----------

    async def current_totals(self) -> CurrentTotalsOut:
        data = await self._request("GET", "/recycling/current-totals")
        return self._parse(CurrentTotalsOut, data, "GET /recycling/current-totals")

    async def active_batch(self) -> Optional[RecyclingBatchOut]:
        data = await self._request("GET", "/recycling/active")
        return self._parse(RecyclingBatchOut, data, "GET /recycling/active") if data else None

    async def get_batch(self, batch_id: str) -> RecyclingBatchOut:
        url = f"/recycling/batches/{batch_id}"
        return self._parse(RecyclingBatchOut, await self._request("GET", url), f"GET {url}")

    async def list_processes(self, batch_id: Optional[str] = None) -> list[DrobilkaProcessOut]:
        params = {"batch_id": batch_id} if batch_id else None
        data = await self._request("GET", "/drobilka", params=params)
        if data is not None and not isinstance(data, list):
            raise TransientIOError("GET /drobilka returned an unexpected body")
        return [self._parse(DrobilkaProcessOut, p, "GET /drobilka") for p in (data or [])]

    # ---------- Commands ----------

    async def start_batch(self, started_by: str, notes: Optional[str] = None) -> RecyclingBatchOut:
        data = await self._request("POST", "/recycling/batches", json={"started_by": started_by, "notes": notes})
        return self._parse(RecyclingBatchOut, data, "POST /recycling/batches")

    async def complete_batch(
        self,
        batch_id: str,
        final_vt_quantity: Decimal,
        notes: Optional[str] = None,
        completed_by: Optional[str] = None,
    ) -> RecyclingBatchOut:
        url = f"/recycling/batches/{batch_id}/complete"
        body = {"final_vt_quantity": str(final_vt_quantity), "notes": notes, "completed_by": completed_by}
        return self._parse(RecyclingBatchOut, await self._request("POST", url, json=body), f"POST {url}")

    async def start_process(
        self,
        batch_id: str,
        drobilka_type: str,
        input_quantity: Decimal,
        work_center: str,
        operators: list[str],
        lead_operator: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DrobilkaProcessOut:
        body = {
            "batch_id": batch_id,
            "drobilka_type": drobilka_type,
            "input_quantity": str(input_quantity),
            "work_center": work_center,
            "operators": list(operators),
            "lead_operator": lead_operator,
            "notes": notes,
        }
        return self._parse(DrobilkaProcessOut, await self._request("POST", "/drobilka", json=body), "POST /drobilka")

    async def complete_process(
        self,
        process_id: str,
        output_quantity: Decimal,
        notes: Optional[str] = None,
    ) -> DrobilkaProcessOut:
        url = f"/drobilka/{process_id}/complete"
        body = {"output_quantity": str(output_quantity), "notes": notes}
        return self._parse(DrobilkaProcessOut, await self._request("POST", url, json=body), f"POST {url}")
