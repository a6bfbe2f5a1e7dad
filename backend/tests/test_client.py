"""API client: error mapping over the wire and a live round trip."""

import asyncio
from decimal import Decimal

import httpx
import pytest

from scrapline.errors import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    TransientIOError,
    WorkflowError,
)
from scrapline.main import app
from scrapline.services.client import RecyclingApiClient


def mock_client(handler):
    return RecyclingApiClient(
        client=httpx.AsyncClient(base_url="http://test", transport=httpx.MockTransport(handler))
    )


def run(coro):
    return asyncio.run(coro)


class TestErrorMapping:
    def test_reasons_survive_the_round_trip(self):
        def handler(request):
            return httpx.Response(
                412,
                json={
                    "detail": "Recycling batch cannot be completed yet",
                    "code": "PRECONDITION_FAILED",
                    "reasons": ["Soft scrap line is not yet complete (1 run(s) still active)"],
                },
            )

        async def go():
            async with mock_client(handler) as api:
                await api.complete_batch("b-1", Decimal("150"))

        with pytest.raises(PreconditionFailedError) as exc:
            run(go())
        assert exc.value.reasons == ["Soft scrap line is not yet complete (1 run(s) still active)"]

    def test_conflict(self):
        def handler(request):
            return httpx.Response(409, json={"detail": "Batch #1 in progress", "code": "CONFLICT", "reasons": []})

        async def go():
            async with mock_client(handler) as api:
                await api.start_batch("master-1")

        with pytest.raises(ConflictError):
            run(go())

    def test_connect_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def go():
            async with mock_client(handler) as api:
                await api.current_totals()

        with pytest.raises(TransientIOError):
            run(go())

    def test_bare_5xx_is_transient(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async def go():
            async with mock_client(handler) as api:
                await api.active_batch()

        with pytest.raises(TransientIOError):
            run(go())

    def test_bare_404(self):
        def handler(request):
            return httpx.Response(404)

        async def go():
            async with mock_client(handler) as api:
                await api.get_batch("nope")

        with pytest.raises(NotFoundError):
            run(go())

    def test_unknown_code_stays_generic(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "odd", "code": "SOMETHING_NEW"})

        async def go():
            async with mock_client(handler) as api:
                await api.list_processes()

        with pytest.raises(WorkflowError) as exc:
            run(go())
        assert type(exc.value) is WorkflowError
        assert exc.value.detail == "odd"

    def test_no_active_batch_is_none(self):
        def handler(request):
            assert request.url.path == "/recycling/active"
            return httpx.Response(200, json=None)

        async def go():
            async with mock_client(handler) as api:
                return await api.active_batch()

        assert run(go()) is None


def test_live_workflow_through_the_app(report):
    report("HARD", "40")
    report("SOFT", "30")

    async def go():
        transport = httpx.ASGITransport(app=app)
        async with RecyclingApiClient(client=httpx.AsyncClient(base_url="http://test", transport=transport)) as api:
            batch = await api.start_batch("master-1")
            with pytest.raises(ConflictError):
                await api.start_batch("master-2")

            hard = await api.start_process(batch.batch_id, "HARD", Decimal("40"), "WC-DROB-1", ["op-1", "op-2"])
            soft = await api.start_process(batch.batch_id, "SOFT", Decimal("30"), "WC-DROB-2", ["op-3", "op-4"])
            await api.complete_process(hard.process_id, Decimal("38"))

            with pytest.raises(PreconditionFailedError) as exc:
                await api.complete_batch(batch.batch_id, Decimal("60"))
            assert len(exc.value.reasons) == 1

            await api.complete_process(soft.process_id, Decimal("27"))
            return await api.complete_batch(batch.batch_id, Decimal("60"), completed_by="master-2")

    done = run(go())
    assert done.status == "COMPLETED"
    assert done.completed_by == "master-2"
    assert done.total_hard_scrap == Decimal("40")


class TestUnexpectedBodies:
    def test_wrong_shape_is_transient(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": 1})

        async def go():
            async with mock_client(handler) as api:
                await api.current_totals()

        with pytest.raises(TransientIOError) as exc:
            run(go())
        assert "unexpected body" in exc.value.detail

    def test_process_list_that_is_not_a_list(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": 1})

        async def go():
            async with mock_client(handler) as api:
                await api.list_processes("b-1")

        with pytest.raises(TransientIOError):
            run(go())

    def test_command_answer_with_wrong_shape(self):
        def handler(request):
            return httpx.Response(201, json={"batch_id": "b-1"})

        async def go():
            async with mock_client(handler) as api:
                await api.start_batch("master-1")

        with pytest.raises(TransientIOError):
            run(go())
