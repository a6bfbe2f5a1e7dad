"""Workflow poller: full resync per tick, stale view on failure, clean stop."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from scrapline.errors import TransientIOError
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import BatchStartIn, RecyclingBatchOut
from scrapline.schemas.scraps import CurrentTotalsOut
from scrapline.services import batches, events
from scrapline.services.client import RecyclingApiClient
from scrapline.services.poller import WorkflowPoller

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeSource:
    def __init__(self):
        self.calls = 0
        self.fail = False
        self.batch = RecyclingBatchOut(
            batch_id="b-1",
            batch_number=1,
            status="IN_PROGRESS",
            total_hard_scrap=Decimal("120"),
            total_soft_scrap=Decimal("80"),
            started_by="master-1",
            started_at=T0,
        )
        self.processes = []

    async def current_totals(self):
        self.calls += 1
        if self.fail:
            raise TransientIOError("api unreachable")
        return CurrentTotalsOut(hard_scrap=Decimal("0"), soft_scrap=Decimal("0"), unit_of_measure="KG")

    async def active_batch(self):
        return self.batch

    async def list_processes(self, batch_id=None):
        return [p for p in self.processes if p.batch_id == batch_id]


def process(pid, drobilka_type, done):
    return DrobilkaProcessOut(
        process_id=pid,
        batch_id="b-1",
        drobilka_type=drobilka_type,
        input_quantity=Decimal("10"),
        output_quantity=Decimal("9") if done else None,
        work_center="WC-DROB-1",
        lead_operator="op-1",
        operators=["op-1", "op-2"],
        started_at=T0,
        completed_at=T0 if done else None,
    )


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestRefresh:
    def test_snapshot_reflects_source(self):
        src = FakeSource()
        src.processes = [process("h1", "HARD", True), process("s1", "SOFT", False)]
        poller = WorkflowPoller(src, interval_seconds=1)

        async def go():
            first = await poller.refresh()
            src.processes = [process("h1", "HARD", True), process("s1", "SOFT", True)]
            return first, await poller.refresh()

        first, second = asyncio.run(go())
        assert first.active_batch.batch_id == "b-1"
        assert len(first.processes) == 2
        assert first.can_complete is False
        assert second.can_complete is True
        assert second is not first

    def test_failure_keeps_last_snapshot(self):
        src = FakeSource()
        errors = []
        poller = WorkflowPoller(src, interval_seconds=1, on_error=errors.append)

        async def go():
            good = await poller.refresh()
            src.fail = True
            stale = await poller.refresh()
            return good, stale

        good, stale = asyncio.run(go())
        assert stale is good
        assert poller.snapshot is good
        assert isinstance(poller.last_error, TransientIOError)
        assert len(errors) == 1

    def test_recovery_clears_error(self):
        src = FakeSource()
        src.fail = True
        poller = WorkflowPoller(src, interval_seconds=1)

        async def go():
            await poller.refresh()
            assert poller.snapshot is None
            src.fail = False
            await poller.refresh()

        asyncio.run(go())
        assert poller.last_error is None
        assert poller.snapshot is not None

    def test_async_callback_is_awaited(self):
        seen = []

        async def on_update(snap):
            seen.append(snap)

        poller = WorkflowPoller(FakeSource(), interval_seconds=1, on_update=on_update)
        asyncio.run(poller.refresh())
        assert len(seen) == 1


class TestLoop:
    def test_ticks_until_stopped(self):
        src = FakeSource()
        seen = []
        poller = WorkflowPoller(src, interval_seconds=0.02, on_update=seen.append)

        async def go():
            await poller.start()
            assert poller.running
            await wait_until(lambda: len(seen) >= 3)
            await poller.stop()
            count = len(seen)
            await asyncio.sleep(0.1)
            return count

        count = asyncio.run(go())
        assert len(seen) == count
        assert not poller.running

    def test_manual_mode_refreshes_on_request_only(self):
        src = FakeSource()
        poller = WorkflowPoller(src, interval_seconds=0.01, auto_refresh=False)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls == 1)
            await asyncio.sleep(0.1)
            assert src.calls == 1
            poller.request_refresh()
            await wait_until(lambda: src.calls == 2)
            await poller.stop()

        asyncio.run(go())

    def test_switching_back_to_auto_resumes_polling(self):
        src = FakeSource()
        poller = WorkflowPoller(src, interval_seconds=0.02, auto_refresh=False)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls == 1)
            poller.set_auto_refresh(True)
            await wait_until(lambda: src.calls >= 3)
            await poller.stop()

        asyncio.run(go())
        assert poller.auto_refresh is True

    def test_error_does_not_kill_the_loop(self):
        src = FakeSource()
        src.fail = True
        poller = WorkflowPoller(src, interval_seconds=0.02)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls >= 2)
            src.fail = False
            await wait_until(lambda: poller.snapshot is not None)
            await poller.stop()

        asyncio.run(go())
        assert poller.last_error is None

    def test_stop_without_start(self):
        asyncio.run(WorkflowPoller(FakeSource(), interval_seconds=1).stop())


class TestUnexpectedApiBody:
    def test_wrong_shape_reaches_the_observer(self):
        state = {"broken": False}

        def handler(request):
            if state["broken"]:
                return httpx.Response(200, json={"unexpected": 1})
            if request.url.path == "/recycling/current-totals":
                return httpx.Response(200, json={"hard_scrap": "0", "soft_scrap": "0", "unit_of_measure": "KG"})
            return httpx.Response(200)

        errors = []

        async def go():
            transport = httpx.MockTransport(handler)
            async with RecyclingApiClient(client=httpx.AsyncClient(base_url="http://test", transport=transport)) as api:
                poller = WorkflowPoller(api, interval_seconds=1, on_error=errors.append)
                good = await poller.refresh()
                state["broken"] = True
                kept = await poller.refresh()
                return poller, good, kept

        poller, good, kept = asyncio.run(go())
        assert good is not None
        assert kept is good
        assert isinstance(poller.last_error, TransientIOError)
        assert errors == [poller.last_error]

    def test_loop_reports_wrong_shape_every_tick(self):
        errors = []

        def handler(request):
            return httpx.Response(200, json={"unexpected": 1})

        async def go():
            transport = httpx.MockTransport(handler)
            async with RecyclingApiClient(client=httpx.AsyncClient(base_url="http://test", transport=transport)) as api:
                poller = WorkflowPoller(api, interval_seconds=0.02, on_error=errors.append)
                await poller.start()
                await wait_until(lambda: len(errors) >= 2)
                await poller.stop()
                return poller

        poller = asyncio.run(go())
        assert poller.snapshot is None
        assert isinstance(poller.last_error, TransientIOError)


class TestFollowEvents:
    def test_command_in_worker_thread_triggers_refresh(self, db, report, start_run):
        report("HARD", "10")
        src = FakeSource()
        poller = WorkflowPoller(src, interval_seconds=30)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls == 1)
            poller.follow_events()

            batch = await asyncio.to_thread(batches.start_batch, db, BatchStartIn(started_by="master-1"))
            await wait_until(lambda: src.calls == 2, timeout=1.0)

            poller.unfollow_events()
            await asyncio.to_thread(start_run, batch.batch_id, "HARD")
            await asyncio.sleep(0.1)
            calls = src.calls
            await poller.stop()
            return calls

        assert asyncio.run(go()) == 2

    def test_plain_subscription_and_unsubscribe(self, db, report, start_run):
        report("HARD", "10")
        report("SOFT", "10")
        src = FakeSource()
        poller = WorkflowPoller(src, interval_seconds=30)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls == 1)
            unsubscribe = events.subscribe(lambda _event: poller.request_refresh())

            batch = await asyncio.to_thread(batches.start_batch, db, BatchStartIn(started_by="master-1"))
            await wait_until(lambda: src.calls == 2, timeout=1.0)

            unsubscribe()
            await asyncio.to_thread(start_run, batch.batch_id, "SOFT")
            await asyncio.sleep(0.1)
            calls = src.calls
            await poller.stop()
            return calls

        assert asyncio.run(go()) == 2

    def test_stop_detaches_from_events(self, db, report):
        report("HARD", "10")
        src = FakeSource()
        poller = WorkflowPoller(src, interval_seconds=30)

        async def go():
            await poller.start()
            await wait_until(lambda: src.calls == 1)
            poller.follow_events()
            await poller.stop()
            await asyncio.to_thread(batches.start_batch, db, BatchStartIn(started_by="master-1"))
            await asyncio.sleep(0.05)

        asyncio.run(go())
        assert src.calls == 1


@pytest.mark.parametrize("interval", [0, -1])
def test_interval_must_be_positive(interval):
    with pytest.raises(ValueError):
        WorkflowPoller(FakeSource(), interval_seconds=interval)
