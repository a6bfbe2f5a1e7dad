# scrapline/services/poller.py
"""Periodic re-synchronization of the recycling workflow view.

There is no push channel from the plant floor, so an observer keeps its view
current by re-reading everything on a fixed interval. Each tick is a full
resync: totals, active batch and that batch's processes are fetched and the
previous ``WorkflowSnapshot`` is replaced wholesale, never patched. A failed
tick leaves the last good snapshot in place and only records the error.

Usage::

    async with RecyclingApiClient() as api:
        poller = WorkflowPoller(api, on_update=render)
        await poller.start()
        ...
        await poller.stop()
"""
from typing import Awaitable, Callable, Optional, Protocol, Union
import asyncio
import logging

from scrapline.config import settings
from scrapline.errors import WorkflowError
from scrapline.schemas.drobilka import DrobilkaProcessOut
from scrapline.schemas.recycling import RecyclingBatchOut, WorkflowSnapshot
from scrapline.schemas.scraps import CurrentTotalsOut
from scrapline.services import events
from scrapline.services.workflow import build_snapshot

logger = logging.getLogger("scrapline.poller")


class WorkflowSource(Protocol):
    async def current_totals(self) -> CurrentTotalsOut: ...

    async def active_batch(self) -> Optional[RecyclingBatchOut]: ...

    async def list_processes(self, batch_id: Optional[str] = None) -> list[DrobilkaProcessOut]: ...


Callback = Callable[..., Union[None, Awaitable[None]]]


class WorkflowPoller:
    def __init__(
        self,
        source: WorkflowSource,
        interval_seconds: Optional[float] = None,
        on_update: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
        auto_refresh: bool = True,
    ):
        self._source = source
        self._interval = interval_seconds if interval_seconds is not None else settings.poll_interval_seconds
        if self._interval <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._on_update = on_update
        self._on_error = on_error
        self._auto_refresh = auto_refresh

        self.snapshot: Optional[WorkflowSnapshot] = None
        self.last_error: Optional[WorkflowError] = None

        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None
        self._refresh_lock: Optional[asyncio.Lock] = None
        self._stopped = False
        self._unfollow: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        """Start the background loop; the first refresh happens immediately."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._refresh_lock = asyncio.Lock()
        self._stopped = False
        self._task = asyncio.create_task(self._run())
        logger.info("Workflow poller started (interval %ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the loop. Once this returns no callback fires again."""
        self._stopped = True
        self.unfollow_events()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Workflow poller stopped")

    def set_auto_refresh(self, enabled: bool) -> None:
        """Toggle between timed polling and manual refresh only."""
        self._auto_refresh = enabled
        self._wakeup()

    def request_refresh(self) -> None:
        """Ask the running loop to refresh now. Safe to call from any thread."""
        self._wakeup()

    def follow_events(self) -> None:
        """Refresh as soon as a local command publishes a state change.

        Commands run in server worker threads, so the wake-up goes through
        ``request_refresh``. ``stop()`` detaches the subscription.
        """
        if self._unfollow is None:
            self._unfollow = events.subscribe(lambda _event: self.request_refresh())

    def unfollow_events(self) -> None:
        unfollow, self._unfollow = self._unfollow, None
        if unfollow is not None:
            unfollow()

    def _wakeup(self) -> None:
        loop, wake = self._loop, self._wake
        if loop is None or wake is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            wake.set()
        else:
            loop.call_soon_threadsafe(wake.set)

    # ---------- Refresh ----------

    async def refresh(self) -> Optional[WorkflowSnapshot]:
        """Run one full resync and return the snapshot now in effect."""
        if self._refresh_lock is None:
            self._refresh_lock = asyncio.Lock()
        async with self._refresh_lock:
            try:
                totals = await self._source.current_totals()
                batch = await self._source.active_batch()
                processes = await self._source.list_processes(batch.batch_id) if batch else []
            except WorkflowError as e:
                self.last_error = e
                logger.warning("Workflow refresh failed, keeping last snapshot: %s", e.detail)
                await self._emit(self._on_error, e)
                return self.snapshot

            self.snapshot = build_snapshot(totals, batch, processes)
            self.last_error = None
            await self._emit(self._on_update, self.snapshot)
            return self.snapshot

    async def _emit(self, callback: Optional[Callback], arg) -> None:
        if callback is None or self._stopped:
            return
        result = callback(arg)
        if asyncio.iscoroutine(result):
            await result

    async def _run(self) -> None:
        while not self._stopped:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected error in workflow poller")

            try:
                if self._auto_refresh:
                    await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
                else:
                    await self._wake.wait()
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
