"""Recurring refresh jobs tied to the lifetime of a view.

Polling is how the client stays consistent with the server: a view starts
its pollers when it mounts and must stop them when it goes away. ``trigger()``
runs a refresh right away, which is what focus and visibility-change
handlers call.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from taskdesk.core.errors import TaskDeskError

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[Any]]


class Poller:
    def __init__(self, name: str, refresh: Refresh, interval: float, run_immediately: bool = False):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._refresh = refresh
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"poller:{self.name}")
        logger.debug("Poller %s started (every %.1fs)", self.name, self.interval)

    def trigger(self) -> None:
        self._wake.set()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Poller %s had already died", self.name)
        logger.debug("Poller %s stopped after %d runs", self.name, self.runs)

    async def __aenter__(self) -> "Poller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _run(self) -> None:
        if self.run_immediately:
            await self._tick()
        while True:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            await self._tick()

    async def _tick(self) -> None:
        self.runs += 1
        try:
            await self._refresh()
        except TaskDeskError as exc:
            # previous state stays in place; the next interval retries
            self.failures += 1
            logger.warning("Poller %s refresh failed: %s", self.name, exc.message)
        except Exception:
            self.failures += 1
            logger.exception("Poller %s refresh raised", self.name)


class PollerGroup:
    """Every poller one view registered; ``close()`` on unmount stops them all."""

    def __init__(self):
        self._pollers: list[Poller] = []

    def add(self, poller: Poller) -> Poller:
        self._pollers.append(poller)
        poller.start()
        return poller

    def every(self, name: str, interval: float, refresh: Refresh, run_immediately: bool = False) -> Poller:
        return self.add(Poller(name, refresh, interval, run_immediately=run_immediately))

    def trigger_all(self) -> None:
        for poller in self._pollers:
            poller.trigger()

    @property
    def pollers(self) -> list[Poller]:
        return list(self._pollers)

    async def close(self) -> None:
        pollers, self._pollers = self._pollers, []
        results = await asyncio.gather(*(p.stop() for p in pollers), return_exceptions=True)
        for poller, result in zip(pollers, results):
            if isinstance(result, Exception):
                logger.error("Poller %s did not stop cleanly: %r", poller.name, result)

    async def __aenter__(self) -> "PollerGroup":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
