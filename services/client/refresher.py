import asyncio
from typing import Any, Awaitable, Callable, Optional

from core.logging import get_api_logger_safe

RefreshFunc = Callable[[], Awaitable[Any]]


class PortfolioRefresher:
    """Periodically re-fetches portfolio data with at most one fetch in flight.

    Every `interval_seconds` a tick fires; if the previous refresh has not
    finished the tick is skipped. Refresh errors are logged and kept in
    `last_error`; they do not stop the loop. `stop()` cancels both the
    ticker and any in-flight refresh.
    """

    def __init__(self, refresh: RefreshFunc, interval_seconds: float = 10.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.refresh = refresh
        self.interval_seconds = interval_seconds
        self.logger = get_api_logger_safe("portfolio_refresher")

        self.last_result: Any = None
        self.last_error: Optional[BaseException] = None
        self.refresh_count = 0
        self.skipped_ticks = 0

        self._ticker_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._ticker_task = asyncio.create_task(self._tick_loop())
        self.logger.info("Portfolio refresher started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        for task in (self._ticker_task, self._inflight):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ticker_task = None
        self._inflight = None
        self.logger.info("Portfolio refresher stopped",
                         refresh_count=self.refresh_count,
                         skipped_ticks=self.skipped_ticks)

    def tick(self) -> bool:
        """Start a refresh unless one is running. Returns True if started."""
        if self.in_flight:
            self.skipped_ticks += 1
            self.logger.debug("Refresh still in flight; skipping tick")
            return False
        self._inflight = asyncio.create_task(self._run_refresh())
        return True

    async def wait_idle(self) -> None:
        """Wait for the in-flight refresh, if any, to finish."""
        if self._inflight is not None:
            await asyncio.shield(self._inflight)

    async def _tick_loop(self) -> None:
        while self._running:
            self.tick()
            await asyncio.sleep(self.interval_seconds)

    async def _run_refresh(self) -> None:
        try:
            self.last_result = await self.refresh()
            self.last_error = None
            self.refresh_count += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = e
            self.logger.error("Portfolio refresh failed", error=str(e), exc_info=True)
