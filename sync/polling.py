"""
Foreground polling of the ledger mirror.

``PollingDriver`` re-runs a refresh callback every ``interval`` seconds while
the application is active. Backgrounding pauses the loop; returning to the
foreground triggers one immediate refresh and restarts the interval.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

ACTIVE = "active"
INACTIVE = "inactive"
BACKGROUND = "background"
APP_STATES = (ACTIVE, INACTIVE, BACKGROUND)

Refresh = Callable[[], Awaitable[None]]


class AppLifecycle:
    """Application lifecycle signal: active, inactive or background"""

    def __init__(self, state: str = ACTIVE):
        if state not in APP_STATES:
            raise ValueError(f"Unknown app state: {state}")
        self.state = state
        self.foreground_callbacks: List[Callable[[], None]] = []
        self.background_callbacks: List[Callable[[], None]] = []

    def on_foreground(self, callback: Callable[[], None]):
        self.foreground_callbacks.append(callback)

    def on_background(self, callback: Callable[[], None]):
        self.background_callbacks.append(callback)

    def _fire(self, callbacks):
        for callback in list(callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Lifecycle callback failed: {e}")

    def transition(self, next_state: str):
        if next_state not in APP_STATES:
            raise ValueError(f"Unknown app state: {next_state}")
        previous = self.state
        self.state = next_state

        if previous in (INACTIVE, BACKGROUND) and next_state == ACTIVE:
            logger.info("App foregrounded - resuming updates")
            self._fire(self.foreground_callbacks)
        elif next_state in (INACTIVE, BACKGROUND):
            logger.info("App backgrounded - pausing updates")
            self._fire(self.background_callbacks)


class PollingDriver:
    def __init__(
        self,
        refresh: Refresh,
        lifecycle: Optional[AppLifecycle] = None,
        interval: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.refresh = refresh
        self.lifecycle = lifecycle
        self.interval = interval
        self.sleep = sleep
        self.enabled = False
        self._task: Optional[asyncio.Task] = None
        self._immediate: Optional[asyncio.Task] = None

        if lifecycle is not None:
            lifecycle.on_foreground(self._on_foreground)
            lifecycle.on_background(self._on_background)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _refresh_once(self):
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"Real-time update error: {e}")

    async def _run(self):
        while True:
            await self.sleep(self.interval)
            logger.debug("Polling for updates...")
            await self._refresh_once()

    def _start_loop(self):
        self._cancel_loop()
        self._task = asyncio.create_task(self._run())

    def _cancel_loop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _cancel_immediate(self):
        if self._immediate is not None and not self._immediate.done():
            self._immediate.cancel()
        self._immediate = None

    def start(self):
        """Start polling; paused immediately if the app is not active"""
        self.enabled = True
        if self.lifecycle is not None and self.lifecycle.state != ACTIVE:
            logger.info("App not active, polling will start on foreground")
            return
        logger.info(f"Starting real-time updates every {self.interval}s")
        self._start_loop()

    def stop(self):
        logger.info("Stopping real-time updates")
        self.enabled = False
        self._cancel_loop()
        self._cancel_immediate()

    def _on_background(self):
        self._cancel_loop()
        self._cancel_immediate()

    def _on_foreground(self):
        if not self.enabled:
            return
        self._cancel_immediate()
        self._immediate = asyncio.create_task(self._refresh_once())
        self._start_loop()


class ManualRefresher:
    """Pull-to-refresh guard: a refresh requested while one runs is ignored"""

    def __init__(self, refresh: Refresh):
        self.refresh_fn = refresh
        self.is_refreshing = False

    async def refresh(self) -> bool:
        if self.is_refreshing:
            return False
        self.is_refreshing = True
        try:
            await self.refresh_fn()
        except Exception as e:
            logger.error(f"Manual refresh error: {e}")
        finally:
            self.is_refreshing = False
        return True
