"""
Perpetual execution of replication passes.

Passes are serialized: the next one starts only after the previous one has
finished and the configured delay has elapsed. The stop flag is checked at
every iteration boundary and interrupts a pending delay.
"""

import asyncio
import signal
from typing import Optional

from ..config import SourceClusterConfig, TargetClusterConfig
from .config import SyncSettings
from .logging_manager import get_logger
from .models import PassResult
from .orchestrator import SyncOrchestrator, create_sync_orchestrator
from .resilience import SleepFn

logger = get_logger(__name__)


class SchedulerLoop:
    """Runs an orchestrator's passes until stopped."""

    def __init__(self, orchestrator: SyncOrchestrator, delay_seconds: float, sleep: Optional[SleepFn] = None):
        """
        Args:
            orchestrator: Runs one pass per iteration
            delay_seconds: Wait between the end of a pass and the start of the next
            sleep: Replaces the stop-aware wait (tests)
        """
        self.orchestrator = orchestrator
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.passes_run = 0
        self.last_result: Optional[PassResult] = None
        self._stop_event = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit at the next iteration boundary."""
        if not self._stop_event.is_set():
            logger.info("Stop requested, exiting after the current pass")
        self._stop_event.set()

    async def run_forever(self, max_passes: Optional[int] = None) -> int:
        """
        Run passes until `stop()` is called or `max_passes` passes have run.

        Returns:
            Number of passes run
        """
        while not self.stopped:
            self.passes_run += 1
            try:
                self.last_result = await self.orchestrator.run_pass()
            except Exception as e:
                logger.error(f"Sync failed: {e}", exc_info=True)
            else:
                if self.last_result.ok:
                    logger.info(f"Sync pass {self.passes_run} completed ({self.last_result.status.value})")
                else:
                    logger.error(f"Sync pass {self.passes_run} failed: {self.last_result.error}")

            if max_passes is not None and self.passes_run >= max_passes:
                break
            if self.stopped:
                break

            logger.info(f"Restarting sync in {self.delay_seconds:g} seconds...")
            await self._wait(self.delay_seconds)

        return self.passes_run

    async def _wait(self, delay: float) -> None:
        if self.sleep is not None:
            await self.sleep(delay)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


def install_signal_handlers(scheduler: SchedulerLoop) -> None:
    """Route SIGINT and SIGTERM to a graceful stop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            logger.debug(f"Signal handlers unsupported on this platform, {sig.name} will terminate immediately")


async def run_sync_forever(settings: SyncSettings, source_config: SourceClusterConfig, target_config: TargetClusterConfig, max_passes: Optional[int] = None) -> int:
    """
    Build the clients once, then run passes until a termination signal arrives.
    """
    orchestrator = create_sync_orchestrator(settings, source_config, target_config)
    scheduler = SchedulerLoop(orchestrator, settings.pass_delay_seconds)
    install_signal_handlers(scheduler)
    logger.info(
        f"Sync loop started: {settings.source_index} -> {settings.target_index} "
        f"({settings.schedule_mode.value} mode, {settings.pass_delay_seconds:g}s between passes)"
    )
    try:
        return await scheduler.run_forever(max_passes=max_passes)
    finally:
        await orchestrator.aclose()
