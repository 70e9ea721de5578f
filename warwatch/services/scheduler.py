"""
Source Scheduler

Runs every enabled source on its own fixed interval. Ticks never wait for
the previous run of the same source, and a failing run is logged and
recorded in SourceHealth without stopping later ticks.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Set

from warwatch.core.metrics import SOURCE_RUNS
from warwatch.services.source_health import SourceHealthTracker

logger = logging.getLogger(__name__)

RunFunction = Callable[[], Awaitable[object]]


@dataclass
class ScheduledSource:
    name: str
    interval_ms: int
    enabled: bool
    run_fn: RunFunction


class Scheduler:
    def __init__(self, health: SourceHealthTracker) -> None:
        self.health = health
        self.sources: Dict[str, ScheduledSource] = {}
        self.is_running = False
        self._timers: Dict[str, asyncio.Task] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def register(self, name: str, interval_ms: int, enabled: bool, run_fn: RunFunction) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive for source {name!r}")
        self.sources[name] = ScheduledSource(name, interval_ms, enabled, run_fn)
        self.health.register(name, enabled=enabled, interval_ms=interval_ms)

    def start(self) -> None:
        """Start one timer task per enabled source."""
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        self.is_running = True
        for source in self.sources.values():
            if not source.enabled:
                logger.info(f"[{source.name}] Disabled; not scheduled")
                continue
            self._timers[source.name] = asyncio.create_task(self._tick_loop(source), name=f"timer:{source.name}")
            logger.info(f"[{source.name}] Scheduled every {source.interval_ms}ms")

    async def stop(self) -> None:
        """Cancel timers and in-flight runs. Safe to call when already stopped."""
        self.is_running = False
        tasks = list(self._timers.values()) + list(self._in_flight)
        self._timers.clear()
        self._in_flight.clear()
        if not tasks:
            return

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Scheduler stopped ({len(tasks)} tasks cancelled)")

    async def trigger(self, name: str) -> bool:
        """Run one source immediately through the invocation wrapper.

        Returns False for an unknown source name.
        """
        source = self.sources.get(name)
        if source is None:
            return False
        await self._invoke(source)
        return True

    async def _tick_loop(self, source: ScheduledSource) -> None:
        interval = source.interval_ms / 1000.0
        while self.is_running:
            await asyncio.sleep(interval)
            task = asyncio.create_task(self._invoke(source), name=f"run:{source.name}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _invoke(self, source: ScheduledSource) -> None:
        try:
            await source.run_fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{source.name}] Run failed: {e}", exc_info=True)
            self.health.record_error(source.name, str(e) or type(e).__name__)
            SOURCE_RUNS.labels(source=source.name, outcome="error").inc()
        else:
            self.health.record_success(source.name)
            SOURCE_RUNS.labels(source=source.name, outcome="success").inc()
