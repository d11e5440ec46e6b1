"""In-process periodic task scheduler.

Runs async tasks on configurable intervals inside the FastAPI event loop.
The app lifespan registers the auto-archive sweep here, at
``INSTANCE_AUTO_ARCHIVE_INTERVAL_SECONDS``, and stops it before the
database pool closes. A failing run is logged and the next one still
happens on schedule.
"""

import asyncio
from typing import Any, Callable, Coroutine

from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)

PeriodicFunc = Callable[[], Coroutine[Any, Any, Any]]


class PeriodicScheduler:
    """Lightweight periodic task scheduler using asyncio."""

    def __init__(self) -> None:
        self._tasks: list[tuple[str, float, PeriodicFunc]] = []
        self._running = False
        self._handles: list[asyncio.Task[None]] = []

    @property
    def task_names(self) -> list[str]:
        return [name for name, _, _ in self._tasks]

    def register(self, name: str, interval_seconds: float, func: PeriodicFunc) -> None:
        """Register a periodic task.

        Args:
            name: Human-readable task name (for logging).
            interval_seconds: Seconds between invocations.
            func: Async callable to run periodically.
        """
        self._tasks.append((name, interval_seconds, func))

    async def start(self) -> None:
        """Start all registered periodic tasks."""
        self._running = True
        for name, interval, func in self._tasks:
            handle = asyncio.create_task(self._run_periodic(name, interval, func))
            self._handles.append(handle)
        logger.info("scheduler_started", task_count=len(self._tasks))

    async def stop(self) -> None:
        """Stop all periodic tasks."""
        self._running = False
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        logger.info("scheduler_stopped")

    async def _run_periodic(self, name: str, interval: float, func: PeriodicFunc) -> None:
        """Run a single task on a loop with the given interval."""
        while self._running:
            try:
                await func()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("periodic_task_error", task=name, error=str(e))
            await asyncio.sleep(interval)
