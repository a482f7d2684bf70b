"""
Periodic task scheduling for canary health checks.

Each key (a deployment version) owns at most one fixed-delay loop. The
next run starts ``interval`` seconds after the previous callback returned,
so ticks for one key never overlap.
"""

import asyncio
import builtins
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class Scheduler(ABC):
    """Owns periodic callbacks keyed by name."""

    @abstractmethod
    def schedule(self, key: str, interval: float, callback: TickCallback) -> None:
        """Run callback every ``interval`` seconds until cancelled."""

    @abstractmethod
    def cancel(self, key: str) -> bool:
        """Stop the loop for key. Returns True if one was scheduled."""

    @abstractmethod
    def is_scheduled(self, key: str) -> bool:
        """Whether a loop is registered for key."""

    @abstractmethod
    def keys(self) -> builtins.list[str]:
        """Keys with a registered loop."""

    async def shutdown(self) -> None:
        """Cancel every loop."""
        for key in self.keys():
            self.cancel(key)


@dataclass
class _ScheduledLoop:
    key: str
    interval: float
    callback: TickCallback
    task: asyncio.Task | None = None
    stopped: bool = False


class AsyncioScheduler(Scheduler):
    """Runs each loop as an ``asyncio.Task`` on the running event loop."""

    def __init__(self) -> None:
        self._loops: builtins.dict[str, _ScheduledLoop] = {}

    def schedule(self, key: str, interval: float, callback: TickCallback) -> None:
        if key in self._loops:
            raise ValueError(f"A loop is already scheduled for {key}")
        if interval <= 0:
            raise ValueError("interval must be positive")

        entry = _ScheduledLoop(key=key, interval=interval, callback=callback)
        entry.task = asyncio.get_running_loop().create_task(
            self._run(entry), name=f"health-check:{key}"
        )
        self._loops[key] = entry

    async def _run(self, entry: _ScheduledLoop) -> None:
        try:
            while not entry.stopped:
                await asyncio.sleep(entry.interval)
                if entry.stopped:
                    break
                try:
                    await entry.callback()
                except Exception:
                    logger.exception(
                        "Scheduled callback failed, stopping loop", extra={"key": entry.key}
                    )
                    break
        finally:
            if self._loops.get(entry.key) is entry:
                del self._loops[entry.key]

    def cancel(self, key: str) -> bool:
        entry = self._loops.pop(key, None)
        if entry is None:
            return False

        entry.stopped = True
        # Called from inside the callback: let the callback finish, the loop
        # exits on its own afterwards
        if entry.task is not None and entry.task is not asyncio.current_task():
            entry.task.cancel()
        return True

    def is_scheduled(self, key: str) -> bool:
        return key in self._loops

    def keys(self) -> builtins.list[str]:
        return list(self._loops)

    async def shutdown(self) -> None:
        tasks = [entry.task for entry in self._loops.values() if entry.task is not None]
        await super().shutdown()
        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


@dataclass
class ManualScheduler(Scheduler):
    """Scheduler driven explicitly by ``tick``; nothing runs on its own."""

    loops: builtins.dict[str, _ScheduledLoop] = field(default_factory=dict)
    cancelled: builtins.list[str] = field(default_factory=list)

    def schedule(self, key: str, interval: float, callback: TickCallback) -> None:
        if key in self.loops:
            raise ValueError(f"A loop is already scheduled for {key}")
        self.loops[key] = _ScheduledLoop(key=key, interval=interval, callback=callback)

    def cancel(self, key: str) -> bool:
        entry = self.loops.pop(key, None)
        if entry is None:
            return False
        entry.stopped = True
        self.cancelled.append(key)
        return True

    def is_scheduled(self, key: str) -> bool:
        return key in self.loops

    def keys(self) -> builtins.list[str]:
        return list(self.loops)

    def interval(self, key: str) -> float:
        return self.loops[key].interval

    async def tick(self, key: str) -> bool:
        """Run one iteration for key. Returns False if nothing is scheduled."""
        entry = self.loops.get(key)
        if entry is None:
            return False
        await entry.callback()
        return True

    async def tick_all(self) -> int:
        ran = 0
        for key in list(self.loops):
            if await self.tick(key):
                ran += 1
        return ran
