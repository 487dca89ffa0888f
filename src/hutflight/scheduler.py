"""Frame schedulers: run a callback on the next rendering frame."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

from .config import settings

FrameCallback = Callable[[float], None]


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class FrameScheduler(Protocol):
    """Host clock plus a one-shot "run on next frame" primitive."""

    def now(self) -> float:
        """Current time in seconds."""
        ...

    def schedule_next_tick(self, callback: FrameCallback) -> CancelHandle:
        """Call ``callback(timestamp)`` once on the next frame."""
        ...


class AsyncioFrameScheduler:
    """Frames paced by the running asyncio loop at a fixed rate."""

    def __init__(self, frame_rate: float | None = None, loop: asyncio.AbstractEventLoop | None = None):
        self.frame_interval = 1.0 / (frame_rate or settings.FRAME_RATE)
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def schedule_next_tick(self, callback: FrameCallback) -> asyncio.TimerHandle:
        return self.loop.call_later(self.frame_interval, lambda: callback(self.loop.time()))


class _ManualHandle:
    def __init__(self, callback: FrameCallback):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualFrameScheduler:
    """Deterministic fake clock; frames only run when :meth:`advance` is called."""

    def __init__(self, start: float = 0.0):
        self.time = start
        self._pending: list[_ManualHandle] = []

    def now(self) -> float:
        return self.time

    def schedule_next_tick(self, callback: FrameCallback) -> _ManualHandle:
        handle = _ManualHandle(callback)
        self._pending.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._pending if not h.cancelled)

    def advance(self, dt: float) -> int:
        """Move the clock by ``dt`` and run the callbacks scheduled before this frame."""
        self.time += dt
        due, self._pending = self._pending, []
        ran = 0
        for handle in due:
            if not handle.cancelled:
                handle.callback(self.time)
                ran += 1
        return ran

    def run_for(self, duration: float, dt: float) -> int:
        """Advance frame by frame for ``duration`` seconds; returns the frames run."""
        frames = 0
        steps = round(duration / dt)
        for _ in range(steps):
            frames += self.advance(dt)
        return frames
