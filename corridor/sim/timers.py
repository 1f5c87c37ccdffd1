from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List


@dataclass
class TimerHandle:
    key: str
    due_ms: float
    callback: Callable[[], None]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ResumeTimers:
    """One-shot deferred callbacks, one per key, due on the simulation's real-time clock.

    The owner advances time by calling fire_due() between ticks, so callbacks never
    run in the middle of a tick.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, TimerHandle] = {}

    def schedule(self, key: str, due_ms: float, callback: Callable[[], None]) -> TimerHandle:
        self.cancel(key)
        handle = TimerHandle(key=key, due_ms=due_ms, callback=callback)
        self._pending[key] = handle
        return handle

    def cancel(self, key: str) -> None:
        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def pending(self) -> List[str]:
        return list(self._pending.keys())

    def fire_due(self, now_ms: float) -> int:
        due = sorted((h for h in self._pending.values() if h.due_ms <= now_ms), key=lambda h: h.due_ms)
        fired = 0
        for handle in due:
            # an earlier callback may have cancelled or replaced this one
            if handle.cancelled or self._pending.get(handle.key) is not handle:
                continue
            del self._pending[handle.key]
            handle.callback()
            fired += 1
        return fired
