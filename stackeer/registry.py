from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable


ProgressFn = Callable[[int], None]


@dataclass(slots=True, eq=False)
class InFlight:
    """An active download for one cache key, shared by every caller waiting on it."""

    key: str
    future: "asyncio.Future[bytes]"
    task: "asyncio.Task[None] | None" = None
    waiters: int = 0
    progress: int = 0
    listeners: list[ProgressFn] = field(default_factory=list)

    def notify_progress(self, percent: int) -> None:
        if percent <= self.progress:
            return
        self.progress = percent
        for listener in list(self.listeners):
            listener(percent)


class InFlightRegistry:
    """Maps cache keys to their in-flight download.

    Methods never await, so lookup-and-insert is atomic with respect to
    other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._flights: dict[str, InFlight] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._flights

    def __len__(self) -> int:
        return len(self._flights)

    def get(self, key: str) -> InFlight | None:
        return self._flights.get(key)

    def claim(self, key: str) -> tuple[InFlight, bool]:
        """Return the flight for ``key`` and whether the caller just created it."""

        existing = self._flights.get(key)
        if existing is not None:
            return existing, False
        flight = InFlight(key=key, future=asyncio.get_running_loop().create_future())
        self._flights[key] = flight
        return flight, True

    def release(self, flight: InFlight) -> None:
        if self._flights.get(flight.key) is flight:
            del self._flights[flight.key]

    def flights(self) -> list[InFlight]:
        return list(self._flights.values())
