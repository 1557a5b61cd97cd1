# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Millisecond wall clock shared by the reclamation components."""

import time


class Clock:
    """Epoch-millisecond clock with an adjustable offset for tests.

    Example:
        >>> clock = Clock()
        >>> clock.advance(hours=5)
        >>> clock.now_ms() - time.time() * 1000 > 4.9 * 3600 * 1000
        True
    """

    def __init__(self) -> None:
        self._offset_ms: int = 0

    def now_ms(self) -> int:
        """Current time in epoch milliseconds, including any test offset."""
        return int(time.time() * 1000) + self._offset_ms

    def advance(self, hours: float = 0.0, minutes: float = 0.0, ms: int = 0) -> None:
        """Advance time for testing purposes."""
        self._offset_ms += int(hours * 3_600_000 + minutes * 60_000) + ms


class FrozenClock(Clock):
    """Clock pinned to a fixed instant. Only moves when advanced."""

    def __init__(self, now_ms: int) -> None:
        super().__init__()
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms + self._offset_ms
