"""
Sliding-window hit counter keyed by client (usually the remote IP).

Used by the security-monitoring middleware to correlate repeated
401/403 responses and unusual request volume.  Instances are owned by
the application (`app.state`), never module globals, and take an
injectable clock so the window arithmetic is testable without sleeping.
`sweep()` drops keys whose hits have all aged out; the scheduler calls
it periodically so idle clients do not accumulate.
"""

from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta

from codecollab.models.base import utcnow


class RateTracker:
    def __init__(
        self,
        window: timedelta,
        threshold: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.window = window
        self.threshold = threshold
        self._clock = clock
        self._hits: dict[str, deque[datetime]] = {}

    def _prune(self, key: str, now: datetime) -> deque[datetime] | None:
        hits = self._hits.get(key)
        if hits is None:
            return None
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def record(self, key: str) -> int:
        """Register one hit for `key` and return the hits inside the window."""
        now = self._clock()
        hits = self._prune(key, now)
        if hits is None:
            hits = self._hits[key] = deque()
        hits.append(now)
        return len(hits)

    def count(self, key: str) -> int:
        hits = self._prune(key, self._clock())
        return len(hits) if hits else 0

    def exceeded(self, key: str) -> bool:
        return self.count(key) >= self.threshold

    def sweep(self) -> int:
        """Forget keys with no hits left in the window; return how many."""
        now = self._clock()
        stale = [key for key in self._hits if not self._prune(key, now)]
        for key in stale:
            del self._hits[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._hits)
