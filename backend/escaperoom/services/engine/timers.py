import math
import time
from typing import Dict, Optional, Tuple


class AttemptTimer:
    """Wall-clock stopwatch for one station attempt, in whole seconds."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self.started_at = clock()

    def elapsed_sec(self) -> int:
        return max(0, math.floor(self._clock() - self.started_at))

    def reset(self) -> None:
        self.started_at = self._clock()


# Runtime-only registry, keyed by (run_id, station_key)
_attempts: Dict[Tuple[str, str], AttemptTimer] = {}

# Attempts abandoned for longer than this are dropped from the registry
STALE_AFTER_SEC = 3600


def evict_stale(max_age_sec: int = STALE_AFTER_SEC) -> int:
    stale = [key for key, timer in _attempts.items() if timer.elapsed_sec() > max_age_sec]
    for key in stale:
        del _attempts[key]
    return len(stale)


def start_attempt(run_id: str, station_key: str, clock=time.monotonic) -> AttemptTimer:
    """Begin a fresh attempt; an existing timer for the same station restarts."""
    evict_stale()
    key = (run_id, station_key)
    timer = _attempts.get(key)
    if timer is None:
        timer = _attempts[key] = AttemptTimer(clock)
    else:
        timer.reset()
    return timer


def ensure_attempt(run_id: str, station_key: str, clock=time.monotonic) -> AttemptTimer:
    """Return the running timer, starting one only if none exists."""
    key = (run_id, station_key)
    if key not in _attempts:
        evict_stale()
        _attempts[key] = AttemptTimer(clock)
    return _attempts[key]


def elapsed_for(run_id: str, station_key: str) -> Optional[int]:
    timer = _attempts.get((run_id, station_key))
    return timer.elapsed_sec() if timer else None


def clear_attempt(run_id: str, station_key: str) -> None:
    _attempts.pop((run_id, station_key), None)


def resolve_elapsed(run_id: str, station_key: str, supplied=None) -> int:
    """Elapsed seconds for a submission: the client's value when it sent one,
    otherwise the server-side timer, otherwise 0. Never negative."""
    if supplied is not None:
        try:
            return max(0, math.floor(float(supplied)))
        except (TypeError, ValueError, OverflowError):
            pass
    return elapsed_for(run_id, station_key) or 0
