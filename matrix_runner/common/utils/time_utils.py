from datetime import datetime, timedelta, timezone
from typing import Optional, Union
import time


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_duration(duration: Union[timedelta, float, int], precision: int = 2) -> str:
    """Render seconds as ``1h 2m 3s``; sub-second remainders keep ``precision`` digits."""
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    if seconds <= 0:
        return "0s"

    whole_minutes, rest = divmod(seconds, 60)
    hours, minutes = divmod(int(whole_minutes), 60)

    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if rest or not parts:
        parts.append(f"{int(rest)}s" if rest == int(rest) else f"{rest:.{precision}f}s")
    return " ".join(parts)


class Timer:
    """Monotonic stopwatch for step and entry durations."""

    def __init__(self):
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    def start(self) -> "Timer":
        self._started = time.perf_counter()
        self._stopped = None
        return self

    def stop(self) -> float:
        if self._started is None:
            raise RuntimeError("Timer was never started")
        if self._stopped is None:
            self._stopped = time.perf_counter()
        return self.elapsed

    @property
    def running(self) -> bool:
        return self._started is not None and self._stopped is None

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return (self._stopped or time.perf_counter()) - self._started

    @property
    def elapsed_formatted(self) -> str:
        return format_duration(self.elapsed)

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()
