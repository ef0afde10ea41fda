from __future__ import annotations

import os
import time
from dataclasses import dataclass

import psutil


@dataclass(frozen=True)
class ResourceSample:
    """Captures the absolute process metrics at a point in time."""

    taken_at: float
    rss_mb: float | None
    cpu_total: float | None
    io_read_bytes: float | None
    io_write_bytes: float | None


@dataclass(frozen=True)
class ResourceDelta:
    """Summarizes how the metrics changed between two samples."""

    duration_sec: float
    cpu_percent: float | None
    rss_after_mb: float | None
    rss_delta_mb: float | None
    io_read_mb: float | None
    io_write_mb: float | None

    def describe(self) -> str:
        parts = [f"{self.duration_sec:.2f}s"]
        if self.cpu_percent is not None:
            parts.append(f"cpu {self.cpu_percent:.0f}%")
        if self.rss_after_mb is not None:
            rss = f"rss {self.rss_after_mb:.1f}MB"
            if self.rss_delta_mb is not None:
                rss += f" ({self.rss_delta_mb:+.1f}MB)"
            parts.append(rss)
        if self.io_write_mb is not None:
            parts.append(f"written {self.io_write_mb:.2f}MB")
        return ", ".join(parts)


def _diff(after: float | None, before: float | None) -> float | None:
    if after is None or before is None:
        return None
    return after - before


class ResourceMonitor:
    """Lightweight process telemetry collector used around training runs."""

    _MB = 1024 * 1024

    def __init__(self) -> None:
        self._process = psutil.Process(os.getpid())

    def snapshot(self) -> ResourceSample:
        now = time.perf_counter()
        with self._process.oneshot():
            rss_mb = self._process.memory_info().rss / self._MB
            cpu_times = self._process.cpu_times()
            io_read: float | None = None
            io_write: float | None = None
            # io_counters() is missing on macOS and may be denied in containers.
            if hasattr(self._process, "io_counters"):
                try:
                    counters = self._process.io_counters()
                    io_read = float(counters.read_bytes)
                    io_write = float(counters.write_bytes)
                except (psutil.AccessDenied, NotImplementedError):
                    pass
        return ResourceSample(
            taken_at=now,
            rss_mb=float(rss_mb),
            cpu_total=float(cpu_times.user + cpu_times.system),
            io_read_bytes=io_read,
            io_write_bytes=io_write,
        )

    def delta(self, before: ResourceSample, after: ResourceSample) -> ResourceDelta:
        duration = max(after.taken_at - before.taken_at, 1e-9)
        cpu_used = _diff(after.cpu_total, before.cpu_total)
        io_read = _diff(after.io_read_bytes, before.io_read_bytes)
        io_write = _diff(after.io_write_bytes, before.io_write_bytes)
        return ResourceDelta(
            duration_sec=duration,
            cpu_percent=None if cpu_used is None else (cpu_used / duration) * 100.0,
            rss_after_mb=after.rss_mb,
            rss_delta_mb=_diff(after.rss_mb, before.rss_mb),
            io_read_mb=None if io_read is None else io_read / self._MB,
            io_write_mb=None if io_write is None else io_write / self._MB,
        )


__all__ = ["ResourceDelta", "ResourceMonitor", "ResourceSample"]
