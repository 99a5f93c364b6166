"""
Metrics collection and Prometheus-compatible exposition.

Counters for invitation acceptance, role changes and access resolution.
"""

from __future__ import annotations

import time
from collections import defaultdict

PREFIX = "studiodesk_"


def _key(name: str, labels: dict[str, str]) -> str:
    if not labels:
        return f"{PREFIX}{name}"
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{PREFIX}{name}{{{rendered}}}"


class MetricsCollector:
    """
    Simple metrics collector with Prometheus text format export.

    Label values are folded into the series key, e.g.
    ``studiodesk_access_resolutions_total{state="ready"}``.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1, **labels: str) -> None:
        """Increment a counter."""
        self._counters[_key(name, labels)] += value

    def get(self, name: str, **labels: str) -> int:
        """Get a counter value; 0 if the series was never incremented."""
        full = _key(name, labels)
        return self._counters.get(full, 0)

    def reset(self) -> None:
        self._counters.clear()

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = []
        typed: set[str] = set()
        for name, value in sorted(self._counters.items()):
            base = name.split("{", 1)[0]
            if base not in typed:
                lines.append(f"# TYPE {base} counter")
                typed.add(base)
            lines.append(f"{name} {value}")
        uptime = time.time() - self._start_time
        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"


metrics = MetricsCollector()
