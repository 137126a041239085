"""
Metrics middleware: tool call, error, format error and commit counters.
"""

import time
from collections import Counter
from typing import Any, Dict, Optional

from relaycode import hooks


class MetricsCollector:
    """Collects counters across the turns processed by one host."""

    def __init__(self):
        self.turns_total: int = 0
        self.tool_calls_total: int = 0
        self.tool_errors_total: int = 0
        self.tool_call_counts: Dict[str, int] = {}
        self.tool_error_counts: Dict[str, int] = {}
        self.turn_status_counts: Counter = Counter()
        self.format_errors: int = 0
        self.commits: int = 0
        self.rejections: int = 0
        self.start_time: Optional[float] = None
        self.last_turn_time: Optional[float] = None

    def reset(self) -> None:
        self.__init__()

    def on_turn_start(self, data: Dict[str, Any]) -> None:
        if self.start_time is None:
            self.start_time = time.time()

    def on_turn_end(self, data: Dict[str, Any]) -> None:
        self.turns_total += 1
        self.turn_status_counts[data.get("status", "unknown")] += 1
        self.last_turn_time = time.time()

    def on_tool_after(self, data: Dict[str, Any]) -> None:
        kind = data.get("kind", "unknown")
        self.tool_calls_total += 1
        self.tool_call_counts[kind] = self.tool_call_counts.get(kind, 0) + 1
        if data.get("is_error"):
            self.tool_errors_total += 1
            self.tool_error_counts[kind] = self.tool_error_counts.get(kind, 0) + 1

    def on_format_error(self, data: Dict[str, Any]) -> None:
        self.format_errors += 1

    def on_pending_committed(self, data: Dict[str, Any]) -> None:
        self.commits += 1

    def on_pending_rejected(self, data: Dict[str, Any]) -> None:
        self.rejections += 1

    def summary(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "turns_total": self.turns_total,
            "tool_calls_total": self.tool_calls_total,
            "tool_errors_total": self.tool_errors_total,
            "tool_call_counts": dict(self.tool_call_counts),
            "tool_error_counts": dict(self.tool_error_counts),
            "format_errors": self.format_errors,
            "commits": self.commits,
            "rejections": self.rejections,
        }
        if self.turn_status_counts:
            result["turn_status_counts"] = dict(self.turn_status_counts)
        if self.start_time and self.last_turn_time:
            result["duration_seconds"] = round(self.last_turn_time - self.start_time, 2)
        return result


def install() -> MetricsCollector:
    """Register metrics hooks and return the collector instance."""
    collector = MetricsCollector()
    hooks.register("turn_start", collector.on_turn_start)
    hooks.register("turn_end", collector.on_turn_end)
    hooks.register("tool_after", collector.on_tool_after)
    hooks.register("format_error", collector.on_format_error)
    hooks.register("pending_committed", collector.on_pending_committed)
    hooks.register("pending_rejected", collector.on_pending_rejected)
    return collector
