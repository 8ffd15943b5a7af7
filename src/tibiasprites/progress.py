from __future__ import annotations

import sys
import time


class ProgressBar:
    """Single-line stderr progress for a batch of independent items."""

    def __init__(self, label: str, total: int, unit: str = "items") -> None:
        self.label = label
        self.unit = unit
        self.total = max(total, 1)
        self.current = 0
        self.is_tty = sys.stderr.isatty()
        self.start_time = time.monotonic()
        self.last_emit_time = 0.0
        self.next_non_tty_ratio = 0.0

    def _rate(self, elapsed: float) -> float:
        if elapsed <= 0.0:
            return 0.0
        return self.current / elapsed

    def _format_line(self) -> str:
        ratio = min(max(self.current / self.total, 0.0), 1.0)
        elapsed = time.monotonic() - self.start_time
        counts = f"({self.current}/{self.total} {self.unit}, {self._rate(elapsed):.1f} {self.unit}/s)"
        if self.is_tty:
            width = 30
            filled = int(width * ratio)
            bar = ("#" * filled) + (" " * (width - filled))
            return f"{self.label} {ratio*100:3.0f}% [{bar}] {counts}"
        return f"{self.label} {ratio*100:3.0f}% {counts}"

    def update(self, current: int) -> None:
        self.current = min(max(current, 0), self.total)

        if self.is_tty:
            now = time.monotonic()
            if (self.current < self.total) and ((now - self.last_emit_time) < 0.1):
                return
            self.last_emit_time = now
            sys.stderr.write("\r" + self._format_line())
            if self.current >= self.total:
                sys.stderr.write("\n")
            sys.stderr.flush()
            return

        ratio = self.current / self.total
        if (self.current < self.total) and (ratio < self.next_non_tty_ratio):
            return
        self.next_non_tty_ratio = min(1.0, ratio + 0.05)
        sys.stderr.write(self._format_line() + "\n")
        sys.stderr.flush()

    def advance(self, step: int = 1) -> None:
        self.update(self.current + step)

    def finish(self) -> None:
        if self.current < self.total:
            self.update(self.total)
