from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any


EXPORTED = "exported"
SKIPPED = "skipped"
FAILED = "failed"

Job = tuple[Callable[..., str], tuple[Any, ...]]


@dataclass
class BatchSummary:
    label: str
    exported: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: str) -> None:
        if outcome == EXPORTED:
            self.exported += 1
        elif outcome == SKIPPED:
            self.skipped += 1
        elif outcome == FAILED:
            self.failed += 1
        else:
            raise ValueError(f"unknown outcome: {outcome}")

    @property
    def total(self) -> int:
        return self.exported + self.skipped + self.failed

    def lines(self) -> list[str]:
        return [
            f"{self.label} exported : {self.exported}",
            f"{self.label} skipped  : {self.skipped}",
            f"{self.label} failed   : {self.failed}",
        ]


def drain_in_order(executor: Executor, jobs: Iterable[Job], inflight_limit: int) -> Iterator[str]:
    """Run ``jobs`` on ``executor`` and yield their outcomes in submission order.

    At most ``inflight_limit`` jobs are pending at a time, so ``jobs`` is only
    pulled as fast as results are consumed.
    """
    limit = max(1, inflight_limit)
    pending: list[Future[str]] = []
    for func, args in jobs:
        pending.append(executor.submit(func, *args))
        while len(pending) >= limit:
            yield pending.pop(0).result()

    while pending:
        yield pending.pop(0).result()
