from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LoopOutcome(str, Enum):
    EXHAUSTED = "exhausted"
    PARTIAL_PAGE = "partial_page"
    ABORTED_ON_ERRORS = "aborted_on_errors"


@dataclass(slots=True)
class SearchPage:
    ids: list[str] = field(default_factory=list)
    total_count: int | None = None

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(slots=True)
class LoopResult:
    outcome: LoopOutcome
    iterations: int
    errors: int
    processed: int


@dataclass(slots=True)
class DeleteStats:
    total_deleted: int
    iteration_count: int
    error_count: int


@dataclass(slots=True)
class ListStats:
    total_listed: int
    total_matching: int | None
    iteration_count: int
    error_count: int


@dataclass(slots=True)
class ProgressSnapshot:
    elapsed_sec: float
    rate: int
    remaining: int
    eta_minutes: float | None
