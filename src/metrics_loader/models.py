"""Domain models for GitHub repository clone metrics ingestion.

Records and identities are immutable; merge and run results are plain value
objects passed back up to the orchestrator instead of exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class MetricRecord:
    """Represents one day's clone metrics for one repository."""

    date: date
    total_count: int
    unique_count: int


@dataclass(frozen=True, slots=True)
class RepoIdentity:
    """Owner/name pair addressing a repository on GitHub and in the store."""

    owner_name: str
    repo_name: str

    def __post_init__(self) -> None:
        if not isinstance(self.owner_name, str) or not self.owner_name.strip():
            raise ConfigurationError("Repository owner name must be a non-empty string.")
        if not isinstance(self.repo_name, str) or not self.repo_name.strip():
            raise ConfigurationError("Repository name must be a non-empty string.")

    def __str__(self) -> str:
        return f"{self.owner_name}/{self.repo_name}"


@dataclass(frozen=True, slots=True)
class StoredSeries:
    """Current persisted content and watermark of one repository's series."""

    content: str
    watermark: Optional[date]


class MergeMode(Enum):
    """How a merge result must be persisted."""

    CREATED = "created"
    UPDATED = "updated"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of merging a fresh batch into a persisted series."""

    mode: MergeMode
    content: Optional[str] = None
    watermark: Optional[date] = None
    rows_appended: int = 0

    @classmethod
    def noop(cls) -> "MergeResult":
        return cls(mode=MergeMode.NOOP)

    @property
    def is_noop(self) -> bool:
        return self.mode is MergeMode.NOOP


class RepoRunStatus(Enum):
    """Per-repository result of one loader run."""

    CREATED = "created"
    UPDATED = "updated"
    NO_METRICS = "no_metrics"
    UP_TO_DATE = "up_to_date"
    FAILED = "failed"


@dataclass(slots=True)
class RepoRunOutcome:
    """Represents what happened to a single repository during a run."""

    repo: RepoIdentity
    status: RepoRunStatus
    watermark: Optional[date] = None
    rows_appended: int = 0
    message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is RepoRunStatus.FAILED


@dataclass(slots=True)
class RunSummary:
    """Aggregated outcomes for all repositories processed in one run."""

    outcomes: List[RepoRunOutcome] = field(default_factory=list)

    def count(self, status: RepoRunStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def failed_repos(self) -> List[RepoIdentity]:
        return [outcome.repo for outcome in self.outcomes if outcome.failed]

    @property
    def total(self) -> int:
        return len(self.outcomes)
