"""Per-run orchestration: fetch, merge and persist metrics for each repository."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from .config import LoaderSettings
from .errors import MetricsLoaderError, SeriesNotFoundError
from .merge import merge_series
from .models import (
    MergeMode,
    MetricRecord,
    RepoIdentity,
    RepoRunOutcome,
    RepoRunStatus,
    RunSummary,
)
from .series import reconcile_watermark
from .store import SeriesStore

logger = logging.getLogger(__name__)


class MetricsFetcher(Protocol):
    """Source of daily metric records for a repository."""

    def fetch_clone_metrics(self, repo: RepoIdentity) -> List[MetricRecord]:
        """Return the available records or raise FetchError."""


class RepoMetricsLoader:
    """Loads clone metrics for configured repositories into the series store.

    Each repository is processed independently: a failure is reported as a
    ``FAILED`` outcome and the run moves on to the next repository.
    """

    def __init__(
        self,
        fetcher: MetricsFetcher,
        store: SeriesStore,
        settings: Optional[LoaderSettings] = None,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._settings = settings or LoaderSettings()

    def _load(self, repo: RepoIdentity) -> RepoRunOutcome:
        records = self._fetcher.fetch_clone_metrics(repo)
        if not records:
            logger.warning("Repo [%s] has no clone metrics currently available.", repo, extra={"repo": str(repo)})
            return RepoRunOutcome(repo=repo, status=RepoRunStatus.NO_METRICS)

        existing_content: Optional[str] = None
        existing_watermark = None
        try:
            stored = self._store.read_series(repo)
        except SeriesNotFoundError:
            logger.info("No persisted series for repo [%s] yet.", repo, extra={"repo": str(repo)})
        else:
            existing_content = stored.content
            existing_watermark = reconcile_watermark(stored.content, stored.watermark)

        result = merge_series(existing_content, existing_watermark, records)
        if result.is_noop:
            logger.info(
                "Repo [%s] is up to date (watermark %s).",
                repo,
                existing_watermark,
                extra={"repo": str(repo), "records_fetched": len(records)},
            )
            return RepoRunOutcome(repo=repo, status=RepoRunStatus.UP_TO_DATE, watermark=existing_watermark)

        self._store.write_series(repo, result.content, result.watermark)

        status = RepoRunStatus.CREATED if result.mode is MergeMode.CREATED else RepoRunStatus.UPDATED
        logger.info(
            "Loaded metrics for repo [%s]: %s row(s) appended, watermark now %s.",
            repo,
            result.rows_appended,
            result.watermark,
            extra={"repo": str(repo), "mode": result.mode.value},
        )
        return RepoRunOutcome(
            repo=repo,
            status=status,
            watermark=result.watermark,
            rows_appended=result.rows_appended,
        )

    def load_repo(self, repo: RepoIdentity) -> RepoRunOutcome:
        """Fetch, merge and persist metrics for one repository.

        Never raises; errors are logged and returned as a ``FAILED`` outcome.
        """
        logger.info("Trying to load metrics for GitHub repo [%s]...", repo)
        try:
            return self._load(repo)
        except MetricsLoaderError as exc:
            logger.error(
                "An error occurred while trying to load metrics for GitHub repo [%s]: [%s].",
                repo,
                exc,
                extra={"repo": str(repo), "error_type": type(exc).__name__},
            )
            return RepoRunOutcome(repo=repo, status=RepoRunStatus.FAILED, message=str(exc))
        except Exception as exc:
            logger.exception(
                "An unexpected error occurred while trying to load metrics for GitHub repo [%s].",
                repo,
                extra={"repo": str(repo), "error_type": type(exc).__name__},
            )
            return RepoRunOutcome(
                repo=repo,
                status=RepoRunStatus.FAILED,
                message=f"Unexpected error: {exc}",
            )

    def run(self, repos: Sequence[RepoIdentity]) -> RunSummary:
        """Process every repository in order and summarize the outcomes."""
        summary = RunSummary()
        if not repos:
            logger.warning("No GitHub repos configured in [%s].", self._settings.repo_config_key)
            return summary

        logger.info("Trying to load metrics for [%s] GitHub repo(s)...", len(repos))
        for repo in repos:
            summary.outcomes.append(self.load_repo(repo))

        logger.info(
            "Finished loading metrics: %s created, %s updated, %s up to date, %s without metrics, %s failed.",
            summary.count(RepoRunStatus.CREATED),
            summary.count(RepoRunStatus.UPDATED),
            summary.count(RepoRunStatus.UP_TO_DATE),
            summary.count(RepoRunStatus.NO_METRICS),
            summary.count(RepoRunStatus.FAILED),
            extra={"failed_repos": [str(repo) for repo in summary.failed_repos]},
        )
        return summary
