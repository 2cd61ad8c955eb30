"""Application entry point for one GitHub metrics loader run.

The external scheduler invokes ``main`` once per run. Per-repository failures
are reported in the run summary; only configuration problems or unexpected
run-level errors produce a non-zero exit code.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .config import load_config, load_repo_list
from .errors import ConfigurationError
from .github_client import GitHubClient
from .loader import RepoMetricsLoader
from .store import S3SeriesStore

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the job process.

    Safe to call again once the configured level is known; only the level
    changes on later calls.
    """
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def run_job(environ: Optional[Mapping[str, str]] = None) -> int:
    """Run the loader once over the configured repositories.

    Returns:
        Process exit code.
    """
    try:
        config = load_config(environ)
        configure_logging(config.log_level)
        store = S3SeriesStore.from_config(config)
        repos = load_repo_list(store, config.settings.repo_config_key)

        with GitHubClient(config=config) as github_client:
            loader = RepoMetricsLoader(fetcher=github_client, store=store, settings=config.settings)
            loader.run(repos)

        return EXIT_SUCCESS
    except ConfigurationError as exc:
        logger.error("An error occurred while trying to load GitHub repo metrics: [%s].", exc)
        return EXIT_CONFIGURATION_ERROR
    except Exception:
        logger.exception("An unexpected error occurred while trying to load GitHub repo metrics.")
        return EXIT_UNEXPECTED_ERROR


def main() -> int:
    """Console script entry point."""
    configure_logging()
    return run_job()


if __name__ == "__main__":
    raise SystemExit(main())
