from __future__ import annotations

import logging
import time
from typing import Callable

from .models import LoopOutcome, LoopResult, SearchPage

LOGGER = logging.getLogger(__name__)

DEFAULT_ERROR_BACKOFF_SEC = 5.0
DEFAULT_MAX_ERRORS = 5


class TooManyErrorsError(RuntimeError):
    def __init__(self, result: LoopResult):
        super().__init__(
            f"Too many failed iterations ({result.errors}), aborting after {result.processed} items"
        )
        self.result = result


def paginate(
    fetch_page: Callable[[], SearchPage],
    handle_page: Callable[[int, SearchPage], None],
    *,
    page_size: int,
    pause_sec: float,
    error_backoff_sec: float = DEFAULT_ERROR_BACKOFF_SEC,
    max_errors: int | None = DEFAULT_MAX_ERRORS,
) -> LoopResult:
    """Fetch and handle pages until the filter stops matching.

    Every iteration re-issues the same query; there is no offset or page token,
    so a failed iteration is retried by simply looping again. The error counter
    accumulates over the whole run and is not reset by later successes. With
    ``max_errors=None`` failures are retried indefinitely.
    """
    iterations = 0
    errors = 0
    processed = 0
    outcome: LoopOutcome | None = None

    while outcome is None:
        iterations += 1
        try:
            page = fetch_page()
            if len(page) == 0:
                outcome = LoopOutcome.EXHAUSTED
                continue

            handle_page(iterations, page)
            processed += len(page)

            if len(page) < page_size:
                outcome = LoopOutcome.PARTIAL_PAGE
                continue

            time.sleep(pause_sec)
        except Exception as exc:  # noqa: BLE001
            errors += 1
            LOGGER.error("Error in iteration %s: %s", iterations, exc)
            if max_errors is not None and errors > max_errors:
                outcome = LoopOutcome.ABORTED_ON_ERRORS
                continue
            LOGGER.info("Waiting %.0f seconds before retrying", error_backoff_sec)
            time.sleep(error_backoff_sec)

    return LoopResult(outcome=outcome, iterations=iterations, errors=errors, processed=processed)
