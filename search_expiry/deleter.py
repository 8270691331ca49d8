from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any

from .config import RunSettings
from .expiry import build_expiration_filter, expiration_cutoff, format_cutoff
from .models import DeleteStats, LoopOutcome, ProgressSnapshot, SearchPage
from .pagination import TooManyErrorsError, paginate
from .search_client import SearchIndex
from .utils import chunked, format_count, round_half_up

LOGGER = logging.getLogger(__name__)

FALLBACK_ESTIMATED_TOTAL = 1_000_000


def estimate_total(index: SearchIndex, filter_expr: str) -> int:
    try:
        return index.estimate_count(filter_expr)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Could not get an exact count, continuing anyway: %s", exc)
        return FALLBACK_ESTIMATED_TOTAL


def delete_batch_with_retry(index: SearchIndex, settings: RunSettings, ids: list[str]) -> list[Any]:
    attempts = max(1, settings.retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            results = index.delete_ids(settings.document_key_field, ids)
        except Exception as exc:  # noqa: BLE001
            if attempt == attempts:
                raise
            delay_sec = settings.retry_delay_sec * attempt
            LOGGER.warning(
                "Batch delete failed (attempt %s/%s), retrying in %.0fms: %s",
                attempt,
                attempts,
                delay_sec * 1000,
                exc,
            )
            time.sleep(delay_sec)
            continue

        failed = [r for r in results or [] if not getattr(r, "succeeded", False)]
        if failed:
            LOGGER.warning("%s documents failed in this batch", len(failed))
        return results


def delete_page(index: SearchIndex, settings: RunSettings, ids: list[str]) -> int:
    batches = 0
    for batch in chunked(ids, settings.batch_size):
        try:
            delete_batch_with_retry(index, settings, batch)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error deleting batch of %s documents: %s", len(batch), exc)
            raise
        batches += 1
        time.sleep(settings.rate_limit_delay_sec)
    return batches


def compute_progress(total_deleted: int, estimated_total: int, elapsed_sec: float) -> ProgressSnapshot:
    elapsed = round_half_up(elapsed_sec, 1)
    rate = round_half_up(total_deleted / elapsed) if elapsed > 0 else 0
    remaining = estimated_total - total_deleted
    eta_minutes = None
    if remaining > 0 and rate > 0:
        eta_minutes = round_half_up(remaining / rate / 60, 1)
    return ProgressSnapshot(elapsed_sec=elapsed, rate=rate, remaining=remaining, eta_minutes=eta_minutes)


def format_progress(snapshot: ProgressSnapshot, total_deleted: int, estimated_total: int) -> list[str]:
    lines = [
        f"Progress: {format_count(total_deleted)} / {format_count(estimated_total)} deleted "
        f"({snapshot.rate} docs/s)"
    ]
    if snapshot.remaining > 0:
        eta = f"{snapshot.eta_minutes:.1f}" if snapshot.eta_minutes is not None else "?"
        lines.append(f"  ETA: ~{eta} minutes remaining")
    return lines


def purge_expired(
    index: SearchIndex,
    settings: RunSettings,
    filter_expr: str,
    estimated_total: int,
) -> DeleteStats:
    key_field = settings.document_key_field
    started = time.monotonic()
    deleted = 0

    def _fetch() -> SearchPage:
        return index.fetch_values(filter_expr, key_field, settings.fetch_size)

    def _handle(iteration: int, page: SearchPage) -> None:
        nonlocal deleted
        print(f"\n[Iteration {iteration}] Found {len(page)} documents to delete")
        delete_page(index, settings, page.ids)
        deleted += len(page)
        snapshot = compute_progress(deleted, estimated_total, time.monotonic() - started)
        for line in format_progress(snapshot, deleted, estimated_total):
            print(line)

    print("Starting chunked deletion...")
    print(f"Strategy: fetch {settings.fetch_size} docs -> delete -> repeat\n")

    result = paginate(
        _fetch,
        _handle,
        page_size=settings.fetch_size,
        pause_sec=settings.page_delay_sec,
        error_backoff_sec=settings.error_backoff_sec,
        max_errors=settings.max_consecutive_errors,
    )
    if result.outcome is LoopOutcome.ABORTED_ON_ERRORS:
        raise TooManyErrorsError(result)
    if result.outcome is LoopOutcome.EXHAUSTED:
        print("\nNo more documents to delete")
    else:
        print("Last batch processed")

    return DeleteStats(
        total_deleted=result.processed,
        iteration_count=result.iterations,
        error_count=result.errors,
    )


def format_summary(stats: DeleteStats, duration_sec: float, index_name: str | None) -> str:
    duration = round_half_up(duration_sec, 1)
    average = round_half_up(stats.total_deleted / duration) if duration > 0 else 0
    lines = ["", "=" * 70, "OPERATION SUMMARY", "=" * 70]
    lines.append(f"Total deleted:        {format_count(stats.total_deleted)} documents from {index_name}")
    lines.append(f"Iterations:           {stats.iteration_count}")
    lines.append(f"Total time:           {duration / 60:.1f} minutes ({duration:.1f}s)")
    lines.append(f"Average speed:        {average} docs/second")
    if stats.error_count > 0:
        lines.append(f"Failed iterations:    {stats.error_count}")
    lines.append("=" * 70)
    return "\n".join(lines) + "\n"


def run_delete(index: SearchIndex, settings: RunSettings, now: datetime | None = None) -> DeleteStats | None:
    cutoff = expiration_cutoff(settings.years_back or 0, now)
    filter_expr = build_expiration_filter(settings.expiration_field, cutoff)
    print(
        f"\nSearching documents in {settings.index_name} with "
        f"{settings.expiration_field} < {format_cutoff(cutoff)}...\n"
    )

    estimated_total = estimate_total(index, filter_expr)
    if estimated_total == 0:
        print("No documents to delete")
        return None
    print(f"Estimated ~{format_count(estimated_total)} documents to delete from {settings.index_name}\n")

    started = time.monotonic()
    stats = purge_expired(index, settings, filter_expr, estimated_total)
    print(format_summary(stats, time.monotonic() - started, settings.index_name))
    return stats
