from __future__ import annotations

from datetime import datetime

from .config import RunSettings
from .expiry import build_expiration_filter, expiration_cutoff, format_cutoff
from .models import ListStats, LoopOutcome, SearchPage
from .pagination import paginate
from .search_client import SearchIndex
from .utils import format_count


def list_expired(index: SearchIndex, settings: RunSettings, filter_expr: str) -> ListStats:
    field = settings.list_field
    total_matching: int | None = None

    def _fetch() -> SearchPage:
        nonlocal total_matching
        page = index.fetch_values(filter_expr, field, settings.fetch_size, include_total_count=True)
        if total_matching is None and page.total_count is not None:
            total_matching = page.total_count
            print(f"Total matching documents: {format_count(total_matching)}\n")
        return page

    def _handle(iteration: int, page: SearchPage) -> None:
        print(f"\n[Iteration {iteration}] Found {len(page)} documents")
        print(", ".join(page.ids))

    print("Starting document search...")
    print(f"Strategy: fetch {settings.fetch_size} docs -> print -> repeat\n")

    # No error threshold: the lister keeps retrying failed iterations.
    result = paginate(
        _fetch,
        _handle,
        page_size=settings.fetch_size,
        pause_sec=settings.rate_limit_delay_sec,
        error_backoff_sec=settings.error_backoff_sec,
        max_errors=None,
    )
    if result.outcome is LoopOutcome.EXHAUSTED:
        print("\nNo more documents to show")
    else:
        print("\nLast batch processed")

    return ListStats(
        total_listed=result.processed,
        total_matching=total_matching,
        iteration_count=result.iterations,
        error_count=result.errors,
    )


def format_list_summary(stats: ListStats, field: str) -> str:
    lines = [f"\nTotal {field} values shown: {format_count(stats.total_listed)}"]
    if stats.total_matching is not None:
        lines.append(f"Total documents in the index: {format_count(stats.total_matching)}")
    return "\n".join(lines)


def run_list(index: SearchIndex, settings: RunSettings, now: datetime | None = None) -> ListStats:
    cutoff = expiration_cutoff(settings.years_back or 0, now)
    filter_expr = build_expiration_filter(settings.expiration_field, cutoff)
    print(
        f"\nSearching {settings.list_field} in {settings.index_name} with "
        f"{settings.expiration_field} < {format_cutoff(cutoff)}...\n"
    )
    stats = list_expired(index, settings, filter_expr)
    print(format_list_summary(stats, settings.list_field))
    return stats
