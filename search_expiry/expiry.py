from __future__ import annotations

from datetime import datetime, timezone


def subtract_years(moment: datetime, years: int) -> datetime:
    target_year = moment.year - years
    try:
        return moment.replace(year=target_year)
    except ValueError:
        # 29 February in a non-leap target year rolls forward to 1 March.
        return moment.replace(year=target_year, month=3, day=1)


def expiration_cutoff(years_back: int, now: datetime | None = None) -> datetime:
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return subtract_years(current.astimezone(timezone.utc), years_back)


def format_cutoff(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"


def build_expiration_filter(field: str, cutoff: datetime) -> str:
    return f"{field} lt {format_cutoff(cutoff)}"
