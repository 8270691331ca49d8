from __future__ import annotations

import time
from dataclasses import replace
from types import SimpleNamespace

import pytest

from search_expiry.config import RunSettings, load_config
from search_expiry.models import SearchPage


class FakeIndex:
    """In-memory stand-in for SearchIndex; deleted keys stop matching."""

    def __init__(self, ids, *, fetch_errors=None, delete_errors=None, count_error=None, not_deleted=None):
        self.docs = list(ids)
        self.fetch_errors = list(fetch_errors or [])
        self.delete_errors = list(delete_errors or [])
        self.count_error = count_error
        self.not_deleted = set(not_deleted or [])
        self.fetch_calls: list[int] = []
        self.delete_calls: list[list[str]] = []

    def fetch_values(self, filter_expr, field, limit, *, include_total_count=False):
        self.fetch_calls.append(limit)
        if self.fetch_errors:
            error = self.fetch_errors.pop(0)
            if error is not None:
                raise error
        total = len(self.docs) if include_total_count else None
        return SearchPage(ids=self.docs[:limit], total_count=total)

    def estimate_count(self, filter_expr):
        if self.count_error is not None:
            raise self.count_error
        return len(self.docs)

    def delete_ids(self, key_field, ids):
        self.delete_calls.append(list(ids))
        if self.delete_errors:
            error = self.delete_errors.pop(0)
            if error is not None:
                raise error
        results = []
        for doc_id in ids:
            ok = doc_id not in self.not_deleted
            if ok:
                self.docs.remove(doc_id)
            results.append(SimpleNamespace(key=doc_id, succeeded=ok))
        return results


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    calls: list[float] = []
    monkeypatch.setattr(time, "sleep", calls.append)
    return calls


@pytest.fixture
def make_settings():
    def _make(**overrides) -> RunSettings:
        cfg = load_config(None)
        cfg["search"].update(
            {
                "endpoint": "https://example.search.windows.net",
                "api_key": "secret",
                "index_name": "jobs",
                "document_key_field": "id",
            }
        )
        cfg["query"]["years_back"] = 7
        return replace(RunSettings.from_config(cfg), **overrides)

    return _make


@pytest.fixture
def fake_index():
    return FakeIndex
