from __future__ import annotations

import logging
from typing import Any

from azure.core.credentials import AzureKeyCredential
from azure.search.documents import SearchClient

from .config import RunSettings
from .models import SearchPage

LOGGER = logging.getLogger(__name__)


class SearchIndex:
    """Query and bulk-delete operations against one Azure AI Search index."""

    def __init__(self, client: SearchClient):
        self.client = client

    def fetch_values(
        self,
        filter_expr: str,
        field: str,
        limit: int,
        *,
        include_total_count: bool = False,
    ) -> SearchPage:
        values: list[str] = []
        try:
            results = self.client.search(
                search_text="*",
                filter=filter_expr,
                select=[field],
                top=limit,
                include_total_count=include_total_count,
            )
            for doc in results:
                value = doc.get(field)
                if value:
                    values.append(str(value))
            total = results.get_count() if include_total_count else None
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error fetching %s values: %s", field, exc)
            raise
        return SearchPage(ids=values, total_count=total)

    def estimate_count(self, filter_expr: str) -> int:
        results = self.client.search(
            search_text="*",
            filter=filter_expr,
            include_total_count=True,
            top=0,
        )
        return results.get_count() or 0

    def delete_ids(self, key_field: str, ids: list[str]) -> list[Any]:
        documents = [{key_field: doc_id} for doc_id in ids]
        return self.client.delete_documents(documents=documents)


def create_search_index(settings: RunSettings) -> SearchIndex:
    client = SearchClient(
        endpoint=settings.endpoint,
        index_name=settings.index_name,
        credential=AzureKeyCredential(settings.api_key),
    )
    return SearchIndex(client)
