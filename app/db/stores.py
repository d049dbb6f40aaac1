"""Persistence contracts consumed by the retrieval core.

The Supabase modules in this package implement them; tests use in-memory fakes.
All data is scoped by organization id.
"""

from datetime import datetime
from typing import Any, Protocol

from app.core.schemas_retrieval import Document, EmbeddingRecord, RefreshLogEntry


class DocumentStore(Protocol):
    def list_by_organization(
        self,
        organization_id: str,
        doc_ids: list[str] | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Document]: ...

    def get_by_ids(self, organization_id: str, doc_ids: list[str]) -> list[Document]: ...


class EmbeddingStore(Protocol):
    def upsert(self, record: EmbeddingRecord) -> None: ...

    def delete(self, organization_id: str, doc_id: str) -> None: ...

    def list_by_organization(
        self, organization_id: str, doc_ids: list[str] | None = None
    ) -> list[EmbeddingRecord]: ...


class ClusterNameStore(Protocol):
    def upsert(self, organization_id: str, cluster_index: int, name: str) -> None: ...

    def list_by_organization(self, organization_id: str) -> dict[int, str]: ...


class RefreshLog(Protocol):
    def insert(self, entry: RefreshLogEntry) -> None: ...

    def count_since(self, organization_id: str, user_id: str, since: datetime) -> int: ...

    def sum_docs_since(self, organization_id: str, since: datetime) -> int: ...


class RefreshStateStore(Protocol):
    def upsert(self, organization_id: str, refreshed_at: datetime, refreshed_by: str) -> None: ...


class ProjectStore(Protocol):
    def get_project(self, organization_id: str, project_id: str) -> dict[str, Any] | None: ...

    def list_document_ids(self, project_id: str) -> list[str]: ...
