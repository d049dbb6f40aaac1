"""In-memory stores and provider fakes for behavioral testing."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from app.core.config import Settings
from app.core.errors import ProviderError
from app.core.schemas_retrieval import Document, EmbeddingRecord, RefreshLogEntry

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"
USER_ID = "user-1"
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides: Any) -> Settings:
    """Settings with test credentials; keyword arguments override defaults."""
    values: Dict[str, Any] = {
        "SUPABASE_URL": "https://test.supabase.co",
        "SUPABASE_SERVICE_ROLE_KEY": "test-key",
        "OPENAI_API_KEY": "test-openai-key",
        "ATLAS_ENV": "test",
    }
    values.update(overrides)
    return Settings(**values)


def fixed_clock(now: datetime = NOW):
    return lambda: now


def make_doc(doc_id: str, title: str, content: str | None = "", **fields: Any) -> Document:
    return Document(doc_id=doc_id, title=title, content=content, organization_id=ORG_ID, **fields)


# =============================================================================
# Stores
# =============================================================================


class FakeDocumentStore:
    """Documents in insertion order (the store order)."""

    def __init__(self, documents: List[Document] | None = None):
        self.documents: List[Document] = list(documents or [])

    def add(self, *documents: Document) -> None:
        self.documents.extend(documents)

    def list_by_organization(
        self,
        organization_id: str,
        doc_ids: List[str] | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> List[Document]:
        docs = [
            d
            for d in self.documents
            if (d.organization_id or ORG_ID) == organization_id
            and (doc_ids is None or d.doc_id in doc_ids)
        ]
        if newest_first:
            docs.reverse()
        return docs if limit is None else docs[:limit]

    def get_by_ids(self, organization_id: str, doc_ids: List[str]) -> List[Document]:
        return self.list_by_organization(organization_id, doc_ids=doc_ids)


class FakeEmbeddingStore:
    def __init__(self):
        self.records: Dict[tuple, EmbeddingRecord] = {}
        self.upserts: List[EmbeddingRecord] = []

    def put(
        self,
        doc_id: str,
        vector: List[float],
        generated_at: datetime | None = None,
        organization_id: str = ORG_ID,
    ) -> None:
        """Seed a record without counting it as a write."""
        self.records[(organization_id, doc_id)] = EmbeddingRecord(
            doc_id=doc_id,
            organization_id=organization_id,
            embedding=vector,
            model="seeded",
            generated_at=generated_at,
        )

    def upsert(self, record: EmbeddingRecord) -> None:
        self.upserts.append(record)
        self.records[(record.organization_id, record.doc_id)] = record

    def get(self, organization_id: str, doc_id: str) -> EmbeddingRecord | None:
        """Test helper; not part of the store contract."""
        return self.records.get((organization_id, doc_id))

    def delete(self, organization_id: str, doc_id: str) -> None:
        self.records.pop((organization_id, doc_id), None)

    def list_by_organization(
        self, organization_id: str, doc_ids: List[str] | None = None
    ) -> List[EmbeddingRecord]:
        return [
            r
            for (org, doc_id), r in self.records.items()
            if org == organization_id and (doc_ids is None or doc_id in doc_ids)
        ]


class FakeClusterNameStore:
    def __init__(self, names: Dict[int, str] | None = None):
        self.names: Dict[str, Dict[int, str]] = {ORG_ID: dict(names or {})}

    def upsert(self, organization_id: str, cluster_index: int, name: str) -> None:
        self.names.setdefault(organization_id, {})[cluster_index] = name

    def list_by_organization(self, organization_id: str) -> Dict[int, str]:
        return dict(self.names.get(organization_id, {}))


class FakeRefreshLog:
    def __init__(self):
        self.entries: List[RefreshLogEntry] = []

    def add(
        self,
        user_id: str = USER_ID,
        documents_processed: int = 0,
        hours_ago: float = 1,
        organization_id: str = ORG_ID,
    ) -> None:
        """Seed a past run relative to NOW."""
        self.entries.append(
            RefreshLogEntry(
                organization_id=organization_id,
                user_id=user_id,
                documents_processed=documents_processed,
                created_at=NOW - timedelta(hours=hours_ago),
            )
        )

    def insert(self, entry: RefreshLogEntry) -> None:
        self.entries.append(entry)

    def count_since(self, organization_id: str, user_id: str, since: datetime) -> int:
        return sum(
            1
            for e in self.entries
            if e.organization_id == organization_id and e.user_id == user_id and e.created_at >= since
        )

    def sum_docs_since(self, organization_id: str, since: datetime) -> int:
        return sum(
            e.documents_processed
            for e in self.entries
            if e.organization_id == organization_id and e.created_at >= since
        )


class FakeRefreshStateStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.rows: Dict[str, Dict[str, Any]] = {}

    def upsert(self, organization_id: str, refreshed_at: datetime, refreshed_by: str) -> None:
        if self.fail:
            raise RuntimeError("state table unavailable")
        self.rows[organization_id] = {
            "last_full_refresh": refreshed_at,
            "last_refresh_by": refreshed_by,
        }


class FakeProjectStore:
    def __init__(
        self,
        projects: Dict[str, Dict[str, Any]] | None = None,
        members: Dict[str, List[str]] | None = None,
    ):
        self.projects = projects or {}
        self.members = members or {}

    def get_project(self, organization_id: str, project_id: str) -> Dict[str, Any] | None:
        project = self.projects.get(project_id)
        if project and project.get("organization_id", ORG_ID) == organization_id:
            return project
        return None

    def list_document_ids(self, project_id: str) -> List[str]:
        return list(self.members.get(project_id, []))


# =============================================================================
# Providers
# =============================================================================


class FakeEmbedder:
    """Returns the vector of the first keyword found in the text."""

    model = "fake-embedding"

    def __init__(
        self,
        rules: List[tuple] | None = None,
        default: List[float] | None = None,
        fail_on: tuple = (),
    ):
        self.rules = list(rules or [])
        self.default = default or [0.0, 0.0, 1.0]
        self.fail_on = fail_on
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        lowered = text.lower()
        if any(marker in lowered for marker in self.fail_on):
            raise ProviderError("embedding unavailable")
        for keyword, vector in self.rules:
            if keyword in lowered:
                return list(vector)
        return list(self.default)

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


class FakeGenerator:
    """Returns queued replies in order, then the default reply."""

    def __init__(self, *replies: str, default: str = "ok", error: Exception | None = None):
        self.replies = list(replies)
        self.default = default
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        max_output_tokens: int,
        temperature: float = 0.7,
        model: str | None = None,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": messages,
                "max_output_tokens": max_output_tokens,
                "temperature": temperature,
            }
        )
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return self.default
