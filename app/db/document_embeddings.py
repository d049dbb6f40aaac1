"""Document embedding storage.

Vectors are written as JSON text (the column predates pgvector); reads accept
either JSON text or a native array.
"""

import json
from typing import Any

from supabase import Client

from app.core.logging import get_logger
from app.core.schemas_retrieval import EmbeddingRecord
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "document_embeddings"


def parse_embedding(raw: Any) -> list[float]:
    """Decode a stored embedding into a list of floats."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [float(v) for v in raw]


def _to_record(row: dict[str, Any]) -> EmbeddingRecord:
    return EmbeddingRecord(
        doc_id=row["doc_id"],
        organization_id=row["organization_id"],
        embedding=parse_embedding(row.get("embedding")),
        model=row.get("model"),
        generated_at=row.get("created_at"),
    )


class SupabaseEmbeddingStore:
    """document_embeddings table: one row per (doc_id, organization_id)."""

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def upsert(self, record: EmbeddingRecord) -> None:
        """
        Insert or replace the embedding of a document.

        Raises:
            Exception: If database operation fails
        """
        row = {
            "doc_id": record.doc_id,
            "organization_id": record.organization_id,
            "embedding": json.dumps(record.embedding),
            "model": record.model,
            "created_at": record.generated_at.isoformat() if record.generated_at else None,
        }

        try:
            self.client.table(TABLE).upsert(row, on_conflict="doc_id,organization_id").execute()
        except Exception as e:
            logger.error(f"Failed to store embedding for {record.doc_id}: {e}")
            raise

    def delete(self, organization_id: str, doc_id: str) -> None:
        """
        Remove the embedding of a document (no-op when none is stored).

        Raises:
            Exception: If database operation fails
        """
        try:
            (
                self.client.table(TABLE)
                .delete()
                .eq("organization_id", organization_id)
                .eq("doc_id", doc_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to delete embedding for {doc_id}: {e}")
            raise

    def list_by_organization(
        self, organization_id: str, doc_ids: list[str] | None = None
    ) -> list[EmbeddingRecord]:
        """
        List current embeddings of an organization.

        Rows whose vector cannot be decoded are skipped with a warning.
        """
        if doc_ids is not None and not doc_ids:
            return []

        query = (
            self.client.table(TABLE)
            .select("doc_id, organization_id, embedding, model, created_at")
            .eq("organization_id", organization_id)
        )
        if doc_ids is not None:
            query = query.in_("doc_id", doc_ids)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to list embeddings for organization {organization_id}: {e}")
            raise

        records = []
        for row in response.data or []:
            try:
                records.append(_to_record(row))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable embedding for {row.get('doc_id')}: {e}")
        return records
