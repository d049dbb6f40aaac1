"""Read-only document access for retrieval."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger
from app.core.schemas_retrieval import Document
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

DOCUMENT_COLUMNS = (
    "doc_id, title, content, summary, doc_type, organization_id, folder_id, tags, "
    "created_at, updated_at"
)


def _to_document(row: dict[str, Any]) -> Document:
    data = dict(row)
    data["tags"] = data.get("tags") or []
    return Document.model_validate(data)


class SupabaseDocumentStore:
    """Documents table, scoped by organization."""

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def list_by_organization(
        self,
        organization_id: str,
        doc_ids: list[str] | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Document]:
        """
        List an organization's documents in creation order.

        Args:
            organization_id: Organization scope
            doc_ids: Optional allowlist of document ids
            limit: Optional maximum row count
            newest_first: Order by created_at descending instead of ascending

        Returns:
            Documents (empty list when there are none)

        Raises:
            Exception: If database query fails
        """
        if doc_ids is not None and not doc_ids:
            return []

        try:
            query = (
                self.client.table("documents")
                .select(DOCUMENT_COLUMNS)
                .eq("organization_id", organization_id)
            )
            if doc_ids is not None:
                query = query.in_("doc_id", doc_ids)
            query = query.order("created_at", desc=newest_first)
            if limit is not None:
                query = query.limit(limit)

            response = query.execute()
            return [_to_document(row) for row in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list documents for organization {organization_id}: {e}")
            raise

    def get_by_ids(self, organization_id: str, doc_ids: list[str]) -> list[Document]:
        """Fetch specific documents of an organization (missing ids are skipped)."""
        return self.list_by_organization(organization_id, doc_ids=doc_ids)
