"""Project lookups used by project-scoped chat."""

from typing import Any

from supabase import Client

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


class SupabaseProjectStore:
    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def get_project(self, organization_id: str, project_id: str) -> dict[str, Any] | None:
        """
        Get a project of an organization.

        Returns:
            Project row (id, name, description) or None if not found
        """
        response = (
            self.client.table("projects")
            .select("id, name, description, organization_id")
            .eq("id", project_id)
            .eq("organization_id", organization_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    def list_document_ids(self, project_id: str) -> list[str]:
        """Document ids attached to a project."""
        response = (
            self.client.table("project_documents")
            .select("doc_id")
            .eq("project_id", project_id)
            .execute()
        )
        return [row["doc_id"] for row in response.data or []]
