"""Append-only log of embedding refresh runs, counted for rate limiting."""

from datetime import datetime

from supabase import Client

from app.core.logging import get_logger
from app.core.schemas_retrieval import RefreshLogEntry
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "embedding_refresh_logs"


class SupabaseRefreshLog:
    """embedding_refresh_logs table. Rows are only inserted and range-queried."""

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def insert(self, entry: RefreshLogEntry) -> None:
        """
        Record a refresh run.

        Raises:
            Exception: If database operation fails
        """
        try:
            self.client.table(TABLE).insert(
                {
                    "organization_id": entry.organization_id,
                    "user_id": entry.user_id,
                    "documents_processed": entry.documents_processed,
                    "created_at": entry.created_at.isoformat(),
                }
            ).execute()
        except Exception as e:
            logger.error(
                f"Failed to log refresh for organization {entry.organization_id}: {e}"
            )
            raise

    def count_since(self, organization_id: str, user_id: str, since: datetime) -> int:
        """Number of refresh runs by a user in an organization since a time."""
        response = (
            self.client.table(TABLE)
            .select("id", count="exact")
            .eq("organization_id", organization_id)
            .eq("user_id", user_id)
            .gte("created_at", since.isoformat())
            .execute()
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def sum_docs_since(self, organization_id: str, since: datetime) -> int:
        """Documents processed across all refresh runs of an organization since a time."""
        response = (
            self.client.table(TABLE)
            .select("documents_processed")
            .eq("organization_id", organization_id)
            .gte("created_at", since.isoformat())
            .execute()
        )
        return sum(int(row.get("documents_processed") or 0) for row in response.data or [])
