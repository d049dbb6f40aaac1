"""AI-generated cluster names per organization."""

from supabase import Client

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


class SupabaseClusterNameStore:
    """cluster_names table keyed by (organization_id, cluster_index)."""

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def upsert(self, organization_id: str, cluster_index: int, name: str) -> None:
        try:
            self.client.table("cluster_names").upsert(
                {
                    "organization_id": organization_id,
                    "cluster_index": cluster_index,
                    "cluster_name": name,
                },
                on_conflict="organization_id,cluster_index",
            ).execute()
        except Exception as e:
            logger.error(f"Failed to store cluster name {cluster_index}: {e}")
            raise

    def list_by_organization(self, organization_id: str) -> dict[int, str]:
        response = (
            self.client.table("cluster_names")
            .select("cluster_index, cluster_name")
            .eq("organization_id", organization_id)
            .execute()
        )
        return {
            int(row["cluster_index"]): row["cluster_name"] for row in response.data or []
        }
