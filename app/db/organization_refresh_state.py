"""Per-organization record of the latest full embedding refresh."""

from datetime import datetime

from supabase import Client

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


class SupabaseRefreshStateStore:
    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase()

    def upsert(self, organization_id: str, refreshed_at: datetime, refreshed_by: str) -> None:
        try:
            self.client.table("organization_embedding_state").upsert(
                {
                    "organization_id": organization_id,
                    "last_full_refresh": refreshed_at.isoformat(),
                    "last_refresh_by": refreshed_by,
                },
                on_conflict="organization_id",
            ).execute()
        except Exception as e:
            logger.error(f"Failed to update refresh state for {organization_id}: {e}")
            raise
