"""Configuration management for the Atlas retrieval engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    ATLAS_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    LOG_LEVEL: str | None = Field(
        default=None, description="Explicit log level; overrides the environment default"
    )
    SUPABASE_TIMEOUT_SECONDS: int = Field(
        default=30, description="Timeout for Supabase table queries"
    )

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_MAX_INPUT_TOKENS: int = Field(
        default=8000, description="Token cap applied to text before it is embedded"
    )

    # Generation configuration
    CHAT_MODEL: str = Field(default="gpt-4o-mini", description="Model for chat, naming and agent")

    # Embedding refresh job
    EMBEDDING_COOLDOWN_HOURS: int = Field(
        default=24, description="Hours before an embedding may be regenerated"
    )
    REFRESH_WINDOW_HOURS: int = Field(default=24, description="Trailing window for refresh limits")
    REFRESH_MAX_PER_USER_PER_DAY: int = Field(
        default=3, description="Refresh runs allowed per user per window"
    )
    REFRESH_MAX_DOCS_PER_ORG_PER_DAY: int = Field(
        default=500, description="Documents embedded per organization per window"
    )
    REFRESH_MAX_WORKERS: int = Field(
        default=1, description="Concurrent embedding calls during a refresh (1 = sequential)"
    )
    CLUSTER_MAX_ITERATIONS: int = Field(default=10, description="k-means iteration cap")
    CLUSTER_NAME_MAX_TOKENS: int = Field(default=20, description="Output budget for cluster names")

    # Retrieval thresholds
    CHAT_SIMILARITY_THRESHOLD: float = Field(
        default=0.25, description="Minimum similarity for chat grounding documents"
    )
    CHAT_TOP_K: int = Field(default=5, description="Documents used to ground a chat answer")
    GRAPH_SIMILARITY_THRESHOLD: float = Field(
        default=0.3, description="Minimum similarity for similarity graph edges"
    )
    GRAPH_NEIGHBORS_PER_NODE: int = Field(default=3, description="Edges kept per graph node")

    # Grounded answering
    CHAT_EXCERPT_CHARS: int = Field(default=2000, description="Excerpt per document in chat")
    CHAT_HISTORY_TURNS: int = Field(default=6, description="Prior turns sent in chat")
    CHAT_MAX_OUTPUT_TOKENS: int = Field(default=1000, description="Chat answer token budget")
    PROJECT_EXCERPT_CHARS: int = Field(
        default=3000, description="Excerpt per document in project chat"
    )
    PROJECT_HISTORY_TURNS: int = Field(default=10, description="Prior turns sent in project chat")
    PROJECT_MAX_OUTPUT_TOKENS: int = Field(
        default=1500, description="Project chat answer token budget"
    )
    CHAT_TEMPERATURE: float = Field(default=0.7, description="Temperature for chat answers")

    # Agent
    AGENT_MAX_CONTEXT_DOCS: int = Field(
        default=50, description="Recent documents listed in the agent planning prompt"
    )
    AGENT_MAX_OUTPUT_TOKENS: int = Field(default=2000, description="Agent plan token budget")
    AGENT_SUMMARY_MAX_TOKENS: int = Field(default=800, description="Agent summary token budget")

    @field_validator("LOG_LEVEL")
    @classmethod
    def log_level_known(cls, v: str | None) -> str | None:
        """Normalize LOG_LEVEL to an upper-case standard level name."""
        if v is None or not v.strip():
            return None
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
