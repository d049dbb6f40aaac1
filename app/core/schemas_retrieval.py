"""Schemas for documents, embeddings, retrieval results and grounded answers."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class Document(BaseModel):
    """Document as read from the document store (core only reads it)."""

    doc_id: str
    title: str = ""
    content: str | None = None
    summary: str | None = None
    doc_type: str | None = None
    organization_id: str | None = None
    folder_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EmbeddingRecord(BaseModel):
    """Current embedding vector for one (document, organization) pair."""

    doc_id: str
    organization_id: str
    embedding: list[float]
    model: str | None = None
    generated_at: datetime | None = None


class RefreshLogEntry(BaseModel):
    """Append-only record of one refresh run, used for rate limiting."""

    organization_id: str
    user_id: str
    documents_processed: int
    created_at: datetime


class RetrievalMode(str, Enum):
    """Ranking strategy selected by the caller."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class RetrievalResult(BaseModel):
    """One ranked document for a query."""

    doc_id: str
    title: str = ""
    doc_type: str | None = None
    score: float
    similarity: float | None = None
    snippet: str = ""
    section_title: str = ""
    section_path: str = ""
    why_matched: list[str] = Field(default_factory=list)


class RetrievalOutcome(BaseModel):
    """Results plus the strategy that actually produced them."""

    mode_requested: RetrievalMode
    mode_used: RetrievalMode
    results: list[RetrievalResult] = Field(default_factory=list)


class RateLimitStatus(BaseModel):
    """Remaining refresh budget for a user and their organization."""

    user_refreshes_used: int
    user_refreshes_remaining: int
    org_documents_used: int
    org_documents_remaining: int


class RefreshResult(BaseModel):
    """Structured tallies of one embedding refresh run."""

    organization_id: str
    total_documents: int = 0
    considered: int = 0
    processed: int = 0
    skipped_cooldown: int = 0
    skipped_no_content: int = 0
    skipped_deadline: int = 0
    errors: int = 0
    clusters_named: int = 0
    clusters_failed: int = 0
    aborted: bool = False
    rate_limit: RateLimitStatus | None = None


class ChatTurn(BaseModel):
    """One prior message of a conversation."""

    role: str
    content: str


class AnswerSource(BaseModel):
    """Document attributed as a source of an answer."""

    doc_id: str
    title: str
    doc_type: str | None = None
    relevance: int | None = None


class GroundedAnswer(BaseModel):
    """Answer text with attributed sources."""

    answer: str
    sources: list[AnswerSource] = Field(default_factory=list)
    generated: bool = True


class GraphNode(BaseModel):
    id: str
    label: str


class GraphEdge(BaseModel):
    source: str
    target: str
    strength: float


class SimilarityGraph(BaseModel):
    """Document similarity graph with cluster membership."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    clusters: dict[str, int] = Field(default_factory=dict)
    cluster_names: dict[int, str] = Field(default_factory=dict)
    total_documents: int = 0
    total_connections: int = 0


class SimilarDocument(BaseModel):
    doc_id: str
    title: str
    doc_type: str | None = None
    similarity: int


class AgentAction(BaseModel):
    """One action of an agent plan."""

    type: str
    params: dict[str, Any] = Field(default_factory=dict)


class AgentPlan(BaseModel):
    actions: list[AgentAction] = Field(default_factory=list)
    summary: str = ""


class AgentItem(BaseModel):
    type: Literal["doc", "folder", "project"] = "doc"
    id: str
    title: str


class AgentResult(BaseModel):
    reply: str
    actions: list[str] = Field(default_factory=list)
    items: list[AgentItem] = Field(default_factory=list)
    summary: str = ""
