"""Grounded answering over an organization's documents.

General chat ranks documents semantically (top 5 above 0.25) and sends 2000-char
excerpts with the last 6 turns. Project chat sends every document of the
project (3000-char excerpts plus summaries) with the last 10 turns.

Conditions where the generator cannot help (empty knowledge base, nothing
relevant, documents gone) return fixed messages without a model call. Provider
failures become AnswerFailedError; callers map it to a plain-language message.
"""

from __future__ import annotations

from typing import Any, Sequence

from app.core.config import Settings, get_settings
from app.core.errors import AnswerFailedError, ProviderError
from app.core.llm import GenerationClient
from app.core.logging import get_logger
from app.core.retrieval import RetrievalEngine, ScoredDocument, to_percent
from app.core.schemas_retrieval import AnswerSource, ChatTurn, Document, GroundedAnswer
from app.db.stores import DocumentStore

logger = get_logger(__name__)

NO_DOCUMENTS_MESSAGE = (
    "I don't have any documents to search through yet. "
    "Please add some documents to your knowledge base first."
)
NO_RELEVANT_MESSAGE = (
    "I couldn't find any relevant documents for your question. "
    "Try rephrasing or asking about a different topic."
)
CONTENT_UNAVAILABLE_MESSAGE = (
    "I found some relevant documents but couldn't retrieve their content. Please try again."
)
PROJECT_EMPTY_MESSAGE = (
    "This project doesn't have any documents yet. Add some documents to the project first, "
    "then I can help you analyze and work with them."
)
PROJECT_DOCS_MISSING_MESSAGE = (
    "I couldn't find the documents for this project. They may have been removed."
)
EMPTY_ANSWER_MESSAGE = "I couldn't generate a response."
NOT_FOUND_SENTENCE = "I couldn't find specific information about this in your documents"

CONTEXT_DELIMITER = "---"
MAX_PROJECT_SOURCES = 3
TITLE_MATCH_CHARS = 20

CHAT_SYSTEM_PROMPT = """You are an AI assistant for a knowledge management system called PrimeStride Atlas.
Your job is to answer questions based ONLY on the provided documents.

Guidelines:
- Answer based on the document content provided
- If the documents don't contain the answer, say "{not_found}"
- Be concise but thorough
- When citing information, mention which document it came from
- Use a helpful, professional tone
- Format your response with clear paragraphs
- If relevant, suggest related topics the user might want to explore
- Support both English and Traditional Chinese, and respond in whichever language the user writes in

Documents available:
{context}"""

PROJECT_SYSTEM_PROMPT = """You are an AI assistant for the project "{name}".{description}

You have access to {count} document(s) in this project. Use them to answer questions accurately.

Rules:
- Answer based on the project documents when possible
- If the answer is in the documents, cite which document it comes from
- If the answer isn't in the documents, say "{not_found}"
- Be helpful, concise, and professional
- Support both English and Traditional Chinese, and respond in whichever language the user writes in
- If asked to summarize, analyze, or compare documents, do so thoroughly

Project Documents Context:
{context}"""


def history_messages(history: Sequence[ChatTurn], max_turns: int) -> list[dict[str, str]]:
    """Last max_turns turns as chat messages; any non-user role is sent as assistant."""
    if max_turns <= 0:
        return []
    turns = [t for t in history if t.content][-max_turns:]
    return [
        {"role": "user" if t.role == "user" else "assistant", "content": t.content}
        for t in turns
    ]


def build_chat_context(documents: Sequence[Document], excerpt_chars: int) -> str:
    """Numbered document blocks with title, id and an excerpt, delimited by ---."""
    blocks = []
    for index, doc in enumerate(documents, start=1):
        excerpt = (doc.content or "")[:excerpt_chars] or "No content available"
        blocks.append(
            f'[Document {index}: "{doc.title}" ({doc.doc_id})]\n{excerpt}\n{CONTEXT_DELIMITER}'
        )
    return "\n\n".join(blocks)


def build_project_context(documents: Sequence[Document], excerpt_chars: int) -> str:
    blocks = []
    for doc in documents:
        summary = f"Summary: {doc.summary}\n" if doc.summary else ""
        blocks.append(
            f"[Document: {doc.title}] (ID: {doc.doc_id}, Type: {doc.doc_type or 'general'})\n"
            f"{summary}Content:\n{(doc.content or '')[:excerpt_chars]}"
        )
    return f"\n\n{CONTEXT_DELIMITER}\n\n".join(blocks)


def mentioned_sources(reply: str, documents: Sequence[Document]) -> list[AnswerSource]:
    """Documents the reply refers to by title prefix or id."""
    reply_lower = reply.lower()
    sources = []
    for doc in documents:
        title_key = (doc.title or "").lower()[:TITLE_MATCH_CHARS]
        if (title_key and title_key in reply_lower) or doc.doc_id in reply:
            sources.append(AnswerSource(doc_id=doc.doc_id, title=doc.title, doc_type=doc.doc_type))
    return sources[:MAX_PROJECT_SOURCES]


class GroundedAnswerer:
    """Answers questions from retrieved documents with attributed sources."""

    def __init__(
        self,
        retrieval: RetrievalEngine,
        generator: GenerationClient,
        documents: DocumentStore,
        settings: Settings | None = None,
    ):
        self.retrieval = retrieval
        self.generator = generator
        self.documents = documents
        self.settings = settings or get_settings()

    def answer(
        self,
        organization_id: str,
        question: str,
        history: Sequence[ChatTurn] = (),
    ) -> GroundedAnswer:
        """
        Answer a question from the organization's most relevant documents.

        Args:
            organization_id: Organization scope
            question: User message
            history: Prior conversation turns (only the last CHAT_HISTORY_TURNS are sent)

        Returns:
            GroundedAnswer with sources sorted by relevance

        Raises:
            AnswerFailedError: If the embedding or generation provider fails
        """
        records = self.retrieval.load_embeddings(organization_id)
        if not records:
            return GroundedAnswer(answer=NO_DOCUMENTS_MESSAGE, generated=False)

        try:
            ranked = self.retrieval.rank_records(
                question,
                records,
                threshold=self.settings.CHAT_SIMILARITY_THRESHOLD,
                limit=self.settings.CHAT_TOP_K,
            )
        except ProviderError as e:
            logger.error(f"Query embedding failed for organization {organization_id}: {e}")
            raise AnswerFailedError("Failed to process chat message") from e

        if not ranked:
            return GroundedAnswer(answer=NO_RELEVANT_MESSAGE, generated=False)

        documents = self._ordered_documents(organization_id, ranked)
        if not documents:
            return GroundedAnswer(answer=CONTENT_UNAVAILABLE_MESSAGE, generated=False)

        context = build_chat_context(documents, self.settings.CHAT_EXCERPT_CHARS)
        system_prompt = CHAT_SYSTEM_PROMPT.format(not_found=NOT_FOUND_SENTENCE, context=context)
        messages = history_messages(history, self.settings.CHAT_HISTORY_TURNS)
        messages.append({"role": "user", "content": question})

        answer = self._generate(
            system_prompt, messages, self.settings.CHAT_MAX_OUTPUT_TOKENS, organization_id
        )

        similarity = {s.doc_id: s.similarity for s in ranked}
        sources = sorted(
            (
                AnswerSource(
                    doc_id=doc.doc_id,
                    title=doc.title,
                    doc_type=doc.doc_type,
                    relevance=to_percent(similarity.get(doc.doc_id, 0.0)),
                )
                for doc in documents
            ),
            key=lambda s: s.relevance or 0,
            reverse=True,
        )

        return GroundedAnswer(answer=answer, sources=sources)

    def answer_project(
        self,
        organization_id: str,
        project: dict[str, Any],
        doc_ids: Sequence[str],
        question: str,
        history: Sequence[ChatTurn] = (),
    ) -> GroundedAnswer:
        """
        Answer a question from every document of a project.

        Args:
            organization_id: Organization scope
            project: Project row (name, optional description)
            doc_ids: Allowlist of the project's document ids
            question: User message
            history: Prior turns (only the last PROJECT_HISTORY_TURNS are sent)

        Returns:
            GroundedAnswer whose sources are the documents the reply mentions

        Raises:
            AnswerFailedError: If the generation provider fails
        """
        if not doc_ids:
            return GroundedAnswer(answer=PROJECT_EMPTY_MESSAGE, generated=False)

        documents = self.documents.get_by_ids(organization_id, list(doc_ids))
        if not documents:
            return GroundedAnswer(answer=PROJECT_DOCS_MISSING_MESSAGE, generated=False)

        description = project.get("description")
        system_prompt = PROJECT_SYSTEM_PROMPT.format(
            name=project.get("name") or "Untitled project",
            description=f" Project description: {description}" if description else "",
            count=len(documents),
            not_found=NOT_FOUND_SENTENCE,
            context=build_project_context(documents, self.settings.PROJECT_EXCERPT_CHARS),
        )
        messages = history_messages(history, self.settings.PROJECT_HISTORY_TURNS)
        messages.append({"role": "user", "content": question})

        answer = self._generate(
            system_prompt, messages, self.settings.PROJECT_MAX_OUTPUT_TOKENS, organization_id
        )
        return GroundedAnswer(answer=answer, sources=mentioned_sources(answer, documents))

    def _ordered_documents(
        self, organization_id: str, ranked: Sequence[ScoredDocument]
    ) -> list[Document]:
        docs_by_id = {
            doc.doc_id: doc
            for doc in self.documents.get_by_ids(organization_id, [s.doc_id for s in ranked])
        }
        return [docs_by_id[s.doc_id] for s in ranked if s.doc_id in docs_by_id]

    def _generate(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_output_tokens: int,
        organization_id: str,
    ) -> str:
        try:
            answer = self.generator.complete(
                system_prompt,
                messages,
                max_output_tokens=max_output_tokens,
                temperature=self.settings.CHAT_TEMPERATURE,
            )
        except ProviderError as e:
            logger.error(f"Answer generation failed for organization {organization_id}: {e}")
            raise AnswerFailedError("Failed to get AI response") from e

        return answer or EMPTY_ANSWER_MESSAGE
