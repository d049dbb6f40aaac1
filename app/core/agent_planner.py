"""Action-planning agent over an organization's documents.

The model is shown the organization's recent documents and returns a JSON plan
({"actions": [...], "summary": ...}). Output that does not parse is treated as
a plain reply. Read-only actions run here; actions that change documents,
folders or projects are dispatched to handlers supplied by the caller.
"""

from __future__ import annotations

from typing import Callable, Sequence

from app.core.config import Settings, get_settings
from app.core.errors import AnswerFailedError, MalformedProviderResponse, ProviderError
from app.core.grounded_answer import history_messages
from app.core.llm import GenerationClient, parse_llm_json
from app.core.logging import get_logger
from app.core.retrieval import RetrievalEngine
from app.core.schemas_retrieval import (
    AgentAction,
    AgentItem,
    AgentPlan,
    AgentResult,
    ChatTurn,
    Document,
)
from app.db.stores import DocumentStore

logger = get_logger(__name__)

# (organization_id, params) -> result line shown to the user
ActionHandler = Callable[[str, dict], str]

MUTATING_ACTIONS = ("CREATE_DOC", "MOVE_DOC", "CREATE_FOLDER", "TAG_DOCS", "ADD_TO_PROJECT")

SEARCH_RESULT_LIMIT = 5
SUMMARY_EXCERPT_CHARS = 2000
FAILED_PLAN_REPLY = "I couldn't process that request."

SUMMARY_PROMPT = "Summarize these documents concisely. Support English and Chinese."

PLANNER_PROMPT = """You are an AI Agent for PrimeStride Atlas, a knowledge management platform. You can perform actions autonomously.

AVAILABLE ACTIONS (respond with JSON array of actions):

1. CREATE_DOC: Create a new document
   params: {{ title, content, docType, tags[], folderId? }}

2. MOVE_DOC: Move a document to a folder
   params: {{ docId, folderId }}

3. CREATE_FOLDER: Create a new folder
   params: {{ name, icon?, color? }}

4. SEARCH_DOCS: Search for documents by keyword
   params: {{ query }}

5. SUMMARIZE_DOCS: Summarize specific documents
   params: {{ docIds[] }}

6. TAG_DOCS: Add tags to documents
   params: {{ docId, tags[] }}

7. ADD_TO_PROJECT: Add documents to a project
   params: {{ projectId, docIds[] }}

8. REPLY: Just reply with text (no action needed)
   params: {{ message }}

CURRENT ORGANIZATION CONTEXT:
Documents ({count} total):
{documents}

RULES:
- Analyze the user's request and decide which actions to perform
- You can chain multiple actions together
- Always respond with a JSON object: {{ "actions": [...], "summary": "what you did" }}
- For REPLY action, just explain or answer
- Support English and Traditional Chinese
- Use document content/summaries to make informed decisions
- Return ONLY valid JSON, no markdown fences
- When the user asks you to CREATE something, use the CREATE_DOC action with full content in the params
- Prefer ACTIONS over REPLY. Only use REPLY for pure questions."""


def describe_documents(documents: Sequence[Document]) -> str:
    lines = []
    for doc in documents:
        tags = ", ".join(doc.tags) or "none"
        lines.append(
            f'- "{doc.title}" (ID: {doc.doc_id}, type: {doc.doc_type or "doc"}, '
            f"tags: {tags}, folder: {doc.folder_id or 'unfiled'})"
        )
    return "\n".join(lines) or "No documents yet"


def parse_plan(raw_output: str) -> AgentPlan:
    """Parse a plan; unparseable output becomes a single REPLY with the raw text."""
    if not raw_output.strip():
        return AgentPlan(
            actions=[AgentAction(type="REPLY", params={"message": FAILED_PLAN_REPLY})],
            summary="Failed to plan",
        )
    try:
        return parse_llm_json(raw_output, AgentPlan)
    except MalformedProviderResponse as e:
        logger.info(f"Agent plan was not valid JSON, replying with raw text: {e}")
        return AgentPlan(
            actions=[AgentAction(type="REPLY", params={"message": e.raw_output.strip()})],
            summary="Response",
        )


class AgentPlanner:
    """Plans and executes agent actions for one request."""

    def __init__(
        self,
        generator: GenerationClient,
        documents: DocumentStore,
        retrieval: RetrievalEngine,
        handlers: dict[str, ActionHandler] | None = None,
        settings: Settings | None = None,
    ):
        self.generator = generator
        self.documents = documents
        self.retrieval = retrieval
        self.handlers = handlers or {}
        self.settings = settings or get_settings()

    def run(
        self,
        organization_id: str,
        message: str,
        history: Sequence[ChatTurn] = (),
    ) -> AgentResult:
        """
        Plan actions for a message and execute them.

        Raises:
            AnswerFailedError: If the planning call fails
        """
        docs = self.documents.list_by_organization(
            organization_id, limit=self.settings.AGENT_MAX_CONTEXT_DOCS, newest_first=True
        )

        system_prompt = PLANNER_PROMPT.format(count=len(docs), documents=describe_documents(docs))
        messages = history_messages(history, self.settings.CHAT_HISTORY_TURNS)
        messages.append({"role": "user", "content": message})

        try:
            raw_plan = self.generator.complete(
                system_prompt,
                messages,
                max_output_tokens=self.settings.AGENT_MAX_OUTPUT_TOKENS,
                temperature=self.settings.CHAT_TEMPERATURE,
            )
        except ProviderError as e:
            logger.error(f"Agent planning failed for organization {organization_id}: {e}")
            raise AnswerFailedError("Agent failed") from e

        plan = parse_plan(raw_plan)

        results: list[str] = []
        items: list[AgentItem] = []
        for action in plan.actions:
            try:
                results.append(self._execute(organization_id, action, docs, items))
            except Exception as e:
                logger.warning(f"Agent action {action.type} failed: {e}")
                results.append(f"Error executing {action.type}: {e}")

        return AgentResult(
            reply="\n\n".join(r for r in results if r) or plan.summary,
            actions=[a.type for a in plan.actions],
            items=items,
            summary=plan.summary,
        )

    def _execute(
        self,
        organization_id: str,
        action: AgentAction,
        docs: list[Document],
        items: list[AgentItem],
    ) -> str:
        params = action.params

        if action.type == "REPLY":
            return str(params.get("message") or "")

        if action.type == "SEARCH_DOCS":
            query = str(params.get("query") or "")
            found = [
                AgentItem(type="doc", id=m.doc_id, title=m.title)
                for m in self.retrieval.keyword_search(organization_id, query, documents=docs)
            ]
            # Tag-only matches rank after title/content hits
            needle = query.strip().lower()
            if needle:
                seen = {item.id for item in found}
                found.extend(
                    AgentItem(type="doc", id=d.doc_id, title=d.title)
                    for d in docs
                    if d.doc_id not in seen and any(needle in tag.lower() for tag in d.tags)
                )
            found = found[:SEARCH_RESULT_LIMIT]
            if not found:
                return f'No documents found matching "{query}"'
            items.extend(found)
            return f"Found {len(found)} document(s)"

        if action.type == "SUMMARIZE_DOCS":
            wanted = set(params.get("docIds") or [])
            targets = [d for d in docs if d.doc_id in wanted]
            if not targets:
                return "No matching documents found to summarize."

            context = "\n\n---\n\n".join(
                f"[{d.title}]\n{(d.content or '')[:SUMMARY_EXCERPT_CHARS]}" for d in targets
            )
            summary = self.generator.complete(
                SUMMARY_PROMPT,
                [{"role": "user", "content": context}],
                max_output_tokens=self.settings.AGENT_SUMMARY_MAX_TOKENS,
            )
            return f"Summary:\n{summary or 'Could not generate summary.'}"

        if action.type in MUTATING_ACTIONS:
            handler = self.handlers.get(action.type)
            if handler is None:
                return f"Action {action.type} is not available here"
            return handler(organization_id, params)

        return f"Unknown action: {action.type}"
