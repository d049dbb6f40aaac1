"""Keyword search with explainable scoring.

Each match carries a human-readable why_matched list next to its score, plus a
snippet around the first match and the markdown heading path it sits under.

Scoring:
    +120                     query in title
    +90 + min(h, 3) * 15     query in h markdown headings
    +min(n, 12) * 6          n occurrences in the body
    +18 / +8                 first body match within 800 / 2000 chars
    +14                      multi-word query with >= 2 tokens found in the body
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

from app.core.schemas_retrieval import Document, RetrievalResult

TITLE_BOOST = 120
HEADING_BASE_BOOST = 90
HEADING_PER_MATCH_BOOST = 15
BODY_PER_MATCH_BOOST = 6
BODY_MATCH_CAP = 12
EARLY_MATCH_CHARS = 800
EARLY_MATCH_BOOST = 18
MID_MATCH_CHARS = 2000
MID_MATCH_BOOST = 8
MULTI_TOKEN_BOOST = 14

SNIPPET_BEFORE = 80
SNIPPET_AFTER = 140
SNIPPET_FALLBACK = 220
ELLIPSIS = "…"

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$")


@dataclass
class KeywordScore:
    score: int = 0
    why_matched: list[str] = field(default_factory=list)


def count_occurrences(haystack_lower: str, needle_lower: str) -> int:
    """Non-overlapping occurrences of needle in haystack."""
    if not needle_lower:
        return 0
    return haystack_lower.count(needle_lower)


def _parse_heading(line: str) -> tuple[int, str] | None:
    match = _HEADING_RE.match(line)
    if not match:
        return None
    title = re.sub(r"\s+#+\s*$", "", match.group(2)).strip()
    if not title:
        return None
    return len(match.group(1)), title


def count_heading_matches(markdown: str, query_lower: str) -> int:
    count = 0
    for line in markdown.splitlines():
        heading = _parse_heading(line)
        if heading and query_lower in heading[1].lower():
            count += 1
    return count


def score_keyword_match(title: str, content: str, query: str) -> KeywordScore:
    """
    Score one document against a query and explain the score.

    Args:
        title: Document title
        content: Document body (markdown or plain text)
        query: Raw query string

    Returns:
        KeywordScore; why_matched is never empty for a non-blank query
    """
    q = (query or "").strip().lower()
    if not q:
        return KeywordScore()

    title_lower = (title or "").lower()
    body = content or ""
    body_lower = body.lower()
    result = KeywordScore()

    if q in title_lower:
        result.score += TITLE_BOOST
        result.why_matched.append("keyword in title")

    heading_matches = count_heading_matches(body, q)
    if heading_matches > 0:
        result.score += HEADING_BASE_BOOST + min(heading_matches, 3) * HEADING_PER_MATCH_BOOST
        result.why_matched.append(f"keyword in heading ({heading_matches})")

    body_count = count_occurrences(body_lower, q)
    if body_count > 0:
        result.score += min(body_count, BODY_MATCH_CAP) * BODY_PER_MATCH_BOOST
        result.why_matched.append(f"keyword in content ({body_count})")

    first_idx = body_lower.find(q)
    if first_idx >= 0:
        if first_idx < EARLY_MATCH_CHARS:
            result.score += EARLY_MATCH_BOOST
            result.why_matched.append("match appears early")
        elif first_idx < MID_MATCH_CHARS:
            result.score += MID_MATCH_BOOST
            result.why_matched.append("match appears mid-document")

    tokens = q.split()
    if len(tokens) >= 2:
        token_hits = sum(1 for t in tokens if len(t) >= 3 and t in body_lower)
        if token_hits >= 2:
            result.score += MULTI_TOKEN_BOOST
            result.why_matched.append(
                f"multiple query tokens matched ({token_hits}/{len(tokens)})"
            )

    if not result.why_matched:
        result.why_matched.append("keyword matched")

    return result


def extract_snippet(content: str, query: str) -> str:
    """
    Snippet around the first case-insensitive match in whitespace-normalized content.

    Up to 80 chars before and 140 after the match, with an ellipsis on each
    truncated side. Without a match, the first 220 chars.
    """
    clean = " ".join((content or "").split())
    if not clean:
        return ""

    q = (query or "").strip().lower()
    idx = clean.lower().find(q) if q else -1

    if idx == -1:
        return clean[:SNIPPET_FALLBACK] + (ELLIPSIS if len(clean) > SNIPPET_FALLBACK else "")

    start = max(0, idx - SNIPPET_BEFORE)
    end = min(len(clean), idx + SNIPPET_AFTER)
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(clean) else ""
    return prefix + clean[start:end] + suffix


def find_section(content: str, query: str) -> tuple[str, str]:
    """
    Nearest markdown heading above the first match, and its heading path.

    Returns:
        (section_title, section_path), e.g. ("Receipts", "Expense Policy > Receipts");
        empty strings when there is no match or no heading above it
    """
    text = content or ""
    q = (query or "").strip().lower()
    match_idx = text.lower().find(q) if q else -1
    if match_idx == -1:
        return "", ""

    stack: list[tuple[int, str]] = []
    pos = 0
    for line in text.splitlines(keepends=True):
        line_start = pos
        pos += len(line)
        if line_start > match_idx:
            break

        heading = _parse_heading(line.rstrip("\r\n"))
        if not heading:
            continue

        while stack and stack[-1][0] >= heading[0]:
            stack.pop()
        stack.append(heading)

    if not stack:
        return "", ""
    return stack[-1][1], " > ".join(title for _, title in stack)


def keyword_search(documents: Iterable[Document], query: str) -> list[RetrievalResult]:
    """
    Rank documents whose title or content contains the query (case-insensitive).

    Args:
        documents: Candidate documents
        query: Raw query string

    Returns:
        Matches sorted by score descending (ties keep input order)
    """
    q = (query or "").strip()
    if not q:
        return []
    q_lower = q.lower()

    results = []
    for doc in documents:
        title = doc.title or ""
        content = doc.content or ""
        if q_lower not in title.lower() and q_lower not in content.lower():
            continue

        scoring = score_keyword_match(title, content, q)
        section_title, section_path = find_section(content, q)
        results.append(
            RetrievalResult(
                doc_id=doc.doc_id,
                title=title,
                doc_type=doc.doc_type,
                score=scoring.score,
                snippet=extract_snippet(content, q),
                section_title=section_title,
                section_path=section_path,
                why_matched=scoring.why_matched,
            )
        )

    results.sort(key=lambda r: r.score, reverse=True)
    return results
