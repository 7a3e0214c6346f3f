"""Display enrichment for search hits: highlighting, snippets, reading time."""

import html
import math
import re

from localsearch.constants import (
    DETAILED_CONTENT_CHARS,
    HIGHLIGHT_CLOSE,
    HIGHLIGHT_OPEN,
    IDEAL_TITLE_MAX_CHARS,
    IDEAL_TITLE_MIN_CHARS,
    MAX_DISPLAY_QUALITY,
    MIN_TOKEN_CHARS,
    READING_WORDS_PER_MINUTE,
    SNIPPET_LEAD_CHARS,
    SNIPPET_LENGTH_CHARS,
    SUBSTANTIAL_CONTENT_CHARS,
)
from localsearch.models.search_models import (
    ContentQuality,
    QueryAnalysis,
    ReadingTime,
    ScoreBreakdown,
    ScoredDocument,
    SearchResult,
)
from localsearch.services.url_policy import extract_domain


def highlight_terms(
    terms: list[str],
    open_tag: str = HIGHLIGHT_OPEN,
    close_tag: str = HIGHLIGHT_CLOSE,
):
    """Build a function wrapping whole-word matches of any term in markers.

    Text is HTML-escaped first; one alternation pattern (longest terms
    first) is applied in a single pass so markers never nest.
    """
    usable = sorted(
        {t.lower() for t in terms if len(t) >= MIN_TOKEN_CHARS},
        key=len,
        reverse=True,
    )
    pattern = None
    if usable:
        alternation = "|".join(re.escape(html.escape(t)) for t in usable)
        pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)

    def highlight(text: str) -> str:
        escaped = html.escape(text or "")
        if pattern is None:
            return escaped
        return pattern.sub(lambda m: f"{open_tag}{m.group(0)}{close_tag}", escaped)

    return highlight


def earliest_position(text: str, terms: list[str]) -> int | None:
    """Index of the first case-insensitive occurrence of any term."""
    lowered = text.lower()
    positions = [
        pos
        for pos in (lowered.find(t.lower()) for t in terms if t)
        if pos >= 0
    ]
    return min(positions) if positions else None


def make_snippet(
    content: str,
    terms: list[str],
    length: int = SNIPPET_LENGTH_CHARS,
    lead: int = SNIPPET_LEAD_CHARS,
) -> str:
    """Plain-text window around the earliest term, trimmed to word boundaries."""
    if not content:
        return ""
    position = earliest_position(content, terms)
    start = max(0, position - lead) if position is not None else 0

    snippet = content[start : start + length]
    if start > 0:
        space = snippet.find(" ")
        if 0 <= space < len(snippet) - 1:
            snippet = snippet[space + 1 :]
        snippet = "..." + snippet
    if start + length < len(content):
        space = snippet.rfind(" ")
        if space > 3:
            snippet = snippet[:space]
        snippet = snippet + "..."
    return snippet


def reading_time(content: str) -> ReadingTime:
    words = len(content.split()) if content else 0
    minutes = math.ceil(words / READING_WORDS_PER_MINUTE) if words else 0
    return ReadingTime(words=words, minutes=minutes, text=f"{minutes} min read")


def assess_content_quality(title: str, description: str, content: str) -> ContentQuality:
    """Display-only quality points with human-readable factors."""
    score = 0
    factors: list[str] = []
    if IDEAL_TITLE_MIN_CHARS <= len(title) <= IDEAL_TITLE_MAX_CHARS:
        score += 2
        factors.append("Well-sized title")
    if description:
        score += 1
        factors.append("Has description")
    if len(content) > SUBSTANTIAL_CONTENT_CHARS:
        score += 1
        factors.append("Substantial content")
    if len(content) > DETAILED_CONTENT_CHARS:
        score += 1
        factors.append("Detailed content")
    return ContentQuality(
        score=min(score, MAX_DISPLAY_QUALITY),
        max_score=MAX_DISPLAY_QUALITY,
        factors=factors,
    )


class ResultEnricher:
    """Turn scored documents into display-ready search results."""

    def __init__(
        self,
        open_tag: str = HIGHLIGHT_OPEN,
        close_tag: str = HIGHLIGHT_CLOSE,
        snippet_length: int = SNIPPET_LENGTH_CHARS,
    ):
        self._open_tag = open_tag
        self._close_tag = close_tag
        self._snippet_length = snippet_length

    def enrich(
        self,
        hits: list[ScoredDocument],
        analysis: QueryAnalysis,
        project_names: dict[int, str] | None = None,
        site_domains: dict[int, str] | None = None,
    ) -> list[SearchResult]:
        project_names = project_names or {}
        site_domains = site_domains or {}
        terms = [t.term for t in analysis.terms]
        highlight = highlight_terms(terms, self._open_tag, self._close_tag)
        snippet_terms = terms or analysis.phrases

        results = []
        for hit in hits:
            doc = hit.document
            snippet = make_snippet(doc.content_text, snippet_terms, self._snippet_length)
            results.append(
                SearchResult(
                    document_id=doc.id,
                    url=doc.url,
                    title=doc.title,
                    description=doc.description,
                    highlighted_title=highlight(doc.title),
                    highlighted_description=highlight(doc.description),
                    snippet=highlight(snippet),
                    domain=site_domains.get(doc.site_id) or extract_domain(doc.url),
                    project_id=doc.project_id,
                    project_name=project_names.get(doc.project_id, ""),
                    site_id=doc.site_id,
                    content_type=doc.content_type,
                    language=doc.language,
                    indexed_at=doc.indexed_at,
                    score=round(hit.relevance, 3),
                    score_breakdown=ScoreBreakdown(
                        relevance=round(hit.relevance, 3),
                        pagerank=round(doc.pagerank_score, 3),
                        quality=round(doc.quality_score, 3),
                    ),
                    reading_time=reading_time(doc.content_text),
                    content_quality=assess_content_quality(
                        doc.title, doc.description, doc.content_text
                    ),
                )
            )
        return results
