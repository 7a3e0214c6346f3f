"""Search executor: retrieval, relevance scoring, sorting, paging and facets.

Relevance is an additive weighted sum over substring presence:

    sum over terms:   3w if in title + 2w if in description + 1w if in content
    sum over phrases: 5.0 if in title or description
    authority:        0.5 * pagerank_score + 0.3 * quality_score

A document must match at least one term or phrase somewhere to be returned.
"""

import math
import time

import logfire

from localsearch.constants import (
    CONTENT_MATCH_MULTIPLIER,
    DESCRIPTION_MATCH_MULTIPLIER,
    FALLBACK_RELEVANCE,
    MAX_SUGGESTIONS,
    MIN_SUGGESTION_QUERY_CHARS,
    PAGERANK_MULTIPLIER,
    PHRASE_MATCH_BONUS,
    QUALITY_MULTIPLIER,
    SITE_FACET_LIMIT,
    TERM_SUGGESTIONS_PER_QUERY,
    TITLE_MATCH_MULTIPLIER,
    TITLE_SUGGESTIONS_PER_QUERY,
)
from localsearch.db.store import SearchStore
from localsearch.exceptions import SearchValidationError
from localsearch.models.document_models import Document, DocumentFilter
from localsearch.models.search_models import (
    FacetBucket,
    QueryAnalysis,
    ScoredDocument,
    SearchFacets,
    SearchOptions,
    SearchResponse,
    SortOrder,
)
from localsearch.services.query_analyzer import QueryAnalyzer
from localsearch.services.result_enricher import ResultEnricher


def authority_score(document: Document) -> float:
    return PAGERANK_MULTIPLIER * document.pagerank_score + QUALITY_MULTIPLIER * document.quality_score


def score_document(document: Document, analysis: QueryAnalysis) -> ScoredDocument | None:
    """Score one document, or None when nothing in the query matches it."""
    title = document.title.lower()
    description = document.description.lower()
    content = document.content_text.lower()

    relevance = 0.0
    matched = 0
    matched_terms: list[str] = []
    for term in analysis.terms:
        needle = term.term.lower()
        hit = False
        if needle in title:
            relevance += TITLE_MATCH_MULTIPLIER * term.weight
            hit = True
        if needle in description:
            relevance += DESCRIPTION_MATCH_MULTIPLIER * term.weight
            hit = True
        if needle in content:
            relevance += CONTENT_MATCH_MULTIPLIER * term.weight
            hit = True
        if hit:
            matched += 1
            matched_terms.append(term.term)

    for phrase in analysis.phrases:
        needle = phrase.lower()
        if needle in title or needle in description:
            relevance += PHRASE_MATCH_BONUS
            matched += 1
        elif needle in content:
            matched += 1

    if matched == 0:
        return None
    return ScoredDocument(
        document=document,
        relevance=relevance + authority_score(document),
        matched_conditions=matched,
        matched_terms=matched_terms,
    )


def sort_hits(hits: list[ScoredDocument], sort: SortOrder) -> list[ScoredDocument]:
    """Order hits by the requested key. Python's sort is stable, so ties keep input order."""
    if sort == "date":
        return sorted(hits, key=lambda h: h.document.indexed_at, reverse=True)
    if sort == "title":
        return sorted(hits, key=lambda h: h.document.title.casefold())
    if sort == "pagerank":
        return sorted(
            hits,
            key=lambda h: (h.document.pagerank_score, h.document.quality_score),
            reverse=True,
        )
    return sorted(
        hits,
        key=lambda h: (h.relevance, h.document.indexed_at),
        reverse=True,
    )


class SearchEngine:
    """Run searches against the store."""

    def __init__(
        self,
        store: SearchStore,
        analyzer: QueryAnalyzer | None = None,
        enricher: ResultEnricher | None = None,
    ):
        self._store = store
        self._analyzer = analyzer or QueryAnalyzer()
        self._enricher = enricher or ResultEnricher()

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        """Search indexed documents.

        Raises:
            SearchValidationError: If the query is empty
        """
        if not query or not query.strip():
            raise SearchValidationError("search query required")

        options = options or SearchOptions()
        start_time = time.perf_counter()
        filters = options.to_filter()
        analysis = self._analyzer.analyze(query, options)

        fallback = analysis.is_empty
        hits: list[ScoredDocument] = []
        if not fallback:
            try:
                hits = self._score(analysis, filters)
            except Exception as e:
                logfire.error(
                    "Scored search failed, falling back to substring search",
                    query=query,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                fallback = True
        if fallback:
            hits = self._fallback_hits(query, filters)

        ordered = sort_hits(hits, "date" if fallback and options.sort == "relevance" else options.sort)
        offset = (options.page - 1) * options.per_page
        page_hits = ordered[offset : offset + options.per_page]

        project_names = {p.id: p.name for p in self._store.list_projects()}
        site_domains = {s.id: s.domain for s in self._store.list_sites(options.project_id)}
        results = self._enricher.enrich(page_hits, analysis, project_names, site_domains)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logfire.info(
            "Search completed",
            query=query,
            intent=analysis.intent.value,
            terms=len(analysis.terms),
            phrases=len(analysis.phrases),
            total_results=len(hits),
            fallback=fallback,
            elapsed_time_ms=elapsed_ms,
        )
        return SearchResponse(
            query=query,
            total_results=len(hits),
            page=options.page,
            per_page=options.per_page,
            total_pages=math.ceil(len(hits) / options.per_page) if hits else 0,
            results=results,
            facets=self.facets(filters, project_names, site_domains),
            suggestions=self.suggestions(query, options.project_id),
            analysis=analysis,
            fallback=fallback,
            elapsed_time_ms=round(elapsed_ms, 2),
        )

    def _score(self, analysis: QueryAnalysis, filters: DocumentFilter) -> list[ScoredDocument]:
        needles = [t.term for t in analysis.terms] + analysis.phrases
        candidates = self._store.find_documents(filters, needles)
        hits = []
        for document in candidates:
            scored = score_document(document, analysis)
            if scored is not None:
                hits.append(scored)
        return hits

    def _fallback_hits(self, query: str, filters: DocumentFilter) -> list[ScoredDocument]:
        needle = query.strip().lower()
        documents = self._store.find_documents(filters, [needle])
        return [
            ScoredDocument(document=doc, relevance=FALLBACK_RELEVANCE, matched_conditions=1)
            for doc in documents
        ]

    def facets(
        self,
        filters: DocumentFilter,
        project_names: dict[int, str] | None = None,
        site_domains: dict[int, str] | None = None,
    ) -> SearchFacets:
        """Counts by content type, project, site and language over every filtered document."""
        project_names = project_names or {}
        site_domains = site_domains or {}

        def buckets(field: str, labels: dict[int, str] | None = None) -> list[FacetBucket]:
            counts = self._store.count_documents_by(field, filters)
            ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            return [
                FacetBucket(
                    value=value,
                    label=labels.get(int(value), value) if labels else value,
                    count=count,
                )
                for value, count in ranked
                if value
            ]

        return SearchFacets(
            content_types=buckets("content_type"),
            projects=buckets("project_id", project_names),
            sites=buckets("site_id", site_domains)[:SITE_FACET_LIMIT],
            languages=buckets("language"),
        )

    def suggestions(self, query: str, project_id: int | None = None) -> list[str]:
        """Index terms completing the last query word, then matching titles."""
        query = query.strip()
        if len(query) < MIN_SUGGESTION_QUERY_CHARS:
            return []

        words = QueryAnalyzer.clean(query).replace('"', " ").split()
        prefix = words[-1] if words else ""
        suggestions: list[str] = []
        if len(prefix) >= MIN_SUGGESTION_QUERY_CHARS:
            for tf in self._store.term_frequencies(
                project_id=project_id, prefix=prefix, limit=TERM_SUGGESTIONS_PER_QUERY
            ):
                if tf.term not in suggestions:
                    suggestions.append(tf.term)

        title_filter = DocumentFilter(project_id=project_id)
        for title in self._store.find_titles(
            query, title_filter, limit=TITLE_SUGGESTIONS_PER_QUERY
        ):
            if title not in suggestions:
                suggestions.append(title)
        return suggestions[:MAX_SUGGESTIONS]
