"""Term indexer.

Builds one posting per (term, document). Each field is tokenized separately
and weighted (title 3.0, description 2.0, content 1.0); a term's posting
weight is ``max_field_weight * (1 + ln(frequency))`` where frequency counts
occurrences across all fields. Indexing a document replaces all of its
postings, so running it twice yields the same posting set.
"""

import math
from dataclasses import dataclass

import logfire

from localsearch.constants import (
    CONTENT_FIELD_WEIGHT,
    DESCRIPTION_FIELD_WEIGHT,
    POSTING_CONTEXT_CHARS,
    POSTING_CONTEXT_FALLBACK_CHARS,
    POSTING_CONTEXT_LEAD_CHARS,
    TERM_SUGGESTION_LIMIT,
    TITLE_FIELD_WEIGHT,
    TOP_TERMS_LIMIT,
)
from localsearch.db.store import SearchStore
from localsearch.models.document_models import (
    Document,
    DocumentFilter,
    IndexStatistics,
    ParsedContent,
    Posting,
    PostingField,
    ReindexStats,
    TermFrequency,
)
from localsearch.services.text_analysis import hash_term, tokenize

FIELD_WEIGHTS = {
    PostingField.TITLE: TITLE_FIELD_WEIGHT,
    PostingField.DESCRIPTION: DESCRIPTION_FIELD_WEIGHT,
    PostingField.CONTENT: CONTENT_FIELD_WEIGHT,
}


@dataclass
class _TermAccumulator:
    frequency: int = 0
    max_weight: float = 0.0
    field: PostingField = PostingField.CONTENT
    position: int = 0


def extract_context(term: str, text: str) -> str:
    """Window of text around the first case-insensitive occurrence of a term."""
    if not text:
        return ""
    pos = text.lower().find(term.lower())
    if pos < 0:
        return text[:POSTING_CONTEXT_FALLBACK_CHARS]
    start = max(0, pos - POSTING_CONTEXT_LEAD_CHARS)
    return text[start : start + POSTING_CONTEXT_CHARS]


def build_postings(document_id: int, project_id: int, content: ParsedContent) -> list[Posting]:
    """Compute the posting set for one document's fields."""
    field_texts = {
        PostingField.TITLE: content.title,
        PostingField.DESCRIPTION: content.description,
        PostingField.CONTENT: content.content_text,
    }

    terms: dict[str, _TermAccumulator] = {}
    position = 0
    for posting_field, text in field_texts.items():
        weight = FIELD_WEIGHTS[posting_field]
        for token in tokenize(text):
            acc = terms.get(token)
            if acc is None:
                acc = terms[token] = _TermAccumulator(field=posting_field, position=position)
            acc.frequency += 1
            if weight > acc.max_weight:
                acc.max_weight = weight
                acc.field = posting_field
            position += 1

    return [
        Posting(
            term=term,
            term_hash=hash_term(term),
            document_id=document_id,
            project_id=project_id,
            frequency=acc.frequency,
            weight=round(acc.max_weight * (1 + math.log(acc.frequency)), 6),
            field=acc.field,
            position=acc.position,
            context=extract_context(term, field_texts[acc.field]),
        )
        for term, acc in terms.items()
    ]


def content_from_document(document: Document) -> ParsedContent:
    """Rebuild indexable content from a stored document."""
    return ParsedContent(
        content_kind=document.content_type,
        mime_type=document.mime_type,
        title=document.title,
        description=document.description,
        content_text=document.content_text,
        language=document.language,
        file_size=document.file_size,
        metadata=dict(document.metadata),
        quality_score=document.quality_score,
    )


class TermIndexer:
    """Write and maintain postings for documents."""

    def __init__(self, store: SearchStore):
        self._store = store

    def index_document(
        self, document_id: int, project_id: int, content: ParsedContent
    ) -> int:
        """Replace a document's postings. Returns the number written."""
        postings = build_postings(document_id, project_id, content)
        self._store.replace_postings(document_id, postings)
        logfire.info(
            "Document indexed",
            document_id=document_id,
            project_id=project_id,
            postings=len(postings),
        )
        return len(postings)

    def reindex_project(self, project_id: int) -> ReindexStats:
        """Rebuild postings for every document of a project from stored text."""
        stats = ReindexStats()
        documents = self._store.list_documents(self._project_filter(project_id))
        for document in documents:
            try:
                self.index_document(
                    document.id, document.project_id, content_from_document(document)
                )
                stats.processed += 1
            except Exception as e:
                stats.errors += 1
                logfire.error(
                    "Failed to reindex document",
                    document_id=document.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        logfire.info(
            "Project reindexed",
            project_id=project_id,
            processed=stats.processed,
            errors=stats.errors,
        )
        return stats

    def cleanup_orphaned_terms(self) -> int:
        """Remove postings whose document no longer exists."""
        return self._store.delete_orphan_postings()

    def get_statistics(self, project_id: int | None = None) -> IndexStatistics:
        frequencies = self._store.term_frequencies(project_id=project_id)
        total_postings = self._store.count_postings(project_id)
        total_frequency = sum(tf.frequency for tf in frequencies)
        return IndexStatistics(
            total_documents=self._store.count_documents(self._project_filter(project_id)),
            unique_terms=len(frequencies),
            total_postings=total_postings,
            average_frequency=(
                round(total_frequency / total_postings, 2) if total_postings else 0.0
            ),
            top_terms=frequencies[:TOP_TERMS_LIMIT],
            by_language={
                language: count
                for language, count in self._store.count_documents_by(
                    "language", self._project_filter(project_id)
                ).items()
                if language
            },
        )

    def suggest_terms(
        self,
        prefix: str,
        project_id: int | None = None,
        limit: int = TERM_SUGGESTION_LIMIT,
    ) -> list[TermFrequency]:
        prefix = prefix.strip().lower()
        if not prefix:
            return []
        return self._store.term_frequencies(project_id=project_id, prefix=prefix, limit=limit)

    @staticmethod
    def _project_filter(project_id: int | None) -> DocumentFilter:
        return DocumentFilter(project_id=project_id)
