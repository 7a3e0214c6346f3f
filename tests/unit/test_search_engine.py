"""Tests for the search executor."""

from datetime import datetime, timedelta, timezone

import pytest

from localsearch.exceptions import SearchValidationError
from localsearch.models.document_models import ContentKind, DocumentCreate, ParsedContent
from localsearch.models.search_models import SearchOptions
from localsearch.models.site_models import ProjectCreate, SiteCreate
from localsearch.services.indexer import TermIndexer
from localsearch.services.search_engine import SearchEngine

NO_SYNONYMS = SearchOptions(include_synonyms=False)


def add_doc(store, site, path, title="", description="", content="", **extra):
    return store.insert_document(
        DocumentCreate(
            project_id=site.project_id,
            site_id=site.id,
            url=f"https://{site.domain}{path}",
            url_hash=f"{site.domain}{path}",
            content_type=extra.pop("content_type", ContentKind.WEBPAGE),
            title=title,
            description=description,
            content_text=content,
            language=extra.pop("language", "en"),
            **extra,
        )
    )


@pytest.fixture
def engine(store):
    return SearchEngine(store)


@pytest.fixture
def other_site(store):
    project = store.create_project(ProjectCreate(name="Other project", base_domains=["other.org"]))
    return store.create_site(
        SiteCreate(project_id=project.id, domain="other.org", base_url="https://other.org/")
    )


class TestValidation:
    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query_rejected(self, engine, query):
        with pytest.raises(SearchValidationError):
            engine.search(query)

    def test_per_page_is_capped(self):
        assert SearchOptions(per_page=500).per_page == 100


class TestRanking:
    """Relevance scoring and ordering."""

    def test_title_match_outranks_body_match(self, engine, store, site):
        add_doc(store, site, "/body", title="Notes", content="learn python today")
        add_doc(store, site, "/title", title="Python crawler guide", content="Notes")

        response = engine.search("python", NO_SYNONYMS)

        assert [r.url for r in response.results] == [
            "https://example.com/title",
            "https://example.com/body",
        ]
        assert response.results[0].score == pytest.approx(3.5)
        assert response.results[1].score == pytest.approx(1.5)

    def test_quoted_phrase_bonus_only_in_title_or_description(self, engine, store, site):
        add_doc(store, site, "/content", title="Animals", content="a quick fox ran")
        add_doc(store, site, "/title", title="The quick fox")
        add_doc(store, site, "/none", title="quick and the fox")

        response = engine.search('"quick fox"')

        assert [r.url for r in response.results] == [
            "https://example.com/title",
            "https://example.com/content",
        ]
        assert response.results[0].score == pytest.approx(5.5)
        assert response.results[1].score == pytest.approx(0.5)

    def test_exact_phrase_scores_terms_and_phrase(self, engine, store, site):
        add_doc(store, site, "/", title="The quick fox")

        response = engine.search("quick fox", SearchOptions(exact_phrase=True, include_synonyms=False))

        assert response.results[0].score == pytest.approx(3 + 3 + 5 + 0.5)

    def test_synonym_matches_with_reduced_weight(self, engine, store, site):
        add_doc(store, site, "/", title="Pages", content="chercher des pages")

        with_synonyms = engine.search("recherche")
        without = engine.search("recherche", NO_SYNONYMS)

        assert with_synonyms.total_results == 1
        assert with_synonyms.results[0].score == pytest.approx(0.7 + 0.5)
        assert without.total_results == 0
        assert not without.fallback

    def test_authority_added_to_relevance(self, engine, store, site):
        add_doc(store, site, "/", title="python", pagerank_score=2.0, quality_score=0.5)

        response = engine.search("python", NO_SYNONYMS)

        assert response.results[0].score == pytest.approx(3.0 + 1.0 + 0.15)
        assert response.results[0].score_breakdown.pagerank == 2.0

    def test_no_match_returns_empty_page(self, engine, store, site):
        add_doc(store, site, "/", title="python")

        response = engine.search("nonexistent", NO_SYNONYMS)

        assert response.total_results == 0
        assert response.total_pages == 0
        assert response.results == []


class TestSortingAndPaging:
    def test_sort_by_title_is_case_insensitive(self, engine, store, site):
        for title in ("beta python", "Alpha python", "gamma python"):
            add_doc(store, site, f"/{title[0]}", title=title)

        response = engine.search("python", SearchOptions(sort="title", include_synonyms=False))

        assert [r.title for r in response.results] == ["Alpha python", "beta python", "gamma python"]

    def test_sort_by_pagerank(self, engine, store, site):
        for rank in (0.2, 3.0, 1.0):
            add_doc(store, site, f"/{rank}", title="python", pagerank_score=rank)

        response = engine.search("python", SearchOptions(sort="pagerank", include_synonyms=False))

        assert [r.score_breakdown.pagerank for r in response.results] == [3.0, 1.0, 0.2]

    def test_sort_by_date_newest_first(self, engine, store, site):
        old = add_doc(store, site, "/old", title="python")
        new = add_doc(store, site, "/new", title="python")
        now = datetime.now(timezone.utc)
        store._documents[old.id].indexed_at = now - timedelta(days=2)
        store._documents[new.id].indexed_at = now

        response = engine.search("python", SearchOptions(sort="date", include_synonyms=False))

        assert [r.document_id for r in response.results] == [new.id, old.id]

    def test_pagination(self, engine, store, site):
        for i in range(3):
            add_doc(store, site, f"/{i}", title=f"python {i}")

        response = engine.search("python", SearchOptions(page=2, per_page=2, include_synonyms=False))

        assert response.total_results == 3
        assert response.total_pages == 2
        assert len(response.results) == 1


class TestFilters:
    def test_project_filter(self, engine, store, site, other_site):
        add_doc(store, site, "/", title="python")
        add_doc(store, other_site, "/", title="python")

        response = engine.search("python", SearchOptions(project_id=site.project_id, include_synonyms=False))

        assert response.total_results == 1
        assert response.results[0].project_name == "Example Project"
        assert response.results[0].domain == "example.com"

    def test_content_type_filter(self, engine, store, site):
        add_doc(store, site, "/page", title="python")
        add_doc(store, site, "/logo.png", title="python logo", content_type=ContentKind.IMAGE)

        response = engine.search(
            "python", SearchOptions(content_type=ContentKind.IMAGE, include_synonyms=False)
        )

        assert [r.url for r in response.results] == ["https://example.com/logo.png"]

    def test_date_filter(self, engine, store, site):
        add_doc(store, site, "/", title="python")
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)

        response = engine.search("python", SearchOptions(date_from=tomorrow, include_synonyms=False))

        assert response.total_results == 0


class TestFacets:
    def test_counts_by_type_project_and_site(self, engine, store, site, other_site):
        add_doc(store, site, "/a", title="python")
        add_doc(store, site, "/b", title="python")
        add_doc(store, other_site, "/logo.png", title="logo", content_type=ContentKind.IMAGE)

        facets = engine.search("python", NO_SYNONYMS).facets

        assert [(b.value, b.count) for b in facets.content_types] == [("webpage", 2), ("image", 1)]
        assert [(b.label, b.count) for b in facets.projects] == [
            ("Example Project", 2),
            ("Other project", 1),
        ]
        assert [(b.label, b.count) for b in facets.sites] == [("example.com", 2), ("other.org", 1)]

    def test_facets_respect_filters(self, engine, store, site, other_site):
        add_doc(store, site, "/", title="python")
        add_doc(store, other_site, "/", title="python")

        facets = engine.search("python", SearchOptions(project_id=other_site.project_id)).facets

        assert [b.label for b in facets.projects] == ["Other project"]

    def test_language_facet(self, engine, store, site):
        add_doc(store, site, "/en", title="python")
        add_doc(store, site, "/fr", title="python", language="fr")
        add_doc(store, site, "/fr2", title="python", language="fr")
        add_doc(store, site, "/unknown", title="python", language="")

        facets = engine.search("python", NO_SYNONYMS).facets

        assert [(b.value, b.count) for b in facets.languages] == [("fr", 2), ("en", 1)]


class TestFallback:
    def test_empty_analysis_uses_substring_search(self, engine, store, site):
        add_doc(store, site, "/", title="Solfege", content="chanter le la bemol")

        response = engine.search("le la")

        assert response.fallback
        assert response.total_results == 1
        assert response.results[0].score == pytest.approx(1.0)

    def test_scoring_failure_falls_back(self, engine, store, site, monkeypatch):
        add_doc(store, site, "/", title="python")

        def broken(document, analysis):
            raise RuntimeError("scoring failed")

        monkeypatch.setattr("localsearch.services.search_engine.score_document", broken)

        response = engine.search("python")

        assert response.fallback
        assert response.total_results == 1


class TestResultEnrichment:
    def test_titles_are_highlighted(self, engine, store, site):
        add_doc(store, site, "/", title="Python crawler guide", content="All about python.")

        result = engine.search("python", NO_SYNONYMS).results[0]

        assert result.highlighted_title == "<mark>Python</mark> crawler guide"
        assert "<mark>python</mark>" in result.snippet
        assert result.reading_time.minutes == 1


class TestSuggestions:
    def test_terms_then_titles(self, engine, store, site):
        doc = add_doc(store, site, "/", title="search searching engine")
        TermIndexer(store).index_document(
            doc.id,
            site.project_id,
            ParsedContent(
                content_kind=ContentKind.WEBPAGE,
                mime_type="text/html",
                title="search searching engine",
            ),
        )

        assert engine.suggestions("sea") == ["search", "searching", "search searching engine"]

    def test_short_query_has_no_suggestions(self, engine):
        assert engine.suggestions("s") == []

    def test_suggestions_included_in_response(self, engine, store, site):
        add_doc(store, site, "/", title="python guide")

        response = engine.search("python", NO_SYNONYMS)

        assert response.suggestions == ["python guide"]
