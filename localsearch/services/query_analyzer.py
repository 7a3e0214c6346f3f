"""Query analysis: phrases, terms, synonym expansion and intent."""

import re

from localsearch.constants import (
    DEFAULT_LANGUAGE,
    MIN_TOKEN_CHARS,
    ORIGINAL_TERM_WEIGHT,
    SYNONYM_TERM_WEIGHT,
)
from localsearch.models.search_models import (
    AnalyzedTerm,
    QueryAnalysis,
    QueryIntent,
    SearchOptions,
    TermType,
)
from localsearch.services.text_analysis import QUERY_STOP_WORDS, ascii_fold

SYNONYMS: dict[str, tuple[str, ...]] = {
    "recherche": ("rechercher", "chercher", "trouver", "quête"),
    "ordinateur": ("pc", "computer", "machine"),
    "internet": ("web", "net", "toile"),
    "téléphone": ("mobile", "portable", "smartphone"),
    "voiture": ("auto", "automobile", "véhicule"),
    "maison": ("domicile", "habitation", "logement"),
    "travail": ("boulot", "emploi", "job", "métier"),
}

QUESTION_WORDS = frozenset(
    (
        "qui", "que", "quoi", "où", "quand", "comment", "pourquoi", "combien",
        "what", "how", "why", "when", "where", "who", "which",
    )
)

DEFINITION_PHRASES = (
    "définition",
    "definition",
    "qu'est-ce que",
    "qu'est ce que",
    "c'est quoi",
    "what is",
    "define",
    "meaning of",
)

_PHRASE_RE = re.compile(r'"([^"]+)"')
_QUERY_NOISE_RE = re.compile(r'[^\w\s\-"]|_')
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"[\w']+")


def _synonym_groups(
    synonyms: dict[str, tuple[str, ...]],
) -> dict[str, frozenset[str]]:
    """Map every word of a synonym table to its whole group (lookup works both ways)."""
    groups: dict[str, frozenset[str]] = {}
    for key, members in synonyms.items():
        group = frozenset((key, *members))
        for word in group:
            groups[word] = groups.get(word, frozenset()) | group
    return groups


class QueryAnalyzer:
    """Turn a raw query into weighted terms, phrases and an intent."""

    def __init__(
        self,
        stop_words: frozenset[str] = QUERY_STOP_WORDS,
        synonyms: dict[str, tuple[str, ...]] | None = None,
        default_language: str = DEFAULT_LANGUAGE,
    ):
        self._stop_words = stop_words
        self._groups = _synonym_groups(SYNONYMS if synonyms is None else synonyms)
        self._default_language = default_language

    def analyze(self, raw_query: str, options: SearchOptions | None = None) -> QueryAnalysis:
        options = options or SearchOptions()

        phrases = [p.strip() for p in _PHRASE_RE.findall(raw_query) if p.strip()]
        remaining = _PHRASE_RE.sub(" ", raw_query)

        cleaned = self.clean(raw_query)
        words = self._extract_words(self.clean(remaining))

        if options.exact_phrase and not phrases:
            whole = cleaned.replace('"', "").strip()
            if whole:
                phrases.append(whole)

        terms = [
            AnalyzedTerm(
                term=word,
                normalized=ascii_fold(word),
                weight=ORIGINAL_TERM_WEIGHT,
                type=TermType.TERM,
            )
            for word in words
        ]
        if options.include_synonyms:
            terms.extend(self._expand(words))

        return QueryAnalysis(
            original_query=raw_query,
            cleaned_query=cleaned,
            terms=terms,
            phrases=phrases,
            intent=self.detect_intent(remaining),
            language=options.language or self._default_language,
        )

    @staticmethod
    def clean(query: str) -> str:
        """Lowercase and keep letters, digits, whitespace, hyphens and double quotes."""
        query = _QUERY_NOISE_RE.sub(" ", query.lower())
        return _WHITESPACE_RE.sub(" ", query).strip()

    def _extract_words(self, cleaned: str) -> list[str]:
        words: list[str] = []
        for raw in cleaned.split(" "):
            word = raw.strip('-"')
            if len(word) < MIN_TOKEN_CHARS or word in self._stop_words:
                continue
            if word not in words:
                words.append(word)
        return words

    def synonyms_for(self, word: str) -> list[str]:
        """Other members of the word's synonym group, in stable order."""
        group = self._groups.get(word)
        if not group:
            return []
        return sorted(group - {word})

    def _expand(self, words: list[str]) -> list[AnalyzedTerm]:
        seen = set(words)
        expanded: list[AnalyzedTerm] = []
        for word in words:
            for synonym in self.synonyms_for(word):
                if synonym in seen:
                    continue
                seen.add(synonym)
                expanded.append(
                    AnalyzedTerm(
                        term=synonym,
                        normalized=ascii_fold(synonym),
                        weight=SYNONYM_TERM_WEIGHT,
                        type=TermType.SYNONYM,
                        origin=word,
                    )
                )
        return expanded

    @staticmethod
    def detect_intent(query: str) -> QueryIntent:
        lowered = _WHITESPACE_RE.sub(" ", query.lower()).strip()
        # Normalize typographic apostrophes so "qu’est-ce que" matches
        lowered = lowered.replace("’", "'")
        if any(phrase in lowered for phrase in DEFINITION_PHRASES):
            return QueryIntent.DEFINITION
        words = set(_WORD_RE.findall(lowered))
        if words & QUESTION_WORDS or lowered.endswith("?"):
            return QueryIntent.QUESTION
        return QueryIntent.SEARCH
