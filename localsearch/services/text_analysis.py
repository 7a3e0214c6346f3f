"""Tokenization and stop words shared by the indexer and the query analyzer."""

import hashlib
import html
import re
import unicodedata

from localsearch.constants import MAX_TOKEN_CHARS, MIN_TOKEN_CHARS

# Bilingual list applied when indexing page text
INDEX_STOP_WORDS = frozenset(
    (
        # French
        "le", "de", "et", "à", "un", "il", "être", "en", "avoir", "que", "pour",
        "dans", "ce", "son", "une", "sur", "avec", "ne", "se", "pas", "tout", "plus",
        "par", "grand", "comme", "mais", "premier", "vous", "ou", "nous", "faire",
        "du", "aller", "voir", "temps", "petit", "la", "les", "des", "au", "aux",
        "ces", "cette", "ses", "mes", "tes", "nos", "vos", "leurs", "mon", "ton",
        "ma", "ta", "sa", "notre", "votre", "leur", "je", "tu", "elle", "ils",
        "elles", "me", "te", "moi", "toi", "lui", "eux", "qui", "quoi", "dont",
        "où", "quand", "comment", "pourquoi", "quel", "quelle", "quels", "quelles",
        "lequel", "laquelle", "lesquels", "lesquelles",
        # English
        "the", "be", "to", "of", "and", "a", "in", "that", "have", "it", "for",
        "not", "on", "with", "he", "as", "you", "do", "at", "this", "but", "his",
        "by", "from", "they", "we", "say", "her", "she", "or", "an", "will", "my",
        "one", "all", "would", "there", "their", "what", "so", "up", "out", "if",
        "about", "who", "get", "which", "go", "when", "make", "can", "like",
        "time", "no", "just", "him", "know", "take", "people", "into", "year",
        "your", "good", "some", "could", "them", "see", "other", "than", "then",
        "now", "look", "only", "come", "its", "over", "think", "also", "back",
        "after", "use", "two", "how", "our", "work", "first", "well", "way",
        "even", "new", "want", "because", "any", "these", "give", "day", "most",
        "us",
    )
)

# Shorter list applied to queries so that meaningful query words survive
QUERY_STOP_WORDS = frozenset(
    (
        "le", "de", "et", "à", "un", "il", "être", "en", "avoir", "que", "pour",
        "dans", "ce", "son", "une", "sur", "avec", "ne", "se", "pas", "tout", "plus",
        "par", "grand", "comme", "depuis", "du", "la", "les", "des", "nous", "vous",
        "ils", "elle", "elles", "je", "tu", "me", "te",
        "the", "a", "an", "of", "and", "or", "to", "in", "on", "for", "with",
    )
)

# Letters, digits, apostrophes and whitespace survive; underscore is not a letter
_NON_WORD_RE = re.compile(r"[^\w\s']|_")


def hash_term(term: str) -> str:
    """SHA-256 hex digest of the lowercased term."""
    return hashlib.sha256(term.lower().encode("utf-8")).hexdigest()


def ascii_fold(text: str) -> str:
    """Lowercase ASCII form of a word, keeping only [a-z0-9]."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = decomposed.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]", "", stripped)


def tokenize(text: str, stop_words: frozenset[str] = INDEX_STOP_WORDS) -> list[str]:
    """Split text into index terms.

    lowercase, decode entities, keep letters/digits/apostrophes, split on
    whitespace, then drop tokens outside 2-50 chars, numbers and stop words.
    Order and repetitions are preserved.
    """
    if not text:
        return []
    text = html.unescape(text.lower())
    text = _NON_WORD_RE.sub(" ", text)

    tokens: list[str] = []
    for raw in text.split():
        word = raw.strip("'")
        if len(word) < MIN_TOKEN_CHARS or len(word) > MAX_TOKEN_CHARS:
            continue
        if word.isdigit() or word in stop_words:
            continue
        tokens.append(word)
    return tokens
