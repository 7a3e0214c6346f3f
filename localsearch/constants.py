"""Application-wide constants.

This module centralizes the crawler and search tuning values so that the
services, the settings defaults and the tests share a single source of truth.

Constants are organized by the component that consumes them.
"""

# =============================================================================
# Fetch Client
# =============================================================================

# Identifies the crawler to target sites
DEFAULT_USER_AGENT = "SearchBot/1.0"

# HTTP timeout for a single fetch (seconds)
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0

# Redirects followed before the fetch is reported as a network error
DEFAULT_MAX_REDIRECTS = 3

# Origins whose parsed robots.txt is kept in memory
ROBOTS_CACHE_MAX_ORIGINS = 256

# Body size cap for text content (html, plain text) in bytes
MAX_CONTENT_LENGTH_BYTES = 1_000_000

# Body size cap for media content (images, videos) in bytes
MAX_FILE_SIZE_BYTES = 50_000_000

# MIME types the crawler accepts, grouped by content class
TEXT_MIME_TYPES = frozenset(("text/html", "application/xhtml+xml", "text/plain"))
IMAGE_MIME_TYPES = frozenset(("image/jpeg", "image/png", "image/gif", "image/webp"))
VIDEO_MIME_TYPES = frozenset(("video/mp4", "video/webm", "video/ogg"))
ALLOWED_MIME_TYPES = TEXT_MIME_TYPES | IMAGE_MIME_TYPES | VIDEO_MIME_TYPES

# =============================================================================
# Content Parser
# =============================================================================

# Outbound links kept per page
MAX_LINKS_PER_PAGE = 50

# Extracted text cap (chars)
MAX_CONTENT_TEXT_CHARS = 50_000

# Title synthesized from plain text bodies (chars)
PLAIN_TEXT_TITLE_CHARS = 100

# Language used when a page does not declare one
DEFAULT_LANGUAGE = "fr"

# Subtrees removed before body text extraction
NON_CONTENT_TAGS = ("script", "style", "nav", "header", "footer", "aside")

# =============================================================================
# URL Policy
# =============================================================================

MAX_URL_LENGTH = 500

BLOCKED_EXTENSIONS = frozenset(
    (
        "pdf",
        "doc",
        "docx",
        "xls",
        "xlsx",
        "ppt",
        "pptx",
        "css",
        "js",
        "json",
        "xml",
        "rss",
        "zip",
        "gz",
        "tar",
        "rar",
        "exe",
        "dmg",
        "ico",
        "woff",
        "woff2",
        "ttf",
        "eot",
    )
)

# =============================================================================
# Crawl Orchestrator
# =============================================================================

DEFAULT_MAX_PAGES = 50
MIN_MAX_PAGES = 1
MAX_MAX_PAGES = 1000

DEFAULT_MAX_CRAWL_DEPTH = 3
DEFAULT_CRAWL_DELAY_SECONDS = 1.0

# Queue priorities: seed URL vs. discovered links (higher is dequeued first)
SEED_URL_PRIORITY = 1
DISCOVERED_LINK_PRIORITY = 5

# Hours between scheduled re-crawls of a site
DEFAULT_CRAWL_FREQUENCY_HOURS = 24

# Bounded listings for status endpoints
CRAWL_HISTORY_LIMIT = 50
CRAWL_QUEUE_LIMIT = 100

# Attempts at claiming a queue entry before giving up on a contended dequeue
QUEUE_CLAIM_ATTEMPTS = 5

# =============================================================================
# Project Configuration Bounds
# =============================================================================

PROJECT_NAME_MIN_CHARS = 3
PROJECT_NAME_MAX_CHARS = 100
PROJECT_DESCRIPTION_MAX_CHARS = 500
MIN_CRAWL_DEPTH = 1
MAX_CRAWL_DEPTH = 10
MAX_CRAWL_DELAY_SECONDS = 60.0

DOMAIN_PATTERN = (
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

# =============================================================================
# Term Indexer
# =============================================================================

TITLE_FIELD_WEIGHT = 3.0
DESCRIPTION_FIELD_WEIGHT = 2.0
CONTENT_FIELD_WEIGHT = 1.0

MIN_TOKEN_CHARS = 2
MAX_TOKEN_CHARS = 50

# Context window stored with each posting
POSTING_CONTEXT_CHARS = 200
POSTING_CONTEXT_LEAD_CHARS = 50
POSTING_CONTEXT_FALLBACK_CHARS = 100

TOP_TERMS_LIMIT = 20
TERM_SUGGESTION_LIMIT = 10

# =============================================================================
# Query Analysis & Scoring
# =============================================================================

ORIGINAL_TERM_WEIGHT = 1.0
SYNONYM_TERM_WEIGHT = 0.7

TITLE_MATCH_MULTIPLIER = 3.0
DESCRIPTION_MATCH_MULTIPLIER = 2.0
CONTENT_MATCH_MULTIPLIER = 1.0
PHRASE_MATCH_BONUS = 5.0
PAGERANK_MULTIPLIER = 0.5
QUALITY_MULTIPLIER = 0.3

# Relevance assigned to every hit of the substring fallback search
FALLBACK_RELEVANCE = 1.0

DEFAULT_RESULTS_PER_PAGE = 20
MAX_RESULTS_PER_PAGE = 100

# Facet buckets kept for the sites facet
SITE_FACET_LIMIT = 10

# Query suggestions
MIN_SUGGESTION_QUERY_CHARS = 2
TERM_SUGGESTIONS_PER_QUERY = 5
TITLE_SUGGESTIONS_PER_QUERY = 3
MAX_SUGGESTIONS = 8

# =============================================================================
# Result Enrichment
# =============================================================================

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"

SNIPPET_LENGTH_CHARS = 300
SNIPPET_LEAD_CHARS = 100

READING_WORDS_PER_MINUTE = 200

# Display quality assessment (0-5 points)
IDEAL_TITLE_MIN_CHARS = 30
IDEAL_TITLE_MAX_CHARS = 60
SUBSTANTIAL_CONTENT_CHARS = 500
DETAILED_CONTENT_CHARS = 2000
MAX_DISPLAY_QUALITY = 5
