"""Turn fetched bodies into indexable content.

HTML goes through BeautifulSoup's permissive ``html.parser`` so malformed
markup degrades to missing fields instead of errors. Plain text is taken as
is, and images and videos only yield a title and format metadata.
"""

import posixpath
import re
from urllib.parse import unquote, urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup

from localsearch.constants import (
    DEFAULT_LANGUAGE,
    IMAGE_MIME_TYPES,
    MAX_CONTENT_TEXT_CHARS,
    MAX_LINKS_PER_PAGE,
    NON_CONTENT_TAGS,
    PLAIN_TEXT_TITLE_CHARS,
    VIDEO_MIME_TYPES,
)
from localsearch.models.document_models import ContentKind, ParsedContent
from localsearch.services.url_policy import is_valid_url

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")

HTML_MIME_TYPES = frozenset(("text/html", "application/xhtml+xml"))


def clean_text(text: str, max_chars: int = MAX_CONTENT_TEXT_CHARS) -> str:
    """Drop control characters, collapse whitespace, trim and cap."""
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_chars]


def resolve_url(href: str, source_url: str) -> str | None:
    """Resolve a link target against the page it was found on.

    Absolute, protocol-relative (``//host/x``), root-relative (``/x``) and
    document-relative (``x``) targets all go through ``urljoin``, which also
    removes dot segments. Fragments are dropped; anything that does not end
    up as a valid http(s) URL yields None.
    """
    href = href.strip()
    if not href or href.startswith("#"):
        return None

    try:
        base = urlsplit(source_url)
        if not base.scheme or not base.netloc:
            return None
        absolute, _ = urldefrag(urljoin(source_url, href))
    except ValueError:
        # Malformed targets such as "http://[oops/"
        return None

    return absolute if is_valid_url(absolute) else None


def calculate_quality_score(title: str, description: str, content_text: str) -> float:
    """Additive 0.0-1.0 quality heuristic used as a ranking input."""
    score = 0.0
    if title:
        score += 0.3
        if 10 < len(title) < 100:
            score += 0.1
    if description:
        score += 0.2
    content_length = len(content_text)
    if content_length > 500:
        score += 0.3
        if 1000 < content_length < 10000:
            score += 0.2
    return round(min(score, 1.0), 4)


class ContentParser:
    """Extract title, description, language, text and links from a body."""

    def __init__(
        self,
        default_language: str = DEFAULT_LANGUAGE,
        max_links: int = MAX_LINKS_PER_PAGE,
        max_text_chars: int = MAX_CONTENT_TEXT_CHARS,
    ):
        self._default_language = default_language
        self._max_links = max_links
        self._max_text_chars = max_text_chars

    def parse(self, body: bytes, content_type: str, source_url: str) -> ParsedContent:
        mime_type = content_type.split(";", 1)[0].strip().lower()

        if mime_type in IMAGE_MIME_TYPES:
            return self._parse_media(body, mime_type, source_url, ContentKind.IMAGE)
        if mime_type in VIDEO_MIME_TYPES:
            return self._parse_media(body, mime_type, source_url, ContentKind.VIDEO)
        if mime_type == "text/plain":
            return self._parse_plain_text(body, mime_type)
        return self._parse_html(body, mime_type or "text/html", source_url)

    def _parse_html(self, body: bytes, mime_type: str, source_url: str) -> ParsedContent:
        soup = BeautifulSoup(body, "html.parser")

        title = ""
        if soup.title is not None:
            title = clean_text(soup.title.get_text(), self._max_text_chars)

        description = ""
        meta = soup.find(
            "meta", attrs={"name": re.compile(r"^description$", re.IGNORECASE)}
        )
        if meta is not None and meta.get("content"):
            description = clean_text(str(meta["content"]), self._max_text_chars)

        language = self._default_language
        html_tag = soup.find("html")
        if html_tag is not None and html_tag.get("lang"):
            declared = str(html_tag["lang"]).strip().lower()[:2]
            if declared:
                language = declared

        links = self._extract_links(soup, source_url)

        for tag in soup(list(NON_CONTENT_TAGS)):
            tag.decompose()
        root = soup.body or soup
        content_text = clean_text(root.get_text(" "), self._max_text_chars)

        return ParsedContent(
            content_kind=ContentKind.WEBPAGE,
            mime_type=mime_type,
            title=title,
            description=description,
            content_text=content_text,
            language=language,
            file_size=len(body),
            links=links,
            quality_score=calculate_quality_score(title, description, content_text),
        )

    def _extract_links(self, soup: BeautifulSoup, source_url: str) -> list[str]:
        seen: set[str] = set()
        links: list[str] = []
        for anchor in soup.find_all("a", href=True):
            resolved = resolve_url(str(anchor["href"]), source_url)
            if resolved is None or resolved in seen:
                continue
            seen.add(resolved)
            links.append(resolved)
            if len(links) >= self._max_links:
                break
        return links

    def _parse_plain_text(self, body: bytes, mime_type: str) -> ParsedContent:
        content_text = clean_text(body.decode("utf-8", errors="replace"), self._max_text_chars)
        title = content_text[:PLAIN_TEXT_TITLE_CHARS]
        if len(content_text) > PLAIN_TEXT_TITLE_CHARS:
            title += "..."
        return ParsedContent(
            content_kind=ContentKind.WEBPAGE,
            mime_type=mime_type,
            title=title,
            content_text=content_text,
            language=self._default_language,
            file_size=len(body),
            quality_score=round(min(1.0, len(content_text) / 1000), 4),
        )

    def _parse_media(
        self, body: bytes, mime_type: str, source_url: str, kind: ContentKind
    ) -> ParsedContent:
        filename = posixpath.basename(unquote(urlsplit(source_url).path))
        stem, extension = posixpath.splitext(filename)
        fmt = extension.lstrip(".").lower() or mime_type.split("/", 1)[-1]
        title = clean_text(stem, self._max_text_chars)
        return ParsedContent(
            content_kind=kind,
            mime_type=mime_type,
            title=title,
            language=self._default_language,
            file_size=len(body),
            metadata={"format": fmt},
            quality_score=calculate_quality_score(title, "", ""),
        )
