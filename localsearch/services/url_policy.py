"""URL scope policy and URL helpers.

A discovered link is enqueued only when every rule passes:
1. it parses as http(s) with a host
2. its host is the site's domain or inside one of the project's domains
3. its path extension is not blocklisted
4. it is at most MAX_URL_LENGTH characters
"""

import hashlib
import posixpath
from typing import NamedTuple
from urllib.parse import urlsplit

from localsearch.constants import BLOCKED_EXTENSIONS, MAX_URL_LENGTH
from localsearch.models.site_models import Project, Site


def hash_url(url: str) -> str:
    """SHA-256 hex digest identifying a URL in the queue and document tables."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def normalize_host(host: str | None) -> str:
    return (host or "").lower().rstrip(".")


def is_valid_url(url: str) -> bool:
    """Check that a URL is absolute http(s) with a host and no whitespace."""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
        # Accessing .port validates the port component
        parts.port
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def clean_url(url: str) -> str:
    """Trim a user-supplied URL and default the scheme to http."""
    url = url.strip()
    if url and "://" not in url:
        url = f"http://{url}"
    return url


def extract_domain(url: str) -> str:
    """Lowercased host of a URL ("" when it has none)."""
    try:
        return normalize_host(urlsplit(url).hostname)
    except ValueError:
        return ""


def path_extension(url: str) -> str:
    """Lowercased extension of the URL path without the dot."""
    path = urlsplit(url).path
    return posixpath.splitext(path)[1].lower().lstrip(".")


def host_in_domain(host: str, domain: str) -> bool:
    """Exact match or subdomain match on a dot boundary."""
    host = normalize_host(host)
    domain = normalize_host(domain)
    if not host or not domain:
        return False
    return host == domain or host.endswith("." + domain)


class PolicyDecision(NamedTuple):
    """Result of evaluating a URL against the crawl scope."""

    allowed: bool
    reason: str | None = None


class UrlPolicy:
    """Decide whether a discovered URL belongs to a site's crawl."""

    def __init__(
        self,
        blocked_extensions: frozenset[str] = BLOCKED_EXTENSIONS,
        max_url_length: int = MAX_URL_LENGTH,
    ):
        self._blocked_extensions = blocked_extensions
        self._max_url_length = max_url_length

    def evaluate(
        self, url: str, site: Site, project: Project | None = None
    ) -> PolicyDecision:
        try:
            parts = urlsplit(url)
            host = normalize_host(parts.hostname)
        except ValueError:
            return PolicyDecision(False, "unparseable")
        if parts.scheme not in ("http", "https") or not host:
            return PolicyDecision(False, "no_host")

        if not self._host_allowed(host, site, project):
            return PolicyDecision(False, "out_of_domain")

        if path_extension(url) in self._blocked_extensions:
            return PolicyDecision(False, "blocked_extension")

        if len(url) > self._max_url_length:
            return PolicyDecision(False, "too_long")

        return PolicyDecision(True)

    def in_scope(self, url: str, site: Site, project: Project | None = None) -> bool:
        return self.evaluate(url, site, project).allowed

    @staticmethod
    def _host_allowed(host: str, site: Site, project: Project | None) -> bool:
        if host == normalize_host(site.domain):
            return True
        allowed_domains = project.base_domains if project else []
        if allowed_domains:
            return any(host_in_domain(host, domain) for domain in allowed_domains)
        return host == extract_domain(site.base_url)
