"""Exceptions raised at the service boundaries."""


class LocalSearchError(Exception):
    """Base exception for crawler and search errors."""

    pass


class SiteNotFoundError(LocalSearchError):
    """Raised when a crawl is requested for an unknown site."""

    pass


class ProjectNotFoundError(LocalSearchError):
    """Raised when a project referenced by a site or request does not exist."""

    pass


class CrawlConflictError(LocalSearchError):
    """Raised when a crawl is requested for a site that is already processing."""

    pass


class SearchValidationError(LocalSearchError, ValueError):
    """Raised when a search request cannot be executed (e.g. empty query)."""

    pass


class ProjectValidationError(LocalSearchError, ValueError):
    """Raised when project or site configuration is invalid."""

    pass


class DuplicateSiteError(LocalSearchError):
    """Raised when a site domain is already registered in a project."""

    pass


class StoreError(LocalSearchError):
    """Raised when the store rejects or silently drops a write."""

    pass
