"""HTTP fetch client for the crawler.

``PageFetcher`` is the capability the orchestrator depends on; the httpx
implementation performs one GET with timeout, redirect and size limits and
returns a ``FetchedPage`` or a typed ``FetchError`` instead of raising.
"""

from typing import Protocol

import httpx
import logfire

from localsearch.constants import (
    ALLOWED_MIME_TYPES,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_USER_AGENT,
    IMAGE_MIME_TYPES,
    MAX_CONTENT_LENGTH_BYTES,
    MAX_FILE_SIZE_BYTES,
    VIDEO_MIME_TYPES,
)
from localsearch.models.fetch_models import (
    FetchedPage,
    FetchError,
    FetchErrorKind,
    FetchResult,
)


def bare_mime_type(content_type: str | None) -> str:
    """Strip parameters from a Content-Type header ("text/html; charset=utf-8" -> "text/html")."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


class PageFetcher(Protocol):
    """Protocol for fetching one URL."""

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL.

        Returns:
            FetchedPage on success, FetchError describing the failure otherwise
        """
        ...


class HttpxFetchClient:
    """Fetch pages with httpx.

    TLS certificate verification is disabled: the crawler targets private and
    internal sites that commonly use self-signed certificates.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT,
        max_content_length: int = MAX_CONTENT_LENGTH_BYTES,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
    ):
        self._timeout = timeout
        self._max_redirects = max_redirects
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,image/*;q=0.8,video/*;q=0.8",
        }
        self._max_content_length = max_content_length
        self._max_file_size = max_file_size

    def size_limit(self, mime_type: str) -> int:
        """Body size cap for a content class."""
        if mime_type in IMAGE_MIME_TYPES or mime_type in VIDEO_MIME_TYPES:
            return self._max_file_size
        return self._max_content_length

    async def fetch(self, url: str) -> FetchResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                max_redirects=self._max_redirects,
                headers=self._headers,
                verify=False,
            ) as client:
                async with client.stream("GET", url) as response:
                    return await self._read(url, response)
        except httpx.TooManyRedirects as e:
            return self._failed(url, FetchErrorKind.NETWORK_ERROR, f"Too many redirects: {e}")
        except httpx.TimeoutException as e:
            return self._failed(url, FetchErrorKind.NETWORK_ERROR, f"Request timed out: {e}")
        except httpx.HTTPError as e:
            return self._failed(url, FetchErrorKind.NETWORK_ERROR, f"Failed to fetch {url}: {e}")
        except (httpx.InvalidURL, ValueError) as e:
            # Raised while building the request, e.g. invalid IDNA labels
            return self._failed(url, FetchErrorKind.NETWORK_ERROR, f"Invalid URL {url}: {e}")

    async def _read(self, url: str, response: httpx.Response) -> FetchResult:
        if response.status_code >= 400:
            return self._failed(
                url,
                FetchErrorKind.HTTP_ERROR,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        mime_type = bare_mime_type(response.headers.get("content-type"))
        if mime_type not in ALLOWED_MIME_TYPES:
            return self._failed(
                url,
                FetchErrorKind.UNSUPPORTED_TYPE,
                f"Unsupported content type: {mime_type or 'unknown'}",
                status_code=response.status_code,
            )

        limit = self.size_limit(mime_type)
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return self._failed(
                url,
                FetchErrorKind.TOO_LARGE,
                "Content too large",
                status_code=response.status_code,
            )

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > limit:
                return self._failed(
                    url,
                    FetchErrorKind.TOO_LARGE,
                    "Content too large",
                    status_code=response.status_code,
                )

        logfire.info(
            "Page fetched",
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            content_type=mime_type,
            size=len(body),
        )
        return FetchedPage(
            url=str(response.url),
            status_code=response.status_code,
            content_type=mime_type,
            body=bytes(body),
            size=len(body),
            headers=dict(response.headers),
        )

    @staticmethod
    def _failed(
        url: str,
        kind: FetchErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> FetchError:
        logfire.warning(
            "Fetch failed",
            url=url,
            kind=kind.value,
            error=message,
            status_code=status_code,
        )
        return FetchError(kind=kind, message=message, status_code=status_code)
