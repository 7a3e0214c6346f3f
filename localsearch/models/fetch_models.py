"""Fetch client result types."""

from dataclasses import dataclass, field
from enum import Enum


class FetchErrorKind(str, Enum):
    """Why a fetch did not produce a usable body."""

    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    TOO_LARGE = "too_large"
    UNSUPPORTED_TYPE = "unsupported_type"


@dataclass(frozen=True)
class FetchError:
    """Typed fetch failure returned instead of raised."""

    kind: FetchErrorKind
    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class FetchedPage:
    """A successfully fetched response body."""

    url: str
    status_code: int
    content_type: str
    body: bytes
    size: int
    headers: dict[str, str] = field(default_factory=dict)


FetchResult = FetchedPage | FetchError
