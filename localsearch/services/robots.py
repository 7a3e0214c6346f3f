"""Advisory robots.txt checks for projects with respect_robots enabled."""

from typing import Protocol
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx
import logfire

from localsearch.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    ROBOTS_CACHE_MAX_ORIGINS,
)


class RobotsChecker(Protocol):
    """Capability the orchestrator consults before fetching a URL."""

    async def allowed(self, url: str) -> bool: ...


class HttpxRobotsChecker:
    """Fetch and cache robots.txt per origin, keeping the newest max_origins.

    A missing or unreachable robots.txt allows everything; a 401/403 disallows
    everything, matching the usual crawler convention.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_origins: int = ROBOTS_CACHE_MAX_ORIGINS,
    ):
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_origins = max_origins
        self._parsers: dict[str, RobotFileParser] = {}

    async def allowed(self, url: str) -> bool:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"
        parser = self._parsers.get(origin)
        if parser is None:
            parser = await self._load(origin)
            if len(self._parsers) >= self._max_origins:
                # Evict the oldest origin
                del self._parsers[next(iter(self._parsers))]
            self._parsers[origin] = parser
        return parser.can_fetch(self._user_agent, url)

    async def _load(self, origin: str) -> RobotFileParser:
        parser = RobotFileParser()
        robots_url = f"{origin}/robots.txt"
        parser.set_url(robots_url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
                verify=False,
            ) as client:
                response = await client.get(robots_url)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logfire.warning("robots.txt unreachable", url=robots_url, error=str(e))
            parser.parse([])
            return parser

        if response.status_code in (401, 403):
            parser.disallow_all = True
        elif response.status_code >= 400:
            parser.allow_all = True
        else:
            parser.parse(response.text.splitlines())
        logfire.info(
            "robots.txt loaded", url=robots_url, status_code=response.status_code
        )
        return parser
