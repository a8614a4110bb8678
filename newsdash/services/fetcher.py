"""
Time-bounded HTTP fetching for feed candidates.

Every request is bounded by ``aiohttp.ClientTimeout(total=...)``.  When the
deadline passes aiohttp cancels the in-flight request and closes the
connection, so a hung upstream does not linger behind an abandoned future.
Timeouts, transport faults and non-2xx statuses all surface as
``NetworkError``.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

import aiohttp

from ..core.config import settings
from .errors import NetworkError

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, text/xml;q=0.9, */*;q=0.8"


class TimeBoundedFetcher:
    def __init__(
        self,
        timeout: Optional[float] = None,
        proxy_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.proxy_url = proxy_url if proxy_url is not None else settings.RSS_PROXY_URL
        self.user_agent = user_agent or settings.USER_AGENT
        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self.session

    async def close(self):
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    def default_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": FEED_ACCEPT}

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> Tuple[str, int]:
        """Fetch ``url`` and return ``(body, status)``.

        With a proxy configured the request goes to ``{proxy}?url=<target>``
        and the proxy is expected to hand back the target's body unchanged.
        """
        request_headers = self.default_headers()
        if headers:
            request_headers.update(headers)

        if self.proxy_url:
            target, params = self.proxy_url, {"url": url}
        else:
            target, params = url, None

        session = await self._get_session()
        try:
            async with session.get(
                target,
                params=params,
                headers=request_headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as resp:
                body = await resp.text(errors="replace")
                if not 200 <= resp.status < 300:
                    raise NetworkError(f"HTTP {resp.status}", status=resp.status)
                return body, resp.status
        except asyncio.TimeoutError as e:
            raise NetworkError(f"timed out after {self.timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e
