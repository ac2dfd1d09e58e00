import asyncio
import logging
from contextlib import asynccontextmanager
from types import MappingProxyType

import aiohttp
from multidict import CIMultiDict

from .errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = MappingProxyType({
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/80.0.3987.132 Safari/537.36",
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
})


def _header_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def merge_headers(headers=None, defaults=DEFAULT_HEADERS):
    """Defaults first, then the caller's headers; names collide case-insensitively."""
    merged = CIMultiDict(defaults)
    for name, value in (headers or {}).items():
        if value is None:
            continue
        merged[name] = _header_value(value)
    return merged


class FetchGateway():
    """
    GETs playlists and segments from the origin server.

    Every call opens and closes its own ``aiohttp.ClientSession`` so nothing is
    shared between inbound requests. Non-2xx answers, connection failures and
    timeouts all surface as ``UpstreamError``.
    """

    def __init__(self, default_headers=DEFAULT_HEADERS, timeout=None, verify_ssl=True):
        self.default_headers = default_headers
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    def _session(self):
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    def _get(self, session, url, headers):
        merged = merge_headers(headers, self.default_headers)
        logger.info(f"sending request to {url}")
        logger.debug(f"with headers: {', '.join(merged.keys())}")
        return session.get(url, headers=merged, ssl=self.verify_ssl)

    async def fetch_playlist(self, url, headers=None):
        """Return the playlist text and the URL it was finally served from, after redirects."""
        try:
            async with self._session() as session:
                async with self._get(session, url, headers) as res:
                    logger.info("awaiting response...")
                    if not 200 <= res.status < 300:
                        raise UpstreamError(f"Failed to fetch M3U8: {res.status} {res.reason}", res.status)
                    text = await res.text(errors="replace")
                    final_url = str(res.url)
                    logger.info(f"response received, status {res.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise UpstreamError(f"Failed to fetch M3U8: {str(err) or type(err).__name__}") from err
        return text, final_url

    @asynccontextmanager
    async def open_stream(self, url, headers=None):
        """
        Yield the origin response once its status is known to be 2xx; the body is left unread.

        Only the request itself is translated into ``UpstreamError``; anything
        raised while the caller consumes the response propagates as it is.
        """
        async with self._session() as session:
            try:
                res = await self._get(session, url, headers)
            except (aiohttp.ClientError, asyncio.TimeoutError) as err:
                raise UpstreamError(f"HTTP Error: {str(err) or type(err).__name__}") from err

            try:
                logger.info("awaiting response...")
                if not 200 <= res.status < 300:
                    raise UpstreamError(f"HTTP Error: {res.status} {res.reason}", res.status)
                logger.info(f"response received, status {res.status}")
                yield res
            finally:
                res.release()
