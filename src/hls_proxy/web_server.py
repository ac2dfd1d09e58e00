import logging
from types import MappingProxyType

from aiohttp import web

from .config import Config
from .errors import ProxyError
from .playlist_rewriter import M3U8_ROUTE, TS_ROUTE, rewrite
from .proxy_request import ProxyRequest
from .upstream import DEFAULT_HEADERS, FetchGateway

logger = logging.getLogger(__name__)

CORS_HEADERS = MappingProxyType({
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "*",
})

PREFLIGHT_HEADERS = MappingProxyType({
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
})

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
PLAYLIST_CACHE_CONTROL = "no-cache, no-store, must-revalidate"
SEGMENT_CONTENT_TYPE = "video/mp2t"
SEGMENT_CACHE_CONTROL = "public, max-age=3600"
CHUNK_SIZE = 64 * 1024


def cors_headers(content_type=None, cache_control=None):
    headers = dict(CORS_HEADERS)
    if content_type:
        headers["Content-Type"] = content_type
    if cache_control:
        headers["Cache-Control"] = cache_control
    return headers


def error_response(status, message):
    return web.Response(status=status, text=message, headers=cors_headers())


class WebServer:
    def __init__(self, config=None, gateway=None):

        self.config = config or Config()
        self.gateway = gateway or FetchGateway(DEFAULT_HEADERS,
                                               timeout=self.config.timeout,
                                               verify_ssl=self.config.verify_ssl)
        self.app = web.Application()

        self.app.router.add_get(M3U8_ROUTE, self.serve_playlist)
        self.app.router.add_route("OPTIONS", M3U8_ROUTE, self.serve_options)
        self.app.router.add_get(TS_ROUTE, self.serve_segment)
        self.app.router.add_route("OPTIONS", TS_ROUTE, self.serve_options)

    def start(self):
        logger.info(f"Starting web server at http://{self.config.host}:{self.config.port}")
        web.run_app(self.app, host=self.config.host, port=self.config.port)

    def proxy_base(self, request: web.Request):
        """Where rewritten playlists send the player back to."""
        if self.config.public_url:
            return self.config.public_url
        return f"{request.scheme}://{request.host}"

    def _log_request(self, request):
        # query string may carry credentials
        client_ip = request.remote or "unknown"
        logger.info(f"Received request from {client_ip}: {request.method} {request.path}")

    async def serve_playlist(self, request: web.Request):
        self._log_request(request)

        try:
            proxy_request = ProxyRequest.from_query(request.query)
            logger.info(f"processing m3u8 request for {proxy_request.target_url}")
            body, source_url = await self.gateway.fetch_playlist(proxy_request.target_url,
                                                                 proxy_request.forward_headers)
            playlist = rewrite(body, source_url, self.proxy_base(request), proxy_request.forward_headers)

        except ProxyError as err:
            logger.error(f"error proxying M3U8: {err}")
            return error_response(err.status, str(err))

        except Exception:
            logger.exception("unexpected error in m3u8 proxy")
            return error_response(500, "Unexpected error in m3u8-proxy")

        return web.Response(
            body=playlist.encode("utf-8"),
            headers=cors_headers(PLAYLIST_CONTENT_TYPE, PLAYLIST_CACHE_CONTROL)
        )

    async def serve_segment(self, request: web.Request):
        self._log_request(request)
        response = web.StreamResponse(headers=cors_headers(SEGMENT_CONTENT_TYPE, SEGMENT_CACHE_CONTROL))

        try:
            proxy_request = ProxyRequest.from_query(request.query)
            logger.info(f"processing ts request for {proxy_request.target_url}")
            async with self.gateway.open_stream(proxy_request.target_url,
                                                proxy_request.forward_headers) as res:
                await response.prepare(request)
                async for chunk in res.content.iter_chunked(CHUNK_SIZE):
                    await response.write(chunk)

        except ProxyError as err:
            logger.error(f"error proxying TS file: {err}")
            return error_response(err.status, str(err))

        except ConnectionError:
            logger.info("client went away during segment stream")
            raise

        except Exception as err:
            if response.prepared:
                logger.error(f"segment stream broke off after {response.body_length} bytes: {err!r}")
                raise
            logger.exception("unexpected error in ts proxy")
            return error_response(500, "Error proxying TS file")

        logger.info(f"streamed {response.body_length} bytes")
        return response

    async def serve_options(self, request: web.Request):
        return web.Response(
            status=200,
            headers=dict(PREFLIGHT_HEADERS)
        )
