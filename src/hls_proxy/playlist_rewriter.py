import json
import logging
import re
from enum import Enum
from typing import Iterable, Iterator, Mapping, NamedTuple, Optional, Union
from urllib.parse import quote

from .url_resolver import resolve

logger = logging.getLogger(__name__)

M3U8_ROUTE = "/m3u8-proxy"
TS_ROUTE = "/ts-proxy"

KEY_TAG = "#EXT-X-KEY:"
MEDIA_TAG = "#EXT-X-MEDIA:"
URI_ATTRIBUTE = re.compile(r'URI="([^"]+)"')
BOM = "\ufeff"


class PlaylistKind(Enum):
    MASTER = "master"
    MEDIA = "media"


class Rewritten(NamedTuple):
    line: str
    target: str


class Unchanged(NamedTuple):
    line: str


LineResult = Union[Rewritten, Unchanged]


def classify(body: str) -> PlaylistKind:
    # variant streams are the only place RESOLUTION= shows up
    if "RESOLUTION=" in body:
        return PlaylistKind.MASTER
    return PlaylistKind.MEDIA


def encode_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="!~*'()")


def encode_headers(headers: Optional[Mapping]) -> str:
    return encode_component(json.dumps(dict(headers or {}), separators=(",", ":"), ensure_ascii=False))


def build_proxy_url(proxy_base: str, route: str, target: str, headers: Optional[Mapping] = None) -> str:
    return _proxy_url(proxy_base, route, target, encode_headers(headers))


def _proxy_url(proxy_base, route, target, encoded_headers):
    return f"{proxy_base.rstrip('/')}{route}?url={encode_component(target)}&headers={encoded_headers}"


def _rewrite_uri_attribute(line, route, source_url, proxy_base, encoded_headers) -> LineResult:
    match = URI_ATTRIBUTE.search(line)
    if not match:
        return Unchanged(line)

    target = resolve(match.group(1), source_url)
    if target is None:
        logger.warning(f"could not resolve URI {match.group(1)!r} against {source_url}")
        return Unchanged(line)

    start, end = match.span(1)
    return Rewritten(line[:start] + _proxy_url(proxy_base, route, target, encoded_headers) + line[end:], target)


def rewrite_line(line: str, kind: PlaylistKind, source_url: str, proxy_base: str, encoded_headers: str) -> LineResult:
    text = line[:-1] if line.endswith("\r") else line
    stripped = text.strip()

    if not stripped:
        return Unchanged(line)

    if stripped.startswith("#"):
        if text.startswith(KEY_TAG):
            return _rewrite_uri_attribute(line, TS_ROUTE, source_url, proxy_base, encoded_headers)
        if text.startswith(MEDIA_TAG) and kind is PlaylistKind.MASTER:
            return _rewrite_uri_attribute(line, M3U8_ROUTE, source_url, proxy_base, encoded_headers)
        return Unchanged(line)

    target = resolve(stripped, source_url)
    if target is None:
        logger.warning(f"could not resolve {stripped!r} against {source_url}")
        return Unchanged(line)

    route = M3U8_ROUTE if kind is PlaylistKind.MASTER else TS_ROUTE
    return Rewritten(_proxy_url(proxy_base, route, target, encoded_headers) + line[len(text):], target)


def rewrite_lines(lines: Iterable[str], kind: PlaylistKind, source_url: str, proxy_base: str,
                  headers: Optional[Mapping] = None) -> Iterator[LineResult]:
    encoded_headers = encode_headers(headers)
    for line in lines:
        result = rewrite_line(line, kind, source_url, proxy_base, encoded_headers)
        if isinstance(result, Rewritten):
            logger.debug(f"rewriting URL for line {line!r}")
        else:
            logger.debug(f"keeping line: {line!r}")
        yield result


def rewrite(body: str, source_url: str, proxy_base: str, headers: Optional[Mapping] = None) -> str:
    """
    Route every URL in an HLS playlist back through the proxy.

    Variant streams and ``#EXT-X-MEDIA`` renditions of a master playlist go
    to the m3u8 route; segments and ``#EXT-X-KEY`` keys go to the ts route.
    References that cannot be resolved are left exactly as they were, so
    the output always has the same number of lines as ``body``.
    """
    if body.startswith(BOM):
        body = body[len(BOM):]
    kind = classify(body)
    results = list(rewrite_lines(body.split("\n"), kind, source_url, proxy_base, headers))
    rewritten = sum(1 for result in results if isinstance(result, Rewritten))
    logger.info(f"rewrote {rewritten} of {len(results)} lines in {kind.value} playlist {source_url}")
    return "\n".join(result.line for result in results)
