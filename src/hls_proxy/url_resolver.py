"""
Turns the URL references found in query strings and playlists into
absolute, normalised http(s) URLs.

``resolve`` never raises: anything that cannot be parsed, or that resolves
to a scheme the proxy cannot fetch, comes back as ``None``.
"""
import logging
import re
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

_ABSOLUTE = re.compile(r"^https?://", re.IGNORECASE)

# host[:port][/path] with no scheme, e.g. "cdn.example.com/live.m3u8" or "localhost:8080/a.m3u8"
_LOOSE_HOST = re.compile(
    r"^(?P<host>[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9-]+)*)"
    r"(?::(?P<port>\d+))?"
    r"(?P<rest>[/?#].*)?$"
)

_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"


def resolve(raw, base=None):
    """
    Resolve ``raw`` to an absolute URL string, optionally against ``base``.

    - ``http://`` / ``https://`` references are parsed as they are.
    - ``//host/path`` is protocol relative and gets ``https:``.
    - anything else is joined onto ``base`` (RFC 3986).
    - with no base, a bare ``host:port/path`` still resolves: ``https:`` when
      the port is absent or 443, ``http:`` for any other port.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None

    try:
        if _ABSOLUTE.match(raw):
            return _normalize(raw)

        if raw.startswith("//"):
            return _normalize(f"https:{raw}")

        if base:
            base_url = resolve(base)
            if base_url is None:
                logger.debug(f"unusable base {base!r} for {raw!r}")
                return None
            return _normalize(urljoin(base_url, raw))

        loose = _LOOSE_HOST.match(raw)
        if loose and _is_loose_host(loose):
            scheme = "https" if loose.group("port") in (None, "443") else "http"
            return _normalize(f"{scheme}://{raw}")

    except ValueError as err:
        logger.debug(f"failed to parse {raw!r} (base {base!r}): {err}")
        return None

    return None


def _is_loose_host(match):
    # a bare relative path like "seg001.ts" must not be mistaken for a host
    if match.group("port"):
        return True
    labels = match.group("host").split(".")
    return len(labels) > 1 and labels[-1].isalpha() and bool(match.group("rest"))


def _normalize(url):
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        return None

    host = parts.hostname
    if not host:
        return None
    port = parts.port  # ValueError on a bad port

    if not host.isascii():
        host = host.encode("idna").decode("ascii")
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    userinfo, at, _ = parts.netloc.rpartition("@")
    if at:
        netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path, safe=_PATH_SAFE) or "/"
    query = quote(parts.query, safe=_QUERY_SAFE)
    fragment = quote(parts.fragment, safe=_QUERY_SAFE)
    return urlunsplit((scheme, netloc, path, query, fragment))
