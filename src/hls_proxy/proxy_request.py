import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .errors import InvalidHeaderFormatError, InvalidTargetURLError, MissingParameterError
from .url_resolver import resolve

logger = logging.getLogger(__name__)


def parse_headers(raw):
    """Decode the ``headers`` query parameter, a JSON object of header name to value."""
    if not raw:
        return {}

    try:
        headers = json.loads(raw)
    except ValueError as err:
        logger.warning(f"error parsing headers JSON {raw!r}: {err}")
        raise InvalidHeaderFormatError() from err

    if not isinstance(headers, dict):
        logger.warning(f"headers JSON is a {type(headers).__name__}, not an object")
        raise InvalidHeaderFormatError()

    for name, value in headers.items():
        if any(c in f"{name}{value}" for c in "\r\n"):
            logger.warning(f"newline in forwarded header {name!r}")
            raise InvalidHeaderFormatError()

    return headers


@dataclass(frozen=True)
class ProxyRequest:
    target_url: str
    forward_headers: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_query(cls, query):
        raw_url = query.get("url")
        if not raw_url:
            raise MissingParameterError()

        headers = parse_headers(query.get("headers"))

        target_url = resolve(raw_url)
        if target_url is None:
            raise InvalidTargetURLError(raw_url)

        return cls(target_url, MappingProxyType(headers))
