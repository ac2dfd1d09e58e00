class ProxyError(Exception):
    """Base for every failure that ends a proxy request with an HTTP error."""

    status = 500


class MissingParameterError(ProxyError):
    status = 400

    def __init__(self, message="URL parameter is required"):
        super().__init__(message)


class InvalidHeaderFormatError(ProxyError):
    status = 400

    def __init__(self, message="Invalid headers format"):
        super().__init__(message)


class InvalidTargetURLError(ProxyError):
    status = 400

    def __init__(self, url):
        self.url = url
        super().__init__(f"Invalid target URL: {url}")


class UpstreamError(ProxyError):
    """The origin answered non-2xx, or could not be reached at all."""

    status = 500

    def __init__(self, message, upstream_status=None):
        self.upstream_status = upstream_status
        super().__init__(message)
