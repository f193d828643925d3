from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geminikit.urls import URLReference


class GeminiError(Exception):
    pass


class MalformedResponse(GeminiError):
    def __init__(self, message: str, raw: bytes = b""):
        super().__init__(message)
        self.raw = raw


class MetaTooLong(MalformedResponse):
    def __init__(self, length: int):
        super().__init__(f"Response meta is {length} characters long, the maximum is 1024.")
        self.length = length


class InvalidUri(GeminiError, ValueError):
    pass


class MissingBaseUri(GeminiError):
    def __init__(self, url: str):
        super().__init__(f"Unable to resolve relative URL without a base URL: {url}")
        self.url = url


class InvalidRedirectTarget(GeminiError):
    def __init__(self, target: str, reason: str):
        super().__init__(f'Invalid redirect target "{target}": {reason}')
        self.target = target
        self.reason = reason


class TooManyRedirections(GeminiError):
    def __init__(self, url: URLReference, limit: int):
        super().__init__(f"Maximum of {limit} redirections reached at {url}")
        self.url = url
        self.limit = limit


class TransportFailure(GeminiError):
    pass


class ResponseSizeError(GeminiError):
    def __init__(self, partial: bytes):
        super().__init__(f"Maximum response size of {len(partial)} bytes read.")
        self.partial = partial


class BadRequest(GeminiError):
    """
    The request line sent to the server could not be accepted.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ProxyRequestRefused(GeminiError):
    pass


class NotFound(GeminiError):
    pass
