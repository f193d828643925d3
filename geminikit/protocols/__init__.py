from geminikit.protocols.base import (
    STATUS_CODES,
    Response,
    Status,
    format_request,
    parse_response,
)
from geminikit.protocols.client import GeminiClient, RedirectFollower, Redirection

__all__ = [
    "STATUS_CODES",
    "GeminiClient",
    "RedirectFollower",
    "Redirection",
    "Response",
    "Status",
    "format_request",
    "parse_response",
]
