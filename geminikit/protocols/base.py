from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from geminikit.errors import MalformedResponse, MetaTooLong
from geminikit.urls import URLReference
from geminikit.utils import smart_decode

# Maximum length of the response meta field, in characters
MAX_META_LENGTH = 1024

CRLF = b"\r\n"


class Status(IntEnum):
    """
    Gemini response status codes.
    """

    INPUT = 10
    SENSITIVE_INPUT = 11

    SUCCESS = 20

    REDIRECT_TEMPORARY = 30
    REDIRECT_PERMANENT = 31

    TEMPORARY_FAILURE = 40
    SERVER_UNAVAILABLE = 41
    CGI_ERROR = 42
    PROXY_ERROR = 43
    SLOW_DOWN = 44

    PERMANENT_FAILURE = 50
    NOT_FOUND = 51
    GONE = 52
    PROXY_REQUEST_REFUSED = 53
    BAD_REQUEST = 59

    CLIENT_CERTIFICATE_REQUIRED = 60
    CERTIFICATE_NOT_AUTHORISED = 61
    CERTIFICATE_NOT_VALID = 62


STATUS_CODES: dict[Status, str] = {
    Status.INPUT: "INPUT",
    Status.SENSITIVE_INPUT: "SENSITIVE INPUT",
    Status.SUCCESS: "SUCCESS",
    Status.REDIRECT_TEMPORARY: "REDIRECT - TEMPORARY",
    Status.REDIRECT_PERMANENT: "REDIRECT - PERMANENT",
    Status.TEMPORARY_FAILURE: "TEMPORARY FAILURE",
    Status.SERVER_UNAVAILABLE: "SERVER UNAVAILABLE",
    Status.CGI_ERROR: "CGI ERROR",
    Status.PROXY_ERROR: "PROXY ERROR",
    Status.SLOW_DOWN: "SLOW DOWN",
    Status.PERMANENT_FAILURE: "PERMANENT FAILURE",
    Status.NOT_FOUND: "NOT FOUND",
    Status.GONE: "GONE",
    Status.PROXY_REQUEST_REFUSED: "PROXY REQUEST REFUSED",
    Status.BAD_REQUEST: "BAD REQUEST",
    Status.CLIENT_CERTIFICATE_REQUIRED: "CLIENT CERTIFICATE REQUIRED",
    Status.CERTIFICATE_NOT_AUTHORISED: "CERTIFICATE NOT AUTHORISED",
    Status.CERTIFICATE_NOT_VALID: "CERTIFICATE NOT VALID",
}


@dataclass
class Response:
    """
    Encapsulates a single gemini response.
    """

    status: Status
    meta: str = ""
    body: bytes | None = None

    mimetype: str | None = field(init=False, repr=False, compare=False)
    params: dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.status = Status(self.status)
        if self.is_success():
            self.mimetype, self.params = self.parse_meta(self.meta)
        else:
            self.mimetype, self.params = None, {}

    def __str__(self) -> str:
        return f'{self.__class__.__name__} {self.status.value} "{self.meta}"'

    @property
    def charset(self) -> str:
        return self.params.get("charset", "UTF-8")

    @property
    def lang(self) -> str | None:
        return self.params.get("lang", None)

    @property
    def status_display(self) -> str:
        """
        A human-readable status message for the response.
        """
        return f"{self.status.value} {STATUS_CODES[self.status].title()}"

    @property
    def text(self) -> str:
        """
        The body decoded as text, guessing the charset if it wasn't provided.
        """
        text, _ = smart_decode(self.body or b"", self.params.get("charset"))
        return text

    def is_input(self) -> bool:
        return 10 <= self.status < 20

    def is_success(self) -> bool:
        return 20 <= self.status < 30

    def is_redirect(self) -> bool:
        return 30 <= self.status < 40

    def is_failure(self) -> bool:
        return 40 <= self.status < 60

    def is_certificate_required(self) -> bool:
        return 60 <= self.status < 70

    def get_header(self) -> bytes:
        """
        Serialize the status line exactly as it appears on the wire.
        """
        return f"{self.status.value} {self.meta}\r\n".encode()

    @staticmethod
    def parse_meta(meta: str) -> tuple[str, dict[str, str]]:
        """
        Parse & normalize extra params from the MIME string.
        """
        parts = meta.split(";", maxsplit=1)
        if len(parts) == 2:
            mimetype, extra = parts
        else:
            mimetype, extra = parts[0], ""
        mimetype = mimetype.strip()

        params = {}
        for param in extra.split(";"):
            parts = param.strip().split("=", maxsplit=1)
            if len(parts) == 2:
                params[parts[0].lower()] = parts[1]

        return mimetype, params


def parse_response_header(raw_header: bytes) -> tuple[Status, str]:
    """
    Split a header line (without the CRLF) into the status and the meta.

    The line must start with a two digit status code from the closed set of
    gemini codes, followed by a single whitespace separator.
    """
    try:
        header = raw_header.decode()
    except UnicodeDecodeError:
        raise MalformedResponse("Response header is not valid UTF-8", raw_header)

    token = header[:2]
    if len(token) != 2 or not (token.isascii() and token.isdigit()):
        raise MalformedResponse(f"Invalid status code: {token!r}", raw_header)

    if len(header) > 2 and not header[2].isspace():
        raise MalformedResponse(f"Missing separator after status: {header[:3]!r}", raw_header)

    try:
        status = Status(int(token))
    except ValueError:
        raise MalformedResponse(f"Unknown status code: {token}", raw_header)

    meta = header[3:].strip()
    if len(meta) > MAX_META_LENGTH:
        raise MetaTooLong(len(meta))

    return status, meta


def parse_response(raw: bytes) -> Response:
    """
    Decode a complete response buffer, as read until the end of the stream.
    """
    raw_header, separator, remainder = raw.partition(CRLF)
    if not separator:
        raise MalformedResponse("Response header is missing the CRLF terminator", raw)

    status, meta = parse_response_header(raw_header)

    body = None
    if remainder:
        body = remainder.strip()

    return Response(status, meta, body)


def format_request(url: URLReference) -> bytes:
    """
    Build the request line sent to the server. Gemini requests have no body.
    """
    return f"{url.get_gemini_request_url()}\r\n".encode()
