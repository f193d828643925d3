from __future__ import annotations

import asyncio
import logging
import socket
import ssl
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from geminikit.config import ClientConfig
from geminikit.errors import (
    InvalidRedirectTarget,
    InvalidUri,
    MissingBaseUri,
    ResponseSizeError,
    TooManyRedirections,
    TransportFailure,
)
from geminikit.protocols.base import Response, Status, format_request, parse_response
from geminikit.urls import URLReference

_logger = logging.getLogger(__name__)

Connector = Callable[[str, int], Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]]


@dataclass(frozen=True)
class Redirection:
    url: URLReference
    permanent: bool


class RedirectFollower:
    """
    Tracks the redirect chain for a single top-level request.

    The follower never performs any I/O, it only decides whether a parsed
    response ends the request or where the next hop should go.
    """

    def __init__(self, max_redirections: int = 10, base_url: str | None = None):
        self.max_redirections = max_redirections
        self.base_url = base_url
        self.chain: list[Redirection] = []

    def follow(self, response: Response, url: URLReference) -> URLReference | None:
        """
        Return the URL for the next hop, or None if the response is final.

        Args:
            response: The response that was received for ``url``.
            url: The URL that was requested in the current hop.
        """
        if not response.is_redirect():
            return None

        if len(self.chain) >= self.max_redirections:
            raise TooManyRedirections(url, self.max_redirections)

        target = self.resolve_target(response.meta, url)
        permanent = response.status == Status.REDIRECT_PERMANENT
        self.chain.append(Redirection(target, permanent))
        return target

    def resolve_target(self, meta: str, url: URLReference) -> URLReference:
        if not meta:
            raise InvalidRedirectTarget(meta, "the redirect target is empty")

        try:
            base = URLReference(self.base_url) if self.base_url else url
            return base.join(meta).validate()
        except ValueError as e:
            raise InvalidRedirectTarget(meta, str(e))


class GeminiClient:
    """
    Makes gemini requests and follows redirects.

    A client can be reused for any number of sequential requests, but it
    must not be shared between requests that run at the same time because
    ``requested_url`` and ``redirections`` describe the last call.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        connector: Connector | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or ClientConfig()
        self.connector = connector or self.open_connection
        self.logger = logger or _logger

        self.base_url: URLReference | None = None
        base_url = self.config.get_base_url()
        if base_url:
            try:
                self.base_url = URLReference(base_url).validate()
            except ValueError as e:
                raise InvalidUri(f"Invalid base URL {base_url}: {e}")

        self.requested_url: URLReference | None = None
        self.redirections: list[Redirection] = []

    def create_ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    async def open_connection(
        self, host: str, port: int
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        context = self.create_ssl_context()
        future = asyncio.open_connection(host, port, ssl=context, server_hostname=host)
        try:
            return await asyncio.wait_for(future, timeout=self.config.connect_timeout or None)
        except asyncio.TimeoutError:
            raise TransportFailure("Timeout establishing connection with server")

    def resolve_url(self, url: str | URLReference) -> URLReference:
        """
        Turn the user supplied URL into an absolute, validated request URL.
        """
        if isinstance(url, URLReference):
            url = url.get_url()

        try:
            resolved = URLReference(url)
            if not resolved.is_absolute:
                if self.base_url is None:
                    raise MissingBaseUri(url)
                resolved = URLReference(url, self.base_url.get_url())
        except ValueError as e:
            raise InvalidUri(f"Unable to parse URL {url}: {e}")

        return resolved.validate()

    async def request(self, url: str | URLReference) -> Response:
        """
        Request the URL, following redirects until a final response is received.

        Raises:
            MissingBaseUri: ``url`` is relative and no base URL is configured.
            InvalidUri: ``url`` is not a valid gemini request URL.
            InvalidRedirectTarget: A redirect pointed to an invalid URL.
            TooManyRedirections: More than ``max_redirections`` hops.
            MalformedResponse: The server sent an invalid response.
            ResponseSizeError: The response exceeded ``max_response_size``.
            TransportFailure: The connection failed or timed out.
        """
        follower = RedirectFollower(
            self.config.max_redirections,
            self.base_url.get_url() if self.base_url else None,
        )
        self.redirections = follower.chain
        self.requested_url = None

        target = self.resolve_url(url)
        while True:
            self.requested_url = target
            response = await self.fetch(target)

            next_target = follower.follow(response, target)
            if next_target is None:
                return response

            self.logger.info(f"Redirect ({response.status.value}) to {next_target}")
            target = next_target

    async def fetch(self, url: URLReference) -> Response:
        """
        Perform a single request/response exchange without following redirects.
        """
        host, port = url.conn_info
        self.logger.info(f"{self.__class__.__name__}: Making request to {url}")

        try:
            reader, writer = await self.connector(host, port)
        except socket.gaierror:
            raise TransportFailure(f'Unable to establish connection with host "{host}"')
        except asyncio.TimeoutError:
            raise TransportFailure("Timeout establishing connection with server")
        except OSError as e:
            raise TransportFailure(f"Connection error: {e}")

        try:
            writer.write(format_request(url))
            await writer.drain()
            future = self.read_response(reader)
            raw = await asyncio.wait_for(future, timeout=self.config.read_timeout or None)
        except asyncio.TimeoutError:
            raise TransportFailure("Timeout waiting for the server to finish the response")
        except OSError as e:
            raise TransportFailure(f"Connection error: {e}")
        finally:
            self.close(writer)

        response = parse_response(raw)
        self.logger.info(f"{self.__class__.__name__}: Response received: {response.status.value}")
        return response

    async def read_response(self, reader: asyncio.StreamReader) -> bytes:
        """
        Read until the server closes the stream, up to the max response size.
        """
        max_size = self.config.max_response_size
        if not max_size:
            return await reader.read()

        try:
            data = await reader.readexactly(max_size + 1)
        except asyncio.IncompleteReadError as e:
            # EOF was received before the limit, this is the entire response
            return e.partial
        else:
            raise ResponseSizeError(data[:max_size])

    def close(self, writer: asyncio.StreamWriter) -> None:
        try:
            writer.close()
        except Exception as e:
            # This will fail if the remote server has already closed the
            # socket via SSL close_notify, but there is no way to know
            # that ahead of time.
            self.logger.warning(f"Error closing socket: {e}")
