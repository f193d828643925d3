from __future__ import annotations

import asyncio
import logging
import os
import ssl
from dataclasses import dataclass

from geminikit.config import ServerConfig
from geminikit.errors import BadRequest, NotFound, ProxyRequestRefused
from geminikit.handlers import StaticHandler
from geminikit.protocols.base import CRLF, Response, Status
from geminikit.storage import BaseStorage, LocalStorage
from geminikit.urls import MAX_URL_LENGTH, URLReference

_logger = logging.getLogger(__name__)

# Largest request line that will be buffered, a 1024 character URL can be
# up to 4 bytes per character once encoded.
MAX_REQUEST_SIZE = MAX_URL_LENGTH * 4 + len(CRLF)


@dataclass
class ServerRequest:
    """
    Object that encapsulates information about a single gemini request.
    """

    raw_line: str
    url: URLReference
    host: str
    path: str


def validate_request(raw: bytes) -> ServerRequest:
    """
    Parse the request line sent by the client.

    Only the first line is significant, anything after the CRLF is ignored.
    """
    line, separator, _ = raw.partition(CRLF)
    if not separator:
        raise BadRequest("missing terminator")

    try:
        raw_line = line.decode()
    except UnicodeDecodeError:
        raise BadRequest("invalid uri")

    if any(char.isspace() or not char.isprintable() for char in raw_line):
        raise BadRequest("invalid uri")

    try:
        url = URLReference(raw_line)
    except ValueError:
        raise BadRequest("invalid uri")

    if url.userinfo:
        raise BadRequest("userinfo not allowed")
    if not url.hostname:
        raise BadRequest("host required")
    if len(raw_line) > MAX_URL_LENGTH:
        raise BadRequest("uri too long")

    if url.scheme and url.scheme != "gemini":
        raise ProxyRequestRefused(f"Refusing request for scheme {url.scheme}")

    return ServerRequest(raw_line, url, url.hostname, url.path)


class ResponseWriter:
    """
    Write the response for a connection and close it.

    This is the only place where the server puts bytes on the wire. Only
    the first response is written, later calls are ignored.
    """

    def __init__(self, writer: asyncio.StreamWriter, logger: logging.Logger | None = None):
        self.writer = writer
        self.logger = logger or _logger
        self.written = False

    async def write(self, status: Status, meta: str = "", body: bytes | None = None) -> None:
        if self.written:
            self.logger.warning(f"Response already sent, dropping {status.value} {meta}")
            return
        self.written = True

        data = f"{status.value} {meta}\r\n".encode()
        if body is not None:
            data += body

        self.logger.info(f"Sending response: {status.value} {meta}")
        try:
            self.writer.write(data)
            await self.writer.drain()
        finally:
            await self.close()

    async def write_response(self, response: Response) -> None:
        await self.write(response.status, response.meta, response.body)

    async def close(self) -> None:
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except Exception as e:
            # The client may have already dropped the connection
            self.logger.warning(f"Error closing socket: {e}")


class GeminiServer:
    """
    Static file server for the gemini protocol.

    Each accepted connection is handled in its own task. The configuration
    and the storage backend are the only state shared between connections.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        storage: BaseStorage | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or ServerConfig()
        self.storage = storage or LocalStorage(self.config.root)
        self.logger = logger or _logger

        self.handler = StaticHandler(self.storage, self.config.directory_index, logger=self.logger)

        self.server: asyncio.AbstractServer | None = None
        # Connections that are still waiting for their response
        self.connections: set[ResponseWriter] = set()

    @property
    def sockname(self) -> tuple[str, int] | None:
        """
        The address that the server is bound to, useful when listening on port 0.
        """
        if self.server is None or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[:2]

    def run_checks(self) -> None:
        """
        Ensure required options are set.
        """
        if not self.config.certificate_path:
            raise ValueError("Path to server certificate was not set")
        if not os.path.exists(self.config.certificate_path):
            raise ValueError(f"Server certificate does not exist: {self.config.certificate_path}")
        if self.config.key_path and not os.path.exists(self.config.key_path):
            raise ValueError(f"Server private key does not exist: {self.config.key_path}")

    def create_ssl_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.load_cert_chain(self.config.certificate_path, self.config.key_path)  # type: ignore
        return context

    async def start(self) -> None:
        self.run_checks()

        self.logger.info(f"Starting server address={self.config.address} port={self.config.port}")
        self.server = await asyncio.start_server(
            self.handle_connection,
            self.config.address,
            self.config.port,
            ssl=self.create_ssl_context(),
            limit=MAX_REQUEST_SIZE,
        )
        self.logger.info(f"Listening on {self.sockname}, waiting for connections")

    async def serve_forever(self) -> None:
        if self.server is None:
            await self.start()

        assert self.server is not None
        async with self.server:
            await self.server.serve_forever()

    async def stop(self) -> None:
        """
        Stop accepting connections and turn away the requests still in flight.
        """
        self.logger.info("Stopping server")
        if self.server is not None:
            self.server.close()

        for response_writer in list(self.connections):
            await response_writer.write(Status.SERVER_UNAVAILABLE, "Server is shutting down")
        self.connections.clear()

        if self.server is not None:
            await self.server.wait_closed()
            self.server = None

    async def read_request(self, reader: asyncio.StreamReader) -> bytes:
        future = reader.readuntil(CRLF)
        try:
            return await asyncio.wait_for(future, timeout=self.config.request_timeout or None)
        except asyncio.IncompleteReadError as e:
            # The client closed the stream before sending a full line
            return e.partial
        except asyncio.LimitOverrunError:
            raise BadRequest("uri too long")

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        self.logger.info(f"Client connected: {peer}")

        response_writer = ResponseWriter(writer, logger=self.logger)
        self.connections.add(response_writer)
        try:
            response = await self.handle_request(reader, peer)
            await response_writer.write_response(response)
        except ConnectionError as e:
            self.logger.warning(f"Connection lost: {peer}: {e}")
        finally:
            self.connections.discard(response_writer)
            self.logger.info(f"Connection closed: {peer}")

    async def handle_request(self, reader: asyncio.StreamReader, peer=None) -> Response:
        """
        Read and route a single request, turning every failure into a response.
        """
        try:
            raw = await self.read_request(reader)
            request = validate_request(raw)
            self.logger.info(f"Incoming request from {peer}: {request.raw_line}")
            return self.handler.serve(request.host, request.path)
        except BadRequest as e:
            self.logger.warning(f"Bad request from {peer}: {e.reason}")
            return Response(Status.BAD_REQUEST, e.reason)
        except ProxyRequestRefused as e:
            self.logger.warning(f"{e}")
            return Response(Status.PROXY_REQUEST_REFUSED, "Proxy requests are not allowed")
        except NotFound as e:
            self.logger.info(f"Not found: {e}")
            return Response(Status.NOT_FOUND, "Not found")
        except asyncio.TimeoutError:
            self.logger.warning(f"Timeout reading request from {peer}")
            return Response(Status.TEMPORARY_FAILURE, "Timeout reading the request")
        except Exception:
            self.logger.exception(f"Unexpected error handling request from {peer}")
            return Response(Status.TEMPORARY_FAILURE, "Temporary failure")
