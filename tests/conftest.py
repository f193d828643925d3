from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest
from pytest_socket import disable_socket

from geminikit.storage import BaseStorage, StorageEntry


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration")


def pytest_runtest_setup(item):
    if "integration" not in item.keywords:
        disable_socket(allow_unix_socket=True)


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        # Collect all tests, including integration tests
        return

    skip_integration = pytest.mark.skip(reason="integration test")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FakeWriter:
    """
    Stands in for an asyncio.StreamWriter and records everything written.
    """

    def __init__(self, on_write: Callable[[bytes], None] | None = None):
        self.buffer = bytearray()
        self.closed = False
        self.on_write = on_write

    @property
    def data(self) -> bytes:
        return bytes(self.buffer)

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("write on a closed connection")
        self.buffer.extend(data)
        if self.on_write:
            self.on_write(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        pass

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return ("127.0.0.1", 50123)
        return default


def make_reader(data: bytes = b"", eof: bool = True) -> asyncio.StreamReader:
    """
    Build a stream reader pre-loaded with data, must be called inside a running loop.
    """
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class FakeConnector:
    """
    Answers client requests with canned responses, without touching the network.

    ``responses`` maps a request line (without CRLF) to the raw response bytes,
    or is a callable that receives the request line. A response of None leaves
    the connection open forever.
    """

    def __init__(self, responses: dict[str, bytes] | Callable[[str], bytes | None]):
        self.responses = responses
        self.connections: list[tuple[str, int]] = []
        self.requests: list[str] = []
        self.writers: list[FakeWriter] = []

    def respond(self, line: str) -> bytes | None:
        if callable(self.responses):
            return self.responses(line)
        return self.responses.get(line, b"51 Not found\r\n")

    async def __call__(self, host: str, port: int):
        self.connections.append((host, port))
        reader = asyncio.StreamReader()

        def on_write(data: bytes) -> None:
            line = data.decode().removesuffix("\r\n")
            self.requests.append(line)
            response = self.respond(line)
            if response is not None:
                reader.feed_data(response)
                reader.feed_eof()

        writer = FakeWriter(on_write)
        self.writers.append(writer)
        return reader, writer


class MemoryStorage(BaseStorage):
    """
    Storage backed by a dict, listing entries in insertion order.
    """

    def __init__(
        self,
        files: dict[str, bytes],
        directories: list[str] | None = None,
        mimetypes: dict[str, str] | None = None,
    ):
        self.files = files
        self.directories: list[str] = []
        for path in list(files) + (directories or []):
            parts = path.split("/")
            if path in (directories or []):
                parts.append("")
            for i in range(1, len(parts)):
                directory = "/".join(parts[:i])
                if directory not in self.directories:
                    self.directories.append(directory)
        self.mimetypes = mimetypes or {}

    def exists(self, path: str) -> bool:
        path = path.strip("/")
        return path in self.files or path in self.directories

    def is_dir(self, path: str) -> bool:
        return path.strip("/") in self.directories

    def read(self, path: str) -> bytes:
        return self.files[path.strip("/")]

    def list(self, path: str) -> list[StorageEntry]:
        prefix = path.strip("/") + "/"
        entries = []
        for candidate in self.directories + list(self.files):
            if candidate.startswith(prefix) and "/" not in candidate[len(prefix) :]:
                entries.append(StorageEntry(candidate, candidate in self.directories))
        return entries

    def mime_type(self, path: str) -> str:
        return self.mimetypes.get(path, "application/octet-stream")


@pytest.fixture()
def writer():
    return FakeWriter()


@pytest.fixture()
def storage():
    return MemoryStorage(
        {
            "default/index.gmi": b"# Default capsule\n",
            "default/about.gmi": b"About\n",
            "mozz.us/hello.txt": b"hello world\n",
            "mozz.us/docs/b.gmi": b"B\n",
            "mozz.us/docs/a.txt": b"A\n",
            "mozz.us/docs/sub/c.gmi": b"C\n",
            "mozz.us/image.png": b"\x89PNG",
        },
        directories=["mozz.us/empty"],
        mimetypes={
            "mozz.us/hello.txt": "text/plain",
            "mozz.us/image.png": "image/png",
        },
    )
