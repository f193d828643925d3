from __future__ import annotations

from urllib.parse import quote

from geminikit.errors import NotFound
from geminikit.handlers.base import BaseHandler
from geminikit.protocols.base import Response, Status
from geminikit.storage import StorageEntry
from geminikit.utils import basename

INDEX_FILES = ("index.gmi", "index.gemini")


class DirectoryIndexer(BaseHandler):
    """
    Auto-generate a text/gemini document based on the contents of a directory.

    If the directory contains an index file, that file is served instead.
    """

    def find_index_file(self, directory: str) -> str | None:
        for name in INDEX_FILES:
            path = f"{directory}/{name}"
            if self.storage.exists(path) and not self.storage.is_dir(path):
                return path
        return None

    def get_link(self, entry: StorageEntry) -> str:
        """
        Build a link to the entry that is relative to the root of the virtual host.
        """
        _, _, path = entry.path.partition("/")
        link = quote(f"/{path}")
        if entry.is_dir:
            link += "/"
        return link

    def index(self, host: str, path: str, directory: str) -> Response:
        """
        Args:
            host: The host name from the request, used in the page heading.
            path: The path from the request, used in the page heading.
            directory: The storage path that the request resolved to.
        """
        index_file = self.find_index_file(directory)
        if index_file:
            self.logger.info(f"Serving index file {index_file}")
            return Response(Status.SUCCESS, "text/gemini", self.storage.read(index_file))

        entries = self.storage.list(directory)
        directories = [entry for entry in entries if entry.is_dir]
        files = [entry for entry in entries if not entry.is_dir]
        if not directories and not files:
            raise NotFound(f"Directory is empty: {directory}")

        self.logger.info(f"Serving directory index for {directory}")
        lines = [f"# {host}: {path or '/'}"]
        for entry in directories + files:
            lines.append(f"=> {self.get_link(entry)} {basename(entry.path)}")

        body = "\n".join(lines) + "\n"
        return Response(Status.SUCCESS, "text/gemini", body.encode())
