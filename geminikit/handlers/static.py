from __future__ import annotations

import logging

from geminikit.errors import NotFound
from geminikit.handlers.base import BaseHandler
from geminikit.handlers.directory import DirectoryIndexer
from geminikit.handlers.file import FileHandler
from geminikit.handlers.vhost import VirtualHostResolver
from geminikit.protocols.base import Response
from geminikit.storage import BaseStorage


class StaticHandler(BaseHandler):
    """
    Serve files and directories from storage, one virtual host per directory.
    """

    def __init__(
        self,
        storage: BaseStorage,
        directory_index: bool = False,
        logger: logging.Logger | None = None,
    ):
        super().__init__(storage, logger=logger)
        self.directory_index = directory_index

        self.resolver = VirtualHostResolver(storage, logger=self.logger)
        self.indexer = DirectoryIndexer(storage, logger=self.logger)
        self.file_handler = FileHandler(storage, logger=self.logger)

    def serve(self, host: str, path: str) -> Response:
        self.logger.info(f"Serving request host={host} path={path}")

        storage_path = self.resolver.resolve(host, path)
        if storage_path is None:
            raise NotFound(f"Nothing found for host={host} path={path}")

        if not self.storage.is_dir(storage_path):
            return self.file_handler.render(storage_path)

        if self.directory_index:
            return self.indexer.index(host, path, storage_path)

        # Without auto-generated listings, a directory is only served
        # through its index file.
        index_file = self.indexer.find_index_file(storage_path)
        if index_file is None:
            raise NotFound(f"Directory has no index file: {storage_path}")
        return self.file_handler.render(index_file)
