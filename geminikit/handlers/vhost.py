from __future__ import annotations

import posixpath
from urllib.parse import unquote

from geminikit.handlers.base import BaseHandler
from geminikit.storage import BaseStorage

DEFAULT_HOST = "default"


class VirtualHostResolver(BaseHandler):
    """
    Map the host and path of a request to a location in storage.

    Every host is a directory directly beneath the storage root. When a host
    has no directory of its own (or the path does not exist in it), the
    "default" directory is tried instead. Host names are compared literally.
    """

    def __init__(self, storage: BaseStorage, default_host: str = DEFAULT_HOST, **kwargs):
        super().__init__(storage, **kwargs)
        self.default_host = default_host

    @staticmethod
    def normalize_path(path: str) -> str:
        """
        Collapse "." and ".." segments so the path can't leave the host directory.
        """
        return posixpath.normpath("/" + unquote(path)).strip("/")

    def get_storage_path(self, host: str, path: str) -> str | None:
        if host in ("", ".", "..") or "/" in host:
            return None

        relative_path = self.normalize_path(path)
        if relative_path:
            return f"{host}/{relative_path}"
        else:
            return host

    def resolve(self, host: str, path: str) -> str | None:
        """
        Return the storage path for the request, or None if nothing matches.
        """
        for candidate in dict.fromkeys([host, self.default_host]):
            storage_path = self.get_storage_path(candidate, path)
            if storage_path and self.storage.exists(storage_path):
                if candidate != host:
                    self.logger.info(f"No content for host {host}, falling back to {candidate}")
                return storage_path

        return None
