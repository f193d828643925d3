from __future__ import annotations

import os
import os.path
from dataclasses import dataclass

from geminikit.urls import guess_mimetype

DEFAULT_MIMETYPE = "application/octet-stream"


@dataclass(frozen=True)
class StorageEntry:
    """
    A single item returned from a directory listing.

    The path is relative to the storage root and uses "/" separators.
    """

    path: str
    is_dir: bool


class BaseStorage:
    """
    Read-only access to the documents that the server publishes.

    Paths are "/" separated and relative to the storage root. Implementations
    must tolerate concurrent calls from multiple connections.
    """

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def is_dir(self, path: str) -> bool:
        raise NotImplementedError

    def read(self, path: str) -> bytes:
        raise NotImplementedError

    def list(self, path: str) -> list[StorageEntry]:
        raise NotImplementedError

    def mime_type(self, path: str) -> str:
        return guess_mimetype(path) or DEFAULT_MIMETYPE


class LocalStorage(BaseStorage):
    """
    Serve documents from a directory on the local filesystem.
    """

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def __repr__(self):
        return f"LocalStorage: {self.root}"

    def get_filesystem_path(self, path: str) -> str:
        filesystem_path = os.path.normpath(os.path.join(self.root, path.strip("/")))
        if os.path.commonpath([self.root, filesystem_path]) != self.root:
            # Guard against breaking out of the directory
            raise ValueError(f"Path is outside of the storage root: {path}")
        return filesystem_path

    def exists(self, path: str) -> bool:
        try:
            filesystem_path = self.get_filesystem_path(path)
        except ValueError:
            return False

        try:
            return os.access(filesystem_path, os.R_OK)
        except (OSError, ValueError):
            # Filename too large, embedded null byte, etc.
            return False

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self.get_filesystem_path(path))

    def read(self, path: str) -> bytes:
        with open(self.get_filesystem_path(path), "rb") as fp:
            return fp.read()

    def list(self, path: str) -> list[StorageEntry]:
        """
        List a directory, sorted by name.

        Hidden files are skipped because they may contain sensitive info.
        """
        directory = path.strip("/")
        entries = []
        with os.scandir(self.get_filesystem_path(path)) as it:
            for item in it:
                if item.name.startswith("."):
                    continue
                entry_path = f"{directory}/{item.name}" if directory else item.name
                entries.append(StorageEntry(entry_path, item.is_dir()))

        entries.sort(key=lambda entry: entry.path)
        return entries
