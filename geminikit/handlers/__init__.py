from geminikit.handlers.base import BaseHandler
from geminikit.handlers.directory import DirectoryIndexer
from geminikit.handlers.file import FileHandler
from geminikit.handlers.static import StaticHandler
from geminikit.handlers.vhost import VirtualHostResolver

__all__ = [
    "BaseHandler",
    "DirectoryIndexer",
    "FileHandler",
    "StaticHandler",
    "VirtualHostResolver",
]
