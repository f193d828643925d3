from __future__ import annotations

import logging

from geminikit.storage import BaseStorage

_logger = logging.getLogger(__name__)


class BaseHandler:
    """
    Builds gemini responses from the documents held in a storage backend.
    """

    def __init__(self, storage: BaseStorage, logger: logging.Logger | None = None):
        self.storage = storage
        self.logger = logger or _logger
