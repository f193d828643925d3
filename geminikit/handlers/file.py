from geminikit.handlers.base import BaseHandler
from geminikit.protocols.base import Response, Status

GEMINI_EXTENSIONS = (".gmi", ".gemini")


class FileHandler(BaseHandler):
    """
    Serve the raw bytes of a single stored file.
    """

    def get_mimetype(self, path: str) -> str:
        # The storage backend may not know about gemtext, so never trust it
        # for these extensions.
        if path.endswith(GEMINI_EXTENSIONS):
            return "text/gemini"
        return self.storage.mime_type(path)

    def render(self, path: str) -> Response:
        mimetype = self.get_mimetype(path)
        self.logger.info(f"Serving file {path} ({mimetype})")
        return Response(Status.SUCCESS, mimetype, self.storage.read(path))
