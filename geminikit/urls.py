from __future__ import annotations

import mimetypes
import urllib.parse
from urllib.parse import urljoin, urlparse, urlunparse

from geminikit.errors import InvalidUri

# Add custom mimetypes for extensions not defined by the filesystem
mimetypes.add_type("text/gemini", ".gmi")
mimetypes.add_type("text/gemini", ".gemini")

GEMINI_SCHEMES = ["gemini"]

# Maximum length of a request URL, in characters
MAX_URL_LENGTH = 1024


# Patch hardcoded URL schemes so relative gemini URLs are joined properly
def _extend(container: list, schemes: list):
    for scheme in schemes:
        if scheme not in container:
            container.append(scheme)


_extend(urllib.parse.uses_relative, GEMINI_SCHEMES)
_extend(urllib.parse.uses_netloc, GEMINI_SCHEMES)


class URLReference:
    """
    Central class for all URL handling and manipulation.

    Wraps the components of a (possibly relative) URL so that they can be
    inspected, validated against the gemini request rules, and serialized
    back into the exact string that is sent over the wire.
    """

    DEFAULT_PORTS: dict[str, int] = {
        "gemini": 1965,
    }

    def __init__(self, url: str, base: str | None = None):
        """
        Deconstruct the URL, so we can inspect and transform it.

        Args:
            url: The target URL, may be either absolute or relative.
            base: The URL that relative references are resolved against.

        Raises:
            ValueError: If the URL can't be broken into components, for
                example when the port is not a number.
        """
        self.original = url
        self.base = base
        if base:
            url = urljoin(base, url)

        url_parts = urlparse(url)

        self.scheme = url_parts.scheme
        self.hostname = url_parts.hostname or ""
        # Accessing the port validates it, and raises ValueError when invalid
        self.explicit_port = url_parts.port
        self.port = self.explicit_port or self.DEFAULT_PORTS.get(self.scheme, None)

        self.userinfo = ""
        if "@" in url_parts.netloc:
            self.userinfo = url_parts.netloc.rpartition("@")[0]

        self.path = url_parts.path
        self.params = url_parts.params
        self.query = url_parts.query
        self.fragment = url_parts.fragment

    def __str__(self):
        return self.get_url()

    def __repr__(self):
        return f"URLReference: {self.get_url()}"

    def __eq__(self, other) -> bool:
        if isinstance(other, URLReference):
            return self.get_url() == other.get_url()
        else:
            return False

    def __hash__(self) -> int:
        return hash(self.get_url())

    @property
    def is_absolute(self) -> bool:
        return bool(self.scheme)

    @property
    def netloc(self) -> str:
        """
        Return the normalized netloc value for constructing URLs.

        An explicit port is preserved even when it matches the scheme's
        default port, the user info is carried along so that it can be
        rejected by validate().
        """
        hostname = self.hostname
        if ":" in hostname:
            # IPv6 literal
            hostname = f"[{hostname}]"

        netloc = hostname
        if self.explicit_port:
            netloc = f"{hostname}:{self.explicit_port}"
        if self.userinfo:
            netloc = f"{self.userinfo}@{netloc}"
        return netloc

    @property
    def conn_info(self) -> tuple[str, int]:
        """
        Return the IP connection info if available.
        """
        if not self.port:
            raise ValueError(f"Unable to build connection info, missing port: {self.get_url()}")
        elif not self.hostname:
            raise ValueError(f"Unable to build connection info, missing hostname: {self.get_url()}")
        else:
            return self.hostname, self.port

    def get_url(self, include_query: bool = True, include_fragment: bool = True) -> str:
        """
        Construct a normalized URL string.
        """
        query = self.query
        if not include_query:
            query = ""

        fragment = self.fragment
        if not include_fragment:
            fragment = ""

        parts = (self.scheme, self.netloc, self.path, self.params, query, fragment)
        return urlunparse(parts)

    def get_gemini_request_url(self) -> str:
        """
        Get the URL formatted to be sent in a gemini request string.
        """
        path = self.path
        if path == "":
            # Add an optional trailing slash for gemini because of a quirk in
            # many server implementations that will redirect if the slash is
            # missing from the root URL.
            path = "/"

        # Drop the fragment from the request sent to the server
        fragment = ""

        # Convert domain names to punycode for compatibility with URLs that
        # contain encoded IDNs (follows RFC 3490).
        netloc = self.netloc.encode("idna").decode("ascii")
        parts = (self.scheme, netloc, path, self.params, self.query, fragment)
        return urlunparse(parts)

    def validate(self) -> URLReference:
        """
        Check the URL against the rules that every gemini request must follow.
        """
        if self.userinfo:
            raise InvalidUri("userinfo sub-component is not allowed")
        if not self.hostname:
            raise InvalidUri("host sub-component is required")
        if self.scheme not in GEMINI_SCHEMES:
            raise InvalidUri(f"scheme is not supported: {self.scheme or '(none)'}")

        try:
            request_url = self.get_gemini_request_url()
        except UnicodeError:
            raise InvalidUri(f"Unable to encode hostname: {self.hostname}")

        if len(request_url) > MAX_URL_LENGTH:
            raise InvalidUri("uri is too long")
        return self

    def join(self, url: str) -> URLReference:
        """
        Create a new URL reference using the current object as the base.
        """
        return self.__class__(url, self.get_url())


def guess_mimetype(path: str) -> str | None:
    """
    Guess the mimetype of a file based on the file extension.
    """
    return mimetypes.guess_type(path, strict=False)[0]
