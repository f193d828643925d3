from __future__ import annotations

import dataclasses
import os
import typing
from collections.abc import Mapping
from typing import Any

DEFAULT_PREFIX = "GEMINIKIT"

TRUE_VALUES = ("1", "true", "yes", "on")


def _convert(value: str, annotation: Any) -> Any:
    """
    Convert a raw environment string to the type declared on a config field.
    """
    if annotation is bool:
        return value.strip().lower() in TRUE_VALUES
    elif annotation is int:
        return int(value)
    elif annotation is float:
        return float(value)
    else:
        # Optional strings and plain strings
        return value


class PrefixedEnvMixin:
    """
    Load dataclass fields from environment variables named <PREFIX>_<FIELD>.
    """

    @classmethod
    def from_prefixed_env(
        cls,
        prefix: str = DEFAULT_PREFIX,
        environ: Mapping[str, str] | None = None,
    ):
        if environ is None:
            environ = os.environ

        hints = typing.get_type_hints(cls)
        kwargs = {}
        for field in dataclasses.fields(cls):  # type: ignore
            key = f"{prefix}_{field.name.upper()}"
            if key not in environ:
                continue

            annotation = hints[field.name]
            args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
            if args:
                annotation = args[0]

            try:
                kwargs[field.name] = _convert(environ[key], annotation)
            except ValueError:
                raise ValueError(f"Invalid value for {key}: {environ[key]!r}")

        return cls(**kwargs)


@dataclasses.dataclass(frozen=True)
class ClientConfig(PrefixedEnvMixin):
    """
    Settings for a GeminiClient, fixed for the lifetime of the client.

    If ``base_url`` is not set and ``server`` is, relative URLs are resolved
    against ``gemini://<server>:<port>``.
    """

    server: str | None = None
    port: int = 1965
    base_url: str | None = None
    max_redirections: int = 10
    # Seconds, a value of 0 disables the timeout
    connect_timeout: float = 10
    read_timeout: float = 30
    # Bytes, including the header line, a value of 0 disables the limit
    max_response_size: int = 2**24

    def __post_init__(self):
        if self.max_redirections < 0:
            raise ValueError("max_redirections can't be negative")
        if self.max_response_size < 0:
            raise ValueError("max_response_size can't be negative")

    def get_base_url(self) -> str | None:
        if self.base_url:
            return self.base_url
        elif self.server:
            return f"gemini://{self.server}:{self.port}"
        else:
            return None


@dataclasses.dataclass(frozen=True)
class ServerConfig(PrefixedEnvMixin):
    """
    Settings for a GeminiServer, established before the listener starts.
    """

    address: str = "127.0.0.1"
    port: int = 1965
    certificate_path: str | None = None
    # When empty, the private key is expected inside the certificate file
    key_path: str | None = None
    root: str = "./www"
    directory_index: bool = False
    request_timeout: float = 10
