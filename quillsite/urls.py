"""Absolute URL construction for pages rendered outside any HTTP request."""

from __future__ import annotations

from dataclasses import dataclass, replace
from urllib.parse import quote, urlsplit

from .errors import InvalidBaseURLError
from .utils import join_url

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class BaseURLContext:
    scheme: str
    host: str
    port: int | None = None
    path: str = ""
    request_path: str = "/"

    @classmethod
    def from_url(cls, base_url: str) -> BaseURLContext:
        parts = urlsplit((base_url or "").strip())
        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS or not parts.hostname:
            raise InvalidBaseURLError(f"Base URL must be an absolute http(s) URL: {base_url!r}")
        try:
            port = parts.port
        except ValueError as exc:
            raise InvalidBaseURLError(f"Invalid port in base URL: {base_url!r}") from exc
        if port == DEFAULT_PORTS[scheme]:
            port = None
        return cls(scheme=scheme, host=parts.hostname, port=port, path=parts.path.rstrip("/"))

    @property
    def origin(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}"

    @property
    def base_url(self) -> str:
        return join_url(self.origin, self.path)

    @property
    def current_url(self) -> str:
        return self.url_for(self.request_path)

    def url_for(self, path: str) -> str:
        path = quote(path, safe="/#?=&%.-_~")
        if path in {"", "/"}:
            return self.base_url + "/"
        return join_url(self.base_url, path)

    def for_page(self, request_path: str) -> BaseURLContext:
        if not request_path.startswith("/"):
            request_path = "/" + request_path
        return replace(self, request_path=request_path)
