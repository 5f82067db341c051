"""Internal data models for api-transport.

All models use Pydantic v2. Request and Response are frozen value objects:
one is built per call and never changed afterwards. Their mapping fields are
read-only views, so a recorded last_request cannot be edited in place.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Any, Mapping, Self

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    field_validator,
    model_validator,
)


# =============================================================================
# Core HTTP Models
# =============================================================================


class Request(BaseModel):
    """One HTTP request as handed to the client by the SDK.

    host carries the scheme (e.g. "https://api.example.com") and is joined
    with port to form the connection's base URL. params is only sent on GET,
    data only on every other method. method is kept exactly as supplied; the
    client compares it case-insensitively.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    host: str = Field(description="Scheme and host, e.g. https://api.example.com")
    port: str | int = Field(description="Port appended to host")
    method: str = Field(description="HTTP method as supplied by the caller")
    url: str = Field(description="Path relative to host:port, or an absolute URL")
    params: Mapping[str, Any] = Field(
        default_factory=dict, description="Query parameters (list values repeat the key)"
    )
    data: Mapping[str, Any] = Field(default_factory=dict, description="Form body fields")
    headers: Mapping[str, str] = Field(default_factory=dict, description="Request headers")
    auth: tuple[str, str] | None = Field(
        default=None, repr=False, description="Basic auth (username, password)"
    )
    timeout: float | None = Field(
        default=None, description="Per-request timeout override in seconds"
    )

    @field_validator("params", "data", "headers", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        # The SDK passes None for "nothing to send".
        return {} if v is None else v

    @field_validator("params", "data", "headers", mode="after")
    @classmethod
    def read_only(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    @property
    def base_url(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def verb(self) -> str:
        """Upper-cased method used for dispatch."""
        return self.method.upper()


class Response(BaseModel):
    """One HTTP response as returned to the SDK.

    Textual bodies are parsed as JSON when constructed. Text that is not JSON
    is kept as a plain string so nothing the server sent is lost. headers is
    an httpx.Headers: names keep the case the server sent (see headers.raw)
    and lookups ignore case, so headers["Content-Type"] works.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    status_code: int = Field(description="HTTP status code")
    body: JsonValue = Field(default=None, description="Parsed JSON body, or None")
    headers: httpx.Headers = Field(default_factory=httpx.Headers, description="Response headers")

    @field_validator("body", mode="before")
    @classmethod
    def parse_json_text(cls, v: Any) -> Any:
        if isinstance(v, bytes):
            v = v.decode("utf-8", errors="replace")
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                return v
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def copy_headers(cls, v: Any) -> httpx.Headers:
        # Copy so the Response does not share state with the httpx response.
        return httpx.Headers(v)

    @property
    def ok(self) -> bool:
        """True for 2xx status codes."""
        return 200 <= self.status_code < 300


# =============================================================================
# Client Configuration Models
# =============================================================================


# Schemes httpx can proxy through (socks5 needs the socksio package).
PROXY_PROTOCOLS = ("http", "https", "socks5", "socks5h")


class ClientConfig(BaseModel):
    """Settings accepted by HttpClient.from_config (see config_loader).

    A proxy is all-or-nothing: protocol, address and port are set together,
    and credentials come as a user/password pair. Half-configured proxies are
    rejected here because HttpClient would otherwise ignore them silently.
    """

    model_config = ConfigDict(extra="forbid")

    proxy_protocol: str | None = Field(default=None, description="Proxy scheme, e.g. http")
    proxy_address: str | None = Field(default=None, description="Proxy host")
    proxy_port: str | int | None = Field(default=None, description="Proxy port")
    proxy_user: str | None = Field(default=None, description="Proxy username")
    proxy_pass: str | None = Field(default=None, repr=False, description="Proxy password")
    ssl_ca_file: str | None = Field(
        default=None, description="CA bundle used to verify server certificates"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Default timeout in seconds"
    )
    adapter: str | None = Field(
        default=None, description="Registered adapter name (None = default adapter)"
    )

    @field_validator("proxy_protocol")
    @classmethod
    def check_proxy_protocol(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.lower()
        if v not in PROXY_PROTOCOLS:
            raise ValueError(
                f"proxy_protocol must be one of {', '.join(PROXY_PROTOCOLS)}, got '{v}'"
            )
        return v

    @model_validator(mode="after")
    def check_proxy_settings(self) -> Self:
        proxy_parts = {
            "proxy_protocol": self.proxy_protocol,
            "proxy_address": self.proxy_address,
            "proxy_port": self.proxy_port,
        }
        given = [name for name, value in proxy_parts.items() if value]
        if given and len(given) != len(proxy_parts):
            missing = [name for name in proxy_parts if name not in given]
            raise ValueError(f"incomplete proxy settings, missing: {', '.join(missing)}")
        if bool(self.proxy_user) != bool(self.proxy_pass):
            raise ValueError("proxy_user and proxy_pass must be set together")
        if self.proxy_user and not given:
            raise ValueError("proxy credentials given without a proxy")
        return self

