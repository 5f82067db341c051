"""Adapters - Named httpx transports the client can be switched between.

An adapter is either the name of a registered factory or a ready-made
httpx.BaseTransport (tests pass httpx.MockTransport this way). Factories are
called as factory(verify=..., proxy=...) so the transport they build carries
the client's TLS and proxy settings.
"""

from __future__ import annotations

import ssl
from typing import Callable, Union

import httpx

TransportFactory = Callable[..., httpx.BaseTransport]
Adapter = Union[str, httpx.BaseTransport]

DEFAULT_ADAPTER = "httpx"


class AdapterError(ValueError):
    """Raised for unknown or conflicting adapter names."""


def _http1_transport(verify: ssl.SSLContext | bool, proxy: str | None) -> httpx.BaseTransport:
    return httpx.HTTPTransport(verify=verify, proxy=proxy)


def _http2_transport(verify: ssl.SSLContext | bool, proxy: str | None) -> httpx.BaseTransport:
    # Requires the h2 package (pip install api-transport[http2]).
    return httpx.HTTPTransport(verify=verify, proxy=proxy, http2=True)


_REGISTRY: dict[str, TransportFactory] = {
    DEFAULT_ADAPTER: _http1_transport,
    "http2": _http2_transport,
}


def register_adapter(name: str, factory: TransportFactory, replace: bool = False) -> None:
    """Register a transport factory under name.

    Raises:
        AdapterError: If name is already registered and replace is False.
    """
    if name in _REGISTRY and not replace:
        raise AdapterError(f"Adapter '{name}' is already registered")
    _REGISTRY[name] = factory


def unregister_adapter(name: str) -> None:
    """Remove a registered adapter. The default adapter cannot be removed."""
    if name == DEFAULT_ADAPTER:
        raise AdapterError(f"Adapter '{name}' is the default and cannot be removed")
    if name not in _REGISTRY:
        raise AdapterError(f"Unknown adapter '{name}'")
    del _REGISTRY[name]


def available_adapters() -> list[str]:
    return sorted(_REGISTRY)


def adapter_name(adapter: Adapter) -> str:
    """Human-readable adapter name for log messages."""
    if isinstance(adapter, str):
        return adapter
    return type(adapter).__name__


def build_transport(
    adapter: Adapter,
    verify: ssl.SSLContext | bool = True,
    proxy: str | None = None,
) -> httpx.BaseTransport:
    """Resolve adapter into a transport.

    Transport instances are returned unchanged; their owner configured them.

    Raises:
        AdapterError: If adapter is a name that is not registered.
    """
    if isinstance(adapter, httpx.BaseTransport):
        return adapter

    factory = _REGISTRY.get(adapter)
    if factory is None:
        available = ", ".join(available_adapters())
        raise AdapterError(f"Unknown adapter '{adapter}'. Available: {available}")
    return factory(verify=verify, proxy=proxy)
