"""Pytest configuration and fixtures for api-transport tests.

This file provides:
- RecordingHandler: httpx.MockTransport handler that records every request
- Fixtures: a client wired to a mock transport, so no test touches the network
"""

from __future__ import annotations

from typing import Any, Callable, Generator

import httpx
import pytest

from api_transport.client import HttpClient

HOST = "https://api.example.com"
PORT = 8443


class RecordingHandler:
    """Answers every request with a fixed response and keeps what it received.

    Usage:
        handler = RecordingHandler(status_code=201, json={"sid": "XX"})
        client.adapter = httpx.MockTransport(handler)
        client.request(...)
        handler.requests[-1].url
    """

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
        json: Any = None,
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.json = json
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json, headers=self.headers)
        return httpx.Response(self.status_code, content=self.content, headers=self.headers)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def handler() -> RecordingHandler:
    """Default handler: 200 with a small JSON body."""
    return RecordingHandler(json={"sid": "AC123"})


@pytest.fixture
def make_client() -> Generator[Callable[..., HttpClient], None, None]:
    """Factory for clients using a mock transport. Closes every client it made."""
    clients: list[HttpClient] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> HttpClient:
        client = HttpClient(**kwargs)
        client.adapter = httpx.MockTransport(handler)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def client(make_client: Callable[..., HttpClient], handler: RecordingHandler) -> HttpClient:
    return make_client(handler)
