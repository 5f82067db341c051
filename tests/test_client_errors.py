"""Tests for transport failures in HttpClient.

Failures below HTTP raise TransportError, keep the attempted request as
last_request and leave last_response unset. HTTP error statuses are
covered in test_client.py: they are returned, not raised.
"""

from typing import Callable

import httpx
import pytest

from api_transport.client import ClientError, HttpClient, TransportError
from tests.conftest import HOST, PORT, RecordingHandler


class TestTransportError:
    """httpx exceptions are wrapped in TransportError."""

    def test_connection_refused_raises_transport_error(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        cause = httpx.ConnectError("Connection refused")
        client = make_client(RecordingHandler(error=cause))

        with pytest.raises(TransportError, match="Connection error") as exc_info:
            client.request(HOST, PORT, "GET", "/items")

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.request is client.last_request

    def test_timeout_raises_transport_error(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        client = make_client(RecordingHandler(error=httpx.ReadTimeout("timed out")))

        with pytest.raises(TransportError, match="timeout"):
            client.request(HOST, PORT, "GET", "/items", timeout=1)

    def test_other_request_errors_raise_transport_error(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        client = make_client(
            RecordingHandler(error=httpx.RemoteProtocolError("Server disconnected"))
        )

        with pytest.raises(TransportError, match="Request error"):
            client.request(HOST, PORT, "GET", "/items")

    def test_transport_error_is_a_client_error(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        client = make_client(RecordingHandler(error=httpx.ConnectError("refused")))

        with pytest.raises(ClientError):
            client.request(HOST, PORT, "GET", "/items")


class TestEncodingError:
    """Request data httpx cannot encode as ASCII is rejected before sending."""

    def test_non_ascii_header_value_raises_client_error(
        self, client: HttpClient, handler: RecordingHandler
    ) -> None:
        with pytest.raises(ClientError, match="Encoding error") as exc_info:
            client.request(HOST, PORT, "GET", "/a", headers={"X-Name": "café"})

        assert isinstance(exc_info.value, TransportError)
        assert isinstance(exc_info.value.__cause__, UnicodeEncodeError)
        assert "'é'" in str(exc_info.value)
        assert handler.requests == []

    def test_state_after_encoding_error(self, client: HttpClient) -> None:
        with pytest.raises(TransportError):
            client.request(HOST, PORT, "GET", "/a", headers={"X-Name": "café"})

        assert client.last_request.headers == {"X-Name": "café"}
        assert client.last_response is None


class TestStateAfterFailure:
    """last_request / last_response after a TransportError."""

    def test_last_request_reflects_attempt(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        client = make_client(RecordingHandler(error=httpx.ConnectError("refused")))

        with pytest.raises(TransportError):
            client.request(
                HOST, PORT, "POST", "/items",
                params={"p": "1"}, data={"name": "widget"},
                headers={"X-Trace": "t1"}, auth=("user", "pass"), timeout=3,
            )

        last = client.last_request
        assert last is not None
        assert last.host == HOST
        assert last.port == PORT
        assert last.method == "POST"
        assert last.url == "/items"
        assert last.params == {"p": "1"}
        assert last.data == {"name": "widget"}
        assert last.headers == {"X-Trace": "t1"}
        assert last.auth == ("user", "pass")
        assert last.timeout == 3

    def test_last_response_is_unset(self, make_client: Callable[..., HttpClient]) -> None:
        client = make_client(RecordingHandler(error=httpx.ConnectError("refused")))

        with pytest.raises(TransportError):
            client.request(HOST, PORT, "GET", "/items")

        assert client.last_response is None

    def test_previous_response_is_cleared(
        self, make_client: Callable[..., HttpClient]
    ) -> None:
        """A failure after a success must not leave the old response behind."""
        handler = RecordingHandler(content=b'{"ok": true}')
        client = make_client(handler)
        client.request(HOST, PORT, "GET", "/items")
        assert client.last_response is not None

        handler.error = httpx.ConnectError("refused")
        with pytest.raises(TransportError):
            client.request(HOST, PORT, "GET", "/items/2")

        assert client.last_response is None
        assert client.last_request.url == "/items/2"


class TestConnectionSetupErrors:
    """Errors raised while configuring a connection."""

    def test_unreadable_ca_file_raises_client_error(self, tmp_path) -> None:
        missing = tmp_path / "missing-ca.pem"
        client = HttpClient(ssl_ca_file=str(missing))

        with pytest.raises(ClientError, match="Cannot load CA file"):
            client.request(HOST, PORT, "GET", "/items")

        assert client.last_request is None
