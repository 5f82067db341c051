"""Client - Sends SDK requests over httpx and keeps the last exchange.

HttpClient is the transport the SDK's REST layer talks to. It builds one
httpx.Client per target (host:port) on first use, sends each Request through
it, and converts the result into a Response. The most recent Request and
Response stay available on the client for diagnostics.

Non-2xx responses are not errors here: the caller decides what a failed
status means. Requests that cannot be sent (connection, DNS, TLS, timeouts,
non-ASCII header values) raise TransportError.
"""

from __future__ import annotations

import json
import logging
import ssl
from typing import Any
from urllib.parse import quote

import httpx

from api_transport.adapters import DEFAULT_ADAPTER, Adapter, adapter_name, build_transport
from api_transport.models import ClientConfig, Request, Response

logger = logging.getLogger(__name__)

# Substituted for an empty 400 body so callers always get an error payload.
BAD_REQUEST_BODY = {"message": "Bad request", "code": 400}


class ClientError(Exception):
    """Base class for client errors."""


class TransportError(ClientError):
    """Raised when a request cannot be sent: connection error, timeout, non-ASCII header."""

    def __init__(self, message: str, request: Request) -> None:
        super().__init__(message)
        self.request = request


class HttpClient:
    """Sends requests through cached httpx connections.

    Usage:
        client = HttpClient(timeout=30)
        response = client.request("https://api.example.com", 443, "GET", "/v1/items")
        client.last_request    # the Request just sent
        client.last_response   # the Response just received

    Or with context manager:
        with HttpClient() as client:
            client.request(...)

    last_request and last_response are plain attributes overwritten on every
    call. They are not synchronized: share one HttpClient across threads and
    they hold whichever call finished last.
    """

    def __init__(
        self,
        proxy_protocol: str | None = None,
        proxy_address: str | None = None,
        proxy_port: str | int | None = None,
        proxy_user: str | None = None,
        proxy_pass: str | None = None,
        ssl_ca_file: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the client. No connection is opened until the first request.

        Args:
            proxy_protocol: Proxy scheme, e.g. "http". The proxy is used only
                            when this and both address and port are set.
            proxy_address: Proxy host.
            proxy_port: Proxy port.
            proxy_user: Proxy username (used together with proxy_pass).
            proxy_pass: Proxy password (used together with proxy_user).
            ssl_ca_file: CA bundle for verifying servers. Verification stays
                         on either way; None uses the default trust store.
            timeout: Default timeout in seconds. None leaves httpx's default.
        """
        self._proxy_protocol = proxy_protocol
        self._proxy_path = f"{proxy_address}:{proxy_port}" if proxy_address and proxy_port else None
        self._proxy_auth = (
            f"{quote(proxy_user, safe='')}:{quote(proxy_pass, safe='')}@"
            if proxy_user and proxy_pass
            else ""
        )
        self._ssl_ca_file = ssl_ca_file
        self._timeout = timeout
        self._adapter: Adapter = DEFAULT_ADAPTER

        # One connection per (host, port). Cleared when the adapter changes.
        self._connections: dict[tuple[str, str], httpx.Client] = {}

        self._last_request: Request | None = None
        self._last_response: Response | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "HttpClient":
        """Build a client from a loaded ClientConfig."""
        client = cls(
            proxy_protocol=config.proxy_protocol,
            proxy_address=config.proxy_address,
            proxy_port=config.proxy_port,
            proxy_user=config.proxy_user,
            proxy_pass=config.proxy_pass,
            ssl_ca_file=config.ssl_ca_file,
            timeout=config.timeout,
        )
        if config.adapter is not None:
            client.adapter = config.adapter
        return client

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close all cached connections.

        Every connection gets closed even if one close() raises; the first
        error is re-raised afterwards so no connection leaks.
        """
        connections = list(self._connections.values())
        self._connections.clear()
        first_error: Exception | None = None
        for connection in connections:
            try:
                connection.close()
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def last_request(self) -> Request | None:
        return self._last_request

    @property
    def last_response(self) -> Response | None:
        return self._last_response

    @property
    def proxy_url(self) -> str | None:
        """Proxy URL new connections use, or None when no proxy is configured."""
        if self._proxy_protocol and self._proxy_path:
            return f"{self._proxy_protocol}://{self._proxy_auth}{self._proxy_path}"
        return None

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @adapter.setter
    def adapter(self, adapter: Adapter) -> None:
        """Switch adapters. Cached connections are closed and rebuilt on next use."""
        self.close()
        self._adapter = adapter

    def request(
        self,
        host: str,
        port: str | int,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Build a Request from the arguments and execute it."""
        request = Request(
            host=host,
            port=port,
            method=method,
            url=url,
            params=params,
            data=data,
            headers=headers,
            auth=auth,
            timeout=timeout,
        )
        return self.execute(request)

    def execute(self, request: Request) -> Response:
        """Send a request and record it and its response.

        Args:
            request: The request to send.

        Returns:
            The Response, for any status code.

        Raises:
            TransportError: If the request fails below HTTP. last_request
                            keeps the attempted request, last_response is None.
            ClientError: If the connection cannot be configured.
        """
        connection = self._get_connection(request)

        self._last_request = request
        self._last_response = None

        http_response = self._send(connection, request)

        if http_response.content:
            body: Any = http_response.text
        elif http_response.status_code == 400:
            body = json.dumps(BAD_REQUEST_BODY)
        else:
            body = None

        response = Response(
            status_code=http_response.status_code,
            body=body,
            headers=http_response.headers,
        )
        logger.debug("%s %s -> %s", request.verb, request.url, response.status_code)

        self._last_response = response
        return response

    def _get_connection(self, request: Request) -> httpx.Client:
        """Return the cached connection for the request's target, creating it if needed."""
        key = (request.host, str(request.port))
        connection = self._connections.get(key)
        if connection is not None:
            return connection

        verify = self._build_verify()
        transport = build_transport(self._adapter, verify=verify, proxy=self.proxy_url)
        connection = httpx.Client(
            base_url=request.base_url,
            verify=verify,
            transport=transport,
        )
        logger.debug(
            "Opened connection to %s (adapter=%s, proxy=%s)",
            request.base_url,
            adapter_name(self._adapter),
            "yes" if self.proxy_url else "no",
        )
        self._connections[key] = connection
        return connection

    def _build_verify(self) -> ssl.SSLContext | bool:
        """TLS verification setting for new connections. Never disables verification."""
        if not self._ssl_ca_file:
            return True
        try:
            return ssl.create_default_context(cafile=self._ssl_ca_file)
        except (OSError, ssl.SSLError) as e:
            raise ClientError(f"Cannot load CA file '{self._ssl_ca_file}': {e}") from e

    def _send(self, connection: httpx.Client, request: Request) -> httpx.Response:
        """Dispatch request over connection, mapping httpx failures to TransportError."""
        method = request.verb
        if method == "GET":
            params = request.params or None
            data = None
        else:
            params = None
            data = request.data or None

        timeout_seconds = request.timeout if request.timeout is not None else self._timeout
        timeout: Any = (
            httpx.Timeout(timeout_seconds)
            if timeout_seconds is not None
            else httpx.USE_CLIENT_DEFAULT
        )
        auth: Any = request.auth if request.auth else httpx.USE_CLIENT_DEFAULT

        logger.debug("Sending %s %s", method, request.url)
        try:
            return connection.request(
                method,
                request.url,
                params=params,
                data=data,
                headers=request.headers,
                auth=auth,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", method, request.url, e)
            raise TransportError(f"Request timeout: {e}", request) from e
        except httpx.ConnectError as e:
            logger.warning("%s %s connection failed: %s", method, request.url, e)
            raise TransportError(f"Connection error: {e}", request) from e
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, request.url, e)
            raise TransportError(f"Request error: {e}", request) from e
        except UnicodeEncodeError as e:
            # httpx encodes header values, query keys and paths as ASCII and
            # raises before anything is sent.
            logger.warning("%s %s has non-ASCII request data: %s", method, request.url, e)
            raise TransportError(
                f"Encoding error: non-ASCII character {e.object[e.start:e.end]!r} in a "
                f"header, query parameter or path. HTTP requires ASCII for these fields.",
                request,
            ) from e
