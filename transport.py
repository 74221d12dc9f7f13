# transport.py
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, List, NamedTuple, Optional, Tuple

import httpx

from config import READ_CHUNK_SIZE
from errors import TransportError

logger = logging.getLogger(__name__)


class Target(NamedTuple):
    host: str
    port: int
    tls: bool
    path: str = "/"  # Path plus "?query" when the URL has one
    sni: Optional[str] = None  # Defaults to host

    @property
    def server_name(self) -> str:
        return self.sni or self.host

    @property
    def authority_host(self) -> str:
        # IPv6 literals are bracketed in URLs and in the Host header.
        return f"[{self.host}]" if ":" in self.host else self.host

    @property
    def origin(self) -> str:
        return f"{'https' if self.tls else 'http'}://{self.authority_host}:{self.port}"


class RequestHeader(NamedTuple):
    method: str
    path: str
    headers: List[Tuple[str, str]]


class ResponseHeader(NamedTuple):
    status: int
    reason: str
    headers: List[Tuple[str, bytes]]  # Values stay raw; not every value is text


class HttpSession(ABC):
    """One request/response exchange with a target.

    Steps must be awaited in order: header, body (or finish), response
    header, then body chunks until None. release() hands the connection
    back to the connector.
    """

    @abstractmethod
    async def write_request_header(self, header: RequestHeader):
        pass

    @abstractmethod
    async def write_request_body(self, data: bytes, end_of_body: bool):
        pass

    @abstractmethod
    async def finish_request_body(self):
        pass

    @abstractmethod
    async def read_response_header(self):
        pass

    @property
    @abstractmethod
    def response_header(self) -> Optional[ResponseHeader]:
        pass

    @abstractmethod
    async def read_response_body(self) -> Optional[bytes]:
        """Next body chunk, or None once the body is exhausted."""

    @abstractmethod
    async def release(self):
        pass


class Connector(ABC):
    @abstractmethod
    async def get_http_session(self, target: Target) -> HttpSession:
        pass

    async def close(self):
        pass


class HttpxSession(HttpSession):
    def __init__(self, client: httpx.AsyncClient, target: Target, timeout: httpx.Timeout):
        self.client = client
        self.target = target
        self.timeout = timeout
        self._request_header: Optional[RequestHeader] = None
        self._body = bytearray()
        self._body_finished = False
        self._response: Optional[httpx.Response] = None
        self._response_header: Optional[ResponseHeader] = None
        self._chunks: Optional[AsyncIterator[bytes]] = None

    async def write_request_header(self, header: RequestHeader):
        if self._request_header is not None:
            raise TransportError("Request header already written")
        self._request_header = header

    async def write_request_body(self, data: bytes, end_of_body: bool):
        if self._request_header is None or self._body_finished:
            raise TransportError("Request body written out of order")
        self._body.extend(data)
        self._body_finished = end_of_body

    async def finish_request_body(self):
        if self._request_header is None:
            raise TransportError("Request body finished before header was written")
        self._body_finished = True

    async def read_response_header(self):
        if self._request_header is None or not self._body_finished:
            raise TransportError("Response header read before request was fully written")
        header = self._request_header
        extensions = {"timeout": self.timeout.as_dict()}
        if self.target.tls:
            extensions["sni_hostname"] = self.target.server_name
        try:
            request = httpx.Request(
                header.method,
                self.target.origin + header.path,
                headers=header.headers,
                content=bytes(self._body) if self._body else None,
                extensions=extensions,
            )
        except (httpx.InvalidURL, ValueError) as e:
            # Non-ASCII header values surface here as UnicodeEncodeError.
            raise TransportError(f"Could not build request for {self.target.origin}", e) from e
        try:
            self._response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.target.origin} failed", e) from e

        self._response_header = ResponseHeader(
            status=self._response.status_code,
            reason=self._response.reason_phrase,
            headers=[(name.decode('latin-1'), value) for name, value in self._response.headers.raw],
        )
        self._chunks = self._response.aiter_raw(chunk_size=READ_CHUNK_SIZE)

    @property
    def response_header(self) -> Optional[ResponseHeader]:
        return self._response_header

    async def read_response_body(self) -> Optional[bytes]:
        if self._chunks is None:
            raise TransportError("Response body read before response header")
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise TransportError("Failed reading response body", e) from e

    async def release(self):
        # An undrained response closes its connection instead of returning it to the pool.
        if self._response is not None and not self._response.is_closed:
            try:
                await self._response.aclose()
            except httpx.HTTPError as e:
                raise TransportError("Failed releasing connection", e) from e


class HttpxConnector(Connector):
    """Keeps one pooled httpx.AsyncClient per (host, port, tls, sni) peer."""

    def __init__(self, insecure: bool = False, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.insecure = insecure
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport  # Tests plug httpx.MockTransport in here
        self._clients: Dict[Tuple[str, int, bool, str], httpx.AsyncClient] = {}

    def _client_for(self, target: Target) -> httpx.AsyncClient:
        key = (target.host, target.port, target.tls, target.server_name)
        client = self._clients.get(key)
        if client is None:
            # verify=False skips both certificate and hostname verification.
            client = httpx.AsyncClient(
                verify=not self.insecure,
                timeout=self.timeout,
                follow_redirects=False,
                trust_env=False,  # No environment proxies between the client and the target
                transport=self._transport,
            )
            self._clients[key] = client
            logger.debug(f"Opened connection pool for {target.origin} (sni={target.server_name}, insecure={self.insecure})")
        return client

    async def get_http_session(self, target: Target) -> HttpSession:
        return HttpxSession(self._client_for(target), target, self.timeout)

    async def close(self):
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
