import asyncio
import logging
import re
import time
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

from config import DEFAULT_CONTENT_TYPE, DEFAULT_METHOD, USER_AGENT
from errors import BenchError, HeaderError, TransportError
from metrics import Failure, RequestOutcome, Success
from transport import Connector, RequestHeader, Target

logger = logging.getLogger(__name__)

# RFC 7230 token characters for header names.
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Visible ASCII plus space and tab.
_HEADER_VALUE_RE = re.compile(r"^[\t\x20-\x7e]*$")


class RequestSpec(NamedTuple):
    target: Target
    method: str = DEFAULT_METHOD
    headers: Tuple[str, ...] = ()  # Raw "Name: Value" strings, input order
    body: Optional[bytes] = None
    content_type: str = DEFAULT_CONTENT_TYPE
    user_agent: str = USER_AGENT


class DiagnosticResponse(NamedTuple):
    status: int
    reason: str
    headers: List[Tuple[str, bytes]]
    body: bytes
    latency: float


def parse_header_line(line: str) -> Optional[Tuple[str, str]]:
    """Split "Name: Value" on the first colon.

    Returns None when there is no colon at all; such entries are dropped.
    Raises HeaderError when a colon is present but the name or value is invalid.
    """
    if ':' not in line:
        return None
    name, value = line.split(':', 1)
    name, value = name.strip(), value.strip()
    if not _HEADER_NAME_RE.match(name):
        raise HeaderError(f"Invalid header name {name!r}")
    if not _HEADER_VALUE_RE.match(value):
        raise HeaderError(f"Invalid header value for {name}")
    return name, value


def unparseable_headers(lines: Sequence[str]) -> List[str]:
    return [line for line in lines if ':' not in line]


def _set_header(headers: List[Tuple[str, str]], name: str, value: str):
    # Setting a name replaces every earlier value for it.
    lowered = name.lower()
    headers[:] = [(n, v) for n, v in headers if n.lower() != lowered]
    headers.append((name, value))


def build_request_header(spec: RequestSpec) -> RequestHeader:
    headers: List[Tuple[str, str]] = []
    _set_header(headers, "Host", spec.target.authority_host)
    _set_header(headers, "User-Agent", spec.user_agent)

    for line in spec.headers:
        parsed = parse_header_line(line)
        if parsed is not None:
            _set_header(headers, *parsed)

    if spec.body is not None:
        if not _HEADER_VALUE_RE.match(spec.content_type):
            raise HeaderError(f"Invalid Content-Type value {spec.content_type!r}")
        _set_header(headers, "Content-Length", str(len(spec.body)))
        _set_header(headers, "Content-Type", spec.content_type)

    return RequestHeader(method=spec.method, path=spec.target.path, headers=headers)


async def make_request(connector: Connector, spec: RequestSpec,
                       show_output: bool = False) -> Union[float, DiagnosticResponse]:
    """Run one full request/response cycle.

    Returns the latency in seconds, or a DiagnosticResponse when show_output is set.
    The body is always drained to its end so the connection can be reused.
    """
    req_start = time.perf_counter()

    session = await connector.get_http_session(spec.target)
    try:
        req = build_request_header(spec)
        await session.write_request_header(req)

        if spec.body is not None:
            await session.write_request_body(spec.body, True)
        else:
            await session.finish_request_body()

        await session.read_response_header()
        logger.debug(f"{spec.method} {spec.target.origin}{spec.target.path} -> {session.response_header.status}")

        body = bytearray()
        while True:
            chunk = await session.read_response_body()
            if chunk is None:
                break
            if show_output:
                body.extend(chunk)
    finally:
        await session.release()

    latency = time.perf_counter() - req_start
    if not show_output:
        return latency

    resp = session.response_header
    return DiagnosticResponse(
        status=resp.status,
        reason=resp.reason,
        headers=list(resp.headers),
        body=bytes(body),
        latency=latency,
    )


async def _attempt(connector: Connector, spec: RequestSpec, show_output: bool,
                   timeout: Optional[float]):
    if timeout is None:
        return await make_request(connector, spec, show_output)
    try:
        return await asyncio.wait_for(make_request(connector, spec, show_output), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(f"Request timed out after {timeout}s") from e


async def execute(connector: Connector, spec: RequestSpec,
                  timeout: Optional[float] = None) -> RequestOutcome:
    try:
        latency = await _attempt(connector, spec, False, timeout)
    except BenchError as e:
        return Failure(e)
    return Success(latency)


async def execute_diagnostic(connector: Connector, spec: RequestSpec,
                             timeout: Optional[float] = None) -> Union[DiagnosticResponse, Failure]:
    try:
        return await _attempt(connector, spec, True, timeout)
    except BenchError as e:
        return Failure(e)
