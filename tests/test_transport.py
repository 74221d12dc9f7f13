import asyncio
import pytest
import httpx
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from errors import TransportError
from transport import HttpxConnector, RequestHeader, Target

target = Target(host="svc.example.test", port=8443, tls=True, path="/v1", sni="edge.example.test")
get_header = RequestHeader("GET", "/v1", [("Host", "svc.example.test")])


def ok_connector(seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, headers={"X-Mode": "test"}, content=b"abcdef")
    return HttpxConnector(transport=httpx.MockTransport(handler))


class TestTarget:
    def test_origin(self):
        assert target.origin == "https://svc.example.test:8443"
        assert Target("::1", 80, False).origin == "http://[::1]:80"

    def test_server_name_defaults_to_host(self):
        assert Target("a.test", 80, False).server_name == "a.test"
        assert target.server_name == "edge.example.test"


class TestHttpxSession:
    def test_full_exchange(self):
        seen = []

        async def exchange():
            connector = ok_connector(seen)
            session = await connector.get_http_session(target)
            await session.write_request_header(get_header)
            await session.finish_request_body()
            await session.read_response_header()
            chunks = []
            while True:
                chunk = await session.read_response_body()
                if chunk is None:
                    break
                chunks.append(chunk)
            await session.release()
            await connector.close()
            return session.response_header, b"".join(chunks)

        header, body = asyncio.run(exchange())
        assert header.status == 200
        assert ("X-Mode", b"test") in header.headers
        assert body == b"abcdef"
        assert str(seen[0].url) == "https://svc.example.test:8443/v1"
        assert seen[0].extensions["sni_hostname"] == "edge.example.test"

    def test_response_before_request_written(self):
        async def premature():
            connector = ok_connector()
            session = await connector.get_http_session(target)
            await session.write_request_header(get_header)
            try:
                await session.read_response_header()
            finally:
                await connector.close()

        with pytest.raises(TransportError):
            asyncio.run(premature())

    def test_body_read_before_header(self):
        async def premature():
            connector = ok_connector()
            session = await connector.get_http_session(target)
            try:
                await session.read_response_body()
            finally:
                await connector.close()

        with pytest.raises(TransportError):
            asyncio.run(premature())

    def test_header_written_twice(self):
        async def twice():
            connector = ok_connector()
            session = await connector.get_http_session(target)
            await session.write_request_header(get_header)
            try:
                await session.write_request_header(get_header)
            finally:
                await connector.close()

        with pytest.raises(TransportError):
            asyncio.run(twice())

    def test_unencodable_header_is_transport_error(self):
        async def send():
            connector = ok_connector()
            session = await connector.get_http_session(target)
            await session.write_request_header(RequestHeader("GET", "/v1", [("X-Label", "caf\u00e9")]))
            await session.finish_request_body()
            try:
                await session.read_response_header()
            finally:
                await connector.close()

        with pytest.raises(TransportError):
            asyncio.run(send())


class TestHttpxConnector:
    def test_one_client_per_peer(self):
        async def sessions():
            connector = ok_connector()
            a = await connector.get_http_session(target)
            b = await connector.get_http_session(target._replace(path="/other"))
            c = await connector.get_http_session(target._replace(port=9443))
            await connector.close()
            return a, b, c

        a, b, c = asyncio.run(sessions())
        assert a.client is b.client
        assert a.client is not c.client

    def test_close_empties_pool(self):
        async def close():
            connector = ok_connector()
            session = await connector.get_http_session(target)
            await connector.close()
            return connector, session

        connector, session = asyncio.run(close())
        assert session.client.is_closed
        assert connector._clients == {}
