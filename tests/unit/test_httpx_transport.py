"""
Unit tests for httpntlm.transport.httpx_transport.

Tests the httpx-backed transport against httpx.MockTransport, both on its
own and driving a full handshake.
"""

import json

import httpx
import pytest
from structlog.testing import capture_logs

from httpntlm.api import NTLMHttpClient
from httpntlm.core.exceptions import TransportError
from httpntlm.core.types import RequestDescription, Response
from httpntlm.transport import HttpxTransport

from tests.conftest import CHALLENGE_HEADER, NEGOTIATE_HEADER, FakeCodec


URL = "https://intranet.example.com/report"


class MockServer:
    """Scripted httpx handler recording the requests it receives."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def _transport(server: MockServer, **kwargs) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return HttpxTransport(client=client, **kwargs)


class TestHttpxTransport:
    """Tests for HttpxTransport.__call__."""

    @pytest.mark.asyncio
    async def test_sends_request(self):
        """Test method, url, headers and body reach httpx."""
        server = MockServer(httpx.Response(200, text="ok"))

        async with _transport(server) as transport:
            response = await transport(
                RequestDescription(
                    url=URL,
                    method="POST",
                    headers={"Authorization": "NTLM abc", "X-Trace": "1"},
                    body=b"payload",
                )
            )

        sent = server.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == URL
        assert sent.headers["authorization"] == "NTLM abc"
        assert sent.headers["x-trace"] == "1"
        assert sent.content == b"payload"
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_json_body(self):
        """Test non-bytes bodies are sent as JSON."""
        server = MockServer(httpx.Response(201))

        async with _transport(server) as transport:
            await transport(RequestDescription(url=URL, method="POST", body={"name": "report"}))

        sent = server.requests[0]
        assert json.loads(sent.content) == {"name": "report"}
        assert sent.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_extra_passed_to_httpx(self):
        """Test pass-through options become AsyncClient.request arguments."""
        server = MockServer(httpx.Response(200))

        async with _transport(server) as transport:
            await transport(
                RequestDescription(url=URL, method="GET", extra={"params": {"q": "sales"}})
            )

        assert server.requests[0].url.params["q"] == "sales"

    @pytest.mark.asyncio
    async def test_redirects_not_followed(self):
        """Test 3xx answers are returned to the handshake."""
        server = MockServer(httpx.Response(302, headers={"Location": "/elsewhere"}))

        async with _transport(server) as transport:
            response = await transport(RequestDescription(url=URL, method="GET"))

        assert response.status_code == 302
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_raise_for_status(self):
        """Test error statuses raise when asked to."""
        server = MockServer(httpx.Response(401))

        async with _transport(server, raise_for_status=True) as transport:
            with pytest.raises(httpx.HTTPStatusError):
                await transport(RequestDescription(url=URL, method="GET"))

    @pytest.mark.asyncio
    async def test_logs_response(self):
        """Test each response is logged."""
        server = MockServer(httpx.Response(204))

        with capture_logs() as logs:
            async with _transport(server) as transport:
                await transport(RequestDescription(url=URL, method="DELETE"))

        events = [e for e in logs if e["event"] == "httpx_response"]
        assert events[0]["status"] == 204
        assert events[0]["method"] == "DELETE"


class TestHttpxHandshake:
    """Tests for a full handshake over httpx."""

    @pytest.mark.asyncio
    async def test_handshake(self):
        """Test both steps go through httpx and the final response is adapted."""
        server = MockServer(
            httpx.Response(401, headers={"WWW-Authenticate": CHALLENGE_HEADER}),
            httpx.Response(200, text="report"),
        )

        async with _transport(server) as transport:
            client = NTLMHttpClient(transport=transport, codec=FakeCodec())
            response = await client.get({"url": URL, "username": "jdoe", "domain": "EXAMPLE"})

        assert isinstance(response, Response)
        assert response.status == 200
        assert response.body == b"report"
        assert isinstance(response.raw, httpx.Response)

        negotiate, authenticate = server.requests
        assert negotiate.headers["authorization"] == NEGOTIATE_HEADER
        assert negotiate.headers["connection"] == "keep-alive"
        assert authenticate.headers["authorization"] == "NTLM AUTH:TlRMTVNTUAACAAAA:jdoe:EXAMPLE"
        assert authenticate.headers["connection"] == "Close"

    @pytest.mark.asyncio
    async def test_handshake_with_raise_for_status(self):
        """Test a raised 401 challenge still completes the handshake."""
        server = MockServer(
            httpx.Response(401, headers={"WWW-Authenticate": CHALLENGE_HEADER}),
            httpx.Response(200),
        )

        async with _transport(server, raise_for_status=True) as transport:
            client = NTLMHttpClient(transport=transport, codec=FakeCodec())
            response = await client.get({"url": URL})

        assert response.status == 200
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_raised_server_error(self):
        """Test a raised 500 fails the call with the response attached."""
        server = MockServer(httpx.Response(500))

        async with _transport(server, raise_for_status=True) as transport:
            client = NTLMHttpClient(transport=transport, codec=FakeCodec())
            with pytest.raises(TransportError) as exc_info:
                await client.get({"url": URL})

        assert exc_info.value.response.status == 500
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test connection failures become TransportError."""

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        async with HttpxTransport(client=client) as transport:
            ntlm_client = NTLMHttpClient(transport=transport, codec=FakeCodec())
            with pytest.raises(TransportError, match="connection refused"):
                await ntlm_client.get({"url": URL})
