"""
Pytest configuration and shared fixtures for httpntlm tests.
"""

from typing import Any, List, Optional

import pytest
from returns.result import Failure, Result, Success

from httpntlm.api import NTLMHttpClient
from httpntlm.core.config import HandshakeConfig
from httpntlm.core.exceptions import ChallengeDecodeError, CodecError
from httpntlm.core.types import Credentials, RequestDescription, RequestOptions, Response
from httpntlm.ntlm.codec import NTLMCodec


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


NEGOTIATE_HEADER = "NTLM TlRMTVNTUAABAAAA"
CHALLENGE_HEADER = "NTLM TlRMTVNTUAACAAAA"


class FakeCodec(NTLMCodec):
    """
    Deterministic codec.

    The challenge is the token after "NTLM "; the authenticate header
    echoes it with the username so tests can see what was derived from what.
    """

    def __init__(self) -> None:
        self.decoded: List[str] = []

    def encode_negotiate(self, credentials: Credentials) -> str:
        return NEGOTIATE_HEADER

    def decode_challenge(self, header: str) -> Result[Any, ChallengeDecodeError]:
        if not header.startswith("NTLM ") or header == "NTLM garbage":
            return Failure(ChallengeDecodeError(f"cannot decode {header!r}"))
        token = header[len("NTLM "):]
        self.decoded.append(token)
        return Success(token)

    def encode_authenticate(self, challenge: Any, credentials: Credentials) -> Result[str, CodecError]:
        return Success(f"NTLM AUTH:{challenge}:{credentials.username}:{credentials.domain}")


class RecordingTransport:
    """
    Async transport replaying scripted answers.

    Each answer is a Response (returned) or an exception (raised).
    Every RequestDescription received is kept in ``requests``.
    """

    def __init__(self, *answers: Any) -> None:
        self.answers = list(answers)
        self.requests: List[RequestDescription] = []

    async def __call__(self, request: RequestDescription) -> Any:
        self.requests.append(request)
        if not self.answers:
            raise AssertionError(f"Unexpected request to {request.url}")
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    @property
    def calls(self) -> int:
        return len(self.requests)


class StatusError(Exception):
    """Transport-style error carrying a response, like httpx.HTTPStatusError."""

    def __init__(self, response: Any) -> None:
        super().__init__(f"HTTP {response.status}")
        self.response = response


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def make_response(status: int, headers: Optional[dict] = None, body: Any = None) -> Response:
    """Helper to create a response."""
    return Response(status=status, headers=headers or {}, body=body)


def challenge_response(header: str = CHALLENGE_HEADER) -> Response:
    """401 carrying an NTLM challenge."""
    return make_response(401, {"WWW-Authenticate": header})


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def base_options() -> RequestOptions:
    """Lenient GET with credentials and caller headers/body."""
    return RequestOptions(
        url="https://intranet.example.com/report",
        method="GET",
        headers={"X-Trace": "abc", "Accept": "application/json"},
        body="payload",
        username="jdoe",
        password="secret",
        domain="EXAMPLE",
        workstation="WS01",
        timeout=30,
        extra={"verify": False},
    )


@pytest.fixture
def client(fake_codec: FakeCodec) -> NTLMHttpClient:
    """Client with the fake codec and no default transport."""
    return NTLMHttpClient(codec=fake_codec, config=HandshakeConfig(max_redirects=3))


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
