"""
Property-based tests for the handshake.

Uses Hypothesis to check the merge policy and handshake outcomes for
arbitrary caller input.
"""

import asyncio
import string

from hypothesis import given, settings
from hypothesis import strategies as st

from httpntlm.core.types import Headers, NTLMMode, RequestOptions
from httpntlm.handshake.machine import Handshake
from httpntlm.handshake.merge import (
    CLOSE,
    KEEP_ALIVE,
    build_authenticate_request,
    build_negotiate_request,
)

from tests.conftest import FakeCodec, RecordingTransport, challenge_response, make_response


# =============================================================================
# STRATEGIES
# =============================================================================


GENERATED = {"connection", "authorization"}

header_names = st.text(alphabet=string.ascii_lowercase + "-", min_size=1, max_size=20)
header_values = st.text(alphabet=string.ascii_letters + string.digits + " /;=.", max_size=40)
caller_headers = st.dictionaries(header_names, header_values, max_size=8)
bodies = st.one_of(st.none(), st.binary(max_size=64), st.text(max_size=64))
modes = st.sampled_from(list(NTLMMode))
# "garbage" is the token FakeCodec refuses to decode
tokens = st.text(
    alphabet=string.ascii_letters + string.digits + "+/", min_size=1, max_size=40
).filter(lambda t: t != "garbage")
final_statuses = st.integers(min_value=100, max_value=599).filter(lambda s: s != 401)
redirect_statuses = st.integers(min_value=300, max_value=399)


def _options(headers, body, mode) -> RequestOptions:
    return RequestOptions(
        url="https://intranet.example.com/",
        headers=headers,
        body=body,
        ntlm_mode=mode,
        username="jdoe",
        domain="EXAMPLE",
    )


# =============================================================================
# MERGE POLICY PROPERTIES
# =============================================================================


class TestMergeProperties:
    """Property tests for the option merge policy."""

    @given(headers=caller_headers, body=bodies, mode=modes, token=tokens)
    def test_generated_headers_always_win(self, headers, body, mode, token):
        """Generated Authorization and Connection are never overridden."""
        opts = _options(headers, body, mode)

        negotiate = build_negotiate_request(opts, f"NTLM {token}")
        authenticate = build_authenticate_request(opts, f"NTLM {token}")

        assert negotiate.headers["Authorization"] == f"NTLM {token}"
        assert negotiate.headers["Connection"] == KEEP_ALIVE
        assert authenticate.headers["Authorization"] == f"NTLM {token}"
        assert authenticate.headers["Connection"] == CLOSE

    @given(headers=caller_headers, body=bodies, token=tokens)
    def test_strict_negotiate_is_bare(self, headers, body, token):
        """Strict negotiate requests carry only the generated headers."""
        negotiate = build_negotiate_request(
            _options(headers, body, NTLMMode.STRICT), f"NTLM {token}"
        )

        assert set(h.lower() for h in negotiate.headers) == GENERATED
        assert negotiate.body is None

    @given(headers=caller_headers, body=bodies, mode=modes, token=tokens)
    def test_caller_content_preserved(self, headers, body, mode, token):
        """Caller headers and body reach the authenticate step in any mode."""
        opts = _options(headers, body, mode)

        authenticate = build_authenticate_request(opts, f"NTLM {token}")

        for name, value in headers.items():
            if name not in GENERATED:
                assert authenticate.headers[name] == value
        assert authenticate.body == body
        if mode is NTLMMode.LENIENT:
            negotiate = build_negotiate_request(opts, f"NTLM {token}")
            assert negotiate.body == body
            assert len(negotiate.headers) == len(authenticate.headers)

    @given(headers=caller_headers, body=bodies, mode=modes, token=tokens)
    def test_merge_is_deterministic(self, headers, body, mode, token):
        """Building a request twice gives equal descriptions."""
        opts = _options(headers, body, mode)

        assert build_negotiate_request(opts, token) == build_negotiate_request(opts, token)
        assert build_authenticate_request(opts, token) == build_authenticate_request(opts, token)


class TestHeaderProperties:
    """Property tests for Headers."""

    @given(headers=caller_headers)
    def test_lookup_ignores_case(self, headers):
        """Every name is found in any case."""
        h = Headers(headers)

        for name, value in headers.items():
            assert h[name.upper()] == value
            assert h[name.lower()] == value

    @given(first=caller_headers, second=caller_headers)
    def test_merged_later_wins(self, first, second):
        """Merging keeps every name and prefers the later source."""
        merged = Headers(first).merged(second)

        assert set(n.lower() for n in merged) == set(first) | set(second)
        for name, value in second.items():
            assert merged[name] == value


# =============================================================================
# HANDSHAKE PROPERTIES
# =============================================================================


class TestHandshakeProperties:
    """Property tests for handshake outcomes."""

    @settings(max_examples=50)
    @given(status=final_statuses, mode=modes)
    def test_non_401_is_a_single_call(self, status, mode):
        """Any first answer other than 401, without Location, ends the call unchanged."""
        response = make_response(status)
        assert response.header("location") is None
        transport = RecordingTransport(response)
        handshake = Handshake(
            options=_options({}, None, mode), transport=transport, codec=FakeCodec()
        )

        result = asyncio.run(handshake.run())

        assert result.unwrap() == response
        assert transport.calls == 1

    @settings(max_examples=50)
    @given(status=st.integers(min_value=100, max_value=599), mode=modes, token=tokens)
    def test_authenticate_answer_is_final(self, status, mode, token):
        """Whatever answers the authenticate step is the result."""
        final = make_response(status)
        transport = RecordingTransport(challenge_response(f"NTLM {token}"), final)
        handshake = Handshake(
            options=_options({}, None, mode), transport=transport, codec=FakeCodec()
        )

        result = asyncio.run(handshake.run())

        assert result.unwrap() == final
        assert transport.calls == 2
        assert transport.requests[1].headers["Authorization"] == f"NTLM AUTH:{token}:jdoe:EXAMPLE"

    @settings(max_examples=50)
    @given(status=redirect_statuses, mode=modes, token=tokens)
    def test_negotiate_redirect_never_final(self, status, mode, token):
        """A 3xx with Location on the first request is always followed."""
        redirect = make_response(status, {"Location": "/moved"})
        final = make_response(200)
        transport = RecordingTransport(redirect, challenge_response(f"NTLM {token}"), final)
        handshake = Handshake(
            options=_options({}, None, mode), transport=transport, codec=FakeCodec()
        )

        result = asyncio.run(handshake.run())

        assert result.unwrap() == final
        assert transport.requests[1].url == "https://intranet.example.com/moved"
