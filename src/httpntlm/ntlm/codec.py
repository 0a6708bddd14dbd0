"""
httpntlm NTLM Codec

The three message operations the handshake needs, expressed as HTTP
header values (``NTLM <base64>``):

- encode_negotiate: NEGOTIATE_MESSAGE for the first request
- decode_challenge: CHALLENGE_MESSAGE from the WWW-Authenticate header
- encode_authenticate: AUTHENTICATE_MESSAGE answering the challenge

The handshake treats codecs as black boxes and never looks inside the
ChallengeData they produce, so any NTLMCodec implementation can be
plugged into NTLMHttpClient.
"""

from __future__ import annotations

import base64
import binascii
import re
import secrets
from abc import ABC, abstractmethod
from typing import Any, Callable

import attrs
import structlog
from returns.result import Failure, Result, Success

from httpntlm.core.exceptions import ChallengeDecodeError, CodecError
from httpntlm.core.types import Credentials
from httpntlm.ntlm.crypto import (
    compute_lmv2_response,
    compute_nt_hash,
    compute_ntlmv2_hash,
    compute_ntlmv2_response,
    encrypt_rc4,
    filetime_now,
)
from httpntlm.ntlm.messages import (
    AVPairType,
    AuthenticateMessage,
    ChallengeMessage,
    NegotiateFlags,
    NegotiateMessage,
    find_av_pair,
)

logger = structlog.get_logger()


AUTH_SCHEME = "NTLM"

# "NTLM <token>" anywhere in a possibly multi-scheme header
_CHALLENGE_PATTERN = re.compile(r"(?:^|[\s,])NTLM\s+([A-Za-z0-9+/]+=*)", re.IGNORECASE)


def to_header(token: bytes) -> str:
    """Wrap a raw NTLM token as an Authorization header value."""
    return f"{AUTH_SCHEME} {base64.b64encode(token).decode('ascii')}"


def extract_token(header: str) -> bytes:
    """
    Pull the raw NTLM token out of a WWW-Authenticate header value.

    Raises:
        ChallengeDecodeError: If no NTLM token is present or it is not base64
    """
    match = _CHALLENGE_PATTERN.search(header)
    if match is None:
        raise ChallengeDecodeError("Couldn't find NTLM in the WWW-Authenticate header")
    try:
        return base64.b64decode(match.group(1), validate=True)
    except binascii.Error as e:
        raise ChallengeDecodeError(f"Invalid base64 in NTLM challenge: {e}") from e


@attrs.define(frozen=True, slots=True)
class ChallengeData:
    """
    A decoded server challenge.

    Opaque to the handshake; only the codec that produced it reads it.
    """

    server_challenge: bytes
    negotiate_flags: int
    target_name: str = ""
    target_info: bytes = b""
    raw: bytes = attrs.field(default=b"", repr=False)


class NTLMCodec(ABC):
    """Message codec consumed by the handshake state machine."""

    @abstractmethod
    def encode_negotiate(self, credentials: Credentials) -> str:
        """
        Return the Authorization header value for the first request.

        Raises:
            CodecError: If the credentials cannot be encoded
        """
        ...

    @abstractmethod
    def decode_challenge(self, header: str) -> Result[Any, ChallengeDecodeError]:
        """Decode the WWW-Authenticate header of the 401 answer."""
        ...

    @abstractmethod
    def encode_authenticate(
        self, challenge: Any, credentials: Credentials
    ) -> Result[str, CodecError]:
        """Return the Authorization header value answering ``challenge``."""
        ...


def _random_client_challenge() -> bytes:
    return secrets.token_bytes(8)


def _random_session_key() -> bytes:
    return secrets.token_bytes(16)


@attrs.define
class NTLMv2Codec(NTLMCodec):
    """
    Default codec producing NTLMv2 / LMv2 responses.

    The random and clock sources are injectable so tokens can be made
    deterministic.

    Example:
        codec = NTLMv2Codec()
        header = codec.encode_negotiate(Credentials(username="jdoe", password="pw"))
        challenge = codec.decode_challenge(www_authenticate).unwrap()
        answer = codec.encode_authenticate(challenge, credentials).unwrap()
    """

    client_flags: int = attrs.Factory(NegotiateFlags.default_client_flags)
    client_challenge_factory: Callable[[], bytes] = _random_client_challenge
    session_key_factory: Callable[[], bytes] = _random_session_key
    clock: Callable[[], bytes] = filetime_now
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def encode_negotiate(self, credentials: Credentials) -> str:
        msg = NegotiateMessage(
            negotiate_flags=self.client_flags,
            domain_name=credentials.domain,
            workstation_name=credentials.workstation,
        )
        try:
            token = msg.to_bytes()
        except UnicodeEncodeError as e:
            raise CodecError(f"Domain and workstation must be OEM (ASCII) strings: {e}") from e

        self._logger.debug("created_negotiate_message", flags=hex(self.client_flags))
        return to_header(token)

    def decode_challenge(self, header: str) -> Result[ChallengeData, ChallengeDecodeError]:
        try:
            raw = extract_token(header)
        except ChallengeDecodeError as e:
            return Failure(e)

        try:
            msg = ChallengeMessage.from_bytes(raw)
            # Validate target info eagerly so a bad challenge fails here
            find_av_pair(msg.target_info, AVPairType.MsvAvTimestamp)
        except (ValueError, UnicodeDecodeError) as e:
            return Failure(ChallengeDecodeError(f"Failed to parse challenge: {e}"))

        self._logger.debug(
            "challenge_decoded",
            target_name=msg.target_name,
            flags=hex(msg.negotiate_flags),
        )
        return Success(
            ChallengeData(
                server_challenge=msg.server_challenge,
                negotiate_flags=msg.negotiate_flags,
                target_name=msg.target_name,
                target_info=msg.target_info,
                raw=raw,
            )
        )

    def encode_authenticate(
        self, challenge: ChallengeData, credentials: Credentials
    ) -> Result[str, CodecError]:
        try:
            nt_hash = credentials.nt_hash or compute_nt_hash(credentials.password)
        except CodecError as e:
            return Failure(e)

        flags = challenge.negotiate_flags & self.client_flags
        if not flags & (NegotiateFlags.NEGOTIATE_UNICODE | NegotiateFlags.NEGOTIATE_OEM):
            flags |= NegotiateFlags.NEGOTIATE_OEM

        ntlmv2_hash = compute_ntlmv2_hash(nt_hash, credentials.username, credentials.domain)
        client_challenge = self.client_challenge_factory()
        server_timestamp = find_av_pair(challenge.target_info, AVPairType.MsvAvTimestamp)

        nt_response, session_base_key = compute_ntlmv2_response(
            ntlmv2_hash=ntlmv2_hash,
            server_challenge=challenge.server_challenge,
            client_challenge=client_challenge,
            timestamp=server_timestamp or self.clock(),
            target_info=challenge.target_info,
        )

        # MS-NLMP 3.1.5.1.2: no LMv2 response when the server sent a timestamp
        if server_timestamp is not None:
            lm_response = b"\x00" * 24
        else:
            lm_response = compute_lmv2_response(
                ntlmv2_hash, challenge.server_challenge, client_challenge
            )

        encrypted_session_key = b""
        if flags & NegotiateFlags.NEGOTIATE_KEY_EXCH:
            encrypted_session_key = encrypt_rc4(session_base_key, self.session_key_factory())

        msg = AuthenticateMessage(
            negotiate_flags=int(flags),
            lm_response=lm_response,
            nt_response=nt_response,
            domain_name=credentials.domain,
            user_name=credentials.username,
            workstation_name=credentials.workstation,
            encrypted_session_key=encrypted_session_key,
        )

        try:
            token = msg.to_bytes()
        except UnicodeEncodeError as e:
            return Failure(CodecError(f"Credentials not representable in OEM charset: {e}"))

        self._logger.debug(
            "created_authenticate_message",
            username=credentials.username,
            domain=credentials.domain,
            key_exchange=bool(encrypted_session_key),
        )
        return Success(to_header(token))
