"""
httpntlm NTLM Messages

Wire structures for the three NTLM tokens (MS-NLMP 2.2.1).

Only what an HTTP client needs is modelled: NEGOTIATE and AUTHENTICATE
are built, CHALLENGE is parsed. The inverse directions exist so tokens
can be inspected in tests and logs.
"""

from __future__ import annotations

import struct
from enum import Enum, IntFlag
from typing import List, Optional, Tuple

import attrs
from attrs import field


NTLM_SIGNATURE = b"NTLMSSP\x00"

NEGOTIATE_MESSAGE_TYPE = 1
CHALLENGE_MESSAGE_TYPE = 2
AUTHENTICATE_MESSAGE_TYPE = 3

OEM_ENCODING = "ascii"
UNICODE_ENCODING = "utf-16-le"


# =============================================================================
# NTLM FLAGS
# =============================================================================


class NegotiateFlags(IntFlag):
    """NTLM negotiate flags per MS-NLMP 2.2.2.5."""

    NEGOTIATE_UNICODE = 0x00000001
    NEGOTIATE_OEM = 0x00000002
    REQUEST_TARGET = 0x00000004
    NEGOTIATE_SIGN = 0x00000010
    NEGOTIATE_SEAL = 0x00000020
    NEGOTIATE_LM_KEY = 0x00000080
    NEGOTIATE_NTLM = 0x00000200
    NEGOTIATE_ANONYMOUS = 0x00000800
    NEGOTIATE_OEM_DOMAIN_SUPPLIED = 0x00001000
    NEGOTIATE_OEM_WORKSTATION_SUPPLIED = 0x00002000
    NEGOTIATE_ALWAYS_SIGN = 0x00008000
    TARGET_TYPE_DOMAIN = 0x00010000
    TARGET_TYPE_SERVER = 0x00020000
    NEGOTIATE_EXTENDED_SESSIONSECURITY = 0x00080000
    NEGOTIATE_IDENTIFY = 0x00100000
    REQUEST_NON_NT_SESSION_KEY = 0x00400000
    NEGOTIATE_TARGET_INFO = 0x00800000
    NEGOTIATE_VERSION = 0x02000000
    NEGOTIATE_128 = 0x20000000
    NEGOTIATE_KEY_EXCH = 0x40000000
    NEGOTIATE_56 = 0x80000000

    @classmethod
    def default_client_flags(cls) -> int:
        """Flags an HTTP client offers in its NEGOTIATE message."""
        return int(
            cls.NEGOTIATE_UNICODE
            | cls.NEGOTIATE_OEM
            | cls.REQUEST_TARGET
            | cls.NEGOTIATE_NTLM
            | cls.NEGOTIATE_ALWAYS_SIGN
            | cls.NEGOTIATE_EXTENDED_SESSIONSECURITY
            | cls.NEGOTIATE_TARGET_INFO
            | cls.NEGOTIATE_128
            | cls.NEGOTIATE_56
            | cls.NEGOTIATE_KEY_EXCH
        )


def string_encoding(flags: int) -> str:
    """Character set the negotiated flags call for."""
    return UNICODE_ENCODING if flags & NegotiateFlags.NEGOTIATE_UNICODE else OEM_ENCODING


# =============================================================================
# AV PAIR STRUCTURES
# =============================================================================


class AVPairType(Enum):
    """AV_PAIR types per MS-NLMP 2.2.2.1."""

    MsvAvEOL = 0x0000
    MsvAvNbComputerName = 0x0001
    MsvAvNbDomainName = 0x0002
    MsvAvDnsComputerName = 0x0003
    MsvAvDnsDomainName = 0x0004
    MsvAvDnsTreeName = 0x0005
    MsvAvFlags = 0x0006
    MsvAvTimestamp = 0x0007
    MsvAvSingleHost = 0x0008
    MsvAvTargetName = 0x0009
    MsvAvChannelBindings = 0x000A


@attrs.define(frozen=True, slots=True)
class AVPair:
    """AV_PAIR structure per MS-NLMP 2.2.2.1."""

    av_id: int
    av_value: bytes = b""

    def to_bytes(self) -> bytes:
        return struct.pack("<HH", self.av_id, len(self.av_value)) + self.av_value


def parse_av_pairs(data: bytes) -> List[AVPair]:
    """
    Parse the AV_PAIR list of a challenge's target info.

    Unknown pair ids are kept as raw ints; parsing stops at MsvAvEOL.

    Raises:
        ValueError: If a pair is truncated
    """
    pairs = []
    offset = 0

    while offset + 4 <= len(data):
        av_id, av_len = struct.unpack_from("<HH", data, offset)
        offset += 4
        if offset + av_len > len(data):
            raise ValueError(f"AV_PAIR value truncated: need {av_len}, have {len(data) - offset}")
        if av_id == AVPairType.MsvAvEOL.value:
            break
        pairs.append(AVPair(av_id=av_id, av_value=data[offset : offset + av_len]))
        offset += av_len

    return pairs


def build_av_pairs(pairs: List[AVPair]) -> bytes:
    """Serialize AV_PAIRs, appending the MsvAvEOL terminator."""
    return b"".join(p.to_bytes() for p in pairs) + AVPair(AVPairType.MsvAvEOL.value).to_bytes()


def find_av_pair(target_info: bytes, av_type: AVPairType) -> Optional[bytes]:
    """Return the value of the first pair of ``av_type``, if any."""
    for pair in parse_av_pairs(target_info):
        if pair.av_id == av_type.value:
            return pair.av_value
    return None


# =============================================================================
# FIELD HELPERS
# =============================================================================


def _field_header(length: int, offset: int) -> bytes:
    # Len, MaxLen, BufferOffset
    return struct.pack("<HHI", length, length, offset)


def _read_field(data: bytes, position: int) -> bytes:
    length, _, offset = struct.unpack_from("<HHI", data, position)
    if offset + length > len(data):
        raise ValueError(f"Field at {position} points past end of message")
    return data[offset : offset + length]


def _check_header(data: bytes, minimum: int, message_type: int) -> None:
    if len(data) < minimum:
        raise ValueError(f"Message too short: {len(data)} bytes")
    if data[:8] != NTLM_SIGNATURE:
        raise ValueError("Invalid NTLM signature")
    (found,) = struct.unpack_from("<I", data, 8)
    if found != message_type:
        raise ValueError(f"Expected type {message_type}, got {found}")


def _pack_payload(header_size: int, fields: List[bytes]) -> Tuple[bytes, bytes]:
    """Lay ``fields`` out after a header; return (field headers, payload)."""
    headers = b""
    offset = header_size
    for value in fields:
        headers += _field_header(len(value), offset)
        offset += len(value)
    return headers, b"".join(fields)


# =============================================================================
# NTLM MESSAGES
# =============================================================================


@attrs.define(frozen=True, slots=True)
class NegotiateMessage:
    """NTLM NEGOTIATE_MESSAGE (Type 1). Client -> Server."""

    negotiate_flags: int = field(factory=NegotiateFlags.default_client_flags)
    domain_name: str = ""
    workstation_name: str = ""

    HEADER_SIZE = 32

    def to_bytes(self) -> bytes:
        """Serialize to wire format. Domain and workstation are OEM strings."""
        flags = self.negotiate_flags
        if self.domain_name:
            flags |= NegotiateFlags.NEGOTIATE_OEM_DOMAIN_SUPPLIED
        if self.workstation_name:
            flags |= NegotiateFlags.NEGOTIATE_OEM_WORKSTATION_SUPPLIED

        field_headers, payload = _pack_payload(
            self.HEADER_SIZE,
            [
                self.domain_name.encode(OEM_ENCODING),
                self.workstation_name.encode(OEM_ENCODING),
            ],
        )
        return (
            NTLM_SIGNATURE
            + struct.pack("<II", NEGOTIATE_MESSAGE_TYPE, int(flags))
            + field_headers
            + payload
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "NegotiateMessage":
        """Parse from wire format."""
        _check_header(data, cls.HEADER_SIZE, NEGOTIATE_MESSAGE_TYPE)
        (flags,) = struct.unpack_from("<I", data, 12)
        return cls(
            negotiate_flags=flags,
            domain_name=_read_field(data, 16).decode(OEM_ENCODING),
            workstation_name=_read_field(data, 24).decode(OEM_ENCODING),
        )


@attrs.define(frozen=True, slots=True)
class ChallengeMessage:
    """NTLM CHALLENGE_MESSAGE (Type 2). Server -> Client."""

    negotiate_flags: int = 0
    server_challenge: bytes = field(factory=lambda: b"\x00" * 8)
    target_name: str = ""
    target_info: bytes = b""

    MINIMUM_SIZE = 32
    HEADER_SIZE = 48

    def to_bytes(self) -> bytes:
        """Serialize to wire format (used to fabricate server answers)."""
        field_headers, payload = _pack_payload(
            self.HEADER_SIZE,
            [
                self.target_name.encode(string_encoding(self.negotiate_flags)),
                self.target_info,
            ],
        )
        return (
            NTLM_SIGNATURE
            + struct.pack("<I", CHALLENGE_MESSAGE_TYPE)
            + field_headers[:8]
            + struct.pack("<I", self.negotiate_flags)
            + self.server_challenge[:8].ljust(8, b"\x00")
            + b"\x00" * 8  # Reserved
            + field_headers[8:]
            + payload
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "ChallengeMessage":
        """
        Parse from wire format.

        Raises:
            ValueError: If the token is not a well-formed CHALLENGE_MESSAGE
        """
        _check_header(data, cls.MINIMUM_SIZE, CHALLENGE_MESSAGE_TYPE)
        (flags,) = struct.unpack_from("<I", data, 20)
        target_name = _read_field(data, 12).decode(string_encoding(flags))
        target_info = _read_field(data, 40) if len(data) >= cls.HEADER_SIZE else b""

        return cls(
            negotiate_flags=flags,
            server_challenge=data[24:32],
            target_name=target_name,
            target_info=target_info,
        )


@attrs.define(frozen=True, slots=True)
class AuthenticateMessage:
    """NTLM AUTHENTICATE_MESSAGE (Type 3). Client -> Server."""

    negotiate_flags: int
    lm_response: bytes = b""
    nt_response: bytes = b""
    domain_name: str = ""
    user_name: str = ""
    workstation_name: str = ""
    encrypted_session_key: bytes = b""

    HEADER_SIZE = 64

    def to_bytes(self) -> bytes:
        """Serialize to wire format."""
        encoding = string_encoding(self.negotiate_flags)
        field_headers, payload = _pack_payload(
            self.HEADER_SIZE,
            [
                self.lm_response,
                self.nt_response,
                self.domain_name.encode(encoding),
                self.user_name.encode(encoding),
                self.workstation_name.encode(encoding),
                self.encrypted_session_key,
            ],
        )
        return (
            NTLM_SIGNATURE
            + struct.pack("<I", AUTHENTICATE_MESSAGE_TYPE)
            + field_headers
            + struct.pack("<I", self.negotiate_flags)
            + payload
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "AuthenticateMessage":
        """Parse from wire format."""
        _check_header(data, cls.HEADER_SIZE, AUTHENTICATE_MESSAGE_TYPE)
        (flags,) = struct.unpack_from("<I", data, 60)
        encoding = string_encoding(flags)
        return cls(
            negotiate_flags=flags,
            lm_response=_read_field(data, 12),
            nt_response=_read_field(data, 20),
            domain_name=_read_field(data, 28).decode(encoding),
            user_name=_read_field(data, 36).decode(encoding),
            workstation_name=_read_field(data, 44).decode(encoding),
            encrypted_session_key=_read_field(data, 52),
        )
