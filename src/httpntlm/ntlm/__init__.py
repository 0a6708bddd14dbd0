"""
httpntlm NTLM Module

NTLM message codec (MS-NLMP) used by the handshake.

Components:
- messages: NEGOTIATE / CHALLENGE / AUTHENTICATE wire structures
- crypto: NTLMv2 computations over hashlib and cryptography primitives
- codec: NTLMCodec interface and the default NTLMv2Codec

WARNING: NTLM has inherent security weaknesses (pass-the-hash, relay,
no mutual authentication). Use it over TLS only.
"""

from httpntlm.ntlm.messages import (
    NegotiateFlags,
    NegotiateMessage,
    ChallengeMessage,
    AuthenticateMessage,
    AVPair,
    AVPairType,
)
from httpntlm.ntlm.codec import (
    ChallengeData,
    NTLMCodec,
    NTLMv2Codec,
    extract_token,
    to_header,
)

__all__ = [
    # Flags
    "NegotiateFlags",
    # Messages
    "NegotiateMessage",
    "ChallengeMessage",
    "AuthenticateMessage",
    # AV Pairs
    "AVPair",
    "AVPairType",
    # Codec
    "ChallengeData",
    "NTLMCodec",
    "NTLMv2Codec",
    "extract_token",
    "to_header",
]
