"""
httpntlm NTLM Cryptographic Operations

NTLMv2 computations (MS-NLMP 3.3.2) over library primitives.
Uses established libraries - NO custom cryptographic implementations.

WARNING: MD4 and RC4 are broken algorithms. They are used here only
because NTLM requires them.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Tuple

from cryptography.hazmat.decrepit.ciphers.algorithms import ARC4
from cryptography.hazmat.primitives.ciphers import Cipher

from httpntlm.core.exceptions import CodecError


# Seconds between 1601-01-01 (FILETIME epoch) and 1970-01-01
_FILETIME_EPOCH_OFFSET = 11644473600


def md4_hash(data: bytes) -> bytes:
    """
    Compute MD4 hash.

    Raises:
        CodecError: If the interpreter's OpenSSL does not provide MD4
    """
    try:
        return hashlib.new("md4", data, usedforsecurity=False).digest()
    except ValueError as e:
        # MD4 is disabled in OpenSSL 3 default providers and in FIPS mode
        raise CodecError("MD4 not available - pass a precomputed nt_hash instead") from e


def hmac_md5(key: bytes, data: bytes) -> bytes:
    """Compute HMAC-MD5."""
    return hmac.new(key, data, hashlib.md5).digest()


def encrypt_rc4(key: bytes, plaintext: bytes) -> bytes:
    """Encrypt using RC4 (session key exchange)."""
    encryptor = Cipher(ARC4(key), mode=None).encryptor()
    return encryptor.update(plaintext) + encryptor.finalize()


def compute_nt_hash(password: str) -> bytes:
    """
    Compute NT hash from password.

    NT Hash = MD4(UTF-16LE(password))
    """
    return md4_hash(password.encode("utf-16-le"))


def compute_ntlmv2_hash(nt_hash: bytes, username: str, domain: str) -> bytes:
    """NTOWFv2 = HMAC-MD5(NT Hash, UPPERCASE(Username) + Domain)"""
    return hmac_md5(nt_hash, (username.upper() + domain).encode("utf-16-le"))


def compute_ntlmv2_response(
    ntlmv2_hash: bytes,
    server_challenge: bytes,
    client_challenge: bytes,
    timestamp: bytes,
    target_info: bytes,
) -> Tuple[bytes, bytes]:
    """
    Compute NTLMv2 response.

    Args:
        ntlmv2_hash: NTOWFv2 of the user
        server_challenge: 8-byte server challenge
        client_challenge: 8-byte client challenge
        timestamp: 8-byte Windows FILETIME
        target_info: AV_PAIR structures from server

    Returns:
        Tuple of (NTLMv2 response, session base key)
    """
    client_blob = (
        b"\x01\x01"  # Resp type, Hi resp type
        + b"\x00" * 6  # Reserved1, Reserved2
        + timestamp
        + client_challenge
        + b"\x00" * 4  # Reserved3
        + target_info
        + b"\x00" * 4  # Reserved4
    )

    nt_proof_str = hmac_md5(ntlmv2_hash, server_challenge + client_blob)
    session_base_key = hmac_md5(ntlmv2_hash, nt_proof_str)

    return nt_proof_str + client_blob, session_base_key


def compute_lmv2_response(
    ntlmv2_hash: bytes,
    server_challenge: bytes,
    client_challenge: bytes,
) -> bytes:
    """LMv2 = HMAC-MD5(NTOWFv2, ServerChallenge + ClientChallenge) + ClientChallenge"""
    return hmac_md5(ntlmv2_hash, server_challenge + client_challenge) + client_challenge


def filetime_now() -> bytes:
    """Current time as an 8-byte little-endian Windows FILETIME."""
    ticks = (int(time.time()) + _FILETIME_EPOCH_OFFSET) * 10_000_000
    return ticks.to_bytes(8, "little")
