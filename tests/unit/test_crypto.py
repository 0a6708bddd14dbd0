"""
Unit tests for httpntlm.ntlm.crypto.

Tests NTLMv2 computations against the MS-NLMP 4.2.4 sample values.
"""

import hashlib

import pytest

from httpntlm.core.exceptions import CodecError
from httpntlm.ntlm import crypto
from httpntlm.ntlm.crypto import (
    compute_lmv2_response,
    compute_nt_hash,
    compute_ntlmv2_hash,
    compute_ntlmv2_response,
    encrypt_rc4,
    filetime_now,
    hmac_md5,
)
from httpntlm.ntlm.messages import AVPair, AVPairType, build_av_pairs


def _md4_available() -> bool:
    try:
        hashlib.new("md4", b"", usedforsecurity=False)
        return True
    except ValueError:
        return False


requires_md4 = pytest.mark.skipif(not _md4_available(), reason="MD4 not available")


# MS-NLMP 4.2.1 common values
USER = "User"
DOMAIN = "Domain"
PASSWORD = "Password"
SERVER_CHALLENGE = bytes.fromhex("0123456789abcdef")
CLIENT_CHALLENGE = b"\xaa" * 8
TIMESTAMP = b"\x00" * 8

NT_HASH = bytes.fromhex("a4f49c406510bdcab6824ee7c30fd852")
NTOWFV2 = bytes.fromhex("0c868a403bfd7a93a3001ef22ef02e3f")
NT_PROOF_STR = bytes.fromhex("68cd0ab851e51c96aabc927bebef6a1c")
SESSION_BASE_KEY = bytes.fromhex("8de40ccadbc14a82f15cb0ad0de95ca3")
LMV2_RESPONSE = bytes.fromhex("86c35097ac9cec102554764a57cccc19aaaaaaaaaaaaaaaa")


@pytest.fixture
def target_info() -> bytes:
    return build_av_pairs(
        [
            AVPair(AVPairType.MsvAvNbDomainName.value, DOMAIN.encode("utf-16-le")),
            AVPair(AVPairType.MsvAvNbComputerName.value, "Server".encode("utf-16-le")),
        ]
    )


class TestNTHash:
    """Tests for NT hash computation."""

    @requires_md4
    def test_sample_password(self):
        """Test NT hash of the sample password."""
        assert compute_nt_hash(PASSWORD) == NT_HASH

    @requires_md4
    def test_empty_password(self):
        """Test NT hash of the empty password."""
        assert compute_nt_hash("").hex() == "31d6cfe0d16ae931b73c59d7e0c089c0"

    def test_md4_unavailable(self, monkeypatch):
        """Test a missing MD4 provider becomes a CodecError."""

        def no_md4(name, *args, **kwargs):
            raise ValueError(f"unsupported hash type {name}")

        monkeypatch.setattr(crypto.hashlib, "new", no_md4)

        with pytest.raises(CodecError, match="nt_hash"):
            compute_nt_hash(PASSWORD)


class TestNTLMv2:
    """Tests for NTLMv2 computations."""

    def test_ntowfv2(self):
        """Test NTOWFv2 uppercases the user but not the domain."""
        assert compute_ntlmv2_hash(NT_HASH, USER, DOMAIN) == NTOWFV2
        assert compute_ntlmv2_hash(NT_HASH, "user", DOMAIN) == NTOWFV2
        assert compute_ntlmv2_hash(NT_HASH, USER, "DOMAIN") != NTOWFV2

    def test_ntlmv2_response(self, target_info):
        """Test NTProofStr, blob layout and session base key."""
        response, session_base_key = compute_ntlmv2_response(
            NTOWFV2, SERVER_CHALLENGE, CLIENT_CHALLENGE, TIMESTAMP, target_info
        )

        assert response[:16] == NT_PROOF_STR
        assert session_base_key == SESSION_BASE_KEY

        blob = response[16:]
        assert blob[:8] == b"\x01\x01" + b"\x00" * 6
        assert blob[8:16] == TIMESTAMP
        assert blob[16:24] == CLIENT_CHALLENGE
        assert blob[28:28 + len(target_info)] == target_info
        assert blob.endswith(b"\x00" * 4)

    def test_lmv2_response(self):
        """Test LMv2 response."""
        assert compute_lmv2_response(NTOWFV2, SERVER_CHALLENGE, CLIENT_CHALLENGE) == LMV2_RESPONSE


class TestPrimitives:
    """Tests for primitive helpers."""

    def test_hmac_md5_rfc2202(self):
        """Test HMAC-MD5 against RFC 2202 test case 2."""
        digest = hmac_md5(b"Jefe", b"what do ya want for nothing?")
        assert digest.hex() == "750c783e6ab0b503eaa86e310a5db738"

    def test_rc4_is_symmetric(self):
        """Test RC4 decrypts what it encrypted."""
        key = SESSION_BASE_KEY
        plaintext = b"\x55" * 16

        ciphertext = encrypt_rc4(key, plaintext)

        assert ciphertext != plaintext
        assert encrypt_rc4(key, ciphertext) == plaintext

    def test_filetime_now(self):
        """Test FILETIME is 8 bytes and after 2020-01-01."""
        value = filetime_now()

        assert len(value) == 8
        assert int.from_bytes(value, "little") > 132223104000000000
