"""Tests for token encryption at rest."""

import base64

import pytest

from prsignal_core.crypto import NONCE_SIZE, TokenCipher
from prsignal_core.errors import CredentialError


def test_round_trip():
    cipher = TokenCipher.from_base64_key(TokenCipher.generate_key())
    sealed = cipher.encrypt("ghp_secret")
    assert b"ghp_secret" not in sealed
    assert cipher.decrypt(sealed) == "ghp_secret"


def test_fresh_nonce_per_encryption():
    cipher = TokenCipher(b"k" * 32)
    assert cipher.encrypt("same")[:NONCE_SIZE] != cipher.encrypt("same")[:NONCE_SIZE]


def test_wrong_key_fails():
    sealed = TokenCipher(b"a" * 32).encrypt("token")
    with pytest.raises(CredentialError, match="decryption failed"):
        TokenCipher(b"b" * 32).decrypt(sealed)


def test_tampered_ciphertext_fails():
    cipher = TokenCipher(b"k" * 32)
    sealed = bytearray(cipher.encrypt("token"))
    sealed[-1] ^= 0x01
    with pytest.raises(CredentialError):
        cipher.decrypt(bytes(sealed))


def test_truncated_payload_fails():
    with pytest.raises(CredentialError, match="too short"):
        TokenCipher(b"k" * 32).decrypt(b"\x00" * NONCE_SIZE)


def test_missing_key():
    with pytest.raises(CredentialError, match="PRSIGNAL_ENCRYPTION_KEY"):
        TokenCipher.from_base64_key(None)


def test_invalid_base64_key():
    with pytest.raises(CredentialError, match="base64"):
        TokenCipher.from_base64_key("not base64!!")


def test_wrong_key_length():
    with pytest.raises(CredentialError, match="32 bytes"):
        TokenCipher.from_base64_key(base64.b64encode(b"short").decode())
