"""Credential resolver — decrypts provider access tokens stored at rest.

Tokens are sealed with AES-256-GCM. The stored payload is the 12-byte nonce
followed by the ciphertext (which already carries the GCM tag), so a single
opaque ``bytes`` column is enough to round-trip a token.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from prsignal_core.errors import CredentialError

NONCE_SIZE = 12
KEY_SIZE = 32


class TokenCipher:
    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise CredentialError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_base64_key(cls, key_base64: str | None) -> TokenCipher:
        if not key_base64:
            raise CredentialError("No encryption key configured. Set PRSIGNAL_ENCRYPTION_KEY.")
        try:
            key = base64.b64decode(key_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialError(f"Invalid base64 encryption key: {e}") from e
        return cls(key)

    @staticmethod
    def generate_key() -> str:
        """Return a fresh random key, base64-encoded for PRSIGNAL_ENCRYPTION_KEY."""
        return base64.b64encode(AESGCM.generate_key(bit_length=KEY_SIZE * 8)).decode("ascii")

    def encrypt(self, plaintext: str) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)

    def decrypt(self, encrypted: bytes) -> str:
        if encrypted is None or len(encrypted) <= NONCE_SIZE:
            raise CredentialError("Encrypted token is missing or too short")
        nonce, ciphertext = encrypted[:NONCE_SIZE], encrypted[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise CredentialError("Token decryption failed: wrong key or corrupted data") from None
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialError("Decrypted token is not valid UTF-8") from e
