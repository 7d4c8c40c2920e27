# Vault - Credential Codec
#
# Server secret + per-call salt -> encryption key (PBKDF2-HMAC-SHA512)
# API key encryption (AES-256-GCM)
# Envelope layout: salt || iv || tag || ciphertext, base64 encoded

import base64
import binascii
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

UNPROCESSABLE_MESSAGE = "cannot process this stored value"

MIN_KDF_ITERATIONS = 100_000

_KDF_HASHES = {
    "sha512": hashes.SHA512,
}


class EnvelopeError(Exception):
    """
    A stored envelope could not be turned back into plaintext.

    Subclasses tell the caller what went wrong internally, but every
    instance renders the same message so that nothing outside the process
    can learn why decryption failed. Never retry: the same envelope will
    fail the same way every time.
    """

    def __init__(self):
        super().__init__(UNPROCESSABLE_MESSAGE)


class MalformedEnvelopeError(EnvelopeError):
    """Envelope is not valid base64, or too short to hold the header."""


class AuthenticationError(EnvelopeError):
    """GCM tag did not verify (tampered envelope or wrong server secret)."""


@dataclass(frozen=True)
class CipherSuite:
    """
    Parameters for one envelope format.

    The envelope carries no version byte, so every field here except
    kdf_iterations changes the byte layout. Old envelopes stay decodable
    only as long as the suite they were written with is still configured.
    """

    kdf_iterations: int = MIN_KDF_ITERATIONS
    kdf_hash: str = "sha512"
    cipher: str = "aes-256-gcm"
    key_length: int = 32   # AES-256
    iv_length: int = 16
    salt_length: int = 64
    tag_length: int = 16   # GCM full-length tag

    def __post_init__(self):
        if self.cipher != "aes-256-gcm":
            raise ValueError(f"Unsupported cipher: {self.cipher}")
        if self.kdf_hash not in _KDF_HASHES:
            raise ValueError(f"Unsupported KDF hash: {self.kdf_hash}")
        if self.key_length != 32:
            raise ValueError("aes-256-gcm requires a 32-byte key")
        if self.tag_length != 16:
            raise ValueError("aes-256-gcm produces a 16-byte tag")
        if not 8 <= self.iv_length <= 128:
            raise ValueError("IV must be between 8 and 128 bytes")
        if self.salt_length < 16:
            raise ValueError("Salt must be at least 16 bytes")
        if self.kdf_iterations < 1:
            raise ValueError("kdf_iterations must be positive")

    @property
    def header_length(self) -> int:
        return self.salt_length + self.iv_length + self.tag_length


DEFAULT_SUITE = CipherSuite()


class CredentialCodec:
    """
    Encrypts secrets (user API keys) for storage and decrypts them back.

    Flow:
    1. Fresh random salt and IV for every encrypt() call
    2. PBKDF2 derives a 256-bit key from the server secret + salt
    3. AES-256-GCM encrypts the utf-8 plaintext and yields a 16-byte tag
    4. salt || iv || tag || ciphertext is base64-encoded for the database

    The codec holds no mutable state. Each call derives its own key and
    builds its own cipher, so one instance can be shared across threads.
    Key derivation is deliberately slow (CPU-bound, not cancelable);
    async callers should run it in a worker thread.
    """

    def __init__(self, secret: str, suite: CipherSuite = DEFAULT_SUITE):
        if not secret:
            raise ValueError("Server secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.suite = suite

    def __repr__(self) -> str:
        return f"CredentialCodec(suite={self.suite!r})"

    def derive_key(self, salt: bytes) -> bytes:
        """
        Derive the AES key for one envelope.

        Args:
            salt: Random salt stored at the front of the envelope

        Returns:
            key_length-byte encryption key
        """
        kdf = PBKDF2HMAC(
            algorithm=_KDF_HASHES[self.suite.kdf_hash](),
            length=self.suite.key_length,
            salt=salt,
            iterations=self.suite.kdf_iterations,
            backend=default_backend()
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret string into a storable envelope.

        Identical plaintexts never produce identical envelopes.

        Args:
            plaintext: Secret to encrypt (empty string allowed)

        Returns:
            base64 envelope, 96 + len(plaintext bytes) bytes before encoding
        """
        suite = self.suite
        salt = os.urandom(suite.salt_length)
        iv = os.urandom(suite.iv_length)
        key = self.derive_key(salt)

        # AESGCM appends the tag to the ciphertext; the envelope stores it first
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-suite.tag_length], sealed[-suite.tag_length:]

        envelope = salt + iv + tag + ciphertext
        return base64.b64encode(envelope).decode("ascii")

    def decrypt(self, envelope: str) -> str:
        """
        Decrypt an envelope produced by encrypt().

        Args:
            envelope: base64 string as stored in the database

        Returns:
            Original plaintext

        Raises:
            MalformedEnvelopeError: Not base64, or shorter than the header
            AuthenticationError: Tag mismatch (tampering or wrong secret)
        """
        suite = self.suite
        data = self._decode(envelope)
        if len(data) < suite.header_length:
            raise MalformedEnvelopeError()

        iv_start = suite.salt_length
        tag_start = iv_start + suite.iv_length
        body_start = tag_start + suite.tag_length

        salt = data[:iv_start]
        iv = data[iv_start:tag_start]
        tag = data[tag_start:body_start]
        ciphertext = data[body_start:]

        key = self.derive_key(salt)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag:
            raise AuthenticationError() from None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedEnvelopeError() from None

    @staticmethod
    def _decode(envelope: str) -> bytes:
        try:
            raw = envelope.encode("ascii")
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, UnicodeEncodeError, AttributeError):
            raise MalformedEnvelopeError() from None
        # b64decode ignores stray padding bits; only the canonical encoding is accepted
        if base64.b64encode(data) != raw:
            raise MalformedEnvelopeError()
        return data


def mask_key(api_key: str) -> str:
    """Masked form for display, e.g. 'sk-t...7890'. Short keys are fully hidden."""
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"
