# Vault Module - Encrypted API Key Storage
#
# Per-user LLM API keys encrypted at rest with AES-256-GCM
# Server secret + per-envelope salt via PBKDF2-HMAC-SHA512

from .encryption import (
    AuthenticationError,
    CipherSuite,
    CredentialCodec,
    DEFAULT_SUITE,
    EnvelopeError,
    MalformedEnvelopeError,
    mask_key,
)
from .api_key_store import ApiKeyInfo, ApiKeyStore, KEY_TYPES, StoredApiKey

__all__ = [
    "AuthenticationError",
    "CipherSuite",
    "CredentialCodec",
    "DEFAULT_SUITE",
    "EnvelopeError",
    "MalformedEnvelopeError",
    "mask_key",
    "ApiKeyInfo",
    "ApiKeyStore",
    "KEY_TYPES",
    "StoredApiKey",
]
