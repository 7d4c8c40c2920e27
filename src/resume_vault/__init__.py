# Resume Vault - Main Package
#
# Encrypted storage of per-user LLM API keys for the resume optimizer:
# credential codec, API key store, REST endpoints.

__version__ = "0.1.0"
__author__ = "Resume Vault Team"
__description__ = "Encrypted per-user API key storage for resume optimization"

from .core import (
    EventType,
    EventSeverity,
    get_audit_logger,
)
from .vault import CredentialCodec, EnvelopeError

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "CredentialCodec",
    "EnvelopeError",
]
