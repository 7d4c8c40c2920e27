# Core - Audit Logging
#
# Append-only structured audit log for every vault and API key operation.
# Events carry ids, timestamps and owner context, never key material:
# no plaintext keys, no envelopes, no server secret.

import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of events written to the audit log."""
    # Vault Events
    VAULT_DECRYPT_FAILED = "vault.decrypt.failed"

    # API Key Events
    API_KEY_SAVED = "api_key.saved"
    API_KEY_ACCESSED = "api_key.accessed"
    API_KEY_DELETED = "api_key.deleted"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: Normal activity (logged only)
    - ALERT: Something failed that may indicate tampering
    """
    INFO = "info"
    ALERT = "alert"


class AuditLogger:
    """
    Append-only audit logger.

    Features:
    - Structured JSON lines via structlog
    - Automatic timestamp and event ID
    - One file per day: audit_YYYY-MM-DD.log
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._file_handler = self._setup_file_handler()
        self.logger = structlog.get_logger("resume_vault.audit")

    def _setup_file_handler(self) -> logging.FileHandler:
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog formats

        audit_logger = logging.getLogger("resume_vault.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        return file_handler

    def close(self):
        """Detach and close the file handler."""
        logging.getLogger("resume_vault.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log an audit event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never key material!)
            user_context: Owner context (user_id, etc.)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        self.logger.info(
            "audit_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=user_context or self._get_default_user_context(),
        )

        return event_id

    def log_api_key_event(
        self,
        event_type: EventType,
        user_id: int,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log an API key store event for one owner."""
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"API key: {message}",
            details=details,
            user_context={"user_id": user_id},
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        import os
        import socket

        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from .config import ConfigError, get_settings
        try:
            log_dir = get_settings().audit_dir
        except ConfigError:
            # No secret configured (CLI tools, tests): fall back to the default dir
            log_dir = None
        _audit_logger = AuditLogger(log_dir=log_dir)
    return _audit_logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging audit events.

    Usage:
        log_security_event(
            EventType.SYSTEM_START,
            EventSeverity.INFO,
            "API server started",
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
