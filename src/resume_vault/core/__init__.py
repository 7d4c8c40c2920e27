# Core Module - Shared Utilities
#
# - Audit logging
# - Configuration

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
)
from .config import (
    ConfigError,
    Settings,
    get_settings,
    load_settings,
    reset_settings,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_security_event",
    # Configuration
    "ConfigError",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
