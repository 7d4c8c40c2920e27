# Vault - API Key Store
#
# SQLite table of per-user LLM provider API keys.
# The key column only ever holds a CredentialCodec envelope; plaintext keys
# exist in memory for the duration of a single get_api_key() call.

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from .encryption import CredentialCodec, EnvelopeError, mask_key
from ..core.audit_log import EventSeverity, EventType, get_audit_logger

logger = logging.getLogger(__name__)

KEY_TYPES = ("openai", "anthropic")
DEFAULT_KEY_TYPE = "openai"


@dataclass
class StoredApiKey:
    """One row of user_api_keys, envelope still encrypted."""
    user_id: int
    encrypted_key: str
    key_type: str
    created_at: str
    updated_at: str


@dataclass
class ApiKeyInfo:
    """What the settings page is allowed to see about a stored key."""
    has_key: bool
    key_type: Optional[str] = None
    masked_key: Optional[str] = None

    def to_dict(self):
        return {
            "has_key": self.has_key,
            "key_type": self.key_type,
            "masked_key": self.masked_key,
        }


class ApiKeyStore:
    """
    Encrypted API key storage, one key per user.

    Security:
    - Keys encrypted with the server-secret codec before they touch SQLite
    - Reads for display return only a masked key
    - Audit logging for every save, access, delete and decrypt failure
    """

    def __init__(self, codec: CredentialCodec, db_path: Optional[Union[Path, str]] = None):
        """
        Args:
            codec: Codec holding the server secret
            db_path: SQLite file, or ":memory:". Default: data/api_keys.db
        """
        self.codec = codec
        if db_path is None:
            db_path = Path("data") / "api_keys.db"
        if str(db_path) != ":memory:":
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path

        self._lock = threading.Lock()
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()

        self.audit = get_audit_logger()

    def _create_schema(self):
        with self._lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS user_api_keys (
                    user_id INTEGER PRIMARY KEY,
                    encrypted_key TEXT NOT NULL,
                    key_type TEXT NOT NULL DEFAULT 'openai',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self.conn.commit()

    def close(self):
        with self._lock:
            self.conn.close()

    def save_api_key(self, user_id: int, api_key: str, key_type: str = DEFAULT_KEY_TYPE) -> None:
        """
        Encrypt and store a user's API key, replacing any existing one.

        Raises:
            ValueError: Empty key or unknown key type
        """
        if key_type not in KEY_TYPES:
            raise ValueError(f"Unsupported key type: {key_type}")
        if not api_key or not api_key.strip():
            raise ValueError("API key must not be empty")

        # Key derivation is the slow part; keep it outside the lock
        envelope = self.codec.encrypt(api_key)
        now = datetime.now(timezone.utc).isoformat()

        with self._lock:
            self.conn.execute("""
                INSERT INTO user_api_keys (user_id, encrypted_key, key_type, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    encrypted_key = excluded.encrypted_key,
                    key_type = excluded.key_type,
                    updated_at = excluded.updated_at
            """, (user_id, envelope, key_type, now, now))
            self.conn.commit()

        self.audit.log_api_key_event(
            EventType.API_KEY_SAVED,
            user_id,
            "saved",
            details={"key_type": key_type},
        )

    def get_api_key_record(self, user_id: int) -> Optional[StoredApiKey]:
        """Raw stored row, or None if the user has no key."""
        with self._lock:
            row = self.conn.execute(
                "SELECT user_id, encrypted_key, key_type, created_at, updated_at "
                "FROM user_api_keys WHERE user_id = ?",
                (user_id,)
            ).fetchone()

        if row is None:
            return None
        return StoredApiKey(
            user_id=row["user_id"],
            encrypted_key=row["encrypted_key"],
            key_type=row["key_type"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_api_key(self, user_id: int) -> Optional[Tuple[str, str]]:
        """
        Decrypt a user's API key.

        Returns:
            (api_key, key_type), or None if the user has no key

        Raises:
            EnvelopeError: Stored value is corrupt or was written under another secret
        """
        record = self.get_api_key_record(user_id)
        if record is None:
            return None

        try:
            api_key = self.codec.decrypt(record.encrypted_key)
        except EnvelopeError as e:
            # Error kind goes to the audit log only; callers see one message
            self.audit.log_api_key_event(
                EventType.VAULT_DECRYPT_FAILED,
                user_id,
                "stored key could not be decrypted",
                severity=EventSeverity.ALERT,
                details={"error_kind": type(e).__name__},
            )
            raise

        self.audit.log_api_key_event(EventType.API_KEY_ACCESSED, user_id, "accessed")
        return api_key, record.key_type

    def get_api_key_info(self, user_id: int) -> ApiKeyInfo:
        """Masked view of a user's key for display."""
        result = self.get_api_key(user_id)
        if result is None:
            return ApiKeyInfo(has_key=False)

        api_key, key_type = result
        return ApiKeyInfo(has_key=True, key_type=key_type, masked_key=mask_key(api_key))

    def delete_api_key(self, user_id: int) -> bool:
        """Delete a user's key. Returns True if one existed."""
        with self._lock:
            cursor = self.conn.execute(
                "DELETE FROM user_api_keys WHERE user_id = ?",
                (user_id,)
            )
            self.conn.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            self.audit.log_api_key_event(EventType.API_KEY_DELETED, user_id, "deleted")
        else:
            logger.debug("No API key to delete for user %s", user_id)
        return deleted
