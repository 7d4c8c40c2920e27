# Tests for ApiKeyStore
# Covers: save/get/delete by owner, upsert, masking, owner isolation,
#         input validation, corrupted rows, audit trail without key material

import base64
import sqlite3

import pytest

from resume_vault.vault import (
    ApiKeyInfo,
    ApiKeyStore,
    AuthenticationError,
    CredentialCodec,
    EnvelopeError,
    MalformedEnvelopeError,
)

OPENAI_KEY = "sk-test1234567890"
ANTHROPIC_KEY = "sk-ant-api03-abcdefghij"


def _raw_row(store, user_id):
    return store.conn.execute(
        "SELECT * FROM user_api_keys WHERE user_id = ?", (user_id,)
    ).fetchone()


class TestSaveAndGet:
    def test_save_then_get(self, store):
        store.save_api_key(1, OPENAI_KEY, "openai")

        assert store.get_api_key(1) == (OPENAI_KEY, "openai")

    def test_default_key_type(self, store):
        store.save_api_key(1, OPENAI_KEY)
        assert store.get_api_key(1)[1] == "openai"

    def test_stored_value_is_encrypted(self, store, fast_codec):
        store.save_api_key(1, OPENAI_KEY)

        row = _raw_row(store, 1)
        assert OPENAI_KEY not in row["encrypted_key"]
        assert fast_codec.decrypt(row["encrypted_key"]) == OPENAI_KEY

    def test_get_missing_user(self, store):
        assert store.get_api_key(42) is None
        assert store.get_api_key_record(42) is None

    def test_record_fields(self, store):
        store.save_api_key(7, ANTHROPIC_KEY, "anthropic")

        record = store.get_api_key_record(7)
        assert record.user_id == 7
        assert record.key_type == "anthropic"
        assert record.created_at == record.updated_at
        assert record.encrypted_key != ANTHROPIC_KEY

    def test_resave_replaces_key_and_type(self, store):
        store.save_api_key(1, OPENAI_KEY, "openai")
        first = store.get_api_key_record(1)

        store.save_api_key(1, ANTHROPIC_KEY, "anthropic")
        second = store.get_api_key_record(1)

        assert store.get_api_key(1) == (ANTHROPIC_KEY, "anthropic")
        assert second.created_at == first.created_at
        assert second.encrypted_key != first.encrypted_key
        count = store.conn.execute("SELECT COUNT(*) FROM user_api_keys").fetchone()[0]
        assert count == 1

    def test_owners_are_isolated(self, store):
        store.save_api_key(1, OPENAI_KEY, "openai")
        store.save_api_key(2, ANTHROPIC_KEY, "anthropic")

        assert store.get_api_key(1) == (OPENAI_KEY, "openai")
        assert store.get_api_key(2) == (ANTHROPIC_KEY, "anthropic")

        store.delete_api_key(1)
        assert store.get_api_key(1) is None
        assert store.get_api_key(2) == (ANTHROPIC_KEY, "anthropic")


class TestValidation:
    @pytest.mark.parametrize("api_key", ["", "   ", "\n"])
    def test_empty_key_rejected(self, store, api_key):
        with pytest.raises(ValueError):
            store.save_api_key(1, api_key)
        assert store.get_api_key_record(1) is None

    def test_unknown_key_type_rejected(self, store):
        with pytest.raises(ValueError, match="Unsupported key type"):
            store.save_api_key(1, OPENAI_KEY, "gemini")


class TestInfo:
    def test_masked_info(self, store):
        store.save_api_key(1, OPENAI_KEY, "openai")

        info = store.get_api_key_info(1)
        assert info.has_key is True
        assert info.key_type == "openai"
        assert "sk-t" in info.masked_key
        assert "..." in info.masked_key
        assert info.masked_key != OPENAI_KEY

    def test_no_key_info(self, store):
        assert store.get_api_key_info(1) == ApiKeyInfo(has_key=False)
        assert store.get_api_key_info(1).to_dict() == {
            "has_key": False,
            "key_type": None,
            "masked_key": None,
        }


class TestDelete:
    def test_delete_existing(self, store):
        store.save_api_key(1, OPENAI_KEY)

        assert store.delete_api_key(1) is True
        assert store.get_api_key_info(1).has_key is False

    def test_delete_missing(self, store):
        assert store.delete_api_key(1) is False


class TestCorruptedRows:
    def test_tampered_envelope_raises(self, store):
        store.save_api_key(1, OPENAI_KEY)
        data = bytearray(base64.b64decode(_raw_row(store, 1)["encrypted_key"]))
        data[-1] ^= 0xFF
        tampered = base64.b64encode(bytes(data)).decode()
        store.conn.execute(
            "UPDATE user_api_keys SET encrypted_key = ? WHERE user_id = 1", (tampered,)
        )

        with pytest.raises(EnvelopeError):
            store.get_api_key(1)

    def test_garbage_value_raises_malformed(self, store):
        store.save_api_key(1, OPENAI_KEY)
        store.conn.execute(
            "UPDATE user_api_keys SET encrypted_key = 'plaintext-key' WHERE user_id = 1"
        )

        with pytest.raises(MalformedEnvelopeError):
            store.get_api_key_info(1)

    def test_rotated_server_secret(self, tmp_path, fast_suite):
        db_path = tmp_path / "keys.db"
        old = ApiKeyStore(CredentialCodec("old-secret", fast_suite), db_path=db_path)
        old.save_api_key(1, OPENAI_KEY)
        old.close()

        new = ApiKeyStore(CredentialCodec("new-secret", fast_suite), db_path=db_path)
        try:
            with pytest.raises(AuthenticationError):
                new.get_api_key(1)
        finally:
            new.close()


class TestPersistence:
    def test_file_backed_store_survives_reopen(self, tmp_path, fast_codec):
        db_path = tmp_path / "nested" / "keys.db"
        first = ApiKeyStore(fast_codec, db_path=db_path)
        first.save_api_key(3, OPENAI_KEY, "openai")
        first.close()

        second = ApiKeyStore(fast_codec, db_path=db_path)
        try:
            assert second.get_api_key(3) == (OPENAI_KEY, "openai")
        finally:
            second.close()

        conn = sqlite3.connect(str(db_path))
        try:
            stored = conn.execute("SELECT encrypted_key FROM user_api_keys").fetchone()[0]
        finally:
            conn.close()
        assert OPENAI_KEY not in stored


class TestAuditTrail:
    def test_events_logged_without_key_material(self, store, audit_text):
        store.save_api_key(1, OPENAI_KEY, "openai")
        envelope = store.get_api_key_record(1).encrypted_key
        store.get_api_key_info(1)
        store.delete_api_key(1)

        text = audit_text()
        assert "api_key.saved" in text
        assert "api_key.accessed" in text
        assert "api_key.deleted" in text
        assert OPENAI_KEY not in text
        assert envelope not in text

    def test_decrypt_failure_logged_with_kind(self, store, audit_text):
        store.save_api_key(1, OPENAI_KEY)
        store.conn.execute(
            "UPDATE user_api_keys SET encrypted_key = 'AAAA' WHERE user_id = 1"
        )

        with pytest.raises(MalformedEnvelopeError):
            store.get_api_key(1)

        text = audit_text()
        assert "vault.decrypt.failed" in text
        assert "MalformedEnvelopeError" in text
