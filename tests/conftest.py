"""
Shared pytest fixtures for the Resume Vault test suite.

Autouse fixtures below isolate tests from the live application data:
  - Audit logger   -> temp directory (prevents test events in ./audit_logs)
  - Environment    -> RESUME_VAULT_* variables cleared, settings cache reset
  - API key store  -> route-level singleton reset
"""

import logging
import os

import pytest

from resume_vault.vault import ApiKeyStore, CipherSuite, CredentialCodec

TEST_SECRET = "test-server-secret-do-not-use"

# Low iteration count keeps byte-flip sweeps and route tests fast;
# the envelope layout is identical to the production suite.
FAST_SUITE = CipherSuite(kdf_iterations=1_000)


@pytest.fixture(autouse=True)
def audit_dir(tmp_path):
    """Redirect the global AuditLogger to a temp directory for every test."""
    import resume_vault.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    log_dir = tmp_path / "audit_logs"
    audit_mod._audit_logger = audit_mod.AuditLogger(log_dir=log_dir)

    yield log_dir

    audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Clear RESUME_VAULT_* variables and the cached Settings."""
    from resume_vault.core import config

    for name in list(os.environ):
        if name.startswith(config.ENV_PREFIX):
            monkeypatch.delenv(name)
    config.reset_settings()

    yield

    config.reset_settings()


@pytest.fixture(autouse=True)
def _isolate_api_key_store():
    """Reset the route-level store singleton so no test touches data/api_keys.db."""
    import resume_vault.api.api_key_routes as routes_mod

    old_store = routes_mod._store
    routes_mod._store = None

    yield

    routes_mod._store = old_store


@pytest.fixture
def fast_suite():
    return FAST_SUITE


@pytest.fixture
def fast_codec():
    return CredentialCodec(TEST_SECRET, FAST_SUITE)


@pytest.fixture
def store(fast_codec):
    store = ApiKeyStore(fast_codec, db_path=":memory:")
    yield store
    store.close()


@pytest.fixture
def audit_text(audit_dir):
    """Callable returning every audit line written so far in this test."""
    def _read() -> str:
        for handler in logging.getLogger("resume_vault.audit").handlers:
            handler.flush()
        return "".join(
            p.read_text(encoding="utf-8") for p in sorted(audit_dir.glob("audit_*.log"))
        )
    return _read
