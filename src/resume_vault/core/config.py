# Core - Configuration
#
# Settings come from the process environment, optionally seeded from a
# .env file. The server secret is the sole root of trust for stored API
# keys: required at startup, never logged, never echoed back in errors.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from ..vault.encryption import MIN_KDF_ITERATIONS, CipherSuite

ENV_PREFIX = "RESUME_VAULT_"


class ConfigError(Exception):
    """Required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    secret: str = field(repr=False)
    kdf_iterations: int = MIN_KDF_ITERATIONS
    db_path: Path = Path("data/api_keys.db")
    audit_dir: Path = Path("./audit_logs")
    host: str = "127.0.0.1"
    port: int = 8000

    def __repr__(self) -> str:
        return (
            f"Settings(secret='***', kdf_iterations={self.kdf_iterations}, "
            f"db_path={str(self.db_path)!r}, audit_dir={str(self.audit_dir)!r}, "
            f"host={self.host!r}, port={self.port})"
        )

    @property
    def cipher_suite(self) -> CipherSuite:
        return CipherSuite(kdf_iterations=self.kdf_iterations)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer") from None


def load_settings(dotenv_path: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Values already set in the environment win over the .env file.

    Raises:
        ConfigError: Secret missing, or a numeric value is invalid
    """
    # Search from the working directory, not from this installed module
    load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)

    secret = os.getenv(ENV_PREFIX + "SECRET", "")
    if not secret:
        raise ConfigError(f"{ENV_PREFIX}SECRET is not set")

    iterations = _env_int("KDF_ITERATIONS", MIN_KDF_ITERATIONS)
    allow_weak = _env("ALLOW_WEAK_KDF", "0") in ("1", "true", "yes")
    if iterations < 1:
        raise ConfigError(f"{ENV_PREFIX}KDF_ITERATIONS must be positive")
    if iterations < MIN_KDF_ITERATIONS and not allow_weak:
        raise ConfigError(
            f"{ENV_PREFIX}KDF_ITERATIONS must be at least {MIN_KDF_ITERATIONS}"
        )

    port = _env_int("PORT", 8000)
    if not 1 <= port <= 65535:
        raise ConfigError(f"{ENV_PREFIX}PORT must be between 1 and 65535")

    return Settings(
        secret=secret,
        kdf_iterations=iterations,
        db_path=Path(_env("DB_PATH", "data/api_keys.db")),
        audit_dir=Path(_env("AUDIT_DIR", "./audit_logs")),
        host=_env("HOST", "127.0.0.1"),
        port=port,
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get process-wide settings (loaded on first use)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings():
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
