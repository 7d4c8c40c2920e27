# Main Entry Point
#
# resume-vault serve     run the API server
# resume-vault encrypt   secret on stdin -> envelope on stdout
# resume-vault decrypt   envelope on stdin -> secret on stdout

import argparse
import sys

from .core import ConfigError, get_settings
from .vault import CredentialCodec, EnvelopeError


def _codec() -> CredentialCodec:
    settings = get_settings()
    return CredentialCodec(settings.secret, settings.cipher_suite)


def _read_stdin() -> str:
    # Trailing newline from `echo` is not part of the secret
    return sys.stdin.read().rstrip("\r\n")


def cmd_serve(args) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "resume_vault.api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level="info",
    )
    return 0


def cmd_encrypt(args) -> int:
    print(_codec().encrypt(_read_stdin()))
    return 0


def cmd_decrypt(args) -> int:
    try:
        plaintext = _codec().decrypt(_read_stdin())
    except EnvelopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(plaintext)
    return 0


def main(argv=None) -> int:
    """Main entry point for Resume Vault."""
    parser = argparse.ArgumentParser(
        prog="resume-vault",
        description="Resume Vault - encrypted per-user LLM API key storage",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=None, help="Bind host (default: RESUME_VAULT_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: RESUME_VAULT_PORT or 8000)")
    serve.set_defaults(func=cmd_serve)

    encrypt = subparsers.add_parser("encrypt", help="Encrypt a secret read from stdin")
    encrypt.set_defaults(func=cmd_encrypt)

    decrypt = subparsers.add_parser("decrypt", help="Decrypt an envelope read from stdin")
    decrypt.set_defaults(func=cmd_decrypt)

    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
