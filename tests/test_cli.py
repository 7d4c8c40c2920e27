# Tests for the resume-vault command line

import io

import pytest

from resume_vault.__main__ import main
from resume_vault.vault.encryption import UNPROCESSABLE_MESSAGE


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setenv("RESUME_VAULT_SECRET", "cli-test-secret")
    monkeypatch.setenv("RESUME_VAULT_KDF_ITERATIONS", "1000")
    monkeypatch.setenv("RESUME_VAULT_ALLOW_WEAK_KDF", "1")


def _run(monkeypatch, capsys, argv, stdin):
    monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
    code = main(argv)
    out, err = capsys.readouterr()
    return code, out, err


def test_encrypt_then_decrypt(configured, monkeypatch, capsys):
    code, envelope, _ = _run(monkeypatch, capsys, ["encrypt"], "sk-test1234567890\n")
    assert code == 0
    assert "sk-test" not in envelope

    code, plaintext, _ = _run(monkeypatch, capsys, ["decrypt"], envelope)
    assert code == 0
    assert plaintext == "sk-test1234567890\n"


def test_decrypt_garbage(configured, monkeypatch, capsys):
    code, out, err = _run(monkeypatch, capsys, ["decrypt"], "AAAA")
    assert code == 1
    assert out == ""
    assert UNPROCESSABLE_MESSAGE in err


def test_missing_secret(monkeypatch, capsys):
    code, _, err = _run(monkeypatch, capsys, ["encrypt"], "sk-test")
    assert code == 2
    assert "RESUME_VAULT_SECRET" in err


def test_command_required():
    with pytest.raises(SystemExit):
        main([])
