import pytest

from config.validation import validate_and_exit, validate_environment


def test_non_production_skips_validation(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)

    assert validate_environment("development") == (True, [])


def test_production_requires_secret_and_database(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert any(error.startswith("SECRET_KEY") for error in errors)
    assert any(error.startswith("DATABASE_URL") for error in errors)


def test_production_checks_importer_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("SECRET_KEY", "a" * 64)
    monkeypatch.setenv("DATABASE_URL", "postgresql://crm@localhost/crm")
    monkeypatch.setenv("IMPORTER_BATCH_SIZE", "zero")
    monkeypatch.setenv("IMPORTER_SYNONYMS_PATH", str(tmp_path / "missing.yaml"))

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert len(errors) == 2
    assert any("IMPORTER_BATCH_SIZE" in error for error in errors)
    assert any("IMPORTER_SYNONYMS_PATH" in error for error in errors)


def test_validate_and_exit_exits_on_errors(monkeypatch, capsys):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        validate_and_exit("production")

    assert excinfo.value.code == 1
    assert "ENVIRONMENT VALIDATION FAILED" in capsys.readouterr().err
