import config
import pytest


def test_jwt_secret_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "from-env")

    assert config.load_jwt_secret("JWT_SECRET_KEY") == "from-env"


def test_missing_jwt_secret_is_fatal_outside_dev(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.setattr(config, "ENVIRONMENT", "prod")

    with pytest.raises(ValueError, match="JWT_SECRET_KEY must be set"):
        config.load_jwt_secret("JWT_SECRET_KEY")


def test_missing_jwt_secret_in_dev_is_never_a_fixed_value(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.setattr(config, "ENVIRONMENT", "dev")

    first = config.load_jwt_secret("JWT_SECRET_KEY")
    second = config.load_jwt_secret("JWT_SECRET_KEY")

    assert first and second and first != second
