import pytest
from pydantic import ValidationError

from task_api.config import get_settings, Settings


def test_get_settings():
    """Test that settings can be loaded"""
    settings = get_settings()
    assert settings is not None
    assert isinstance(settings, Settings)


def test_settings_default_values():
    """Test default values in settings"""
    settings = Settings(_env_file=None)
    assert settings.app_name == "Task API"
    assert settings.version == "1.0.0"
    assert settings.jwt_algorithm == "HS256"
    assert settings.auth_enabled is False
    assert settings.port == 8080
    assert settings.shutdown_grace_seconds == 5


def test_settings_singleton():
    """Test that get_settings returns the same instance (cached)"""
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("TASK_API_JWT_SECRET", "from-env")
    monkeypatch.setenv("TASK_API_AUTH_ENABLED", "true")
    monkeypatch.setenv("TASK_API_CORS_ORIGINS", "http://a.example")

    settings = Settings(_env_file=None)

    assert settings.jwt_secret == "from-env"
    assert settings.auth_enabled is True
    assert settings.allowed_origins == ["http://a.example"]


@pytest.mark.parametrize("raw, expected", [
    ("", ["*"]),
    ("   ", ["*"]),
    (" , ,", ["*"]),
    ("*", ["*"]),
    ("http://a.example, http://b.example ,", ["http://a.example", "http://b.example"]),
])
def test_allowed_origins_parsing(raw, expected):
    settings = Settings(_env_file=None, cors_origins=raw)
    assert settings.allowed_origins == expected


def test_jwt_algorithm_is_normalised():
    assert Settings(_env_file=None, jwt_algorithm="hs512").jwt_algorithm == "HS512"


def test_non_hmac_algorithm_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, jwt_algorithm="RS256")
