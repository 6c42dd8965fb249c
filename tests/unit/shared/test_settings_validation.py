import pytest
from pydantic import ValidationError

from app.shared.core.config import Settings

STRONG_SECRET = "a-very-long-session-secret-for-tests-0123456789"


def _settings(**overrides) -> Settings:
    values = {
        "TESTING": False,
        "ENVIRONMENT": "development",
        "SESSION_JWT_SECRET": STRONG_SECRET,
        "DATABASE_URL": "postgresql://localhost/scim",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_defaults_for_scim_paging():
    settings = _settings()
    assert settings.SCIM_DEFAULT_PAGE_SIZE == 10
    assert settings.SCIM_MAX_PAGE_SIZE == 200
    assert settings.API_KEY_PREFIX == "scim_"
    assert settings.is_production is False


def test_testing_flag_rejected_in_production():
    with pytest.raises(ValidationError):
        _settings(TESTING=True, ENVIRONMENT="production")


@pytest.mark.parametrize("secret", [None, "short", "changeme"])
def test_weak_session_secret_rejected_outside_tests(secret):
    with pytest.raises(ValidationError):
        _settings(SESSION_JWT_SECRET=secret)


def test_production_requires_database_and_https_api_url():
    with pytest.raises(ValidationError):
        _settings(ENVIRONMENT="production", DATABASE_URL="")
    with pytest.raises(ValidationError):
        _settings(ENVIRONMENT="production", API_URL="http://scim.example.com")

    settings = _settings(ENVIRONMENT="production", API_URL="https://scim.example.com")
    assert settings.is_production is True


def test_default_page_size_cannot_exceed_max():
    with pytest.raises(ValidationError):
        _settings(SCIM_DEFAULT_PAGE_SIZE=50, SCIM_MAX_PAGE_SIZE=20)
