from __future__ import annotations

import pytest

from doc_share.app.settings import ShareSettings


def test_defaults_are_valid_for_local():
    settings = ShareSettings()
    assert settings.is_local
    assert settings.validate() == []
    assert settings.max_expiry_days == 30


def test_unknown_environment_rejected():
    errors = ShareSettings(environment="qa").validate()
    assert any("environment must be one of" in e for e in errors)


def test_non_local_requires_supabase_and_https():
    errors = ShareSettings(environment="production").validate()
    assert "production: supabase_url is required" in errors
    assert "production: supabase_service_role_key is required" in errors
    assert "production: public_base_url must use https" in errors


def test_non_local_complete_config_is_valid():
    settings = ShareSettings(
        environment="staging",
        public_base_url="https://share.example.com",
        supabase_url="https://xyz.supabase.co",
        supabase_service_role_key="svc",
    )
    assert settings.validate() == []


@pytest.mark.parametrize("overrides, fragment", [
    ({"public_base_url": "share.example.com"}, "public_base_url"),
    ({"max_expiry_days": 0}, "max_expiry_days"),
    ({"max_expiry_days": 366}, "max_expiry_days"),
    ({"password_max_attempts": 0}, "password_max_attempts"),
    ({"password_window_seconds": 0}, "password_window_seconds"),
    ({"argon2_time_cost": 0}, "argon2"),
    ({"argon2_memory_cost": 4}, "argon2_memory_cost"),
])
def test_policy_bounds(overrides, fragment):
    errors = ShareSettings(**overrides).validate()
    assert len(errors) == 1
    assert fragment in errors[0]


def test_from_env_reads_values():
    settings = ShareSettings.from_env({
        "ENVIRONMENT": "dev",
        "PUBLIC_BASE_URL": "https://dev.share.example.com",
        "SUPABASE_URL": "https://xyz.supabase.co",
        "SUPABASE_SERVICE_ROLE_KEY": "svc",
        "SHARE_MAX_EXPIRY_DAYS": "14",
        "SHARE_PASSWORD_MAX_ATTEMPTS": " 10 ",
        "SHARE_PASSWORD_WINDOW_SECONDS": "300.5",
        "CORS_ORIGINS": "https://a.example.com, https://b.example.com,",
    })
    assert settings.environment == "dev"
    assert settings.max_expiry_days == 14
    assert settings.password_max_attempts == 10
    assert settings.password_window_seconds == 300.5
    assert settings.cors_origins == ("https://a.example.com", "https://b.example.com")
    assert settings.validate() == []


def test_from_env_empty_uses_defaults():
    settings = ShareSettings.from_env({})
    assert settings == ShareSettings()


@pytest.mark.parametrize("key", ["SHARE_MAX_EXPIRY_DAYS", "SHARE_PASSWORD_WINDOW_SECONDS"])
def test_from_env_rejects_non_numeric(key):
    with pytest.raises(ValueError, match=key):
        ShareSettings.from_env({key: "soon"})
