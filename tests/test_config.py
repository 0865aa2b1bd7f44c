import pytest

from bloomtrack.config import (DEFAULT_CORS_ORIGINS, ConfigError, DATABASE_URL_PLACEHOLDER,
                               JWT_SECRET_PLACEHOLDER, load_settings)

ENV_KEYS = ("DATABASE_URL", "JWT_SECRET", "PORT", "CORS_ORIGINS", "JWT_EXPIRE_DAYS",
            "DB_POOL_MIN", "DB_POOL_MAX", "DB_CONNECT_TIMEOUT", "FLASK_DEBUG")


@pytest.fixture()
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path / "missing.env"


def test_defaults(monkeypatch, clean_env):
    monkeypatch.setenv("DATABASE_URL", '"postgresql://u:p@db.example.com/bloom"')
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    s = load_settings(clean_env)
    assert s.database_url == "postgresql://u:p@db.example.com/bloom"
    assert s.jwt_secret == "s3cret"
    assert s.port == 3001
    assert s.jwt_expire_days == 7
    assert s.cors_origins == DEFAULT_CORS_ORIGINS
    assert s.debug is False


def test_overrides(monkeypatch, clean_env):
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/bloom")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example ,")
    monkeypatch.setenv("DB_POOL_MAX", "4")
    monkeypatch.setenv("FLASK_DEBUG", "1")
    s = load_settings(clean_env)
    assert s.port == 8080
    assert s.cors_origins == ["https://a.example", "https://b.example"]
    assert s.db_pool_max == 4
    assert s.debug is True


def test_reads_env_file(tmp_path, monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("DATABASE_URL=postgresql://localhost/fromfile\nJWT_SECRET=filesecret\n")
    s = load_settings(env_file)
    assert s.database_url == "postgresql://localhost/fromfile"
    assert s.jwt_secret == "filesecret"


@pytest.mark.parametrize("db_url, secret, missing", [
    (None, "s3cret", "DATABASE_URL"),
    (DATABASE_URL_PLACEHOLDER, "s3cret", "DATABASE_URL"),
    ("postgresql://localhost/bloom", None, "JWT_SECRET"),
    ("postgresql://localhost/bloom", JWT_SECRET_PLACEHOLDER, "JWT_SECRET"),
])
def test_required_values(monkeypatch, clean_env, db_url, secret, missing):
    if db_url:
        monkeypatch.setenv("DATABASE_URL", db_url)
    if secret:
        monkeypatch.setenv("JWT_SECRET", secret)
    with pytest.raises(ConfigError, match=missing):
        load_settings(clean_env)


def test_bad_integer(monkeypatch, clean_env):
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/bloom")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ConfigError, match="PORT"):
        load_settings(clean_env)
