import os
import logging
from dataclasses import dataclass, field
from dotenv import load_dotenv

DATABASE_URL_PLACEHOLDER = "your_neon_postgresql_connection_string_here"
JWT_SECRET_PLACEHOLDER = "your_secure_random_secret_key_here"

DEFAULT_CORS_ORIGINS = [
    "https://bloomtrack1.netlify.app",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


class ConfigError(RuntimeError):
    pass


@dataclass
class Settings:
    database_url: str
    jwt_secret: str
    port: int = 3001
    jwt_algo: str = "HS256"
    jwt_expire_days: int = 7
    cors_origins: list = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    db_pool_min: int = 1
    db_pool_max: int = 10
    db_connect_timeout: int = 5
    debug: bool = False


def _strip_quotes(value):
    value = (value or "").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _int_env(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings(env_file=None):
    """
    Read settings from the environment (after loading .env).

    Raises ConfigError when DATABASE_URL or JWT_SECRET is missing or still
    holds the placeholder value from .env.example.
    """
    load_dotenv(env_file)

    database_url = _strip_quotes(os.getenv("DATABASE_URL"))
    if not database_url or DATABASE_URL_PLACEHOLDER in database_url:
        raise ConfigError("DATABASE_URL is not configured in .env file")

    jwt_secret = _strip_quotes(os.getenv("JWT_SECRET"))
    if not jwt_secret or JWT_SECRET_PLACEHOLDER in jwt_secret:
        raise ConfigError("JWT_SECRET is not configured in .env file")

    origins_raw = os.getenv("CORS_ORIGINS", "")
    origins = [o.strip() for o in origins_raw.split(",") if o.strip()] or list(DEFAULT_CORS_ORIGINS)

    return Settings(
        database_url=database_url,
        jwt_secret=jwt_secret,
        port=_int_env("PORT", 3001),
        jwt_expire_days=_int_env("JWT_EXPIRE_DAYS", 7),
        cors_origins=origins,
        db_pool_min=_int_env("DB_POOL_MIN", 1),
        db_pool_max=_int_env("DB_POOL_MAX", 10),
        db_connect_timeout=_int_env("DB_CONNECT_TIMEOUT", 5),
        debug=os.getenv("FLASK_DEBUG", "0") == "1",
    )


def log_setup_hints(err):
    logging.error("ERROR: %s", err)
    if "DATABASE_URL" in str(err):
        logging.error("Set DATABASE_URL to your PostgreSQL connection string, "
                      "then run: bloomtrack-migrate --schema")
    if "JWT_SECRET" in str(err):
        logging.error("Run: bloomtrack-secret  and copy the value into .env as JWT_SECRET")
