import decimal
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

import psycopg2
import psycopg2.extras
from psycopg2 import errors, pool

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

psycopg2.extras.register_uuid()

_pool = None
_pool_lock = threading.Lock()
_settings = None


def init_db(settings):
    """Remember settings; the pool itself is opened on first use."""
    global _settings
    _settings = settings


def _get_pool():
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                if _settings is None:
                    raise RuntimeError("init_db() must be called before using the database")
                logging.info("Opening PostgreSQL pool (min=%d max=%d)",
                             _settings.db_pool_min, _settings.db_pool_max)
                _pool = pool.ThreadedConnectionPool(
                    _settings.db_pool_min,
                    _settings.db_pool_max,
                    dsn=_settings.database_url,
                    connect_timeout=_settings.db_connect_timeout,
                    cursor_factory=psycopg2.extras.RealDictCursor,
                )
    return _pool


def close_pool():
    global _pool
    with _pool_lock:
        if _pool is not None:
            _pool.closeall()
            _pool = None


@contextmanager
def get_connection():
    """
    Check a connection out of the pool for the duration of the block.

    Every block is a single transaction: commit when the block exits
    normally, rollback on any exception. The connection always goes back
    to the pool.
    """
    p = _get_pool()
    conn = p.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        try:
            conn.rollback()
        except psycopg2.Error:
            logging.exception("rollback failed")
        raise
    finally:
        p.putconn(conn)


def fetch_all(conn, sql, params=()):
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchall() or []


def fetch_one(conn, sql, params=()):
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchone()


def execute(conn, sql, params=()):
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.rowcount


def is_unique_violation(exc):
    return isinstance(exc, errors.UniqueViolation)


def apply_schema(conn, path=SCHEMA_PATH):
    with open(path, "r", encoding="utf-8") as f:
        schema_sql = f.read()
    count = 0
    for stmt in schema_sql.split(";"):
        lines = [ln for ln in stmt.splitlines() if not ln.strip().startswith("--")]
        stmt = "\n".join(lines).strip()
        if stmt:
            execute(conn, stmt)
            count += 1
    logging.info("Applied %d schema statements from %s", count, path)
    return count


def convert_decimals(obj):
    """
    Recursively convert Decimal and other non-JSON-native types to JSON-native types.
    """
    if obj is None:
        return None
    if isinstance(obj, decimal.Decimal):
        return float(obj)
    if isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, bytes):
        try:
            return obj.decode("utf-8")
        except UnicodeDecodeError:
            return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_decimals(v) for v in obj]
    return str(obj)
