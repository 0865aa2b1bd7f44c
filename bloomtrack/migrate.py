"""
Deploy-time schema tool.

    bloomtrack-migrate --schema        # create tables from schema.sql
    bloomtrack-migrate --owner-serial  # serial numbers unique per owner
"""
import argparse
import logging
import sys

from psycopg2 import sql

from .config import ConfigError, load_settings, log_setup_hints
from .db import apply_schema, close_pool, execute, fetch_all, fetch_one, get_connection, init_db

OWNER_SERIAL_INDEX = "uniq_owner_serial"


def migrate_owner_serial(conn):
    """Drop global unique constraints on sellers and index (owner_id, serial_number).

    Runs inside the caller's transaction. Returns the dropped constraint names.
    """
    rows = fetch_all(conn, """
        SELECT conname
        FROM pg_constraint
        WHERE conrelid = 'public.sellers'::regclass AND contype = 'u'
    """)
    dropped = []
    for r in rows:
        logging.info("Dropping unique constraint: %s", r["conname"])
        execute(conn, sql.SQL("ALTER TABLE public.sellers DROP CONSTRAINT {}").format(
            sql.Identifier(r["conname"])))
        dropped.append(r["conname"])
    execute(conn, sql.SQL("CREATE UNIQUE INDEX IF NOT EXISTS {} ON public.sellers (owner_id, serial_number)")
            .format(sql.Identifier(OWNER_SERIAL_INDEX)))
    return dropped


def inspect(conn):
    out = {}
    for table in ("users", "profiles", "sellers"):
        row = fetch_one(conn, "SELECT to_regclass(%s) AS exists", (f"public.{table}",))
        out[f"{table}Table"] = row["exists"]
    idx = fetch_one(conn, "SELECT indexname FROM pg_indexes WHERE schemaname = 'public' AND indexname = %s",
                    (OWNER_SERIAL_INDEX,))
    out["hasOwnerScopedIndex"] = idx is not None
    return out


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Apply BloomTrack database migrations")
    parser.add_argument("--schema", action="store_true", help="create tables from schema.sql")
    parser.add_argument("--owner-serial", action="store_true",
                        help="make serial_number unique per owner instead of globally")
    args = parser.parse_args(argv)
    if not (args.schema or args.owner_serial):
        parser.error("nothing to do: pass --schema and/or --owner-serial")

    try:
        settings = load_settings()
    except ConfigError as e:
        log_setup_hints(e)
        return 1

    init_db(settings)
    try:
        if args.schema:
            with get_connection() as conn:
                apply_schema(conn)
        if args.owner_serial:
            with get_connection() as conn:
                dropped = migrate_owner_serial(conn)
            logging.info("Migration completed, dropped %d constraint(s)", len(dropped))
    except Exception as e:
        logging.exception("Migration failed: %s", e)
        return 1
    finally:
        close_pool()
    return 0


if __name__ == "__main__":
    sys.exit(main())
