import logging

from flask import Blueprint

from ..auth import token_required
from ..db import fetch_one, get_connection
from ..helpers import error, ok
from ..migrate import inspect, migrate_owner_serial

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/ping", methods=["GET"])
@token_required
def ping():
    try:
        with get_connection() as conn:
            row = fetch_one(conn, "SELECT 1 AS ok")
    except Exception as e:
        logging.exception("DB ping error: %s", e)
        return error(str(e), 500, ok=False)
    return ok({"ok": True, "result": row})


@admin_bp.route("/db-inspect", methods=["GET"])
@token_required
def db_inspect():
    try:
        with get_connection() as conn:
            report = inspect(conn)
    except Exception as e:
        logging.exception("DB inspect error: %s", e)
        return error(str(e), 500)
    return ok(report)


@admin_bp.route("/migrate-owner-serial", methods=["POST"])
@token_required
def migrate_owner_serial_route():
    try:
        with get_connection() as conn:
            dropped = migrate_owner_serial(conn)
    except Exception as e:
        logging.exception("Admin migration error: %s", e)
        return error("Migration failed", 500, details=str(e))
    return ok({
        "status": "ok",
        "message": "Migration applied: uniq_owner_serial set on (owner_id, serial_number)",
        "dropped": dropped,
    })
