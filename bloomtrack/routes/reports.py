import logging
from datetime import date

from flask import Blueprint, g, request

from ..auth import token_required
from ..db import fetch_all, get_connection
from ..helpers import date_arg, error, ok
from ..ledger import ZERO, money, weight

reports_bp = Blueprint("reports", __name__)


@reports_bp.route("/eod", methods=["GET"])
@token_required
def eod_report():
    """Per-seller purchase totals for one day, every seller of the owner included."""
    day = date_arg(request.args.get("date")) or date.today()
    try:
        with get_connection() as conn:
            rows = fetch_all(conn, """
                SELECT
                    s.id AS seller_id,
                    s.serial_number,
                    s.name,
                    s.mobile,
                    COALESCE(SUM(st.kg_added), 0) AS total_kg,
                    COALESCE(SUM(st.amount_added), 0) AS total_amount
                FROM sellers s
                LEFT JOIN seller_transactions st
                       ON st.seller_id = s.id AND st.transaction_date = %s
                WHERE s.owner_id = %s
                GROUP BY s.id, s.serial_number, s.name, s.mobile
                ORDER BY s.serial_number ASC, s.name ASC
            """, (day, g.user_id))
    except Exception as e:
        logging.exception("EOD report error: %s", e)
        return error("Failed to generate report", 500)

    total_kg = sum((weight(r["total_kg"]) for r in rows), ZERO)
    total_amount = sum((money(r["total_amount"]) for r in rows), ZERO)
    return ok({
        "date": day,
        "rows": rows,
        "totals": {"total_kg": total_kg, "total_amount": total_amount},
    })
