import logging

from flask import Blueprint, g

from .. import ledger
from ..auth import token_required
from ..db import execute, fetch_one, get_connection
from ..helpers import body, clean_str, date_arg, error, number, ok
from ..queries import get_owned_seller, list_sales, set_seller_balance

sold_to_bp = Blueprint("sold_to", __name__)


@sold_to_bp.route("/<uuid:seller_id>/sold-to", methods=["GET"])
@token_required
def get_sold_to(seller_id):
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            rows = list_sales(conn, seller_id)
    except Exception as e:
        logging.exception("get sold_to error: %s", e)
        return error("Failed to get sold_to transactions", 500)
    return ok(rows)


@sold_to_bp.route("/<uuid:seller_id>/sold-to", methods=["POST"])
@token_required
def add_sold_to(seller_id):
    data = body()
    kg_sold = ledger.weight(number(data, "kg_sold", allow_negative=True))
    amount_sold = ledger.money(number(data, "amount_sold", allow_negative=True))
    sale_date = date_arg(data.get("sale_date"), "sale_date")

    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            previous = ledger.balance_of(seller)
            try:
                remaining = ledger.apply_sale(previous, kg_sold, amount_sold)
            except ledger.LedgerError as e:
                return error(str(e), 400)

            row = fetch_one(conn, """
                INSERT INTO sold_to_transactions
                    (seller_id, customer_name, customer_mobile, sale_date, kg_sold, amount_sold,
                     previous_kg, previous_amount, remaining_kg, remaining_amount, notes)
                VALUES (%s, %s, %s, COALESCE(%s, CURRENT_DATE), %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            """, (seller_id, clean_str(data.get("customer_name")), clean_str(data.get("customer_mobile")),
                  sale_date, kg_sold, amount_sold, previous.kg, previous.amount,
                  remaining.kg, remaining.amount, clean_str(data.get("notes"))))
            set_seller_balance(conn, seller_id, previous, remaining, "sale", sale_date=row["sale_date"])
    except Exception as e:
        logging.exception("add sold_to error: %s", e)
        return error("Failed to add sold_to transaction", 500)
    return ok(row, 201)


@sold_to_bp.route("/<uuid:seller_id>/sold-to/<uuid:sale_id>", methods=["PUT"])
@token_required
def update_sold_to(seller_id, sale_id):
    data = body()
    sale_date = date_arg(data.get("sale_date"), "sale_date")
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            row = fetch_one(conn, """
                UPDATE sold_to_transactions
                SET customer_name = %s, customer_mobile = %s,
                    sale_date = COALESCE(%s, sale_date), notes = %s
                WHERE id = %s AND seller_id = %s
                RETURNING *
            """, (clean_str(data.get("customer_name")), clean_str(data.get("customer_mobile")),
                  sale_date, clean_str(data.get("notes")), sale_id, seller_id))
    except Exception as e:
        logging.exception("update sold_to error: %s", e)
        return error("Failed to update sold_to transaction", 500)
    if not row:
        return error("Sale not found", 404)
    return ok(row)


@sold_to_bp.route("/<uuid:seller_id>/sold-to/<uuid:sale_id>", methods=["DELETE"])
@token_required
def delete_sold_to(seller_id, sale_id):
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            sale = fetch_one(conn,
                             "SELECT * FROM sold_to_transactions WHERE id = %s AND seller_id = %s FOR UPDATE",
                             (sale_id, seller_id))
            if not sale:
                return error("Sale not found", 404)
            current = ledger.balance_of(seller)
            restocked = ledger.restock(current, sale["kg_sold"], sale["amount_sold"])
            execute(conn, "DELETE FROM sold_to_transactions WHERE id = %s", (sale_id,))
            set_seller_balance(conn, seller_id, current, restocked, "restock")
    except Exception as e:
        logging.exception("delete sold_to error: %s", e)
        return error("Failed to delete sold_to transaction", 500)
    return ok({"message": "Sale deleted and stock restored", "amount": restocked.amount, "kg": restocked.kg})
