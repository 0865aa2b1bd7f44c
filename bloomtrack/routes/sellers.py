import logging

from flask import Blueprint, g, request

from .. import ledger
from ..auth import token_required
from ..db import execute, fetch_all, fetch_one, get_connection, is_unique_violation
from ..helpers import body, clean_str, date_arg, error, number, ok, require_str
from ..queries import (get_owned_seller, list_payments, list_sales,
                       list_transactions, set_seller_balance)

sellers_bp = Blueprint("sellers", __name__)

SERIAL_TAKEN = "Serial number already exists"


def _seller_fields(data):
    return {
        "name": require_str(data, "name"),
        "mobile": clean_str(data.get("mobile")),
        "serial_number": require_str(data, "serial_number"),
        "address": clean_str(data.get("address")),
        "date": date_arg(data.get("date")),
        "amount": ledger.money(number(data, "amount")),
        "kg": ledger.weight(number(data, "kg")),
    }


@sellers_bp.route("", methods=["GET"])
@token_required
def list_sellers():
    try:
        with get_connection() as conn:
            rows = fetch_all(conn, "SELECT * FROM sellers WHERE owner_id = %s ORDER BY created_at DESC",
                             (g.user_id,))
    except Exception as e:
        logging.exception("get sellers error: %s", e)
        return error("Failed to get sellers", 500)
    return ok(rows)


@sellers_bp.route("/search", methods=["GET"])
@token_required
def search_sellers():
    q = (request.args.get("query") or "").strip()
    if not q:
        return ok([])
    try:
        with get_connection() as conn:
            rows = fetch_all(conn, """
                SELECT * FROM sellers
                WHERE owner_id = %s AND serial_number = %s
                ORDER BY created_at DESC
            """, (g.user_id, q))
    except Exception as e:
        logging.exception("search sellers error: %s", e)
        return error("Failed to search sellers", 500)
    return ok(rows)


@sellers_bp.route("/<uuid:seller_id>", methods=["GET"])
@token_required
def get_seller(seller_id):
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id)
    except Exception as e:
        logging.exception("get seller error: %s", e)
        return error("Failed to get seller", 500)
    if not seller:
        return error("Seller not found", 404)
    return ok(seller)


@sellers_bp.route("", methods=["POST"])
@token_required
def create_seller():
    f = _seller_fields(body())
    try:
        with get_connection() as conn:
            seller = fetch_one(conn, """
                INSERT INTO sellers (owner_id, name, mobile, serial_number, address, date, amount, kg)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            """, (g.user_id, f["name"], f["mobile"], f["serial_number"], f["address"],
                  f["date"], f["amount"], f["kg"]))

            # opening stock is recorded as the first purchase
            if f["amount"] > 0 or f["kg"] > 0:
                execute(conn, """
                    INSERT INTO seller_transactions
                        (seller_id, transaction_date, amount_added, kg_added,
                         previous_amount, previous_kg, new_total_amount, new_total_kg)
                    VALUES (%s, COALESCE(%s, CURRENT_DATE), %s, %s, 0, 0, %s, %s)
                """, (seller["id"], f["date"], f["amount"], f["kg"], f["amount"], f["kg"]))
    except Exception as e:
        if is_unique_violation(e):
            return error(SERIAL_TAKEN, 400)
        logging.exception("create seller error: %s", e)
        return error("Failed to create seller", 500)
    return ok(seller, 201)


@sellers_bp.route("/<uuid:seller_id>", methods=["PUT"])
@token_required
def update_seller(seller_id):
    f = _seller_fields(body())
    try:
        with get_connection() as conn:
            seller = fetch_one(conn, """
                UPDATE sellers
                SET name = %s, mobile = %s, serial_number = %s, address = %s, date = %s,
                    amount = %s, kg = %s, updated_at = NOW()
                WHERE id = %s AND owner_id = %s
                RETURNING *
            """, (f["name"], f["mobile"], f["serial_number"], f["address"], f["date"],
                  f["amount"], f["kg"], seller_id, g.user_id))
    except Exception as e:
        if is_unique_violation(e):
            return error(SERIAL_TAKEN, 400)
        logging.exception("update seller error: %s", e)
        return error("Failed to update seller", 500)
    if not seller:
        return error("Seller not found", 404)
    return ok(seller)


@sellers_bp.route("/<uuid:seller_id>", methods=["DELETE"])
@token_required
def delete_seller(seller_id):
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id, lock=True):
                return error("Seller not found or access denied", 404)
            execute(conn, "DELETE FROM sold_to_transactions WHERE seller_id = %s", (seller_id,))
            execute(conn, """
                DELETE FROM payment_allocations
                WHERE payment_id IN (SELECT id FROM payments WHERE seller_id = %s)
            """, (seller_id,))
            execute(conn, "DELETE FROM payments WHERE seller_id = %s", (seller_id,))
            execute(conn, "DELETE FROM seller_transactions WHERE seller_id = %s", (seller_id,))
            execute(conn, "DELETE FROM sale_to WHERE seller_id = %s", (seller_id,))
            execute(conn, "DELETE FROM sellers WHERE id = %s", (seller_id,))
    except Exception as e:
        logging.exception("delete seller error: %s", e)
        return error("Failed to delete seller", 500)
    logging.info("seller %s deleted with all related rows", seller_id)
    return ok({"message": "Seller and all related data deleted successfully"})


# ---------------------------
# Sale-to contacts
# ---------------------------
@sellers_bp.route("/<uuid:seller_id>/sale-to", methods=["GET"])
@token_required
def list_sale_to(seller_id):
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            rows = fetch_all(conn, "SELECT * FROM sale_to WHERE seller_id = %s ORDER BY created_at DESC",
                             (seller_id,))
    except Exception as e:
        logging.exception("get sale_to error: %s", e)
        return error("Failed to get sale_to contacts", 500)
    return ok(rows)


@sellers_bp.route("/<uuid:seller_id>/sale-to", methods=["POST"])
@token_required
def add_sale_to(seller_id):
    data = body()
    name = require_str(data, "name", "Name")
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            row = fetch_one(conn, """
                INSERT INTO sale_to (seller_id, name, mobile, address)
                VALUES (%s, %s, %s, %s)
                RETURNING *
            """, (seller_id, name, clean_str(data.get("mobile")), clean_str(data.get("address"))))
    except Exception as e:
        logging.exception("add sale_to error: %s", e)
        return error("Failed to add sale_to contact", 500)
    return ok(row, 201)


# ---------------------------
# Ledger audit
# ---------------------------
def _fold(conn, seller_id):
    txns = list_transactions(conn, seller_id, newest_first=False)
    events = ledger.build_events(txns, list_sales(conn, seller_id), list_payments(conn, seller_id))
    computed, snapshots = ledger.replay(events)
    return events, computed, snapshots


@sellers_bp.route("/<uuid:seller_id>/ledger", methods=["GET"])
@token_required
def seller_ledger(seller_id):
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id)
            if not seller:
                return error("Seller not found", 404)
            events, computed, _ = _fold(conn, seller_id)
    except Exception as e:
        logging.exception("seller ledger error: %s", e)
        return error("Failed to compute ledger", 500)

    stored = ledger.balance_of(seller)
    diff = ledger.drift(stored, computed)
    return ok({
        "stored": stored._asdict(),
        "computed": computed._asdict(),
        "drift": diff._asdict(),
        "consistent": diff.amount == 0 and diff.kg == 0,
        "events": [{"kind": e["kind"], "at": e["at"], "id": e["row"].get("id")} for e in events],
    })


@sellers_bp.route("/<uuid:seller_id>/ledger/rebuild", methods=["POST"])
@token_required
def rebuild_ledger(seller_id):
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            _, computed, snapshots = _fold(conn, seller_id)
            for txn_id, (before, after) in snapshots.items():
                execute(conn, """
                    UPDATE seller_transactions
                    SET previous_amount = %s, previous_kg = %s, new_total_amount = %s, new_total_kg = %s
                    WHERE id = %s
                """, (before.amount, before.kg, after.amount, after.kg, txn_id))
            old = ledger.balance_of(seller)
            set_seller_balance(conn, seller_id, old, computed, "rebuild")
    except Exception as e:
        logging.exception("rebuild ledger error: %s", e)
        return error("Failed to rebuild ledger", 500)
    return ok({"message": "Ledger rebuilt", "amount": computed.amount, "kg": computed.kg,
               "transactions": len(snapshots)})
