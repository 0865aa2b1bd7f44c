import logging

from flask import Blueprint, g

from .. import ledger
from ..auth import token_required
from ..db import execute, fetch_all, fetch_one, get_connection
from ..helpers import ValidationError, body, clean_str, date_arg, error, number, ok
from ..queries import get_owned_seller, list_transactions, set_seller_balance

transactions_bp = Blueprint("transactions", __name__)

TEXT_FIELDS = ("flower_name", "salesman_name", "salesman_mobile", "salesman_address")


def _txn_type(data, default=ledger.PURCHASE):
    try:
        return ledger.normalize_type(data.get("transaction_type") or default)
    except ledger.LedgerError as e:
        raise ValidationError(str(e))


def _shift_later(conn, txn, amount_delta, kg_delta):
    """Move the snapshots of every later purchase of the same seller by a delta."""
    if amount_delta == 0 and kg_delta == 0:
        return 0
    return execute(conn, """
        UPDATE seller_transactions
        SET previous_amount = previous_amount + %s,
            previous_kg = previous_kg + %s,
            new_total_amount = new_total_amount + %s,
            new_total_kg = new_total_kg + %s
        WHERE seller_id = %s AND (created_at, id) > (%s, %s)
    """, (amount_delta, kg_delta, amount_delta, kg_delta, txn["seller_id"], txn["created_at"], txn["id"]))


@transactions_bp.route("/<uuid:seller_id>/transactions", methods=["GET"])
@token_required
def get_transactions(seller_id):
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            rows = list_transactions(conn, seller_id)
    except Exception as e:
        logging.exception("get transactions error: %s", e)
        return error("Failed to get transaction history", 500)
    return ok(rows)


@transactions_bp.route("/<uuid:seller_id>/transactions", methods=["POST"])
@token_required
def add_transaction(seller_id):
    data = body()
    txn_type = _txn_type(data)
    amount_added = ledger.money(number(data, "amount_added", allow_negative=(txn_type == ledger.ADVANCE)))
    kg_added = ledger.weight(number(data, "kg_added"))
    less_weight = ledger.weight(number(data, "less_weight"))
    txn_date = date_arg(data.get("transaction_date"), "transaction_date")

    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            previous = ledger.balance_of(seller)
            new = ledger.apply_purchase(previous, amount_added, kg_added, txn_type)
            set_seller_balance(conn, seller_id, previous, new, txn_type)
            row = fetch_one(conn, """
                INSERT INTO seller_transactions
                    (seller_id, transaction_date, transaction_type, amount_added, kg_added, less_weight,
                     previous_amount, previous_kg, new_total_amount, new_total_kg,
                     flower_name, salesman_name, salesman_mobile, salesman_address)
                VALUES (%s, COALESCE(%s, CURRENT_DATE), %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            """, (seller_id, txn_date, txn_type, amount_added, kg_added, less_weight,
                  previous.amount, previous.kg, new.amount, new.kg,
                  *(clean_str(data.get(k)) for k in TEXT_FIELDS)))
    except Exception as e:
        logging.exception("add transaction error: %s", e)
        return error("Failed to add transaction", 500)
    return ok(row, 201)


@transactions_bp.route("/<uuid:seller_id>/transactions/<uuid:txn_id>", methods=["PUT"])
@token_required
def update_transaction(seller_id, txn_id):
    data = body()
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            old = fetch_one(conn,
                            "SELECT * FROM seller_transactions WHERE id = %s AND seller_id = %s FOR UPDATE",
                            (txn_id, seller_id))
            if not old:
                return error("Transaction not found", 404)

            txn_type = _txn_type(data, old["transaction_type"])
            new_amount = old["amount_added"]
            if "amount_added" in data:
                new_amount = number(data, "amount_added", allow_negative=(txn_type == ledger.ADVANCE))
            new_kg = number(data, "kg_added") if "kg_added" in data else old["kg_added"]
            less_weight = number(data, "less_weight") if "less_weight" in data else old["less_weight"]
            txn_date = date_arg(data.get("transaction_date"), "transaction_date") or old["transaction_date"]
            texts = [clean_str(data.get(k)) if k in data else old[k] for k in TEXT_FIELDS]

            current = ledger.balance_of(seller)
            updated = ledger.apply_edit(current, old["amount_added"], old["kg_added"],
                                        new_amount, new_kg, txn_type)
            set_seller_balance(conn, seller_id, current, updated, "edit")

            previous = ledger.Balance(ledger.money(old["previous_amount"]), ledger.weight(old["previous_kg"]))
            new_total = ledger.apply_purchase(previous, new_amount, new_kg, txn_type)
            row = fetch_one(conn, """
                UPDATE seller_transactions
                SET transaction_date = %s, transaction_type = %s, amount_added = %s, kg_added = %s,
                    less_weight = %s, new_total_amount = %s, new_total_kg = %s,
                    flower_name = %s, salesman_name = %s, salesman_mobile = %s, salesman_address = %s
                WHERE id = %s AND seller_id = %s
                RETURNING *
            """, (txn_date, txn_type, ledger.money(new_amount), ledger.weight(new_kg),
                  ledger.weight(less_weight), new_total.amount, new_total.kg,
                  *texts, txn_id, seller_id))

            _shift_later(conn, old,
                         new_total.amount - ledger.money(old["new_total_amount"]),
                         new_total.kg - ledger.weight(old["new_total_kg"]))
    except ValidationError:
        raise
    except Exception as e:
        logging.exception("update transaction error: %s", e)
        return error("Failed to update transaction", 500)
    return ok(row)


@transactions_bp.route("/<uuid:seller_id>/transactions/<uuid:txn_id>", methods=["DELETE"])
@token_required
def delete_transaction(seller_id, txn_id):
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)
            txn = fetch_one(conn,
                            "SELECT * FROM seller_transactions WHERE id = %s AND seller_id = %s FOR UPDATE",
                            (txn_id, seller_id))
            if not txn:
                return error("Transaction not found", 404)

            current = ledger.balance_of(seller)
            balance = current

            # payments linked through the legacy single column are reversed whole
            direct = fetch_all(conn,
                               "SELECT id, amount, cleared_kg FROM payments WHERE transaction_id = %s FOR UPDATE",
                               (txn_id,))
            for p in direct:
                balance = ledger.reverse_payment(balance, p["amount"], p["cleared_kg"])
                execute(conn, "DELETE FROM payments WHERE id = %s", (p["id"],))

            # allocated payments give back only the share that cleared this purchase
            allocs = fetch_all(conn,
                               "SELECT payment_id, cleared_kg, cleared_amount FROM payment_allocations "
                               "WHERE transaction_id = %s",
                               (txn_id,))
            for a in allocs:
                balance = ledger.reverse_payment(balance, a["cleared_amount"], a["cleared_kg"])
                execute(conn, "DELETE FROM payment_allocations WHERE payment_id = %s AND transaction_id = %s",
                        (a["payment_id"], txn_id))
                execute(conn, """
                    UPDATE payments
                    SET amount = GREATEST(amount - %s, 0), cleared_kg = GREATEST(cleared_kg - %s, 0)
                    WHERE id = %s
                """, (a["cleared_amount"], a["cleared_kg"], a["payment_id"]))
                execute(conn, """
                    DELETE FROM payments p
                    WHERE p.id = %s AND p.amount = 0 AND p.cleared_kg = 0
                      AND NOT EXISTS (SELECT 1 FROM payment_allocations pa WHERE pa.payment_id = p.id)
                """, (a["payment_id"],))

            new = ledger.reverse_purchase(balance, txn["amount_added"], txn["kg_added"], txn["transaction_type"])
            execute(conn, "DELETE FROM seller_transactions WHERE id = %s", (txn_id,))
            set_seller_balance(conn, seller_id, current, new, "delete-transaction")
            _shift_later(conn, txn,
                         ledger.money(txn["previous_amount"]) - ledger.money(txn["new_total_amount"]),
                         ledger.weight(txn["previous_kg"]) - ledger.weight(txn["new_total_kg"]))
    except Exception as e:
        logging.exception("delete transaction error: %s", e)
        return error("Failed to delete transaction", 500)
    return ok({
        "success": True,
        "message": "Transaction deleted successfully",
        "newAmount": new.amount,
        "newKg": new.kg,
        "transactionType": txn["transaction_type"],
        "reversedPayments": len(direct) + len(allocs),
    })


@transactions_bp.route("/transactions/<uuid:txn_id>/salesman", methods=["PUT"])
@token_required
def assign_salesman(txn_id):
    data = body()
    try:
        with get_connection() as conn:
            owned = fetch_one(conn, """
                SELECT st.id FROM seller_transactions st
                JOIN sellers s ON s.id = st.seller_id
                WHERE st.id = %s AND s.owner_id = %s
            """, (txn_id, g.user_id))
            if not owned:
                return error("Transaction not found", 404)
            row = fetch_one(conn, """
                UPDATE seller_transactions
                SET salesman_name = COALESCE(%s, salesman_name),
                    salesman_mobile = COALESCE(%s, salesman_mobile),
                    salesman_address = COALESCE(%s, salesman_address)
                WHERE id = %s
                RETURNING *
            """, (clean_str(data.get("salesman_name")), clean_str(data.get("salesman_mobile")),
                  clean_str(data.get("salesman_address")), txn_id))
    except Exception as e:
        logging.exception("assign salesman error: %s", e)
        return error("Failed to assign salesman", 500)
    return ok(row)
