"""SQL shared by several blueprints."""
import logging

from .db import execute, fetch_all, fetch_one


def get_owned_seller(conn, seller_id, owner_id, lock=False):
    sql = "SELECT * FROM sellers WHERE id = %s AND owner_id = %s"
    if lock:
        sql += " FOR UPDATE"
    return fetch_one(conn, sql, (seller_id, owner_id))


def set_seller_balance(conn, seller_id, old, new, kind, sale_date=None):
    if sale_date is not None:
        execute(conn,
                "UPDATE sellers SET amount = %s, kg = %s, date = %s, updated_at = NOW() WHERE id = %s",
                (new.amount, new.kg, sale_date, seller_id))
    else:
        execute(conn,
                "UPDATE sellers SET amount = %s, kg = %s, updated_at = NOW() WHERE id = %s",
                (new.amount, new.kg, seller_id))
    logging.info("seller %s balance (%s): amount %s -> %s, kg %s -> %s",
                 seller_id, kind, old.amount, new.amount, old.kg, new.kg)


def list_transactions(conn, seller_id, newest_first=True):
    order = "transaction_date DESC, created_at DESC" if newest_first else "transaction_date ASC, created_at ASC"
    return fetch_all(conn, f"SELECT * FROM seller_transactions WHERE seller_id = %s ORDER BY {order}", (seller_id,))


def list_sales(conn, seller_id):
    return fetch_all(conn,
                     "SELECT * FROM sold_to_transactions WHERE seller_id = %s "
                     "ORDER BY sale_date DESC, created_at DESC",
                     (seller_id,))


def list_payments(conn, seller_id):
    """Payments newest first, each with its allocation rows under ``transactions``."""
    payments = fetch_all(conn,
                         "SELECT * FROM payments WHERE seller_id = %s ORDER BY paid_at DESC, created_at DESC",
                         (seller_id,))
    allocs = fetch_all(conn, """
        SELECT pa.payment_id, pa.transaction_id, pa.cleared_kg, pa.cleared_amount
        FROM payment_allocations pa
        JOIN payments p ON p.id = pa.payment_id
        WHERE p.seller_id = %s
    """, (seller_id,))
    by_payment = {}
    for a in allocs:
        by_payment.setdefault(a["payment_id"], []).append({
            "transaction_id": a["transaction_id"],
            "cleared_kg": a["cleared_kg"],
            "cleared_amount": a["cleared_amount"],
        })
    for p in payments:
        p["transactions"] = by_payment.get(p["id"], [])
    return payments


def insert_payment(conn, seller_id, from_date, to_date, amount, cleared_kg, notes=None,
                   transaction_id=None, commission=0, advance=0, allocations=()):
    payment = fetch_one(conn, """
        INSERT INTO payments (seller_id, paid_at, from_date, to_date, amount, cleared_kg,
                              commission, advance, notes, transaction_id, legacy_unlinked)
        VALUES (%s, clock_timestamp(), %s, %s, %s, %s, %s, %s, %s, %s, FALSE)
        RETURNING *
    """, (seller_id, from_date, to_date, amount, cleared_kg, commission, advance, notes, transaction_id))
    saved = []
    for a in allocations:
        execute(conn, """
            INSERT INTO payment_allocations (payment_id, transaction_id, cleared_kg, cleared_amount)
            VALUES (%s, %s, %s, %s)
        """, (payment["id"], a["transaction_id"], a["cleared_kg"], a["cleared_amount"]))
        saved.append(dict(a))
    payment["transactions"] = saved
    return payment


def get_profile(conn, user_id):
    return fetch_one(conn, "SELECT * FROM profiles WHERE id = %s", (user_id,))
