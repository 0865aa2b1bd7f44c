import logging
import uuid

from flask import Blueprint, g, render_template, request

from .. import ledger, reconcile
from ..auth import token_required
from ..db import fetch_all, fetch_one, get_connection
from ..helpers import (ValidationError, _parse_bool, body, clean_str, date_arg, error,
                       number, ok, optional_number)
from ..queries import (get_owned_seller, get_profile, insert_payment, list_payments,
                       list_transactions, set_seller_balance)

payments_bp = Blueprint("payments", __name__)


def _uuid(value, label="transaction_id"):
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"Invalid {label}")


def _allocations_from(data, amount, cleared_kg):
    raw = data.get("transactions")
    if raw in (None, ""):
        return None
    if not isinstance(raw, list):
        raise ValidationError("transactions must be a list")
    out = []
    seen = set()
    for item in raw:
        if not isinstance(item, dict):
            item = {"transaction_id": item}
        tid = _uuid(item.get("transaction_id"))
        if tid in seen:
            raise ValidationError(f"Duplicate transaction_id in transactions: {tid}")
        seen.add(tid)
        out.append({
            "transaction_id": tid,
            "cleared_kg": ledger.weight(number(item, "cleared_kg")),
            "cleared_amount": ledger.money(number(item, "cleared_amount")),
        })
    if sum((a["cleared_amount"] for a in out), ledger.ZERO) > amount:
        raise ValidationError("Allocated amount exceeds the payment amount")
    if sum((a["cleared_kg"] for a in out), ledger.ZERO) > cleared_kg:
        raise ValidationError("Allocated weight exceeds the payment cleared_kg")
    return out


def _owned_transaction_ids(conn, seller_id, ids):
    if not ids:
        return set()
    rows = fetch_all(conn,
                     "SELECT id FROM seller_transactions WHERE seller_id = %s AND id = ANY(%s)",
                     (seller_id, list(ids)))
    return {r["id"] for r in rows}


def _record_payment(conn, seller, from_date, to_date, amount, cleared_kg, notes=None,
                    transaction_id=None, commission=0, advance=0, allocations=()):
    previous = ledger.balance_of(seller)
    new = ledger.apply_payment(previous, amount, cleared_kg)
    payment = insert_payment(conn, seller["id"], from_date, to_date, amount, cleared_kg,
                             notes=notes, transaction_id=transaction_id, commission=commission,
                             advance=advance, allocations=allocations)
    set_seller_balance(conn, seller["id"], previous, new, "payment")
    return payment


@payments_bp.route("/<uuid:seller_id>/payments", methods=["GET"])
@token_required
def get_payments(seller_id):
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            rows = list_payments(conn, seller_id)
    except Exception as e:
        logging.exception("get payments error: %s", e)
        return error("Failed to get payments", 500)
    return ok(rows)


@payments_bp.route("/<uuid:seller_id>/payments", methods=["POST"])
@token_required
def add_payment(seller_id):
    data = body()
    from_date = date_arg(data.get("from_date"), "from_date")
    to_date = date_arg(data.get("to_date"), "to_date")
    amount = ledger.money(number(data, "amount"))
    cleared_kg = ledger.weight(number(data, "cleared_kg"))
    commission = ledger.money(number(data, "commission"))
    advance = ledger.money(number(data, "advance"))
    notes = clean_str(data.get("notes"))
    transaction_id = _uuid(data["transaction_id"]) if data.get("transaction_id") else None
    allocations = _allocations_from(data, amount, cleared_kg)

    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)

            wanted = {a["transaction_id"] for a in allocations or ()}
            if transaction_id:
                wanted.add(transaction_id)
            missing = wanted - _owned_transaction_ids(conn, seller_id, wanted)
            if missing:
                return error("Transaction does not belong to this seller", 400,
                             transaction_ids=sorted(str(m) for m in missing))

            if allocations is None and transaction_id is None:
                txns = reconcile.purchases_in_range(list_transactions(conn, seller_id), from_date, to_date)
                statuses = reconcile.transaction_status(txns, list_payments(conn, seller_id))
                open_rows = [s for s in statuses if s["status"] != reconcile.CLEARED]
                allocations = reconcile.allocate(open_rows, cleared_kg, amount)

            payment = _record_payment(conn, seller, from_date, to_date, amount, cleared_kg,
                                      notes=notes, transaction_id=transaction_id,
                                      commission=commission, advance=advance,
                                      allocations=allocations or ())
    except Exception as e:
        logging.exception("add payment error: %s", e)
        return error("Failed to add payment", 500)
    return ok(payment, 201)


def _range_args():
    start = date_arg(request.args.get("from") or request.args.get("from_date"), "from")
    end = date_arg(request.args.get("to") or request.args.get("to_date"), "to")
    if start and end and start > end:
        raise ValidationError("from must not be after to")
    return start, end


@payments_bp.route("/<uuid:seller_id>/reconciliation", methods=["GET"])
@token_required
def get_reconciliation(seller_id):
    start, end = _range_args()
    try:
        with get_connection() as conn:
            if not get_owned_seller(conn, seller_id, g.user_id):
                return error("Seller not found", 404)
            txns = list_transactions(conn, seller_id)
            payments = list_payments(conn, seller_id)
    except Exception as e:
        logging.exception("reconciliation error: %s", e)
        return error("Failed to reconcile payments", 500)
    return ok(reconcile.reconcile(txns, payments, start, end))


@payments_bp.route("/<uuid:seller_id>/payments/clear", methods=["POST"])
@token_required
def clear_payment(seller_id):
    data = body()
    from_date = date_arg(data.get("from_date"), "from_date")
    to_date = date_arg(data.get("to_date"), "to_date")
    amount = optional_number(data, "amount")
    kg = optional_number(data, "kg")
    commission = ledger.money(number(data, "commission"))
    advance = ledger.money(number(data, "advance"))
    notes = clean_str(data.get("notes"))

    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id, lock=True)
            if not seller:
                return error("Seller not found", 404)

            summary = reconcile.reconcile(list_transactions(conn, seller_id),
                                          list_payments(conn, seller_id), from_date, to_date)
            open_rows = [s for s in summary["transactions"] if s["status"] != reconcile.CLEARED]
            remaining_amount = sum((s["remaining_amount"] for s in open_rows), ledger.ZERO)
            remaining_kg = sum((s["remaining_kg"] for s in open_rows), ledger.ZERO)
            avg_rate = reconcile.rate_of(remaining_amount, remaining_kg)

            eff_amount, eff_kg = reconcile.effective_clear(remaining_amount, remaining_kg, avg_rate,
                                                           amount=amount, kg=kg)
            if eff_amount <= ledger.ZERO and eff_kg <= ledger.ZERO:
                return error("Nothing to clear in this date range", 400)

            allocations = reconcile.allocate(open_rows, eff_kg, eff_amount)
            payment = _record_payment(conn, seller, from_date, to_date, eff_amount, eff_kg,
                                      notes=notes, commission=commission, advance=advance,
                                      allocations=allocations)
            receipt = reconcile.build_receipt(seller, summary["days"], payment,
                                              get_profile(conn, g.user_id))
    except Exception as e:
        logging.exception("clear payment error: %s", e)
        return error("Failed to clear payment", 500)

    logging.info("seller %s cleared %s kg / %s (net payable %s)",
                 seller_id, eff_kg, eff_amount, receipt["grand_total"])
    return ok({"payment": payment, "receipt": receipt}, 201)


@payments_bp.route("/<uuid:seller_id>/payments/<uuid:payment_id>/receipt", methods=["GET"])
@token_required
def payment_receipt(seller_id, payment_id):
    thermal = _parse_bool(request.args.get("thermal"))
    try:
        with get_connection() as conn:
            seller = get_owned_seller(conn, seller_id, g.user_id)
            if not seller:
                return error("Seller not found", 404)
            payment = fetch_one(conn, "SELECT * FROM payments WHERE id = %s AND seller_id = %s",
                                (payment_id, seller_id))
            if not payment:
                return error("Payment not found", 404)
            payments = list_payments(conn, seller_id)
            # the receipt shows the days as they stood when this payment was made
            earlier = reconcile.payments_before(payments, payment)
            summary = reconcile.reconcile(list_transactions(conn, seller_id), earlier,
                                          payment["from_date"], payment["to_date"])
            profile = get_profile(conn, g.user_id)
    except Exception as e:
        logging.exception("receipt error: %s", e)
        return error("Failed to build receipt", 500)

    receipt = reconcile.build_receipt(seller, summary["days"], payment, profile)
    html = render_template("receipt.html", r=receipt, thermal=thermal)
    return html, 200, {"Content-Type": "text/html; charset=utf-8"}
