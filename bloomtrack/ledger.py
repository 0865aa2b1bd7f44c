"""
Running-balance arithmetic for a seller.

A seller's live ``amount``/``kg`` is the fold of its purchase, sale and
payment events. The helpers here are the only place the clamping rules
live; routes lock the seller row, call one of these, and write the result.
"""
from collections import namedtuple
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
MONEY = Decimal("0.01")
WEIGHT = Decimal("0.001")

PURCHASE = "purchase"
ADVANCE = "advance"
TRANSACTION_TYPES = (PURCHASE, ADVANCE)

Balance = namedtuple("Balance", ["amount", "kg"])


class LedgerError(ValueError):
    pass


def to_decimal(value, default="0"):
    if value is None or value == "":
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal(default)


def money(value):
    return to_decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


def weight(value):
    return to_decimal(value).quantize(WEIGHT, rounding=ROUND_HALF_UP)


def balance_of(row):
    return Balance(money(row.get("amount")), weight(row.get("kg")))


def _floor(value):
    return value if value > ZERO else ZERO


def normalize_type(transaction_type):
    t = (transaction_type or PURCHASE).strip().lower()
    if t not in TRANSACTION_TYPES:
        raise LedgerError(f"Unknown transaction type: {transaction_type}")
    return t


# ---------------------------
# Single-event rules
# ---------------------------
def apply_purchase(balance, amount_added, kg_added, transaction_type=PURCHASE):
    """Advances may take the amount negative; everything else floors at zero."""
    amount = balance.amount + money(amount_added)
    if normalize_type(transaction_type) != ADVANCE:
        amount = _floor(amount)
    return Balance(amount, _floor(balance.kg + weight(kg_added)))


def apply_edit(balance, old_amount, old_kg, new_amount, new_kg, transaction_type=PURCHASE):
    """Move the balance by the difference between an edited row and its old values."""
    amount_diff = money(new_amount) - money(old_amount)
    kg_diff = weight(new_kg) - weight(old_kg)
    return apply_purchase(balance, amount_diff, kg_diff, transaction_type)


def reverse_purchase(balance, amount_added, kg_added, transaction_type=PURCHASE):
    if normalize_type(transaction_type) == ADVANCE:
        return Balance(balance.amount + abs(money(amount_added)), balance.kg)
    return Balance(_floor(balance.amount - money(amount_added)),
                   _floor(balance.kg - weight(kg_added)))


def check_stock(balance, kg_sold, amount_sold):
    kg_sold = weight(kg_sold)
    amount_sold = money(amount_sold)
    if kg_sold < ZERO or amount_sold < ZERO:
        raise LedgerError("Sold values cannot be negative")
    if kg_sold > balance.kg:
        raise LedgerError("Not enough weight in stock")
    if amount_sold > balance.amount:
        raise LedgerError("Not enough amount in stock")


def apply_sale(balance, kg_sold, amount_sold):
    check_stock(balance, kg_sold, amount_sold)
    return Balance(balance.amount - money(amount_sold), balance.kg - weight(kg_sold))


def restock(balance, kg_sold, amount_sold):
    return Balance(balance.amount + money(amount_sold), balance.kg + weight(kg_sold))


def apply_payment(balance, amount, cleared_kg):
    amount = money(amount)
    cleared_kg = weight(cleared_kg)
    if amount < ZERO or cleared_kg < ZERO:
        raise LedgerError("Payment values cannot be negative")
    return Balance(_floor(balance.amount - amount), _floor(balance.kg - cleared_kg))


def reverse_payment(balance, amount, cleared_kg):
    return Balance(balance.amount + money(amount), balance.kg + weight(cleared_kg))


# ---------------------------
# Authoritative fold
# ---------------------------
def sort_key(value):
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def build_events(transactions=(), sales=(), payments=()):
    """Merge the three ledgers into one list ordered by insert time."""
    events = []
    for t in transactions:
        events.append({"kind": "purchase", "at": t.get("created_at") or t.get("transaction_date"), "row": t})
    for s in sales:
        events.append({"kind": "sale", "at": s.get("created_at") or s.get("sale_date"), "row": s})
    for p in payments:
        events.append({"kind": "payment", "at": p.get("paid_at") or p.get("created_at"), "row": p})
    events.sort(key=lambda e: sort_key(e["at"]))
    return events


def replay(events, opening=None):
    """
    Fold events into a final balance.

    Returns ``(balance, snapshots)`` where snapshots maps each purchase
    transaction id to its recomputed ``(previous, new_total)`` pair.
    Sales in the replay floor at zero instead of raising, so historical
    data that was written before a stock check existed still folds.
    """
    bal = opening or Balance(ZERO, ZERO)
    snapshots = {}
    for ev in events:
        row = ev["row"]
        before = bal
        if ev["kind"] == "purchase":
            bal = apply_purchase(bal, row.get("amount_added"), row.get("kg_added"),
                                 row.get("transaction_type") or PURCHASE)
            snapshots[row.get("id")] = (before, bal)
        elif ev["kind"] == "sale":
            bal = Balance(_floor(bal.amount - money(row.get("amount_sold"))),
                          _floor(bal.kg - weight(row.get("kg_sold"))))
        elif ev["kind"] == "payment":
            bal = apply_payment(bal, row.get("amount"), row.get("cleared_kg"))
    return bal, snapshots


def drift(stored, computed):
    return Balance(stored.amount - computed.amount, stored.kg - computed.kg)
