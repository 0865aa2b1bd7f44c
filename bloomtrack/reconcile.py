"""
Payment reconciliation for a seller's purchases.

Purchases are grouped per calendar day inside a date range. Each purchase is
matched against recorded payments to work out how much of it is already
cleared and what remains. A purchase counts as cleared when one of these
holds, checked in order:

1. a payment allocation row links it (``payment_allocations``);
2. a payment's single ``transaction_id`` column points at it;
3. a payment written before allocations existed (``legacy_unlinked``) and
   carrying no links has a date range covering its day.

Everything in this module is pure: rows in, dicts out.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from .ledger import ADVANCE, ZERO, money, sort_key, to_decimal, weight

RATE = Decimal("0.01")

CLEARED = "cleared"
PARTIAL = "partial"
OPEN = "open"


def parse_date(value):
    """Accept a date, datetime or 'YYYY-MM-DD...' string; None/'' -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return datetime.strptime(s[:10], "%Y-%m-%d").date()


def in_range(day, start=None, end=None):
    if day is None:
        return False
    if start and day < start:
        return False
    if end and day > end:
        return False
    return True


def ranges_overlap(a_start, a_end, b_start, b_end):
    """Open ends are unbounded."""
    if a_end and b_start and a_end < b_start:
        return False
    if b_end and a_start and b_end < a_start:
        return False
    return True


def rate_of(amount, effective_kg):
    if effective_kg <= ZERO:
        return ZERO
    return (to_decimal(amount) / effective_kg).quantize(RATE, rounding=ROUND_HALF_UP)


def _txn_order(t):
    return (parse_date(t.get("transaction_date")) or date.min, str(t.get("created_at") or ""), str(t.get("id")))


def purchases_in_range(transactions, start=None, end=None):
    rows = [t for t in transactions
            if (t.get("transaction_type") or "purchase") != ADVANCE
            and in_range(parse_date(t.get("transaction_date")), start, end)]
    return sorted(rows, key=_txn_order)


# ---------------------------
# Payment links
# ---------------------------
def _links(payments):
    allocated = {}
    direct = set()
    unlinked = []
    for p in payments:
        allocs = p.get("transactions") or []
        for a in allocs:
            tid = str(a.get("transaction_id"))
            kg, amt = allocated.get(tid, (ZERO, ZERO))
            allocated[tid] = (kg + weight(a.get("cleared_kg")), amt + money(a.get("cleared_amount")))
        if p.get("transaction_id"):
            direct.add(str(p.get("transaction_id")))
        if p.get("legacy_unlinked") and not allocs and not p.get("transaction_id"):
            unlinked.append((parse_date(p.get("from_date")), parse_date(p.get("to_date"))))
    return allocated, direct, unlinked


def transaction_status(transactions, payments):
    """Per purchase: effective weight, cleared/remaining split and how it was matched."""
    allocated, direct, unlinked = _links(payments)
    out = []
    for t in transactions:
        tid = str(t.get("id"))
        day = parse_date(t.get("transaction_date"))
        net_kg = weight(t.get("kg_added"))
        lw = weight(t.get("less_weight"))
        effective = net_kg - lw if net_kg > lw else ZERO
        amount = money(t.get("amount_added"))

        method = None
        cleared_kg = cleared_amount = ZERO
        if tid in allocated:
            method = "allocation"
            kg, amt = allocated[tid]
            cleared_kg = min(effective, kg)
            cleared_amount = min(amount, amt)
        elif tid in direct:
            method = "transaction_id"
            cleared_kg, cleared_amount = effective, amount
        elif any(ranges_overlap(day, day, f, to) for f, to in unlinked):
            method = "date_range"
            cleared_kg, cleared_amount = effective, amount

        remaining_kg = effective - cleared_kg
        remaining_amount = amount - cleared_amount
        if method is None:
            status = OPEN
        elif remaining_kg > ZERO or remaining_amount > ZERO:
            status = PARTIAL
        else:
            status = CLEARED

        out.append({
            "id": tid,
            "date": day,
            "net_kg": net_kg,
            "less_weight": lw,
            "effective_kg": effective,
            "amount": amount,
            "cleared_kg": cleared_kg,
            "cleared_amount": cleared_amount,
            "remaining_kg": remaining_kg,
            "remaining_amount": remaining_amount,
            "status": status,
            "method": method,
        })
    return out


# ---------------------------
# Day grouping
# ---------------------------
def group_by_day(statuses):
    days = {}
    for s in statuses:
        d = days.setdefault(s["date"], {
            "date": s["date"],
            "transaction_ids": [],
            "net_kg": ZERO,
            "less_weight": ZERO,
            "effective_kg": ZERO,
            "amount": ZERO,
            "cleared_kg": ZERO,
            "cleared_amount": ZERO,
            "remaining_kg": ZERO,
            "remaining_amount": ZERO,
            "methods": [],
        })
        d["transaction_ids"].append(s["id"])
        for key in ("net_kg", "less_weight", "effective_kg", "amount",
                    "cleared_kg", "cleared_amount", "remaining_kg", "remaining_amount"):
            d[key] += s[key]
        if s["method"] and s["method"] not in d["methods"]:
            d["methods"].append(s["method"])

    rows = []
    for day in sorted(days):
        d = days[day]
        d["rate"] = rate_of(d["amount"], d["effective_kg"])
        if not d["methods"]:
            d["status"] = OPEN
        elif d["remaining_kg"] > ZERO or d["remaining_amount"] > ZERO:
            d["status"] = PARTIAL
        else:
            d["status"] = CLEARED
        d["cleared"] = d["status"] == CLEARED
        rows.append(d)
    return rows


def summarize(days):
    totals = {k: ZERO for k in ("net_kg", "less_weight", "effective_kg", "amount",
                                "cleared_kg", "cleared_amount", "remaining_kg", "remaining_amount")}
    for d in days:
        for k in totals:
            totals[k] += d[k]
    totals["avg_rate"] = rate_of(totals["amount"], totals["effective_kg"])
    totals["days"] = len(days)
    return totals


def payments_in_range(payments, start=None, end=None):
    if not start and not end:
        return list(payments)
    return [p for p in payments
            if ranges_overlap(parse_date(p.get("from_date")), parse_date(p.get("to_date")), start, end)]


def payments_before(payments, payment):
    """Payments recorded strictly earlier than ``payment``; what its receipt was settled against."""
    cutoff = sort_key(payment.get("paid_at"))
    return [p for p in payments
            if p.get("id") != payment.get("id") and sort_key(p.get("paid_at")) < cutoff]


def reconcile(transactions, payments, start=None, end=None):
    statuses = transaction_status(purchases_in_range(transactions, start, end), payments)
    days = group_by_day(statuses)
    return {
        "from_date": start,
        "to_date": end,
        "days": days,
        "transactions": statuses,
        "totals": summarize(days),
        "payments": payments_in_range(payments, start, end),
    }


# ---------------------------
# Clearing
# ---------------------------
def effective_clear(remaining_amount, remaining_kg, avg_rate, amount=None, kg=None):
    """
    Work out what a "Clear Payment" action clears.

    Entered values are capped at what remains. When only one of amount/kg
    is entered the other is derived from the average rate; when neither is,
    everything remaining is cleared.
    """
    remaining_amount = money(remaining_amount)
    remaining_kg = weight(remaining_kg)
    avg_rate = to_decimal(avg_rate)
    amt = money(amount) if amount not in (None, "") else ZERO
    kg_in = weight(kg) if kg not in (None, "") else ZERO
    if amt < ZERO or kg_in < ZERO:
        raise ValueError("Amount and weight cannot be negative")

    if amt > ZERO and kg_in > ZERO:
        return min(remaining_amount, amt), min(remaining_kg, kg_in)
    if amt > ZERO:
        eff_amount = min(remaining_amount, amt)
        if avg_rate > ZERO:
            return eff_amount, min(remaining_kg, weight(eff_amount / avg_rate))
        return eff_amount, remaining_kg
    if kg_in > ZERO:
        eff_kg = min(remaining_kg, kg_in)
        if avg_rate > ZERO:
            return min(remaining_amount, money(eff_kg * avg_rate)), eff_kg
        return remaining_amount, eff_kg
    return remaining_amount, remaining_kg


def net_payable(effective_amount, commission=0, advance=0):
    total = money(effective_amount) - money(commission) - money(advance)
    return total if total > ZERO else ZERO


def allocate(statuses, kg_to_clear, amount_to_clear):
    """
    Spread a cleared weight and amount over open purchases, oldest first.

    Each purchase takes at most what remains on it. Returns a list of
    ``{transaction_id, cleared_kg, cleared_amount}`` with zero rows dropped.
    """
    kg_left = weight(kg_to_clear)
    amt_left = money(amount_to_clear)
    out = []
    for s in sorted(statuses, key=lambda s: (s["date"] or date.min, s["id"])):
        if kg_left <= ZERO and amt_left <= ZERO:
            break
        take_kg = min(s["remaining_kg"], kg_left) if kg_left > ZERO else ZERO
        take_amt = min(s["remaining_amount"], amt_left) if amt_left > ZERO else ZERO
        if take_kg <= ZERO and take_amt <= ZERO:
            continue
        kg_left -= take_kg
        amt_left -= take_amt
        out.append({"transaction_id": s["id"], "cleared_kg": take_kg, "cleared_amount": take_amt})
    return out


def build_receipt(seller, days, payment, profile=None):
    """Numbers for a printed receipt: per-day rows, totals, deductions, grand total."""
    totals = summarize(days)
    commission = money(payment.get("commission"))
    advance = money(payment.get("advance"))
    paid_amount = money(payment.get("amount"))
    profile = profile or {}
    return {
        "shop_name": profile.get("shop_name") or "",
        "owner_name": profile.get("owner_name") or "",
        "owner_mobile": profile.get("mobile") or "",
        "serial_number": seller.get("serial_number"),
        "seller_name": seller.get("name"),
        "paid_at": payment.get("paid_at"),
        "from_date": parse_date(payment.get("from_date")),
        "to_date": parse_date(payment.get("to_date")),
        "rows": days,
        "totals": totals,
        "cleared_amount": paid_amount,
        "cleared_kg": weight(payment.get("cleared_kg")),
        "commission": commission,
        "advance": advance,
        "grand_total": net_payable(paid_amount, commission, advance),
    }
