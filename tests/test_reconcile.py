from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from bloomtrack import reconcile

D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)


@pytest.fixture()
def transactions():
    return [
        {"id": "a", "transaction_date": "2024-01-01", "created_at": "2024-01-01T08:00:00",
         "amount_added": 900, "kg_added": 10, "less_weight": 1},
        {"id": "b", "transaction_date": D1, "created_at": "2024-01-01T09:00:00",
         "amount_added": 500, "kg_added": 5, "less_weight": 0},
        {"id": "c", "transaction_date": D2, "created_at": "2024-01-02T08:00:00",
         "amount_added": 1800, "kg_added": 20, "less_weight": 2},
        {"id": "d", "transaction_date": D2, "created_at": "2024-01-02T09:00:00",
         "transaction_type": "advance", "amount_added": -100, "kg_added": 0},
    ]


def _days(transactions, payments=(), start=None, end=None):
    return reconcile.reconcile(transactions, list(payments), start, end)["days"]


def test_parse_date():
    assert reconcile.parse_date("2024-01-02T10:00:00Z") == D2
    assert reconcile.parse_date("") is None
    with pytest.raises(ValueError):
        reconcile.parse_date("2024-13-40")


def test_ranges_overlap_treats_open_ends_as_unbounded():
    assert reconcile.ranges_overlap(D1, D1, None, None)
    assert reconcile.ranges_overlap(D2, D2, D1, None)
    assert not reconcile.ranges_overlap(D1, D1, D2, None)


def test_rate_is_zero_without_weight():
    assert reconcile.rate_of(100, Decimal("0")) == 0
    assert reconcile.rate_of(Decimal("1000"), Decimal("3")) == Decimal("333.33")


def test_advances_are_not_reconciled(transactions):
    ids = [t["id"] for t in reconcile.purchases_in_range(transactions)]
    assert ids == ["a", "b", "c"]


def test_days_group_purchases_and_subtract_less_weight(transactions):
    days = _days(transactions)
    assert [d["date"] for d in days] == [D1, D2]

    first = days[0]
    assert first["transaction_ids"] == ["a", "b"]
    assert first["net_kg"] == 15
    assert first["less_weight"] == 1
    assert first["effective_kg"] == 14
    assert first["amount"] == 1400
    assert first["rate"] == 100
    assert first["status"] == "open"
    assert first["cleared"] is False


def test_range_filters_days(transactions):
    days = _days(transactions, start=D2, end=D2)
    assert [d["date"] for d in days] == [D2]


def test_allocation_clears_the_linked_day(transactions):
    payments = [{"id": "p1", "from_date": D2, "to_date": D2, "amount": 1800, "cleared_kg": 18,
                 "transactions": [{"transaction_id": "c", "cleared_kg": 18, "cleared_amount": 1800}]}]
    first, second = _days(transactions, payments)
    assert first["status"] == "open"
    assert second["cleared"] is True
    assert second["methods"] == ["allocation"]
    assert second["remaining_kg"] == 0


def test_partial_allocation_leaves_remainder(transactions):
    payments = [{"id": "p1", "transactions": [
        {"transaction_id": "c", "cleared_kg": 8, "cleared_amount": 800}]}]
    second = _days(transactions, payments)[1]
    assert second["status"] == "partial"
    assert second["remaining_kg"] == 10
    assert second["remaining_amount"] == 1000


def test_single_transaction_link(transactions):
    payments = [{"id": "p1", "transaction_id": "a", "amount": 900, "cleared_kg": 9}]
    first = _days(transactions, payments)[0]
    assert first["methods"] == ["transaction_id"]
    assert first["status"] == "partial"
    assert first["remaining_kg"] == 5


def test_legacy_unlinked_payment_falls_back_to_date_range(transactions):
    payments = [{"id": "p1", "from_date": "2024-01-01", "to_date": "2024-01-01",
                 "amount": 1400, "cleared_kg": 14, "legacy_unlinked": True}]
    first, second = _days(transactions, payments)
    assert first["cleared"] is True
    assert first["methods"] == ["date_range"]
    assert second["status"] == "open"


def test_payment_without_links_clears_nothing():
    purchase = {"id": "t1", "transaction_date": "2025-01-01", "amount_added": 1000, "kg_added": 10}
    payment = {"id": "p1", "amount": 50, "from_date": None, "to_date": None,
               "transactions": [], "transaction_id": None, "legacy_unlinked": False}
    day = _days([purchase], [payment])[0]
    assert day["status"] == "open"
    assert day["remaining_amount"] == 1000
    assert day["remaining_kg"] == 10


def test_linked_payment_does_not_clear_by_date(transactions):
    payments = [{"id": "p1", "from_date": None, "to_date": None, "transaction_id": "a"}]
    second = _days(transactions, payments)[1]
    assert second["status"] == "open"


def test_totals_and_payments_in_range(transactions):
    payments = [
        {"id": "p1", "from_date": "2024-01-01", "to_date": "2024-01-01"},
        {"id": "p2", "from_date": "2024-02-01", "to_date": "2024-02-05"},
    ]
    result = reconcile.reconcile(transactions, payments, D1, D2)
    assert result["totals"]["effective_kg"] == 32
    assert result["totals"]["amount"] == 3200
    assert result["totals"]["avg_rate"] == 100
    assert result["totals"]["days"] == 2
    assert [p["id"] for p in result["payments"]] == ["p1"]


def _paid(hour):
    return datetime(2024, 1, 3, hour, tzinfo=timezone.utc)


def test_payments_before_keeps_only_earlier_payments(transactions):
    earlier = {"id": "p1", "paid_at": _paid(9),
               "transactions": [{"transaction_id": "a", "cleared_kg": 9, "cleared_amount": 900}]}
    this = {"id": "p2", "paid_at": _paid(10),
            "transactions": [{"transaction_id": "b", "cleared_kg": 5, "cleared_amount": 500}]}
    later = {"id": "p3", "paid_at": _paid(11),
             "transactions": [{"transaction_id": "c", "cleared_kg": 18, "cleared_amount": 1800}]}

    before = reconcile.payments_before([later, this, earlier], this)
    assert [p["id"] for p in before] == ["p1"]

    first, second = _days(transactions, before)
    assert first["status"] == "partial"
    assert second["status"] == "open"


@pytest.mark.parametrize("amount, kg, expected", [
    (None, None, (Decimal("1000"), Decimal("10"))),
    ("500", None, (Decimal("500"), Decimal("5"))),
    (None, "3", (Decimal("300"), Decimal("3"))),
    ("400", "2", (Decimal("400"), Decimal("2"))),
    ("5000", None, (Decimal("1000"), Decimal("10"))),
])
def test_effective_clear(amount, kg, expected):
    assert reconcile.effective_clear(1000, 10, 100, amount=amount, kg=kg) == expected


def test_effective_clear_without_rate_clears_other_side_fully():
    assert reconcile.effective_clear(1000, 10, 0, amount=200) == (Decimal("200"), Decimal("10"))


def test_effective_clear_rejects_negatives():
    with pytest.raises(ValueError):
        reconcile.effective_clear(1000, 10, 100, amount=-5)


def test_net_payable_floors_at_zero():
    assert reconcile.net_payable(1000, 50, 20) == Decimal("930")
    assert reconcile.net_payable(10, 50, 0) == 0


def test_allocate_is_greedy_oldest_first(transactions):
    statuses = reconcile.transaction_status(reconcile.purchases_in_range(transactions), [])
    out = reconcile.allocate(statuses, 12, 1200)
    assert [a["transaction_id"] for a in out] == ["a", "b"]
    assert out[0]["cleared_kg"] == 9 and out[0]["cleared_amount"] == 900
    assert out[1]["cleared_kg"] == 3 and out[1]["cleared_amount"] == 300


def test_allocate_skips_cleared_rows(transactions):
    payments = [{"id": "p1", "transaction_id": "a"}]
    statuses = reconcile.transaction_status(reconcile.purchases_in_range(transactions), payments)
    out = reconcile.allocate(statuses, 5, 500)
    assert [a["transaction_id"] for a in out] == ["b"]


def test_build_receipt():
    seller = {"serial_number": "12", "name": "Ravi"}
    payment = {"amount": 1000, "cleared_kg": 10, "commission": 50, "advance": 20,
               "from_date": "2024-01-01", "to_date": "2024-01-02"}
    profile = {"shop_name": "Lotus Traders", "owner_name": "Meena", "mobile": "9000000000"}
    receipt = reconcile.build_receipt(seller, [], payment, profile)
    assert receipt["shop_name"] == "Lotus Traders"
    assert receipt["serial_number"] == "12"
    assert receipt["from_date"] == D1
    assert receipt["grand_total"] == Decimal("930")
    assert receipt["totals"]["days"] == 0
