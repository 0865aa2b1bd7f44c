from datetime import date, datetime

import pytest
from flask import render_template

from bloomtrack import reconcile
from bloomtrack.app import inr_format, kg_format


@pytest.fixture()
def receipt():
    txns = [
        {"id": "a", "transaction_date": date(2024, 3, 1), "amount_added": 1000, "kg_added": 11, "less_weight": 1},
        {"id": "b", "transaction_date": date(2024, 3, 2), "amount_added": 500, "kg_added": 5, "less_weight": 0},
    ]
    days = reconcile.reconcile(txns, [])["days"]
    payment = {"amount": 1500, "cleared_kg": 15, "commission": 75, "advance": 100,
               "from_date": date(2024, 3, 1), "to_date": date(2024, 3, 2),
               "paid_at": datetime(2024, 3, 3, 18, 30)}
    seller = {"serial_number": "A-7", "name": "Kavya"}
    profile = {"shop_name": "Jasmine Depot", "owner_name": "Suresh", "mobile": "9811111111"}
    return reconcile.build_receipt(seller, days, payment, profile)


@pytest.mark.parametrize("value, expected", [
    (1234567.891, "₹12,34,567.89"),
    (999, "₹999.00"),
    (-1500, "-₹1,500.00"),
    ("n/a", "n/a"),
])
def test_inr_format(value, expected):
    assert inr_format(value) == expected


def test_kg_format():
    assert kg_format(2.5) == "2.500"
    assert kg_format(None) is None


def test_receipt_a4_layout(app, receipt):
    with app.test_request_context():
        html = render_template("receipt.html", r=receipt, thermal=False)
    assert "Jasmine Depot" in html
    assert "A-7" in html and "Kavya" in html
    assert "2024-03-01" in html and "2024-03-02" in html
    assert "<th>LW</th>" in html
    assert "2024-03-03 18:30" in html
    # 1500 - 75 commission - 100 advance
    assert "₹1,325.00" in html
    assert "80mm" not in html


def test_receipt_thermal_layout(app, receipt):
    with app.test_request_context():
        html = render_template("receipt.html", r=receipt, thermal=True)
    assert "80mm" in html
    assert "<th>LW</th>" not in html
    assert "Grand total" in html


def test_receipt_without_rows(app):
    r = reconcile.build_receipt({"serial_number": "1", "name": "X"}, [], {"amount": 0})
    with app.test_request_context():
        html = render_template("receipt.html", r=r, thermal=False)
    assert "No purchases in this period" in html
    assert "BloomTrack" in html
