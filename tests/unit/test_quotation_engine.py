"""Tests for currency conversion, part pricing and quotation totals."""

import re

import pytest

from errorlytic.errors import InvalidStateError, ValidationError
from errorlytic.services.quotation_engine import (
    QuotationOptions,
    QuotationLine,
    compute_totals,
    convert_currency,
    generate_share_token,
    get_part_pricing,
    labor_hours_for,
    next_status,
    quotation_engine,
    share_url,
)


ENGINE_PARTS = [
    {"name": "Spark Plugs", "oem": "NGK BKR6E", "alt": ["Bosch FR7DPP"], "qty": 4},
    {"name": "Ignition Coil", "oem": "VW 06H905115", "alt": [], "qty": 1},
]


def test_convert_kes_to_usd():
    assert convert_currency(15000, "KES", "USD") == pytest.approx(100.5)


def test_convert_usd_to_kes():
    assert convert_currency(100, "USD", "KES") == pytest.approx(14925, abs=1)


def test_convert_same_currency_is_identity():
    assert convert_currency(123.456, "TZS", "tzs") == 123.456


def test_convert_between_non_base_currencies_goes_through_kes():
    assert convert_currency(100, "USD", "UGX") == pytest.approx(425373.13, abs=0.01)


def test_unsupported_currency():
    with pytest.raises(ValidationError, match="Unsupported currency: EUR"):
        convert_currency(1, "EUR", "KES")


def test_part_pricing():
    assert get_part_pricing("Spark Plugs", "KES", True).to_dict() == {"price": 2500, "currency": "KES"}
    assert get_part_pricing("Spark Plugs", "KES", False).price == 1500
    assert get_part_pricing("Flux Capacitor", "KES", True).price == 5000
    assert get_part_pricing("Flux Capacitor", "KES", False).price == 2500
    assert get_part_pricing("Spark Plugs", "USD", True).to_dict() == {"price": 16.75, "currency": "USD"}


def test_labor_hours_round_up_to_whole_hours():
    assert labor_hours_for(0) == 0
    assert labor_hours_for(60) == 1
    assert labor_hours_for(61) == 2


def test_totals_formula():
    lines = [QuotationLine.priced("Spark Plugs", 1500, 4, None, False)]
    totals = compute_totals(lines, labor_hours=2, labor_rate=2500, markup_pct=15, tax_pct=16)

    assert totals.parts == 6000
    assert totals.labor == 5000
    assert totals.markup == 900
    assert totals.tax == 1760
    assert totals.grand == 13660


def test_price_with_aftermarket_parts():
    draft = quotation_engine.price(ENGINE_PARTS, 110, QuotationOptions())

    assert draft.currency == "KES"
    assert draft.status == "draft"
    assert draft.labor_hours == 2
    assert draft.labor_rate == 2500
    assert [(line.name, line.unit_price, line.qty, line.part_number) for line in draft.lines] == [
        ("Spark Plugs", 1500, 4, "Bosch FR7DPP"),
        ("Ignition Coil", 4500, 1, "VW 06H905115"),
    ]
    assert draft.totals.parts == 10500
    assert draft.totals.grand == pytest.approx(10500 + 5000 + 2480 + 1575)


def test_price_with_oem_parts_in_usd():
    options = QuotationOptions(currency="usd", use_oem_parts=True, markup_pct=0, tax_pct=0)
    draft = quotation_engine.price(ENGINE_PARTS, 60, options)

    assert draft.currency == "USD"
    assert draft.labor_rate == pytest.approx(16.75)
    assert draft.lines[0].part_number == "NGK BKR6E"
    assert draft.lines[0].unit_price == pytest.approx(16.75)
    assert draft.totals.grand == pytest.approx(16.75 * 4 + 56.95 + 16.75)


def test_options_validate_ranges():
    with pytest.raises(ValidationError):
        QuotationOptions(tax_pct=120)
    with pytest.raises(ValidationError):
        QuotationOptions(labor_rate=-1)
    with pytest.raises(ValidationError):
        QuotationOptions(currency="EUR")


def test_reprice_recomputes_subtotals():
    lines, totals = quotation_engine.reprice(
        [{"name": "Spark Plugs", "unit_price": 1500, "qty": 2, "subtotal": 99999}],
        labor_hours=1, labor_rate=2000, markup_pct=10, tax_pct=0,
    )

    assert lines[0].subtotal == 3000
    assert totals.grand == 3000 + 2000 + 300


def test_reprice_rejects_invalid_lines():
    with pytest.raises(ValidationError):
        quotation_engine.reprice([{"name": "Spark Plugs", "unit_price": 1500, "qty": 0}], 1, 2000, 10, 16)


@pytest.mark.parametrize(
    "current,action,expected",
    [
        ("draft", "update", "draft"),
        ("draft", "send", "sent"),
        ("sent", "approve", "approved"),
        ("sent", "reject", "rejected"),
    ],
)
def test_allowed_transitions(current, action, expected):
    assert next_status(current, action) == expected


@pytest.mark.parametrize(
    "current,action",
    [
        ("draft", "approve"),
        ("sent", "update"),
        ("sent", "send"),
        ("approved", "reject"),
        ("rejected", "approve"),
        ("approved", "update"),
    ],
)
def test_forbidden_transitions(current, action):
    with pytest.raises(InvalidStateError):
        next_status(current, action)


def test_share_token_is_32_hex_chars():
    token = generate_share_token()

    assert re.fullmatch(r"[0-9a-f]{32}", token)
    assert token != generate_share_token()
    assert share_url(token).endswith(f"/quotation/{token}")
