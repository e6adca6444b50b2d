"""
Unit tests for the fact normalizer: purchase dates, currency conversion,
billing cycles, categories, and the full Fact -> FinancialItemCreate step.
"""

from datetime import datetime, timezone

import pytest

from finhub.models.extraction import Fact
from finhub.models.financial import BillingCycle
from finhub.models.inbound_email import InboundEmail
from finhub.services.normalizer import (
    convert_currency,
    normalize_billing_cycle,
    normalize_category,
    normalize_fact,
    normalize_purchase_date,
    parse_date_loosely,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
EMAIL_DATE = datetime(2025, 6, 2, 9, 30, tzinfo=timezone.utc)
RATES = {"EUR": 1.08, "GBP": 1.27, "INR": 0.012}


# ---------------------------------------------------------------------------
# Purchase date
# ---------------------------------------------------------------------------

class TestNormalizePurchaseDate:
    def test_strict_iso_date_is_utc_midnight(self):
        result = normalize_purchase_date("2025-06-01", EMAIL_DATE, NOW)
        assert result == datetime(2025, 6, 1, tzinfo=timezone.utc)

    def test_invalid_strict_date_falls_back_to_email_date(self):
        assert normalize_purchase_date("2025-02-30", EMAIL_DATE, NOW) == EMAIL_DATE

    @pytest.mark.parametrize("value, expected", [
        ("June 1, 2025", datetime(2025, 6, 1, tzinfo=timezone.utc)),
        ("1 Jun 2025", datetime(2025, 6, 1, tzinfo=timezone.utc)),
        ("06/01/2025", datetime(2025, 6, 1, tzinfo=timezone.utc)),
        ("2025-06-01T10:00:00+02:00", datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)),
        ("Mon, 2 Jun 2025 10:00:00 +0000", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc)),
    ])
    def test_loose_formats(self, value, expected):
        assert normalize_purchase_date(value, EMAIL_DATE, NOW) == expected

    def test_unparsable_falls_back_to_email_date(self):
        assert normalize_purchase_date("sometime last week", EMAIL_DATE, NOW) == EMAIL_DATE

    def test_missing_value_falls_back_to_email_date(self):
        assert normalize_purchase_date(None, EMAIL_DATE, NOW) == EMAIL_DATE

    def test_no_email_date_falls_back_to_now(self):
        assert normalize_purchase_date("garbage", None, NOW) == NOW
        assert normalize_purchase_date("", None, NOW) == NOW


class TestTwoDigitYears:
    def test_recent_year_is_this_century(self):
        parsed = parse_date_loosely("06/01/25", NOW)
        assert parsed == datetime(2025, 6, 1, tzinfo=timezone.utc)

    def test_near_future_year_is_this_century(self):
        assert parse_date_loosely("01/15/34", NOW).year == 2034

    def test_far_future_year_is_previous_century(self):
        assert parse_date_loosely("12/31/40", NOW).year == 1940

    def test_old_year_is_previous_century(self):
        assert parse_date_loosely("01/01/99", NOW).year == 1999

    def test_unparsable_returns_none(self):
        assert parse_date_loosely("not a date", NOW) is None


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------

class TestConvertCurrency:
    def test_configured_rate(self):
        result = convert_currency(100, "EUR", "USD", RATES)
        assert result.amount_display == 108.0
        assert result.currency_display == "USD"
        assert result.approximate is False

    def test_rounds_to_two_places(self):
        assert convert_currency(13.99, "EUR", "USD", RATES).amount_display == 15.11

    def test_lowercase_code_uses_rate(self):
        assert convert_currency(10, "gbp", "USD", RATES).amount_display == 12.7

    def test_display_currency_unchanged(self):
        result = convert_currency(42.5, "USD", "USD", RATES)
        assert result.amount_display == 42.5
        assert result.currency_display == "USD"

    def test_unknown_currency_shown_in_original(self):
        result = convert_currency(100, "XYZ", "USD", RATES)
        assert result.amount_display == 100
        assert result.currency_display == "XYZ"
        assert result.approximate is False

    def test_missing_currency_assumes_display_and_flags(self):
        result = convert_currency(9.99, None, "USD", RATES)
        assert result.amount_display == 9.99
        assert result.currency_display == "USD"
        assert result.approximate is True

    def test_missing_amount_leaves_display_empty(self):
        result = convert_currency(None, "EUR", "USD", RATES)
        assert result.amount_display is None
        assert result.currency_display is None

    def test_zero_amount_is_converted(self):
        result = convert_currency(0.0, "EUR", "USD", RATES)
        assert result.amount_display == 0.0
        assert result.currency_display == "USD"


# ---------------------------------------------------------------------------
# Billing cycle / category
# ---------------------------------------------------------------------------

class TestEnumerations:
    @pytest.mark.parametrize("value, expected", [
        ("monthly", BillingCycle.MONTHLY),
        ("Monthly", BillingCycle.MONTHLY),
        ("yearly", BillingCycle.ANNUALLY),
        ("annual", BillingCycle.ANNUALLY),
        ("one time", BillingCycle.ONE_TIME),
        ("Quarterly", BillingCycle.QUARTERLY),
        ("fortnightly", BillingCycle.UNKNOWN),
        ("", BillingCycle.UNKNOWN),
        (None, BillingCycle.UNKNOWN),
    ])
    def test_billing_cycle(self, value, expected):
        assert normalize_billing_cycle(value) == expected

    def test_known_category_gets_canonical_casing(self):
        assert normalize_category("cloud services") == "Cloud Services"

    def test_free_form_category_kept(self):
        assert normalize_category("Pet Supplies") == "Pet Supplies"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_category_is_other(self, value):
        assert normalize_category(value) == "Other"


# ---------------------------------------------------------------------------
# normalize_fact
# ---------------------------------------------------------------------------

class TestNormalizeFact:
    def _email(self, **overrides):
        fields = {
            "owner_email": "u@x.com",
            "subject": "Your Netflix receipt",
            "text_body": "Netflix charged you €13.99.",
            "message_id": "m1",
            "sent_at": EMAIL_DATE,
        }
        fields.update(overrides)
        return InboundEmail(**fields)

    def test_full_fact(self, settings, netflix_fact):
        item = normalize_fact(netflix_fact, self._email(), settings, now=NOW)

        assert item.owner_email == "u@x.com"
        assert item.vendor_name == "Netflix"
        assert item.original_amount == 13.99
        assert item.original_currency == "EUR"
        assert item.amount_display == 15.11
        assert item.currency_display == "USD"
        assert item.amount_is_approximate is False
        assert item.purchase_date == "2025-06-01T00:00:00+00:00"
        assert item.billing_cycle == BillingCycle.MONTHLY
        assert item.category == "Entertainment"
        assert item.raw_email_subject == "Your Netflix receipt"
        assert item.source_email_message_id == "m1"

    def test_sparse_fact_uses_defaults(self, settings):
        fact = Fact(vendor_name="Corner Shop", original_amount=4.5)
        item = normalize_fact(fact, self._email(sent_at=None), settings, now=NOW)

        assert item.amount_display == 4.5
        assert item.currency_display == "USD"
        assert item.amount_is_approximate is True
        assert item.purchase_date == NOW.isoformat()
        assert item.billing_cycle == BillingCycle.UNKNOWN
        assert item.category == "Other"

    def test_row_is_json_ready(self, settings, netflix_fact):
        row = normalize_fact(netflix_fact, self._email(), settings, now=NOW).to_row()
        assert row["billing_cycle"] == "monthly"
        assert isinstance(row["purchase_date"], str)
