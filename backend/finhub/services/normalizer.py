"""
Normalization service for extraction oracle facts.

Converts a validated Fact into a FinancialItemCreate: purchase dates become
absolute UTC instants, amounts are converted into the display currency, and
billing cycles and categories are mapped onto canonical values.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from pydantic import BaseModel

from finhub.config import PipelineSettings
from finhub.models.extraction import Fact
from finhub.models.financial import BillingCycle, FinancialItemCreate
from finhub.models.inbound_email import InboundEmail
from finhub.services.lexicon import BILLING_CYCLE_SYNONYMS, FINANCIAL_CATEGORIES

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_FORMATS = [
    "%B %d, %Y",   # "January 1, 2024"
    "%b %d, %Y",   # "Jan 1, 2024"
    "%d %B %Y",    # "1 January 2024"
    "%d %b %Y",    # "1 Jan 2024"
    "%B %d %Y",    # "January 1 2024"
    "%m/%d/%Y",    # "01/31/2024"
    "%d/%m/%Y",    # "31/01/2024" (tried after US order)
    "%Y/%m/%d",    # "2024/01/31"
    "%d.%m.%Y",    # "31.01.2024"
    "%Y-%m-%d %H:%M:%S",
]

# Two-digit year formats; the century is resolved by _resolve_century.
_SHORT_YEAR_FORMATS = [
    "%m/%d/%y",
    "%d/%m/%y",
    "%d.%m.%y",
    "%m-%d-%y",
]


class Conversion(BaseModel):
    amount_display: Optional[float] = None
    currency_display: Optional[str] = None
    approximate: bool = False


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _resolve_century(parsed: datetime, now: datetime) -> datetime:
    """
    Pin a two-digit year: up to ten years ahead of now is 20xx, else 19xx.
    """
    two_digit = parsed.year % 100
    pivot = now.year % 100 + 10
    year = 2000 + two_digit if two_digit <= pivot else 1900 + two_digit
    return parsed.replace(year=year)


def parse_date_loosely(value: str, now: datetime) -> Optional[datetime]:
    """
    Parse a non-ISO date string. Returns an aware UTC datetime or None.
    """
    stripped = value.strip()

    try:
        return _as_utc(datetime.fromisoformat(stripped.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in _FORMATS:
        try:
            return _as_utc(datetime.strptime(stripped, fmt))
        except ValueError:
            continue

    for fmt in _SHORT_YEAR_FORMATS:
        try:
            return _as_utc(_resolve_century(datetime.strptime(stripped, fmt), now))
        except ValueError:
            continue

    try:
        return _as_utc(parsedate_to_datetime(stripped))
    except (TypeError, ValueError, IndexError):
        pass

    logger.debug("parse_date_loosely: could not parse date string %r", value)
    return None


def normalize_purchase_date(
    value: Optional[str],
    email_date: Optional[datetime],
    now: datetime,
) -> datetime:
    """
    Resolve a purchase date to an absolute UTC instant. Never returns None.

    Order:
      1. strict YYYY-MM-DD, read as UTC midnight
      2. generic parse of any other string
      3. the email's own Date header
      4. processing time
    """
    if isinstance(value, str) and value.strip():
        stripped = value.strip()
        if _ISO_DATE_RE.match(stripped):
            try:
                return datetime.strptime(stripped, "%Y-%m-%d").replace(tzinfo=timezone.utc)
            except ValueError:
                logger.warning("Invalid purchase date %r; using fallback", value)
        else:
            parsed = parse_date_loosely(stripped, now)
            if parsed is not None:
                return parsed
            logger.warning("Unparsable purchase date %r; using fallback", value)

    if email_date is not None:
        return _as_utc(email_date)
    return _as_utc(now)


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------

def convert_currency(
    amount: Optional[float],
    currency: Optional[str],
    display_currency: str,
    rates: dict[str, float],
) -> Conversion:
    """
    Convert an original amount into the display currency.

    Rules, applied in order once amount is present:
      1. currency has a configured rate -> round(amount * rate, 2)
      2. currency is the display currency -> amount unchanged
      3. currency is present but unknown -> shown in its own currency
      4. currency is missing -> assumed to be the display currency and
         flagged approximate

    Examples (display USD, EUR rate 1.08):
        (100, "EUR") -> 108.0 USD
        (100, "XYZ") -> 100 XYZ
        (None, "EUR") -> None None
    """
    if amount is None:
        return Conversion()

    code = currency.upper() if currency else None

    if code and code in rates:
        return Conversion(
            amount_display=round(amount * rates[code], 2),
            currency_display=display_currency,
        )

    if code == display_currency:
        return Conversion(amount_display=amount, currency_display=display_currency)

    if code:
        logger.warning(
            "Unrecognized original_currency %r; displaying the original amount", code
        )
        return Conversion(amount_display=amount, currency_display=code)

    logger.warning(
        "Amount %s has no currency; assuming %s", amount, display_currency
    )
    return Conversion(
        amount_display=amount,
        currency_display=display_currency,
        approximate=True,
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

def normalize_billing_cycle(value: Optional[str]) -> BillingCycle:
    """
    Map free text onto a BillingCycle. Unrecognised values are UNKNOWN.

    Examples:
        "Monthly"     -> MONTHLY
        "yearly"      -> ANNUALLY
        "one time"    -> ONE_TIME
        "fortnightly" -> UNKNOWN
    """
    if not isinstance(value, str) or not value.strip():
        return BillingCycle.UNKNOWN
    canonical = BILLING_CYCLE_SYNONYMS.get(value.strip().lower())
    return BillingCycle(canonical) if canonical else BillingCycle.UNKNOWN


_CATEGORY_LOOKUP = {name.lower(): name for name in FINANCIAL_CATEGORIES}


def normalize_category(value: Optional[str]) -> str:
    """Canonical casing for known categories; free-form text is kept; default "Other"."""
    if not isinstance(value, str) or not value.strip():
        return "Other"
    stripped = value.strip()
    return _CATEGORY_LOOKUP.get(stripped.lower(), stripped)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def normalize_fact(
    fact: Fact,
    email: InboundEmail,
    settings: PipelineSettings,
    now: Optional[datetime] = None,
) -> FinancialItemCreate:
    """
    Convert an accepted Fact into a FinancialItemCreate for the email's owner.
    """
    now = now or datetime.now(timezone.utc)

    conversion = convert_currency(
        fact.original_amount,
        fact.original_currency,
        settings.display_currency,
        settings.conversion_rates,
    )
    purchase_date = normalize_purchase_date(fact.purchase_date, email.sent_at, now)

    return FinancialItemCreate(
        owner_email=email.owner_email,
        vendor_name=fact.vendor_name,
        product_name=fact.product_name,
        original_amount=fact.original_amount,
        original_currency=fact.original_currency,
        amount_display=conversion.amount_display,
        currency_display=conversion.currency_display,
        amount_is_approximate=conversion.approximate,
        purchase_date=purchase_date.isoformat(),
        billing_cycle=normalize_billing_cycle(fact.billing_cycle),
        category=normalize_category(fact.category),
        raw_email_subject=email.subject or None,
        source_email_message_id=email.message_id,
    )
