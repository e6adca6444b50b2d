"""
Validated shape of the extraction oracle's response.

The oracle returns loosely-typed JSON. Fact coerces it at the pipeline
boundary: amounts become finite floats or None, currencies become 3-letter
uppercase codes or None. Nothing downstream ever sees a non-numeric amount.
"""

import math
import re
from typing import Any, Optional

from pydantic import BaseModel, field_validator

_CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")


def coerce_amount(value: Any) -> Optional[float]:
    """
    Coerce a loosely-typed amount to a finite float.

    Examples:
        13.99         -> 13.99
        "1,200.50"    -> 1200.5
        "€13.99"      -> 13.99
        "free"        -> None
        float("nan")  -> None
        True          -> None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = re.sub(r"[^0-9.\-]", "", value.replace(",", ""))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


class Fact(BaseModel):
    """The oracle's best-effort structured guess at one transaction."""
    model_config = {"extra": "ignore"}

    vendor_name: Optional[str] = None
    product_name: Optional[str] = None
    original_amount: Optional[float] = None
    original_currency: Optional[str] = None
    purchase_date: Optional[str] = None
    billing_cycle: Optional[str] = None
    category: Optional[str] = None

    @field_validator(
        "vendor_name", "product_name", "purchase_date", "billing_cycle", "category",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> Optional[str]:
        return _clean_text(value)

    @field_validator("original_amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Optional[float]:
        return coerce_amount(value)

    @field_validator("original_currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> Optional[str]:
        text = _clean_text(value)
        if text is None:
            return None
        code = text.upper()
        return code if _CURRENCY_CODE_RE.match(code) else None

    @property
    def is_actionable(self) -> bool:
        """A fact is only worth persisting with both a vendor and an amount."""
        return bool(self.vendor_name) and self.original_amount is not None


def parse_fact(raw: Any) -> Optional[Fact]:
    """
    Validate a raw oracle response.

    Returns None for anything that is not a JSON object. Older oracle
    prompts answered with "price"/"currency"; those keys are accepted as
    fallbacks for original_amount/original_currency.
    """
    if not isinstance(raw, dict) or not raw:
        return None

    data = dict(raw)
    if data.get("original_amount") is None and "price" in data:
        data["original_amount"] = data.get("price")
    if not data.get("original_currency") and "currency" in data:
        data["original_currency"] = data.get("currency")

    return Fact(**data)
