"""
Pydantic models for financial items and context highlights.
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator


class BillingCycle(str, Enum):
    ONE_TIME = "one-time"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    UNKNOWN = "unknown"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


# indicator_keyword value for the synthesized "general context" highlight
SUMMARY_INDICATOR = "__summary__"


class FinancialItemCreate(BaseModel):
    """
    Fully normalized financial item, ready to insert.

    Display fields travel together: both are None when original_amount is
    None, and currency_display is always set when an amount is present.
    """
    owner_email: str
    vendor_name: Optional[str] = None
    product_name: Optional[str] = None
    original_amount: Optional[float] = None
    original_currency: Optional[str] = None
    amount_display: Optional[float] = None
    currency_display: Optional[str] = None
    amount_is_approximate: bool = False
    purchase_date: Optional[str] = None   # ISO-8601 UTC instant
    billing_cycle: BillingCycle = BillingCycle.UNKNOWN
    category: str = "Other"
    raw_email_subject: Optional[str] = None
    source_email_message_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_display_fields(self) -> "FinancialItemCreate":
        if self.original_amount is None:
            if self.amount_display is not None or self.currency_display is not None:
                raise ValueError("display fields must be empty when original_amount is None")
        elif not self.currency_display:
            raise ValueError("currency_display is required when original_amount is set")
        return self

    def to_row(self) -> dict:
        return self.model_dump(mode="json")


class FinancialItem(FinancialItemCreate):
    """Full financial_items record from the database."""
    model_config = {"from_attributes": True, "extra": "ignore"}

    id: str
    created_at: Optional[str] = None


class HighlightCreate(BaseModel):
    """A mined highlight before insert. financial_item_id is set by the linker."""
    owner_email: str
    product_keyword: Optional[str] = None
    highlight_text: str = Field(min_length=15, max_length=400)
    indicator_keyword: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    source_email_subject: Optional[str] = None
    source_email_message_id: Optional[str] = None
    financial_item_id: Optional[str] = None

    def to_row(self) -> dict:
        return self.model_dump(mode="json")


class ContextHighlight(HighlightCreate):
    """Full context_highlights record from the database."""
    model_config = {"from_attributes": True, "extra": "ignore"}

    id: str
    created_at: Optional[str] = None


class FinancialItemWithHighlights(FinancialItem):
    """Read API response: an item annotated with its highlights."""
    context_highlights: List[ContextHighlight] = []
