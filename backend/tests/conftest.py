"""
Shared fixtures: an in-memory repository and a scripted extraction oracle.

No test touches Supabase or Anthropic.
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest

# Ensure env vars are set before importing anything that triggers app imports
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

from finhub.config import PipelineSettings
from finhub.models.extraction import Fact
from finhub.models.financial import (
    ContextHighlight,
    FinancialItem,
    FinancialItemCreate,
    HighlightCreate,
)
from finhub.services.linker import keyword_matches_item
from finhub.services.repository import StorageError


class InMemoryRepository:
    """
    Stand-in for FinancialRepository with the same uniqueness rule as the
    database: one item per (owner_email, source_email_message_id).
    """

    def __init__(self):
        self.items: list[FinancialItem] = []
        self.highlights: list[ContextHighlight] = []
        self.fail_item_insert = False
        self.fail_highlight_containing: Optional[str] = None
        self.keyword_lookups: list[str] = []
        self._clock = 0

    def _tick(self) -> str:
        self._clock += 1
        return datetime(2025, 1, 1, 0, 0, self._clock % 60, tzinfo=timezone.utc).isoformat()

    def insert_financial_item(self, item: FinancialItemCreate) -> tuple[FinancialItem, bool]:
        if self.fail_item_insert:
            raise StorageError("database unavailable")
        if item.source_email_message_id:
            existing = self.get_item_by_message_id(item.owner_email, item.source_email_message_id)
            if existing is not None:
                return existing, False
        row = FinancialItem(id=str(uuid.uuid4()), created_at=self._tick(), **item.model_dump())
        self.items.append(row)
        return row, True

    def get_item_by_message_id(self, owner_email: str, message_id: str) -> Optional[FinancialItem]:
        for item in self.items:
            if item.owner_email == owner_email and item.source_email_message_id == message_id:
                return item
        return None

    def find_latest_item_by_keyword(self, owner_email: str, keyword: str) -> Optional[FinancialItem]:
        self.keyword_lookups.append(keyword)
        matches = [
            i for i in self.items
            if i.owner_email == owner_email and keyword_matches_item(keyword, i)
        ]
        matches.sort(key=lambda i: (i.purchase_date or "", i.created_at or ""), reverse=True)
        return matches[0] if matches else None

    def list_items_for_owner(self, owner_email: str) -> list[FinancialItem]:
        items = [i for i in self.items if i.owner_email == owner_email]
        items.sort(key=lambda i: (i.purchase_date or "", i.created_at or ""), reverse=True)
        return items

    def insert_highlight(self, highlight: HighlightCreate) -> ContextHighlight:
        if self.fail_highlight_containing and self.fail_highlight_containing in highlight.highlight_text:
            raise StorageError("highlight insert failed")
        row = ContextHighlight(id=str(uuid.uuid4()), created_at=self._tick(), **highlight.model_dump())
        self.highlights.append(row)
        return row

    def list_highlights_for_owner(self, owner_email: str) -> list[ContextHighlight]:
        return [h for h in self.highlights if h.owner_email == owner_email]

    def ping(self) -> None:
        return None


class FakeExtractor:
    """Returns a scripted Fact (or raises) and records every call."""

    def __init__(self, fact: Optional[Fact] = None, error: Optional[Exception] = None):
        self.fact = fact
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def extract(self, subject: str, body: str) -> Optional[Fact]:
        self.calls.append((subject, body))
        if self.error is not None:
            raise self.error
        return self.fact


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def settings():
    return PipelineSettings(
        display_currency="USD",
        conversion_rates={"EUR": 1.08, "GBP": 1.27, "INR": 0.012},
        anthropic_api_key="test-anthropic-key",
    )


@pytest.fixture
def netflix_fact():
    return Fact(
        vendor_name="Netflix",
        product_name="Netflix Premium",
        original_amount=13.99,
        original_currency="EUR",
        purchase_date="2025-06-01",
        billing_cycle="monthly",
        category="Entertainment",
    )


@pytest.fixture
def netflix_payload():
    return {
        "Subject": "Your Netflix receipt",
        "TextBody": (
            "Netflix charged you €13.99. "
            "The reason for this plan is the 4K streaming support."
        ),
        "MessageID": "m1",
        "From": "<u@x.com>",
    }
