"""
Supabase-backed storage for financial items and context highlights.

The repository wraps an explicitly constructed Supabase client. Uniqueness
of (owner_email, source_email_message_id) is enforced by the database (see
supabase/migrations), so two concurrent deliveries of the same email race
safely: the loser gets a 23505 unique violation and reads the winner's row.
"""

import logging
from typing import Optional

from postgrest.exceptions import APIError
from supabase import Client

from finhub.models.financial import (
    ContextHighlight,
    FinancialItem,
    FinancialItemCreate,
    HighlightCreate,
)

logger = logging.getLogger(__name__)

ITEMS_TABLE = "financial_items"
HIGHLIGHTS_TABLE = "context_highlights"

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class StorageError(Exception):
    """A storage failure the current request cannot recover from."""


def is_unique_violation(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        return str(exc.code or "") == UNIQUE_VIOLATION
    return False


def _quote_filter_value(value: str) -> str:
    # PostgREST reserves , . : ( ) inside or=() filters; quoted values may hold them
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class FinancialRepository:
    def __init__(self, client: Client):
        self._client = client

    # ------------------------------------------------------------------
    # Financial items
    # ------------------------------------------------------------------

    def insert_financial_item(self, item: FinancialItemCreate) -> tuple[FinancialItem, bool]:
        """
        Insert a financial item.

        Returns (row, created). created is False when the same owner already
        has an item for this message id; the existing row is returned.

        Raises:
            StorageError: on any other failure, or when a conflicting row
                cannot be read back.
        """
        try:
            result = self._client.table(ITEMS_TABLE).insert(item.to_row()).execute()
        except APIError as exc:
            if not is_unique_violation(exc) or not item.source_email_message_id:
                raise StorageError(f"Failed to insert financial item: {exc}") from exc

            logger.info(
                "Financial item for message %s already exists; reading it back",
                item.source_email_message_id,
            )
            return self._read_back(item), False
        except Exception as exc:
            raise StorageError(f"Failed to insert financial item: {exc}") from exc

        if not result.data:
            raise StorageError("financial_items insert returned no data")

        return FinancialItem(**result.data[0]), True

    def _read_back(self, item: FinancialItemCreate) -> FinancialItem:
        try:
            existing = self.get_item_by_message_id(
                item.owner_email, item.source_email_message_id
            )
        except Exception as exc:
            raise StorageError(f"Failed to read back existing financial item: {exc}") from exc

        if existing is None:
            raise StorageError(
                f"Unique conflict on message {item.source_email_message_id!r} "
                "but no existing row was found"
            )
        return existing

    def get_item_by_message_id(self, owner_email: str, message_id: str) -> Optional[FinancialItem]:
        result = (
            self._client.table(ITEMS_TABLE)
            .select("*")
            .eq("owner_email", owner_email)
            .eq("source_email_message_id", message_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return FinancialItem(**result.data[0])

    def find_latest_item_by_keyword(self, owner_email: str, keyword: str) -> Optional[FinancialItem]:
        """
        Most recent item for the owner whose vendor or product name contains
        keyword (case-insensitive).
        """
        pattern = _quote_filter_value(f"%{keyword}%")
        result = (
            self._client.table(ITEMS_TABLE)
            .select("*")
            .eq("owner_email", owner_email)
            .or_(f"vendor_name.ilike.{pattern},product_name.ilike.{pattern}")
            .order("purchase_date", desc=True)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return FinancialItem(**result.data[0])

    def list_items_for_owner(self, owner_email: str) -> list[FinancialItem]:
        result = (
            self._client.table(ITEMS_TABLE)
            .select("*")
            .eq("owner_email", owner_email)
            .order("purchase_date", desc=True)
            .order("created_at", desc=True)
            .execute()
        )
        return [FinancialItem(**row) for row in result.data or []]

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def insert_highlight(self, highlight: HighlightCreate) -> ContextHighlight:
        """
        Insert one highlight. Highlights carry no uniqueness constraint, so
        a redelivered email inserts its highlights again.

        Raises:
            StorageError: when the insert fails.
        """
        try:
            result = self._client.table(HIGHLIGHTS_TABLE).insert(highlight.to_row()).execute()
        except Exception as exc:
            raise StorageError(f"Failed to insert context highlight: {exc}") from exc

        if not result.data:
            raise StorageError("context_highlights insert returned no data")
        return ContextHighlight(**result.data[0])

    def list_highlights_for_owner(self, owner_email: str) -> list[ContextHighlight]:
        result = (
            self._client.table(HIGHLIGHTS_TABLE)
            .select("*")
            .eq("owner_email", owner_email)
            .order("created_at", desc=True)
            .execute()
        )
        return [ContextHighlight(**row) for row in result.data or []]

    def ping(self) -> None:
        """Lightweight reachability check used by /health/db."""
        self._client.table(ITEMS_TABLE).select("id").limit(1).execute()
