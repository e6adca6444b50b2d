"""
Entity linking between highlights and financial items.

Write time (link_highlights): each new highlight is linked to the item
created from the same email, or to the owner's most recent prior item found
by keyword search. A candidate is only accepted when its vendor or product
name actually contains the highlight's keyword; being from the same email is
not enough on its own.

Read time (attach_highlights): the read API re-derives keyword matches for
unlinked highlights so older highlights surface next to items that arrived
later.
"""

import logging
from typing import Callable, Optional, Sequence

from finhub.models.financial import (
    ContextHighlight,
    FinancialItem,
    FinancialItemWithHighlights,
    HighlightCreate,
)

logger = logging.getLogger(__name__)

# keyword -> most recent matching prior item for the owner, or None
PriorItemLookup = Callable[[str], Optional[FinancialItem]]


def keyword_matches_item(keyword: Optional[str], item: FinancialItem) -> bool:
    """Case-insensitive substring test of keyword against vendor/product name."""
    if not keyword:
        return False
    needle = keyword.lower()
    return any(
        needle in (name or "").lower()
        for name in (item.vendor_name, item.product_name)
    )


def item_matches_keyword(item: FinancialItem, keyword: Optional[str]) -> bool:
    """
    Read-time match, in either direction.

    Either the keyword is contained in the vendor or product name, or the
    item's own key (vendor, else product, else category) is contained in the
    keyword. The second direction lets an "Amazon" item pick up an
    "Amazon Prime" highlight.
    """
    if not keyword:
        return False
    if keyword_matches_item(keyword, item):
        return True
    item_key = (item.vendor_name or item.product_name or item.category or "").strip().lower()
    return bool(item_key) and item_key in keyword.lower()


def choose_link_target(
    highlight: HighlightCreate,
    current_item: Optional[FinancialItem],
    find_prior: PriorItemLookup,
) -> Optional[FinancialItem]:
    """
    Return the item a highlight should link to, or None.

    1. The same-email item is the candidate when there is one.
    2. Otherwise a keyword search over the owner's prior items.
    3. The candidate must contain the highlight keyword; a highlight without
       a keyword may only link to the same-email item.
    """
    keyword = highlight.product_keyword

    if current_item is not None:
        if keyword is None:
            return current_item
        return current_item if keyword_matches_item(keyword, current_item) else None

    if keyword is None:
        return None

    prior = find_prior(keyword)
    if prior is not None and prior.owner_email == highlight.owner_email \
            and keyword_matches_item(keyword, prior):
        return prior
    return None


def link_highlights(
    highlights: Sequence[HighlightCreate],
    current_item: Optional[FinancialItem],
    find_prior: PriorItemLookup,
) -> list[HighlightCreate]:
    """
    Return copies of highlights with financial_item_id decided.

    Prior-item lookups are memoized per keyword for the duration of the call.
    """
    cache: dict[str, Optional[FinancialItem]] = {}

    def cached_find_prior(keyword: str) -> Optional[FinancialItem]:
        key = keyword.lower()
        if key not in cache:
            cache[key] = find_prior(keyword)
        return cache[key]

    linked: list[HighlightCreate] = []
    for highlight in highlights:
        target = choose_link_target(highlight, current_item, cached_find_prior)
        if target is not None:
            logger.info(
                "Linking highlight for %r to financial item %s",
                highlight.product_keyword or "general context",
                target.id,
            )
        linked.append(
            highlight.model_copy(
                update={"financial_item_id": target.id if target is not None else None}
            )
        )
    return linked


def attach_highlights(
    items: Sequence[FinancialItem],
    highlights: Sequence[ContextHighlight],
) -> list[FinancialItemWithHighlights]:
    """
    Annotate each item with its linked highlights plus any unlinked highlight
    that matches the item by keyword (see item_matches_keyword).

    Each item's list is deduplicated by highlight id and keeps input order.
    """
    result: list[FinancialItemWithHighlights] = []
    for item in items:
        seen: set[str] = set()
        attached: list[ContextHighlight] = []
        for highlight in highlights:
            if highlight.id in seen:
                continue
            if highlight.financial_item_id == item.id or (
                highlight.financial_item_id is None
                and item_matches_keyword(item, highlight.product_keyword)
            ):
                seen.add(highlight.id)
                attached.append(highlight)
        result.append(
            FinancialItemWithHighlights(
                **item.model_dump(), context_highlights=attached
            )
        )
    return result
