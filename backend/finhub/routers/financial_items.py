"""
Financial items read API for the dashboard.

Endpoints:
  GET /{owner_email}/financial-items  items with their context highlights
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from finhub.dependencies import get_repository
from finhub.models.financial import FinancialItemWithHighlights
from finhub.services.linker import attach_highlights
from finhub.services.repository import FinancialRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{owner_email}/financial-items")
async def list_financial_items(
    owner_email: str,
    repository: FinancialRepository = Depends(get_repository),
) -> List[FinancialItemWithHighlights]:
    """
    List all financial items for an owner, most recent purchase first.

    Each item carries the highlights linked to it at ingestion time plus any
    unlinked highlight whose keyword matches the item's vendor or product
    name. Both collections are fetched in one query each.
    """
    owner = owner_email.strip().lower()
    if not owner:
        raise HTTPException(status_code=400, detail="Owner email parameter is required.")

    try:
        items = await run_in_threadpool(repository.list_items_for_owner, owner)
        highlights = (
            await run_in_threadpool(repository.list_highlights_for_owner, owner)
            if items else []
        )
    except Exception as exc:
        logger.error(f"Error fetching financial items for {owner}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch financial items")

    return attach_highlights(items, highlights)
