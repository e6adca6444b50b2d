"""
Email intake router.

Receives inbound email webhooks and runs the ingestion pipeline.

Response policy
---------------
200  for every payload that was processed or merely uninteresting: unknown
     sender, non-financial, nothing worth recording. The provider must not
     retry these.
500  for genuine processing faults (financial item write failed, unexpected
     exception). The provider treats these as transient and redelivers;
     redelivery is safe because item writes are idempotent.

Endpoints:
  POST /email-inbound   Postmark inbound webhook
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from finhub.config import PipelineSettings
from finhub.dependencies import get_extractor, get_repository, get_settings
from finhub.services.extractor import FactExtractor
from finhub.services.inbound_email_adapter import normalize_webhook
from finhub.services.pipeline import process_inbound_email
from finhub.services.repository import FinancialRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/email-inbound")
async def receive_inbound_email(
    payload: Any = Body(...),
    settings: PipelineSettings = Depends(get_settings),
    repository: FinancialRepository = Depends(get_repository),
    extractor: FactExtractor = Depends(get_extractor),
) -> dict:
    """
    Inbound email webhook receiver.

    Normalizes the payload with the adapter selected by EMAIL_PROVIDER,
    then runs the ingestion pipeline. Any JSON body is accepted; a
    non-object body normalizes to an email without a sender and is
    acknowledged like one.
    """
    try:
        email = normalize_webhook(payload, provider=settings.email_provider)
    except ValueError as exc:
        logger.error(f"Webhook normalization failed: {exc}")
        return {"received": True, "processed": False, "reason": "unsupported_provider"}

    if not email.owner_email:
        logger.warning("Could not determine sender's (owner) email")
        return {"received": True, "processed": False, "reason": "sender_not_determinable"}

    try:
        result = await process_inbound_email(email, repository, extractor, settings)
    except Exception:
        logger.exception(
            "Unhandled error processing email for %s (subject %r)",
            email.owner_email, email.subject,
        )
        raise HTTPException(status_code=500, detail="Internal error processing email")

    if result.fatal:
        raise HTTPException(status_code=500, detail="Failed to store financial item")

    return result.to_response()
