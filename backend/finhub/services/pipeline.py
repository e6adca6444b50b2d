"""
Inbound email ingestion pipeline.

Steps, strictly forward:
  1. Intake: the caller hands in a normalized InboundEmail (owner required).
  2. Classify: cheap keyword gate in front of the oracle.
  3. Extract: await the oracle; any failure means "not financial".
  4. Normalize: dates and currency on the accepted fact.
  5. Write the financial item (idempotent on owner + message id).
  6. Extract highlights from the body (independent of 2–5).
  7. Link each highlight and write it, one at a time, best-effort.

The repository client is synchronous, so every storage call runs in the
threadpool and concurrent deliveries keep interleaving on the event loop.

Every stage yields a StageResult. Only a fatal financial-item write stops
the pipeline; everything else is recorded and the pipeline continues.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from finhub.config import PipelineSettings
from finhub.models.financial import FinancialItem
from finhub.models.inbound_email import InboundEmail
from finhub.models.pipeline import PipelineResult, StageResult, StageStatus
from finhub.services.classifier import is_potentially_financial
from finhub.services.extractor import FactExtractor
from finhub.services.highlights import count_by_sentiment, extract_highlights
from finhub.services.linker import link_highlights
from finhub.services.normalizer import normalize_fact
from finhub.services.repository import FinancialRepository, StorageError

logger = logging.getLogger(__name__)


async def run_extraction(
    email: InboundEmail,
    extractor: FactExtractor,
) -> StageResult:
    """Classify, call the oracle, and accept or reject its fact."""
    if not is_potentially_financial(email.subject, email.text_body, email.sender_header):
        return StageResult.skipped("not_financial")

    try:
        fact = await extractor.extract(email.subject, email.text_body)
    except Exception as exc:
        logger.warning("Extraction oracle failed for %s: %s", email.message_id, exc)
        return StageResult.skipped("extraction_failed")

    if fact is None or not fact.is_actionable:
        logger.info(
            "Extraction returned no usable fact (vendor/amount missing) for %s",
            email.message_id,
        )
        return StageResult.skipped("insufficient_fact")

    logger.info(
        "Extracted fact: vendor=%r amount=%s %s",
        fact.vendor_name,
        fact.original_amount,
        fact.original_currency,
    )
    return StageResult.success(fact)


def write_financial_item(
    email: InboundEmail,
    extraction: StageResult,
    repository: FinancialRepository,
    settings: PipelineSettings,
    now: datetime,
) -> StageResult:
    """
    Normalize and persist the fact. The value is (FinancialItem, created).
    """
    if not extraction.ok:
        return StageResult.skipped(extraction.reason or "no_fact")

    candidate = normalize_fact(extraction.value, email, settings, now=now)
    if not candidate.source_email_message_id:
        logger.warning("Email has no MessageID; the item cannot be deduplicated")

    try:
        item, created = repository.insert_financial_item(candidate)
    except StorageError as exc:
        logger.error("Failed to save financial item for %s: %s", email.owner_email, exc)
        return StageResult.fatal(str(exc))

    if created:
        logger.info(
            "Financial item saved for %s. ID: %s. Category: %s",
            email.owner_email, item.id, item.category,
        )
    else:
        logger.info("Reusing existing financial item %s", item.id)
    return StageResult.success((item, created))


async def process_inbound_email(
    email: InboundEmail,
    repository: FinancialRepository,
    extractor: FactExtractor,
    settings: PipelineSettings,
    now: Optional[datetime] = None,
) -> PipelineResult:
    """
    Run the full pipeline for one delivery.

    Returns a PipelineResult with fatal=True only when the financial item
    could not be written; the caller should surface that as a failed
    delivery so the provider retries.
    """
    started = time.monotonic()
    now = now or datetime.now(timezone.utc)
    result = PipelineResult(owner_email=email.owner_email)

    if not email.owner_email:
        result.reason = "sender_not_determinable"
        return result

    logger.info("Processing for owner %s, subject %r", email.owner_email, email.subject)

    extraction = await run_extraction(email, extractor)
    result.stages["extraction"] = extraction.status

    write = await run_in_threadpool(
        write_financial_item, email, extraction, repository, settings, now
    )
    result.stages["financial_item"] = write.status
    if write.status == StageStatus.FATAL:
        result.fatal = True
        result.reason = "financial_item_write_failed"
        return result

    current_item: Optional[FinancialItem] = None
    if write.ok:
        current_item, result.financial_item_created = write.value
        result.financial_item_id = current_item.id

    highlights = extract_highlights(
        email.text_body,
        email.owner_email,
        subject=email.subject,
        message_id=email.message_id,
    )
    result.stages["highlights"] = (
        StageStatus.SUCCESS if highlights else StageStatus.SKIPPED
    )

    if highlights:
        logger.info(
            "Extracted %d highlight(s) for %s: %s",
            len(highlights), email.owner_email, count_by_sentiment(highlights),
        )

        def find_prior(keyword: str) -> Optional[FinancialItem]:
            try:
                return repository.find_latest_item_by_keyword(email.owner_email, keyword)
            except Exception as exc:
                logger.warning("Keyword lookup for %r failed; leaving unlinked: %s", keyword, exc)
                return None

        linked = await run_in_threadpool(link_highlights, highlights, current_item, find_prior)
        for highlight in linked:
            try:
                await run_in_threadpool(repository.insert_highlight, highlight)
            except StorageError as exc:
                logger.warning("Could not save context highlight: %s", exc)
                result.highlights_failed += 1
                continue
            result.highlights_saved += 1
            if highlight.financial_item_id:
                result.highlights_linked += 1

    result.processed = True
    if current_item is None and not highlights:
        result.reason = "nothing_to_record"

    logger.info(
        "Processing for %s completed in %dms",
        email.owner_email,
        int((time.monotonic() - started) * 1000),
    )
    return result
