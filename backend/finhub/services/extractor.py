"""
Financial fact extraction service.

The pipeline only depends on the FactExtractor contract:

    async extract(subject, body) -> Fact | None

AnthropicFactExtractor is the production implementation. It never raises:
API errors, timeouts, empty responses and malformed JSON all come back as
None, which the pipeline treats as "not a financial email".
"""

import json
import logging
import re
from typing import Optional, Protocol

import anthropic

from finhub.config import PipelineSettings
from finhub.models.extraction import Fact, parse_fact
from finhub.services.lexicon import CURRENCY_SYMBOLS, FINANCIAL_CATEGORIES

logger = logging.getLogger(__name__)

MAX_TOKENS = 1024

EXTRACTION_PROMPT = """\
You are an expert financial assistant. Your task is to extract structured information from the provided email content.
Focus on identifying a single primary financial transaction if present (e.g., a purchase, a subscription start/renewal, an invoice payment).

Email Subject:
{subject}

Email Body (plain text):
{body}

Based on the email content, extract the following details for the primary transaction.
If a value cannot be confidently determined from the text, use null for that field.

- vendor_name: the company charging the customer (e.g. "Netflix", "Amazon", "Spotify Inc.")
- product_name: be specific (e.g. "Netflix Premium Plan Monthly", "Echo Dot (5th Gen)")
- original_amount: the primary transaction value as a plain number such as 15.99 or 1200.50.
  No currency symbols and no thousands separators. Return 0 for items explicitly marked free.
- original_currency: 3-letter ISO code (USD, EUR, INR, GBP) as seen in the transaction.
  A bare $ without country context is USD; ₹ or Rs is INR.
- purchase_date: YYYY-MM-DD. If several dates appear, pick the transaction or order date.
- billing_cycle: one of "one-time", "monthly", "quarterly", "annually"
- category: one of [{categories}], or "Other" if none fit well

Respond with ONLY valid JSON matching this schema:
{{
  "vendor_name": string | null,
  "product_name": string | null,
  "original_amount": number | null,
  "original_currency": string | null,
  "purchase_date": string | null,
  "billing_cycle": string | null,
  "category": string | null
}}
"""


class FactExtractor(Protocol):
    async def extract(self, subject: str, body: str) -> Optional[Fact]:
        ...


def build_prompt(subject: str, body: str) -> str:
    return EXTRACTION_PROMPT.format(
        subject=subject or "N/A",
        body=body or "N/A",
        categories=", ".join(FINANCIAL_CATEGORIES),
    )


def strip_code_fences(raw_text: str) -> str:
    """Remove ```json fences the model sometimes wraps its answer in."""
    json_text = (raw_text or "").strip()
    if json_text.startswith("```"):
        lines = json_text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        json_text = "\n".join(lines)
    return json_text.strip()


def infer_currency_from_text(text: str) -> Optional[str]:
    """
    Guess a currency code from symbols or codes in free text.

    Symbols are plain substring matches; alphabetic tokens must stand alone
    as words so that e.g. "hours." never reads as rupees.
    """
    if not text:
        return None
    lower = text.lower()
    for token, code in CURRENCY_SYMBOLS:
        if token[0].isalpha():
            pattern = rf"\b{re.escape(token)}" + ("" if token.endswith(".") else r"\b")
            if re.search(pattern, lower):
                return code
        elif token in lower:
            return code
    return None


def parse_extraction_response(raw_text: str, subject: str = "", body: str = "") -> Optional[Fact]:
    """
    Parse the model's text answer into a Fact.

    Returns None when the answer is empty or not a JSON object. When the
    model gives an amount but no currency, the currency is inferred from the
    email text.
    """
    json_text = strip_code_fences(raw_text)
    if not json_text:
        return None

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError:
        logger.warning("Extraction response was not valid JSON: %.200r", json_text)
        return None

    fact = parse_fact(data)
    if fact is None:
        return None

    if fact.original_amount is not None and fact.original_currency is None:
        inferred = infer_currency_from_text(f"{body} {subject}")
        if inferred:
            logger.info("Inferred currency %s from email text", inferred)
            fact = fact.model_copy(update={"original_currency": inferred})

    return fact


class AnthropicFactExtractor:
    """Extraction oracle backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: PipelineSettings,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model = settings.extraction_model
        self._client = client or anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.extraction_timeout_seconds,
            max_retries=1,
        )

    async def extract(self, subject: str, body: str) -> Optional[Fact]:
        if not (subject or "").strip() and not (body or "").strip():
            logger.warning("Subject and body are empty; skipping extraction call")
            return None

        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                temperature=0.2,
                system="You are an expert financial assistant outputting JSON.",
                messages=[{"role": "user", "content": build_prompt(subject, body)}],
            )
        except anthropic.APIError as exc:
            logger.warning("Extraction API call failed: %s", exc)
            return None

        if not response.content:
            logger.warning("Extraction API returned no content")
            return None

        raw_text = getattr(response.content[0], "text", "") or ""
        logger.debug("Extraction raw response: %s", raw_text)
        return parse_extraction_response(raw_text, subject=subject, body=body)
