"""
Pipeline configuration read from environment variables.

Environment variables
---------------------
DISPLAY_CURRENCY            Canonical display currency (default: "USD").
INR_TO_USD_RATE             Conversion multipliers into the display currency.
EUR_TO_USD_RATE             Defaults: 0.012, 1.08, 1.27.
GBP_TO_USD_RATE
CURRENCY_RATES              Extra "CODE=rate" pairs, comma separated, e.g.
                            CURRENCY_RATES=CAD=0.73,AUD=0.66
EXTRACTION_MODEL            Anthropic model used by the extraction oracle.
EXTRACTION_TIMEOUT_SECONDS  Upper bound on one oracle call (default: 30).
EMAIL_PROVIDER              Inbound payload normalizer (default: "postmark").
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Rates are multipliers into the display currency.
_DEFAULT_RATES = {
    "INR": ("INR_TO_USD_RATE", 0.012),
    "EUR": ("EUR_TO_USD_RATE", 1.08),
    "GBP": ("GBP_TO_USD_RATE", 1.27),
}


class PipelineSettings(BaseModel):
    display_currency: str = "USD"
    conversion_rates: dict[str, float] = {
        code: default for code, (_, default) in _DEFAULT_RATES.items()
    }
    extraction_model: str = DEFAULT_MODEL
    extraction_timeout_seconds: float = 30.0
    anthropic_api_key: Optional[str] = None
    email_provider: str = "postmark"


def _parse_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


def parse_rate_pairs(raw: str) -> dict[str, float]:
    """
    Parse "CAD=0.73,AUD=0.66" into {"CAD": 0.73, "AUD": 0.66}.

    Malformed pairs are logged and skipped.
    """
    rates: dict[str, float] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        code, sep, value = pair.partition("=")
        code = code.strip().upper()
        if not sep or len(code) != 3 or not code.isalpha():
            logger.warning("Ignoring malformed CURRENCY_RATES entry %r", pair)
            continue
        try:
            rates[code] = float(value)
        except ValueError:
            logger.warning("Ignoring non-numeric CURRENCY_RATES entry %r", pair)
    return rates


def load_settings() -> PipelineSettings:
    """Build PipelineSettings from the current environment."""
    rates = {
        code: _parse_float(env_name, os.getenv(env_name), default)
        for code, (env_name, default) in _DEFAULT_RATES.items()
    }
    rates.update(parse_rate_pairs(os.getenv("CURRENCY_RATES", "")))

    display_currency = (os.getenv("DISPLAY_CURRENCY") or "USD").strip().upper()
    # A rate for the display currency itself would shadow the pass-through rule
    rates.pop(display_currency, None)

    api_key = os.getenv("ANTHROPIC_API_KEY") or None
    if not api_key:
        logger.warning(
            "ANTHROPIC_API_KEY is not set; financial extraction will be skipped"
        )

    return PipelineSettings(
        display_currency=display_currency,
        conversion_rates=rates,
        extraction_model=os.getenv("EXTRACTION_MODEL") or DEFAULT_MODEL,
        extraction_timeout_seconds=_parse_float(
            "EXTRACTION_TIMEOUT_SECONDS", os.getenv("EXTRACTION_TIMEOUT_SECONDS"), 30.0
        ),
        anthropic_api_key=api_key,
        email_provider=(os.getenv("EMAIL_PROVIDER") or "postmark").lower().strip(),
    )
