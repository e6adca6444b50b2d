"""
Context highlight extraction.

Mines an email body for sentences that explain a decision, a problem, or a
benefit, tags each with the service it appears to discuss and a sentiment
label, and falls back to a single summary highlight for short emails that
clearly concern a known service but contain no indicator phrase.

Everything here is pure and deterministic: identical text and identical
lookup tables always produce identical highlights.
"""

import logging
import re
from functools import lru_cache
from typing import Iterable, Optional

import pysbd
from afinn import Afinn

from finhub.models.financial import HighlightCreate, Sentiment, SUMMARY_INDICATOR
from finhub.services.lexicon import CONTEXT_INDICATOR_KEYWORDS, KNOWN_SERVICES

logger = logging.getLogger(__name__)

MIN_HIGHLIGHT_LENGTH = 16
MAX_HIGHLIGHT_LENGTH = 399

FALLBACK_MIN_BODY_LENGTH = 51
FALLBACK_MAX_BODY_LENGTH = 1999
FALLBACK_EXCERPT_LENGTH = 250

POSITIVE_THRESHOLD = 0.3
NEGATIVE_THRESHOLD = -0.3

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_QUOTE_MARKER_RE = re.compile(r"^\s*(?:>\s*)+")
_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")


def _service_pattern(name: str) -> re.Pattern:
    # Alphanumeric edges only, so "AWS" does not match "laws" and "Disney+" still matches
    return re.compile(
        rf"(?<![a-z0-9]){re.escape(name.lower())}(?![a-z0-9])"
    )


_SERVICE_PATTERNS = tuple((name, _service_pattern(name)) for name in KNOWN_SERVICES)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def _segmenter() -> pysbd.Segmenter:
    return pysbd.Segmenter(language="en", clean=False)


def split_sentences(text: str) -> list[str]:
    """
    Split an email body into sentences.

    Paragraphs (blank-line separated) never share a sentence. Hard-wrapped
    lines inside a paragraph are joined; quote markers on continuation lines
    are dropped so a quoted sentence reads as one line. Each paragraph is
    then segmented with pysbd, which knows abbreviations like "e.g." and
    "vs." are not sentence ends.
    """
    if not text:
        return []

    sentences: list[str] = []
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    for paragraph in _PARAGRAPH_RE.split(normalized):
        lines = paragraph.split("\n")
        if not lines:
            continue
        joined = " ".join(
            [lines[0]] + [_QUOTE_MARKER_RE.sub("", line) for line in lines[1:]]
        )
        joined = _WHITESPACE_RE.sub(" ", joined).strip()
        if not joined:
            continue
        sentences.extend(
            s.strip() for s in _segmenter().segment(joined) if s.strip()
        )
    return sentences


def clean_sentence(sentence: str) -> str:
    """Trim and strip leading quote markers ("> ", ">> ", "> > ")."""
    return _QUOTE_MARKER_RE.sub("", sentence).strip()


def find_service(text: str) -> Optional[str]:
    """Return the first KNOWN_SERVICES entry mentioned in text, or None."""
    if not text:
        return None
    lower = text.lower()
    for name, pattern in _SERVICE_PATTERNS:
        if pattern.search(lower):
            return name
    return None


def find_indicator(sentence: str) -> Optional[str]:
    """Return the first CONTEXT_INDICATOR_KEYWORDS phrase in sentence, or None."""
    lower = sentence.lower()
    for indicator in CONTEXT_INDICATOR_KEYWORDS:
        if indicator in lower:
            return indicator
    return None


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def _lexicon() -> Afinn:
    return Afinn(language="en")


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall((text or "").lower())


def sentiment_score(text: str) -> float:
    """
    AFINN polarity normalised by token count.

    "This is great" -> 3 / 3 = 1.0
    """
    tokens = tokenize(text)
    if not tokens:
        return 0.0
    return _lexicon().score(" ".join(tokens)) / len(tokens)


def sentiment_label(score: float) -> Sentiment:
    """Strict thresholds: exactly +0.3 or -0.3 is neutral."""
    if score > POSITIVE_THRESHOLD:
        return Sentiment.POSITIVE
    if score < NEGATIVE_THRESHOLD:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _qualifies(text: str) -> bool:
    return MIN_HIGHLIGHT_LENGTH <= len(text) <= MAX_HIGHLIGHT_LENGTH


def _summary_highlight(
    text_body: str,
    keyword: str,
    owner_email: str,
    subject: str,
    message_id: Optional[str],
) -> HighlightCreate:
    excerpt = _WHITESPACE_RE.sub(" ", text_body[:FALLBACK_EXCERPT_LENGTH]).strip()
    return HighlightCreate(
        owner_email=owner_email,
        product_keyword=keyword,
        highlight_text=f"General context about {keyword}: {excerpt}...",
        indicator_keyword=SUMMARY_INDICATOR,
        sentiment=sentiment_label(sentiment_score(excerpt)),
        source_email_subject=subject or None,
        source_email_message_id=message_id,
    )


def extract_highlights(
    text_body: str,
    owner_email: str,
    subject: str = "",
    message_id: Optional[str] = None,
) -> list[HighlightCreate]:
    """
    Extract highlight candidates from an email body.

    A sentence qualifies when it contains an indicator phrase and its
    cleaned length is within [16, 399]. Its product keyword is the service
    named in the sentence itself, else the first service named anywhere in
    the subject or body (which may be None). financial_item_id is left
    unset; linking happens later.
    """
    if not text_body or not text_body.strip():
        return []

    email_keyword = find_service(f"{subject or ''}\n{text_body}")
    highlights: list[HighlightCreate] = []

    for sentence in split_sentences(text_body):
        text = clean_sentence(sentence)
        indicator = find_indicator(text)
        if indicator is None or not _qualifies(text):
            continue

        highlights.append(
            HighlightCreate(
                owner_email=owner_email,
                product_keyword=find_service(text) or email_keyword,
                highlight_text=text,
                indicator_keyword=indicator,
                sentiment=sentiment_label(sentiment_score(text)),
                source_email_subject=subject or None,
                source_email_message_id=message_id,
            )
        )

    if (
        not highlights
        and email_keyword
        and FALLBACK_MIN_BODY_LENGTH <= len(text_body) <= FALLBACK_MAX_BODY_LENGTH
    ):
        highlights.append(
            _summary_highlight(text_body, email_keyword, owner_email, subject, message_id)
        )

    logger.info(
        "Found %d highlight(s) for subject %r with primary keyword %r",
        len(highlights),
        subject,
        email_keyword or "N/A",
    )
    return highlights


def count_by_sentiment(highlights: Iterable[HighlightCreate]) -> dict[str, int]:
    counts = {s.value: 0 for s in Sentiment}
    for highlight in highlights:
        counts[highlight.sentiment.value] += 1
    return counts
