"""
Inbound email adapter service.

Normalizes provider-specific inbound webhook payloads into a single
provider-agnostic InboundEmail model.

Supported providers:
  - postmark  (default; set EMAIL_PROVIDER=postmark or pass provider="postmark")

Adding a new provider:
  1. Write a normalize_<provider>(payload: dict) -> InboundEmail function.
  2. Register it in _NORMALIZERS.
  3. Set EMAIL_PROVIDER=<provider> in the environment.

Postmark sender field shapes
----------------------------
Postmark's inbound JSON carries the sender three different ways, and
forwarding rules or older integrations may deliver any one of them:

  FromFull   dict   : {"Email": "alice@example.com", "Name": "Alice"}
  FromFull   list   : [{"Email": "alice@example.com", "Name": "Alice"}]
  From       str    : "Alice <alice@example.com>" or "alice@example.com"

Nothing in this module raises for a malformed payload. An undeterminable
sender yields InboundEmail(owner_email=None).
"""

import logging
import os
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup

from finhub.models.inbound_email import InboundEmail

logger = logging.getLogger(__name__)

_ANGLE_ADDR_RE = re.compile(r"<([^>]+)>")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _email_from_full(entry: Any) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    address = _as_text(entry.get("Email")).strip()
    return address.lower() if address else None


def extract_owner_email(payload: Any) -> Optional[str]:
    """
    Return the lowercase sender address, or None when undeterminable.

    Tried in order:
      1. FromFull as an object with an Email key
      2. FromFull as a non-empty array : first entry's Email
      3. From header : the <addr> part, or the whole value when it is a bare
         address (contains "@" and no "<")
    """
    if not isinstance(payload, dict):
        return None

    from_full = payload.get("FromFull")
    if isinstance(from_full, dict):
        address = _email_from_full(from_full)
        if address:
            return address
    elif isinstance(from_full, list) and from_full:
        address = _email_from_full(from_full[0])
        if address:
            return address

    header = _as_text(payload.get("From")).strip()
    if not header:
        return None

    match = _ANGLE_ADDR_RE.search(header)
    if match:
        address = match.group(1).strip()
        return address.lower() if "@" in address else None

    if "<" not in header and "@" in header:
        return header.lower()

    return None


def parse_email_date(value: Any) -> Optional[datetime]:
    """
    Parse an email Date header to an aware UTC datetime.

    Accepts RFC 2822 ("Mon, 2 Jun 2025 10:00:00 +0000") and ISO-8601.
    Naive values are assumed to be UTC. Returns None when unparsable.
    """
    text = _as_text(value).strip()
    if not text:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("parse_email_date: could not parse %r", value)
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def html_to_text(markup: str) -> str:
    """
    Convert an HtmlBody to plain text for payloads without a TextBody.

    Script, style and head elements are dropped. Each text node lands on
    its own line; the highlight splitter rejoins lines within a paragraph.
    """
    if not markup:
        return ""

    soup = BeautifulSoup(markup, "lxml")
    for element in soup(["script", "style", "head", "meta", "noscript"]):
        element.decompose()

    text = soup.get_text(separator="\n")
    lines = [re.sub(r"\s+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Postmark normalizer
# ---------------------------------------------------------------------------

def normalize_postmark(payload: Any) -> InboundEmail:
    """
    Convert a Postmark inbound webhook payload to InboundEmail.

    Postmark uses PascalCase keys:
      From, FromFull, Subject, TextBody, HtmlBody, Date, MessageID
    """
    if not isinstance(payload, dict):
        logger.warning("Inbound payload is not a JSON object: %r", type(payload).__name__)
        return InboundEmail()

    text_body = _as_text(payload.get("TextBody"))
    if not text_body.strip():
        text_body = html_to_text(_as_text(payload.get("HtmlBody")))

    message_id = _as_text(payload.get("MessageID")).strip() or None

    sender_header = _as_text(payload.get("From"))
    if not sender_header:
        from_full = payload.get("FromFull")
        if isinstance(from_full, list) and from_full:
            from_full = from_full[0]
        if isinstance(from_full, dict):
            sender_header = _as_text(from_full.get("Email"))

    return InboundEmail(
        owner_email=extract_owner_email(payload),
        sender_header=sender_header,
        subject=_as_text(payload.get("Subject")),
        text_body=text_body,
        message_id=message_id,
        sent_at=parse_email_date(payload.get("Date")),
    )


# ---------------------------------------------------------------------------
# Registry and dispatcher
# ---------------------------------------------------------------------------

_NORMALIZERS: dict[str, Callable[[Any], InboundEmail]] = {
    "postmark": normalize_postmark,
}


def normalize_webhook(payload: Any, provider: str | None = None) -> InboundEmail:
    """
    Route to the correct normalizer based on the provider argument or the
    EMAIL_PROVIDER environment variable.

    Priority:
      1. provider argument (explicit, used in tests and the webhook endpoint)
      2. EMAIL_PROVIDER env var
      3. Default: "postmark"

    Raises ValueError for unknown provider names.
    """
    resolved = provider or os.getenv("EMAIL_PROVIDER", "postmark")
    resolved = resolved.lower().strip()

    normalizer = _NORMALIZERS.get(resolved)
    if normalizer is None:
        raise ValueError(
            f"Unknown email provider {resolved!r}. "
            f"Supported providers: {sorted(_NORMALIZERS)}"
        )

    return normalizer(payload)
