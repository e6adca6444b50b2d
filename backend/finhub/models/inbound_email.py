"""
Provider-agnostic inbound email model.

These models represent a normalized inbound email after provider-specific
fields have been stripped away. The pipeline works exclusively with these
models; only the adapter layer knows about the Postmark payload format.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class InboundEmail(BaseModel):
    """
    Normalized inbound email, provider-agnostic.

    owner_email is None when the sender could not be determined from any of
    the payload's sender fields. Such emails are acknowledged but never
    produce records.
    """

    owner_email: Optional[str] = None
    sender_header: str = ""     # raw From header, used by the vendor heuristic
    subject: str = ""
    text_body: str = ""
    message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
