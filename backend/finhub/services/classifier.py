"""
Financial classifier: a cheap gate in front of the extraction oracle.

Biased toward recall. A false positive costs one oracle call; a false
negative silently drops a transaction.
"""

from finhub.services.lexicon import COMMON_VENDORS, FINANCIAL_KEYWORDS


def is_potentially_financial(subject: str, body: str, sender: str = "") -> bool:
    """
    Return True when the email is worth sending to the extraction oracle.

    1. Any FINANCIAL_KEYWORDS entry in the subject or body.
    2. Otherwise, a COMMON_VENDORS token present in the sender address AND
       in the subject or body (vendor mail that never says "receipt").
    """
    lower_subject = (subject or "").lower()
    lower_body = (body or "").lower()

    if any(kw in lower_subject or kw in lower_body for kw in FINANCIAL_KEYWORDS):
        return True

    lower_sender = (sender or "").lower()
    if not lower_sender:
        return False

    return any(
        vendor in lower_sender and (vendor in lower_subject or vendor in lower_body)
        for vendor in COMMON_VENDORS
    )
