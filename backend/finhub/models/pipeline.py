"""
Per-stage result types for the ingestion pipeline.

Each stage reports success, skip, or fatal explicitly so the continue/abort
decision is visible in the data rather than buried in an except clause.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel


class StageStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FATAL = "fatal"


class StageResult(BaseModel):
    status: StageStatus
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StageResult":
        return cls(status=StageStatus.SUCCESS, value=value)

    @classmethod
    def skipped(cls, reason: str) -> "StageResult":
        return cls(status=StageStatus.SKIPPED, reason=reason)

    @classmethod
    def fatal(cls, reason: str) -> "StageResult":
        return cls(status=StageStatus.FATAL, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCESS


class PipelineResult(BaseModel):
    """Summary of one webhook delivery, returned to the HTTP layer."""

    owner_email: Optional[str] = None
    processed: bool = False
    reason: Optional[str] = None
    fatal: bool = False

    financial_item_id: Optional[str] = None
    financial_item_created: bool = False
    highlights_saved: int = 0
    highlights_linked: int = 0
    highlights_failed: int = 0

    stages: dict[str, StageStatus] = {}

    def to_response(self) -> dict:
        body = {"received": True, "processed": self.processed}
        if self.reason:
            body["reason"] = self.reason
        if self.processed:
            body.update({
                "financial_item_id": self.financial_item_id,
                "financial_item_created": self.financial_item_created,
                "highlights_saved": self.highlights_saved,
                "highlights_linked": self.highlights_linked,
                "highlights_failed": self.highlights_failed,
            })
        return body
