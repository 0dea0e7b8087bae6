"""Pydantic schemas for request/response validation."""

from pacer.schemas.pacing import BucketStateResponse, UsageItem, UsageResponse
from pacer.schemas.rules import (
    Rule,
    RuleConfig,
    RuleItem,
    RulebookResponse,
    SchedulePreviewRequest,
    SchedulePreviewResponse,
)

__all__ = [
    "BucketStateResponse",
    "UsageItem",
    "UsageResponse",
    "Rule",
    "RuleConfig",
    "RuleItem",
    "RulebookResponse",
    "SchedulePreviewRequest",
    "SchedulePreviewResponse",
]
