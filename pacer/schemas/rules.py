"""Rulebook Pydantic schemas."""

import copy
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pacer.durations import parse_duration
from pacer.matching import validate_predicate


class RuleConfig(BaseModel):
    """A rulebook entry as written in configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = None
    match: dict[str, Any] | None = None
    update_every: str | int | None = Field(default=None, alias="updateEvery")
    default: bool = False

    @field_validator("update_every")
    @classmethod
    def check_update_every(cls, v: str | int | None) -> str | int | None:
        if v is not None:
            parse_duration(v)
        return v

    @model_validator(mode="after")
    def check_match(self) -> "RuleConfig":
        if self.default:
            return self
        if self.match is None:
            raise ValueError("non-default rules require a match object")
        validate_predicate(self.match)
        return self

    @property
    def update_every_ms(self) -> int:
        if self.update_every is None:
            return 0
        return parse_duration(self.update_every)


@dataclass(frozen=True)
class Rule:
    """A normalized rule. Instances are shared between snapshots and never mutated."""

    update_every_ms: int
    default: bool = False
    match: dict[str, Any] = field(default_factory=dict, hash=False, compare=True)
    name: str | None = None

    @classmethod
    def from_config(cls, config: RuleConfig) -> "Rule":
        return cls(
            update_every_ms=config.update_every_ms,
            default=config.default,
            match=copy.deepcopy(config.match or {}) if not config.default else {},
            name=config.name,
        )


SYNTHETIC_DEFAULT = Rule(update_every_ms=0, default=True, name="synthetic-default")


class RuleItem(BaseModel):
    """Single normalized rule in API responses."""

    position: int
    name: str | None
    match: dict[str, Any]
    update_every_ms: int
    default: bool


class RulebookResponse(BaseModel):
    """Response for the installed rulebook snapshot."""

    rules: list[RuleItem]


class SchedulePreviewRequest(BaseModel):
    """Record to evaluate against the installed rulebook."""

    record: dict[str, Any]


class SchedulePreviewResponse(BaseModel):
    """Outcome of applying the rulebook to one record."""

    position: int
    rule_name: str | None
    default: bool
    update_every_ms: int
    next_update: str | None
