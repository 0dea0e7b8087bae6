"""Rule-based refresh scheduling.

The scheduler decides when a record must next be refreshed. Rules are matched
by precedence rather than declaration order: the tightest interval among the
matching rules wins, and a single default rule catches everything else.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from pacer._log import get_logger
from pacer.errors import RulebookError
from pacer.matching import RuleMatcher
from pacer.schemas.rules import SYNTHETIC_DEFAULT, Rule, RuleConfig

logger = get_logger("scheduler")

Rulebook = tuple[Rule, ...]


def normalize_rulebook(entries: Iterable[Mapping[str, Any] | RuleConfig]) -> Rulebook:
    """
    Validate and order rulebook entries.

    Non-default rules come first, ascending by interval (stable for ties).
    Exactly one default follows: the smallest-interval default supplied, or a
    zero-interval synthetic default when none was supplied.

    Raises:
        RulebookError: If any entry is malformed.
    """
    rules: list[Rule] = []
    for index, entry in enumerate(entries):
        try:
            config = entry if isinstance(entry, RuleConfig) else RuleConfig.model_validate(entry)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(loc) for loc in first.get("loc", ()))
            message = first.get("msg", "invalid rule")
            detail = f"{field}: {message}" if field else message
            raise RulebookError(f"Rule #{index} is invalid: {detail}") from exc
        rules.append(Rule.from_config(config))

    specific = sorted((r for r in rules if not r.default), key=lambda r: r.update_every_ms)
    defaults = [r for r in rules if r.default]
    fallback = min(defaults, key=lambda r: r.update_every_ms) if defaults else SYNTHETIC_DEFAULT

    return (*specific, fallback)


class Scheduler:
    """Computes next-due timestamps from an immutable rulebook snapshot."""

    def __init__(
        self,
        rulebook: Iterable[Mapping[str, Any] | RuleConfig] = (),
        matcher: RuleMatcher | None = None,
    ):
        self._matcher = matcher or RuleMatcher()
        self._rulebook: Rulebook = (SYNTHETIC_DEFAULT,)
        self.reload(rulebook)

    @property
    def rulebook(self) -> Rulebook:
        """The installed snapshot."""
        return self._rulebook

    def reload(self, rulebook: Iterable[Mapping[str, Any] | RuleConfig]) -> Rulebook:
        """Build a new snapshot and swap it in; the old one is left untouched on error."""
        snapshot = normalize_rulebook(rulebook)
        self._rulebook = snapshot
        logger.info("Installed rulebook with %d rule(s)", len(snapshot))
        return snapshot

    def select(self, record: Any) -> tuple[int, Rule]:
        """Return the position and rule that decide the interval for ``record``."""
        snapshot = self._rulebook
        for position, rule in enumerate(snapshot):
            if rule.default:
                return position, rule
            if self._matcher(record, rule.match):
                return position, rule
        # Unreachable with a normalized snapshot; kept for hand-built ones
        return len(snapshot), SYNTHETIC_DEFAULT

    def apply(self, record: Any, now: datetime | None = None) -> datetime | None:
        """
        Compute when ``record`` is next due.

        Returns ``now`` plus the selected interval, or None when the interval
        is zero and the record is due immediately.
        """
        _, rule = self.select(record)
        logger.debug("Interval calculated: %d ms", rule.update_every_ms)
        return self.due_at(rule, now)

    @staticmethod
    def due_at(rule: Rule, now: datetime | None = None) -> datetime | None:
        """Next-due instant under ``rule``; None means due immediately."""
        if rule.update_every_ms <= 0:
            return None
        return (now or datetime.now(timezone.utc)) + timedelta(milliseconds=rule.update_every_ms)
