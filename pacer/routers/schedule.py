"""Schedule router: inspect and reload the rulebook, preview next updates."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, status

from pacer.dependencies import get_scheduler
from pacer.schemas.rules import (
    RuleItem,
    RulebookResponse,
    SchedulePreviewRequest,
    SchedulePreviewResponse,
)
from pacer.services.scheduler import Rulebook, Scheduler

router = APIRouter(prefix="/api/v1", tags=["Schedule"])


def _rulebook_response(snapshot: Rulebook) -> RulebookResponse:
    return RulebookResponse(
        rules=[
            RuleItem(
                position=position,
                name=rule.name,
                match=rule.match,
                update_every_ms=rule.update_every_ms,
                default=rule.default,
            )
            for position, rule in enumerate(snapshot)
        ]
    )


# --- Rulebook ---


@router.get(
    "/rulebook",
    response_model=RulebookResponse,
    status_code=status.HTTP_200_OK,
)
async def get_rulebook(
    scheduler: Scheduler = Depends(get_scheduler),
) -> RulebookResponse:
    """Get the installed rulebook in precedence order."""
    return _rulebook_response(scheduler.rulebook)


@router.put(
    "/rulebook",
    response_model=RulebookResponse,
    status_code=status.HTTP_200_OK,
)
async def reload_rulebook(
    rules: list[dict[str, Any]] = Body(...),
    scheduler: Scheduler = Depends(get_scheduler),
) -> RulebookResponse:
    """
    Replace the rulebook.

    Malformed rules are rejected with 422 and the current rulebook stays installed.
    """
    snapshot = scheduler.reload(rules)
    return _rulebook_response(snapshot)


# --- Preview ---


@router.post(
    "/schedule/preview",
    response_model=SchedulePreviewResponse,
    status_code=status.HTTP_200_OK,
)
async def preview_schedule(
    payload: SchedulePreviewRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SchedulePreviewResponse:
    """Show which rule decides the record's interval and when it would next be due."""
    now = datetime.now(timezone.utc)
    position, rule = scheduler.select(payload.record)
    next_update = scheduler.due_at(rule, now)

    return SchedulePreviewResponse(
        position=position,
        rule_name=rule.name,
        default=rule.default,
        update_every_ms=rule.update_every_ms,
        next_update=next_update.isoformat() if next_update else None,
    )
