"""Pacing router: shared bucket state and usage metrics."""

import time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pacer.database import get_db
from pacer.dependencies import get_bucket
from pacer.schemas.pacing import BucketStateResponse, UsageItem, UsageResponse
from pacer.services.bucket import TokenBucket
from pacer.services.usage import usage_totals

router = APIRouter(prefix="/api/v1", tags=["Pacing"])


# --- Bucket State ---


@router.get(
    "/bucket",
    response_model=BucketStateResponse,
    status_code=status.HTTP_200_OK,
)
async def get_bucket_state(
    bucket: TokenBucket = Depends(get_bucket),
) -> BucketStateResponse:
    """
    Get the shared token bucket.

    Reflects every instance's feeds and consumes, not just this one's.
    """
    state = await bucket.state()

    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "NOT_FOUND",
                    "message": f"Bucket '{bucket.id}' not found",
                }
            },
        )

    return BucketStateResponse(
        id=state.id,
        rate=state.rate,
        limit=state.limit,
        initial=state.initial,
        count=state.count,
        next_feed=state.next_feed.isoformat(),
    )


# --- Usage ---


@router.get(
    "/usage",
    response_model=UsageResponse,
    status_code=status.HTTP_200_OK,
)
async def get_usage(
    db: AsyncSession = Depends(get_db),
    seconds: int = Query(default=60, ge=1, le=3600, description="Window size in seconds"),
) -> UsageResponse:
    """Granted consumes per second over the last ``seconds``, newest first."""
    since = int(time.time()) - seconds
    totals = await usage_totals(db, since)

    items = [UsageItem(second=second, count=count) for second, count in totals]

    return UsageResponse(
        since=since,
        total=sum(item.count for item in items),
        items=items,
    )
