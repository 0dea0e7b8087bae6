"""FastAPI dependencies resolving the services installed on the app."""

from fastapi import HTTPException, Request, status

from pacer.services.bucket import TokenBucket
from pacer.services.scheduler import Scheduler


def _service_unavailable(name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "error": {
                "code": "SERVICE_UNAVAILABLE",
                "message": f"{name} is not initialized",
            }
        },
    )


def get_bucket(request: Request) -> TokenBucket:
    """Return the token bucket created at startup."""
    bucket = getattr(request.app.state, "bucket", None)
    if bucket is None:
        raise _service_unavailable("Token bucket")
    return bucket


def get_scheduler(request: Request) -> Scheduler:
    """Return the scheduler created at startup."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise _service_unavailable("Scheduler")
    return scheduler
