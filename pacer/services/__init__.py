"""Services for the pacer."""

from pacer.services.bucket import ConsumeOutcome, ConsumeResult, FeedOutcome, FeedResult, TokenBucket
from pacer.services.pacer import Pacer
from pacer.services.scheduler import Scheduler, normalize_rulebook
from pacer.services.usage import UsageRecorder

__all__ = [
    "TokenBucket",
    "FeedOutcome",
    "FeedResult",
    "ConsumeOutcome",
    "ConsumeResult",
    "Scheduler",
    "normalize_rulebook",
    "UsageRecorder",
    "Pacer",
]
