"""Request/reply correlation."""

from .store import (
    CorrelationRecord,
    CorrelationStore,
    ReplyOutcome,
    RequestState,
    StoreSnapshot,
)

__all__ = [
    "CorrelationRecord",
    "CorrelationStore",
    "ReplyOutcome",
    "RequestState",
    "StoreSnapshot",
]
