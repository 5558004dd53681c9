"""Request/reply correlation store shared by the Sender and the Receiver."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from dsp_latency.core.clock import micros_between, now_ns


class RequestState(str, Enum):
    """Lifecycle of a request as seen by the store."""
    SENT = "sent"
    COMPLETED = "completed"


class ReplyOutcome(str, Enum):
    """How a reply was matched against the store."""
    MATCHED = "matched"
    UNKNOWN = "unknown"
    DUPLICATE = "duplicate"


@dataclass
class CorrelationRecord:
    """Send and reply timestamps of one request, in monotonic nanoseconds."""
    id: int
    start_time: int
    end_time: Optional[int] = None

    @property
    def state(self) -> RequestState:
        return RequestState.SENT if self.end_time is None else RequestState.COMPLETED

    @property
    def latency_us(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return micros_between(self.start_time, self.end_time)


@dataclass(frozen=True)
class StoreSnapshot:
    """Point-in-time copy of the store counters."""
    sent: int
    received: int
    pending: int
    unmatched: int


class CorrelationStore:
    """
    Maps request ids to their correlation records and keeps run counters.

    The Sender writes start times and the Receiver writes end times. Every
    mutation happens under one lock so the store is safe to share between
    threads as well as between asyncio tasks.

    ``received`` counts every decoded reply, including replies for ids that
    were never sent and repeated replies for an id already completed. Such
    replies are tallied in ``unmatched`` and never touch ``pending``, which
    therefore always equals ``sent - (received - unmatched)`` and stays
    non-negative.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[int, CorrelationRecord] = {}
        self._sent = 0
        self._received = 0
        self._pending = 0
        self._unmatched = 0

    def record_sent(self, request_id: int, timestamp: Optional[int] = None) -> CorrelationRecord:
        """Register the send time of ``request_id``."""
        start = now_ns() if timestamp is None else timestamp
        with self._lock:
            if request_id in self._records:
                raise ValueError(f"Request id {request_id} already recorded as sent")
            record = CorrelationRecord(id=request_id, start_time=start)
            self._records[request_id] = record
            self._sent += 1
            self._pending += 1
        return record

    def record_reply(self, request_id: int, timestamp: Optional[int] = None) -> ReplyOutcome:
        """Register the reply time of ``request_id``.

        A reply for an unknown id only increments ``received``; no record with
        an end time alone is ever created.
        """
        end = now_ns() if timestamp is None else timestamp
        with self._lock:
            self._received += 1
            record = self._records.get(request_id)
            if record is None:
                self._unmatched += 1
                return ReplyOutcome.UNKNOWN
            if record.end_time is not None:
                self._unmatched += 1
                return ReplyOutcome.DUPLICATE
            record.end_time = max(end, record.start_time)
            self._pending -= 1
            return ReplyOutcome.MATCHED

    @property
    def sent(self) -> int:
        return self._sent

    @property
    def received(self) -> int:
        return self._received

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def unmatched(self) -> int:
        return self._unmatched

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                sent=self._sent,
                received=self._received,
                pending=self._pending,
                unmatched=self._unmatched,
            )

    def get(self, request_id: int) -> Optional[CorrelationRecord]:
        with self._lock:
            return self._records.get(request_id)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def records(self) -> List[CorrelationRecord]:
        """Copy of all records, in no particular order."""
        with self._lock:
            return [
                CorrelationRecord(r.id, r.start_time, r.end_time)
                for r in self._records.values()
            ]

    def __iter__(self) -> Iterator[CorrelationRecord]:
        return iter(self.records())

    def completed_latencies_us(self) -> List[int]:
        """Latencies in microseconds of every request that got its reply."""
        with self._lock:
            return [
                micros_between(r.start_time, r.end_time)
                for r in self._records.values()
                if r.end_time is not None
            ]
