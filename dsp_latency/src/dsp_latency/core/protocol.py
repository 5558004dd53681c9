"""Wire format of the DSP request/reply exchange.

Request:  ``[uint32 BE request id][domain][ip]``
Reply:    ``[uint32 BE request id][score][category]``
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Sequence

_ID_STRUCT = struct.Struct(">I")

ID_SIZE = _ID_STRUCT.size
MAX_REQUEST_ID = 0xFFFFFFFF
REQUEST_PARTS = 3
REPLY_PARTS = 3


@dataclass(frozen=True)
class Request:
    """A synthetic request sent to the DSP."""
    id: int
    domain: str
    ip: str

    def to_frames(self) -> List[bytes]:
        return encode_request(self.id, self.domain, self.ip)


@dataclass(frozen=True)
class Reply:
    """A reply received from the DSP. Score and category stay opaque."""
    id: int
    score: bytes
    category: bytes


def encode_id(request_id: int) -> bytes:
    """Serialize a request id as a 4-byte big-endian unsigned integer."""
    if not 0 <= request_id <= MAX_REQUEST_ID:
        raise ValueError(f"Request id out of uint32 range: {request_id}")
    return _ID_STRUCT.pack(request_id)


def decode_id(raw: bytes) -> int:
    """Decode a 4-byte big-endian request id."""
    if len(raw) != ID_SIZE:
        raise ValueError(f"Request id frame must be {ID_SIZE} bytes, got {len(raw)}")
    return _ID_STRUCT.unpack(raw)[0]


def encode_request(request_id: int, domain: str, ip: str) -> List[bytes]:
    """Build the three frames of a request message."""
    return [encode_id(request_id), domain.encode("utf-8"), ip.encode("utf-8")]


def decode_request(frames: Sequence[bytes]) -> Request:
    if len(frames) != REQUEST_PARTS:
        raise ValueError(f"Request must have {REQUEST_PARTS} parts, got {len(frames)}")
    raw_id, domain, ip = frames
    return Request(decode_id(raw_id), bytes(domain).decode("utf-8"), bytes(ip).decode("utf-8"))


def encode_reply(request_id: int, score: bytes, category: bytes) -> List[bytes]:
    return [encode_id(request_id), score, category]


def decode_reply(frames: Sequence[bytes]) -> Reply:
    """Parse a reply message; raises ``ValueError`` on a malformed message."""
    if len(frames) != REPLY_PARTS:
        raise ValueError(f"Reply must have {REPLY_PARTS} parts, got {len(frames)}")
    raw_id, score, category = frames
    return Reply(decode_id(bytes(raw_id)), bytes(score), bytes(category))
