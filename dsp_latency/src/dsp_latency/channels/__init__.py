"""ZMQ request/reply channels: paced Sender, reactive Receiver and socket binding."""

from .receiver import Receiver
from .sender import SendResult, Sender
from .sockets import bind_pull, bind_push, tcp_address

__all__ = [
    "Receiver",
    "SendResult",
    "Sender",
    "bind_pull",
    "bind_push",
    "tcp_address",
]
