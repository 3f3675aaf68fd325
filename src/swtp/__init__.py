"""Sliding-Window Transfer Protocol (SWTP)

Go-Back-N file transfer over UDP:
- fixed-layout packet framing with a CRC-32 payload checksum
- a sender with a bounded window, one retransmission timer and cumulative ACKs
- a receiver with a bounded reorder buffer that always ACKs its last in-order frame

Both engines take their transport as a constructor argument, so they can be
driven by a real socket or by an in-memory channel.
"""

from .errors import (
    ChecksumMismatchError,
    ConfigError,
    MalformedPacketError,
    SwtpError,
)
from .packet import Packet
from .receiver import Receiver
from .sender import GoBackNSender

__all__ = [
    "ChecksumMismatchError",
    "ConfigError",
    "GoBackNSender",
    "MalformedPacketError",
    "Packet",
    "Receiver",
    "SwtpError",
]
