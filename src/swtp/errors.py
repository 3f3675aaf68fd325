from __future__ import annotations


class SwtpError(Exception):
    """Base class for everything this package raises on purpose."""


class PacketError(SwtpError, ValueError):
    pass


class MalformedPacketError(PacketError):
    """Datagram too short to hold a header (or an ACK of the wrong size)."""


class ChecksumMismatchError(PacketError):
    def __init__(self, seq: int, expected: int, actual: int):
        super().__init__(f"checksum mismatch on seq={seq}: expected {expected:#010x}, got {actual:#010x}")
        self.seq = seq
        self.expected = expected
        self.actual = actual


class OutOfWindowError(SwtpError):
    """Frame outside (LFR, LAF]. Raised and handled inside the receiver, which re-ACKs."""


class AckTimeoutError(SwtpError, TimeoutError):
    """No ACK arrived before the retransmission timer expired."""


class SequenceOverflowError(SwtpError, OverflowError):
    pass


class EndMarkerCollisionError(SwtpError, ValueError):
    pass


class ConfigError(SwtpError, ValueError):
    pass
