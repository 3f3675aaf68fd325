from __future__ import annotations

HEADER_FORMAT = "!iI"  # seq, crc32
ACK_FORMAT = "!i"  # last in-order seq; -1 before the first frame

END_MARKER = b"\xff"

MAX_SEQ = 2**31 - 1
NO_FRAME = -1

RTT_TIMEOUT_FACTOR = 15

DEFAULT_PACKET_SIZE = 1024
DEFAULT_WINDOW_SIZE = 8
DEFAULT_RTT_MS = 20
DEFAULT_END_MARKER_RETRIES = 3
MAX_DATAGRAM = 65535
MAX_PACKET_SIZE = 65507 - 8  # largest IPv4 UDP payload minus the header
