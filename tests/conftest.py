from __future__ import annotations

import io
from collections import deque
from typing import Callable, Iterable, List, Optional, Tuple

from swtp.packet import Packet, decode, decode_ack
from swtp.receiver import Receiver

SENDER_ADDR = ("10.0.0.1", 40000)
RECEIVER_ADDR = ("10.0.0.2", 50000)


class FakeTransport:
    """Scripted datagram endpoint.

    ``inbound`` items are ``(data, addr)`` tuples; a ``None`` item makes one
    ``recvfrom`` call time out. An empty queue always times out.
    """

    def __init__(self, inbound: Iterable[Optional[Tuple[bytes, tuple]]] = ()):
        self.inbound = deque(inbound)
        self.sent: List[Tuple[bytes, tuple]] = []

    def sendto(self, data: bytes, addr) -> None:
        self.sent.append((data, addr))

    def recvfrom(self, bufsize: int = 65535, timeout: float | None = None):
        if not self.inbound:
            raise TimeoutError("no scripted datagram")
        item = self.inbound.popleft()
        if item is None:
            raise TimeoutError("scripted timeout")
        return item

    @property
    def acks(self) -> List[int]:
        return [decode_ack(data) for data, _ in self.sent]

    @property
    def packets(self) -> List[Packet]:
        return [decode(data) for data, _ in self.sent]


class Channel:
    """Synchronous link from a sender straight into a live Receiver.

    Each datagram the sender transmits is handed to ``Receiver.handle_datagram``
    at once (unless ``drop`` says otherwise); ACKs queue up for the sender's next
    ``recvfrom``. An empty ACK queue reads as a timeout.
    """

    def __init__(self, window_size: int = 4, drop: Callable[[Packet, int], bool] | None = None):
        self.out = io.BytesIO()
        self.drop = drop or (lambda pkt, attempt: False)
        self.attempts: dict[int, int] = {}
        self.pending_acks: deque[bytes] = deque()
        self.ack_log: List[int] = []
        self.wire_log: List[Packet] = []
        self.receiver = Receiver(_ReceiverSide(self), self.out, window_size=window_size)
        self.sender_side = _SenderSide(self)

    def deliver(self, data: bytes) -> None:
        pkt = decode(data)
        attempt = self.attempts.get(pkt.seq, 0)
        self.attempts[pkt.seq] = attempt + 1
        self.wire_log.append(pkt)
        if self.drop(pkt, attempt):
            return
        self.receiver.handle_datagram(data, SENDER_ADDR)


class _SenderSide:
    def __init__(self, channel: Channel):
        self.channel = channel

    def sendto(self, data: bytes, addr) -> None:
        assert addr == RECEIVER_ADDR
        self.channel.deliver(data)

    def recvfrom(self, bufsize: int = 65535, timeout: float | None = None):
        if not self.channel.pending_acks:
            raise TimeoutError("no ack queued")
        return self.channel.pending_acks.popleft(), RECEIVER_ADDR


class _ReceiverSide:
    def __init__(self, channel: Channel):
        self.channel = channel

    def sendto(self, data: bytes, addr) -> None:
        assert addr == SENDER_ADDR
        self.channel.ack_log.append(decode_ack(data))
        self.channel.pending_acks.append(data)

    def recvfrom(self, bufsize: int = 65535, timeout: float | None = None):
        raise AssertionError("channel drives the receiver directly")


def frame(seq: int, payload: bytes) -> bytes:
    return Packet.data(seq, payload).to_bytes()


def end_frame(seq: int) -> bytes:
    return Packet.end_marker(seq).to_bytes()
