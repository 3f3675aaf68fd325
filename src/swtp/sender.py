from __future__ import annotations

import io
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import BinaryIO, Deque, Iterable, Set

from .config import SenderConfig
from .constants import (
    DEFAULT_END_MARKER_RETRIES,
    DEFAULT_PACKET_SIZE,
    DEFAULT_RTT_MS,
    DEFAULT_WINDOW_SIZE,
    END_MARKER,
    MAX_SEQ,
    RTT_TIMEOUT_FACTOR,
)
from .errors import AckTimeoutError, EndMarkerCollisionError, MalformedPacketError, SequenceOverflowError
from .metrics import Metrics
from .net import Address, Transport
from .packet import Packet, corrupt, decode_ack

log = logging.getLogger(__name__)


@dataclass(slots=True)
class GoBackNSender:
    """Go-Back-N sender over a datagram transport.

    Keeps at most ``window_size`` unacknowledged packets in flight behind a
    single retransmission timer. A cumulative ACK for ``n`` retires every packet
    up to ``n``; a timer expiry resends the whole window in sequence order.

    The stream is terminated by an end-marker packet (payload ``b"\\xff"``).
    ``run`` returns once that packet is acknowledged, or once it is the only
    packet left in flight and ``end_marker_retries`` further timeouts pass
    without an ACK. The latter ends the run with
    ``metrics.end_acknowledged == False``.
    """

    udp: Transport
    dest: Address
    f: BinaryIO
    window_size: int = DEFAULT_WINDOW_SIZE
    packet_size: int = DEFAULT_PACKET_SIZE
    timeout_s: float = RTT_TIMEOUT_FACTOR * DEFAULT_RTT_MS / 1000.0
    corrupt_seqs: Iterable[int] = ()
    end_marker_retries: int = DEFAULT_END_MARKER_RETRIES

    base: int = field(init=False, default=0)
    next_seq: int = field(init=False, default=0)
    window: Deque[Packet] = field(init=False, default_factory=deque)
    metrics: Metrics = field(init=False, default_factory=Metrics)
    end_seq: int | None = field(init=False, default=None)
    _deadline: float | None = field(init=False, default=None)
    _pending_corrupt: Set[int] = field(init=False, default_factory=set)

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise ValueError(f"window_size must be > 0, got {self.window_size}")
        if self.packet_size <= 0:
            raise ValueError(f"packet_size must be > 0, got {self.packet_size}")
        self._pending_corrupt = set(self.corrupt_seqs)

    @classmethod
    def from_config(cls, config: SenderConfig, udp: Transport, f: BinaryIO) -> "GoBackNSender":
        return cls(
            udp,
            config.dest,
            f,
            window_size=config.window_size,
            packet_size=config.packet_size,
            timeout_s=config.timeout_s,
            corrupt_seqs=config.corrupt,
            end_marker_retries=config.end_marker_retries,
        )

    @property
    def in_flight(self) -> int:
        return self.next_seq - self.base

    @property
    def finished(self) -> bool:
        return self.end_seq is not None and self.base > self.end_seq

    def fill_window(self) -> int:
        """Read, frame and send packets until the window is full or the end-marker is queued."""
        sent = 0
        while len(self.window) < self.window_size and self.end_seq is None:
            seq = self._claim_seq()
            chunk = self.f.read(self.packet_size)
            if chunk:
                if chunk == END_MARKER:
                    raise EndMarkerCollisionError(
                        f"chunk for seq={seq} is a lone 0xFF byte and would read as end-of-stream"
                    )
                pkt = Packet.data(seq, chunk)
            else:
                pkt = Packet.end_marker(seq)
                self.end_seq = seq
                log.debug("source exhausted; end-marker queued as seq=%d", seq)

            self.window.append(pkt)
            self._transmit(pkt)
            self.next_seq += 1
            sent += 1
            if self._deadline is None:
                self._arm_timer()
        return sent

    def on_ack_received(self, ack: int) -> int:
        """Slide the window past ``ack``. Returns how many packets were retired."""
        self.metrics.acks_received += 1
        if ack < self.base:
            log.debug("stale ack=%d (base=%d)", ack, self.base)
            return 0
        if ack >= self.next_seq:
            log.warning("ignoring ack=%d for a packet never sent (next_seq=%d)", ack, self.next_seq)
            return 0

        self.base = ack + 1
        retired = 0
        while self.window and self.window[0].seq < self.base:
            self.window.popleft()
            retired += 1
        log.debug("ack=%d retired %d; base=%d next_seq=%d", ack, retired, self.base, self.next_seq)

        if self.finished:
            self.metrics.end_acknowledged = True
        if self.window:
            self._arm_timer()
        else:
            self._deadline = None
        return retired

    def on_timeout(self) -> int:
        """Go back N: resend every packet still in the window, oldest first."""
        self.metrics.timeouts += 1
        log.warning(
            "timeout after %.3fs; resending window base=%d next_seq=%d",
            self.timeout_s,
            self.base,
            self.next_seq,
        )
        for pkt in self.window:
            self._transmit(pkt, retransmit=True)
        self._arm_timer()
        return len(self.window)

    def run(self) -> Metrics:
        log.info(
            "sending to %s:%d; window=%d packet_size=%d timeout=%.3fs",
            self.dest[0],
            self.dest[1],
            self.window_size,
            self.packet_size,
            self.timeout_s,
        )
        end_marker_timeouts = 0

        while not self.finished:
            self.fill_window()

            try:
                raw = self._await_ack()
            except AckTimeoutError:
                if self._only_end_marker_left():
                    if end_marker_timeouts >= self.end_marker_retries:
                        log.warning(
                            "no ack for end-marker seq=%d after %d retries; giving up",
                            self.end_seq,
                            end_marker_timeouts,
                        )
                        break
                    end_marker_timeouts += 1
                self.on_timeout()
                continue

            try:
                ack = decode_ack(raw)
            except MalformedPacketError as e:
                log.debug("discarding ack datagram: %s", e)
                continue
            self.on_ack_received(ack)

        self.metrics.finish()
        log.info(
            "sender done; packets=%d retransmits=%d timeouts=%d end_acknowledged=%s",
            self.metrics.packets_sent,
            self.metrics.retransmits,
            self.metrics.timeouts,
            self.metrics.end_acknowledged,
        )
        return self.metrics

    def _claim_seq(self) -> int:
        if self.next_seq > MAX_SEQ:
            raise SequenceOverflowError(
                f"sequence space exhausted at {self.next_seq}; stream longer than "
                f"{MAX_SEQ} packets of {self.packet_size} bytes"
            )
        return self.next_seq

    def _transmit(self, pkt: Packet, retransmit: bool = False) -> None:
        wire = pkt
        if pkt.seq in self._pending_corrupt:
            self._pending_corrupt.discard(pkt.seq)
            wire = corrupt(pkt)
            log.debug("corrupting seq=%d before transmission", pkt.seq)

        self.udp.sendto(wire.to_bytes(), self.dest)
        self.metrics.packets_sent += 1
        self.metrics.bytes_sent += len(pkt.payload)
        if retransmit:
            self.metrics.retransmits += 1
        elif not pkt.is_end_marker:
            self.metrics.unique_bytes_sent += len(pkt.payload)
        log.debug("%s seq=%d (%d bytes)", "resent" if retransmit else "sent", pkt.seq, len(pkt.payload))

    def _arm_timer(self) -> None:
        self._deadline = time.monotonic() + self.timeout_s

    def _await_ack(self) -> bytes:
        if self._deadline is None:
            self._arm_timer()
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise AckTimeoutError(f"no ack within {self.timeout_s:.3f}s")
        try:
            raw, _ = self.udp.recvfrom(timeout=remaining)
        except TimeoutError:
            raise AckTimeoutError(f"no ack within {self.timeout_s:.3f}s") from None
        return raw

    def _only_end_marker_left(self) -> bool:
        return len(self.window) == 1 and self.window[0].seq == self.end_seq


def check_source(f: BinaryIO, packet_size: int) -> None:
    """Refuse a seekable source whose chunking would yield a lone 0xFF chunk.

    Catches the collision before anything is sent. Non-seekable streams are
    only checked by ``fill_window`` as chunks are read.
    """
    if not f.seekable():
        return
    start = f.tell()
    try:
        size = f.seek(0, io.SEEK_END) - start
        if packet_size == 1:
            f.seek(start)
            offset = 0
            for block in iter(lambda: f.read(1 << 16), b""):
                hit = block.find(END_MARKER)
                if hit >= 0:
                    raise EndMarkerCollisionError(
                        f"byte {offset + hit} is 0xFF; with packet_size=1 it would read as end-of-stream"
                    )
                offset += len(block)
        elif size % packet_size == 1:
            f.seek(-1, io.SEEK_END)
            if f.read(1) == END_MARKER:
                raise EndMarkerCollisionError(
                    f"final chunk is a lone 0xFF byte; pick a packet_size that does not leave 1 byte over ({size} bytes)"
                )
    finally:
        f.seek(start)
