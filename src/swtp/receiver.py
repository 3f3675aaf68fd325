from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict

from .config import ReceiverConfig
from .constants import DEFAULT_WINDOW_SIZE, END_MARKER, NO_FRAME
from .errors import OutOfWindowError, PacketError
from .metrics import Metrics
from .net import Address, Transport
from .packet import Packet, decode, encode_ack, validate

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Receiver:
    """Sliding-window receiver.

    Accepts any valid frame in ``(lfr, laf]`` into a reorder buffer and writes
    payloads to ``out`` strictly in sequence order. Every datagram is answered
    with a cumulative ACK of ``lfr``: one ACK per frame delivered, or a re-ACK
    of the current ``lfr`` when the datagram is rejected.
    """

    udp: Transport
    out: BinaryIO
    window_size: int = DEFAULT_WINDOW_SIZE

    lfr: int = field(init=False, default=NO_FRAME)
    buffer: Dict[int, bytes] = field(init=False, default_factory=dict)
    metrics: Metrics = field(init=False, default_factory=Metrics)
    done: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise ValueError(f"window_size must be > 0, got {self.window_size}")

    @classmethod
    def from_config(cls, config: ReceiverConfig, udp: Transport, out: BinaryIO) -> "Receiver":
        return cls(udp, out, window_size=config.window_size)

    @property
    def laf(self) -> int:
        return self.lfr + self.window_size

    def handle_datagram(self, raw: bytes, addr: Address) -> bool:
        """Process one inbound datagram. Returns True once the end-marker is delivered."""
        if self.done:
            self._send_ack(addr)
            return True

        try:
            pkt = validate(decode(raw))
            self._accept(pkt)
        except PacketError as e:
            self.metrics.rejected_corrupt += 1
            log.debug("rejected datagram (%s); re-ack lfr=%d", e, self.lfr)
            self._send_ack(addr)
            return False
        except OutOfWindowError as e:
            self.metrics.rejected_out_of_window += 1
            log.debug("%s; re-ack lfr=%d", e, self.lfr)
            self._send_ack(addr)
            return False

        self._drain(addr)
        return self.done

    def run(self) -> Metrics:
        log.info("receiver waiting for data; window=%d", self.window_size)
        while not self.done:
            try:
                raw, addr = self.udp.recvfrom()
            except TimeoutError:
                continue
            self.handle_datagram(raw, addr)

        self.out.flush()
        self.metrics.finish()
        log.info(
            "receiver done; lfr=%d bytes=%d corrupt=%d out_of_window=%d",
            self.lfr,
            self.metrics.bytes_delivered,
            self.metrics.rejected_corrupt,
            self.metrics.rejected_out_of_window,
        )
        return self.metrics

    def _accept(self, pkt: Packet) -> None:
        if not self.lfr < pkt.seq <= self.laf:
            raise OutOfWindowError(f"seq={pkt.seq} outside window ({self.lfr}, {self.laf}]")
        if pkt.seq in self.buffer:
            log.debug("seq=%d already buffered", pkt.seq)
        self.buffer[pkt.seq] = pkt.payload
        if pkt.seq != self.lfr + 1:
            log.debug("buffered seq=%d ahead of lfr=%d", pkt.seq, self.lfr)

    def _drain(self, addr: Address) -> None:
        while self.lfr + 1 in self.buffer:
            self.lfr += 1
            payload = self.buffer.pop(self.lfr)
            if payload == END_MARKER:
                self.done = True
                self.buffer.clear()
                self._send_ack(addr)
                log.info("end-marker seq=%d delivered", self.lfr)
                return
            self.out.write(payload)
            self.metrics.bytes_delivered += len(payload)
            self._send_ack(addr)

    def _send_ack(self, addr: Address) -> None:
        self.udp.sendto(encode_ack(self.lfr), addr)
        self.metrics.acks_sent += 1
        log.debug("ack %d -> %s", self.lfr, addr)
