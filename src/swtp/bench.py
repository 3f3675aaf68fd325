from __future__ import annotations

import hashlib
import io
import logging
import os
import threading
from dataclasses import dataclass

from .constants import DEFAULT_PACKET_SIZE, DEFAULT_RTT_MS, DEFAULT_WINDOW_SIZE, RTT_TIMEOUT_FACTOR
from .net import Impairment, UdpEndpoint
from .receiver import Receiver
from .sender import GoBackNSender

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    packets_sent: int
    retransmits: int
    timeouts: int
    end_acknowledged: bool
    intact: bool


def run_benchmark(
    *,
    size_bytes: int,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    packet_size: int = DEFAULT_PACKET_SIZE,
    window_size: int = DEFAULT_WINDOW_SIZE,
    rtt_ms: int = DEFAULT_RTT_MS,
    seed: int | None = None,
    join_timeout_s: float = 30.0,
) -> BenchmarkResult:
    """Push ``size_bytes`` of random data through both engines on loopback."""
    payload = os.urandom(size_bytes)
    # A lone 0xFF chunk would read as the end-marker.
    if packet_size == 1:
        payload = payload.replace(b"\xff", b"\x00")
    elif len(payload) % packet_size == 1 and payload.endswith(b"\xff"):
        payload = payload[:-1] + b"\x00"

    recv_ep = UdpEndpoint.listening("127.0.0.1", 0, impairment=Impairment(loss_rate, delay_ms, seed), poll_s=0.1)
    send_ep = UdpEndpoint.sending(impairment=Impairment(loss_rate, delay_ms, None if seed is None else seed + 1))

    out = io.BytesIO()
    recv = Receiver(recv_ep, out, window_size=window_size)
    recv_errors: list[BaseException] = []

    def recv_runner() -> None:
        try:
            recv.run()
        except OSError as e:
            recv_errors.append(e)

    t = threading.Thread(target=recv_runner, name="swtp-receiver", daemon=True)
    t.start()

    try:
        sender = GoBackNSender(
            send_ep,
            recv_ep.address,
            io.BytesIO(payload),
            window_size=window_size,
            packet_size=packet_size,
            timeout_s=RTT_TIMEOUT_FACTOR * rtt_ms / 1000.0,
        )
        send_metrics = sender.run()
        t.join(timeout=join_timeout_s)
    finally:
        send_ep.close()
        recv_ep.close()
        # a receiver still waiting fails on the closed socket
        t.join(timeout=1.0)

    if recv_errors:
        raise recv_errors[0]

    received = out.getvalue()
    intact = hashlib.sha256(received).digest() == hashlib.sha256(payload).digest()
    if not intact:
        log.error("benchmark output differs: sent %d bytes, received %d", len(payload), len(received))

    duration_s = max(0.001, send_metrics.duration_s)
    return BenchmarkResult(
        bytes_transferred=len(received),
        duration_s=duration_s,
        throughput_mbps=(len(payload) * 8 / 1_000_000) / duration_s,
        packets_sent=send_metrics.packets_sent,
        retransmits=send_metrics.retransmits,
        timeouts=send_metrics.timeouts,
        end_acknowledged=send_metrics.end_acknowledged,
        intact=intact,
    )
