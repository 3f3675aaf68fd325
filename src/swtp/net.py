from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass, field
from typing import Protocol, Tuple

from .constants import MAX_DATAGRAM

log = logging.getLogger(__name__)

Address = Tuple[str, int]


class Transport(Protocol):
    def sendto(self, data: bytes, addr: Address) -> None: ...

    def recvfrom(self, bufsize: int = MAX_DATAGRAM, timeout: float | None = None) -> Tuple[bytes, Address]: ...


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0
    seed: int | None = None
    _rng: random.Random = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.loss_rate < 1.0:
            raise ValueError(f"loss_rate must be in [0, 1), got {self.loss_rate}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {self.delay_ms}")
        object.__setattr__(self, "_rng", random.Random(self.seed))

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and self._rng.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None, poll_s: float | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()
        self.poll_s = poll_s

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
        poll_s: float | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        return cls(sock, impairment, poll_s)

    @classmethod
    def sending(cls, impairment: Impairment | None = None) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        return cls(sock, impairment)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            log.debug("dropped outbound %d bytes to %s", len(data), addr)
            return
        self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = MAX_DATAGRAM, timeout: float | None = None) -> Tuple[bytes, Address]:
        """Block for the next datagram.

        ``timeout=None`` waits forever, or raises ``TimeoutError`` every
        ``poll_s`` seconds when the endpoint was built with one. Otherwise raises
        ``TimeoutError`` once ``timeout`` seconds pass without a datagram
        surviving impairment.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if deadline is None:
                self.sock.settimeout(self.poll_s)
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError("timed out waiting for datagram")
                self.sock.settimeout(remaining)
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                log.debug("dropped inbound %d bytes from %s", len(data), addr)
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "UdpEndpoint":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
