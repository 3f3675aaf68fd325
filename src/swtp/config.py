from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .constants import (
    DEFAULT_END_MARKER_RETRIES,
    DEFAULT_PACKET_SIZE,
    DEFAULT_RTT_MS,
    DEFAULT_WINDOW_SIZE,
    MAX_PACKET_SIZE,
    RTT_TIMEOUT_FACTOR,
)
from .errors import ConfigError


def _check_port(port: int, *, allow_zero: bool) -> None:
    low = 0 if allow_zero else 1
    if not low <= port <= 65535:
        raise ConfigError(f"port must be in [{low}, 65535], got {port}")


def _check_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be > 0, got {value}")


def parse_seq_list(text: str) -> Tuple[int, ...]:
    """Parse ``"1,2,5"`` into ``(1, 2, 5)``. Empty input gives ``()``."""
    if not text.strip():
        return ()
    try:
        seqs = tuple(int(part) for part in text.split(",") if part.strip())
    except ValueError:
        raise ConfigError(f"expected comma-separated sequence numbers, got {text!r}") from None
    if any(s < 0 for s in seqs):
        raise ConfigError(f"sequence numbers must be >= 0, got {text!r}")
    return seqs


@dataclass(frozen=True, slots=True)
class SenderConfig:
    dest_host: str
    dest_port: int
    file: str
    packet_size: int = DEFAULT_PACKET_SIZE
    window_size: int = DEFAULT_WINDOW_SIZE
    rtt_ms: int = DEFAULT_RTT_MS
    corrupt: Tuple[int, ...] = ()
    end_marker_retries: int = DEFAULT_END_MARKER_RETRIES

    def __post_init__(self) -> None:
        if not self.dest_host:
            raise ConfigError("dest_host is required")
        _check_port(self.dest_port, allow_zero=False)
        if not self.file:
            raise ConfigError("file is required")
        _check_positive("packet_size", self.packet_size)
        if self.packet_size > MAX_PACKET_SIZE:
            raise ConfigError(f"packet_size must be <= {MAX_PACKET_SIZE}, got {self.packet_size}")
        _check_positive("window_size", self.window_size)
        _check_positive("rtt_ms", self.rtt_ms)
        if self.end_marker_retries < 0:
            raise ConfigError(f"end_marker_retries must be >= 0, got {self.end_marker_retries}")
        if any(s < 0 for s in self.corrupt):
            raise ConfigError(f"corrupt sequence numbers must be >= 0, got {self.corrupt}")

    @property
    def timeout_s(self) -> float:
        return RTT_TIMEOUT_FACTOR * self.rtt_ms / 1000.0

    @property
    def dest(self) -> Tuple[str, int]:
        return (self.dest_host, self.dest_port)


@dataclass(frozen=True, slots=True)
class ReceiverConfig:
    listen_host: str
    listen_port: int
    out: str
    window_size: int = DEFAULT_WINDOW_SIZE

    def __post_init__(self) -> None:
        if not self.listen_host:
            raise ConfigError("listen_host is required")
        _check_port(self.listen_port, allow_zero=True)
        if not self.out:
            raise ConfigError("out is required")
        _check_positive("window_size", self.window_size)
