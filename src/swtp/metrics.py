from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field


@dataclass(slots=True)
class Metrics:
    packets_sent: int = 0
    bytes_sent: int = 0
    unique_bytes_sent: int = 0
    retransmits: int = 0
    timeouts: int = 0
    acks_sent: int = 0
    acks_received: int = 0
    bytes_delivered: int = 0
    rejected_corrupt: int = 0
    rejected_out_of_window: int = 0
    end_acknowledged: bool = False
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    def finish(self) -> "Metrics":
        self.end_ts = time.monotonic()
        return self

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        moved = self.bytes_delivered or self.unique_bytes_sent
        if self.duration_s <= 0:
            return 0.0
        return (moved * 8 / 1_000_000) / self.duration_s

    def as_dict(self) -> dict:
        d = asdict(self)
        d.pop("start_ts")
        d.pop("end_ts")
        d["seconds"] = self.duration_s
        d["mbps"] = self.throughput_mbps
        return d
