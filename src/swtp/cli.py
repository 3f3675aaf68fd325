from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict

from .bench import run_benchmark
from .config import ReceiverConfig, SenderConfig, parse_seq_list
from .constants import DEFAULT_END_MARKER_RETRIES, DEFAULT_PACKET_SIZE, DEFAULT_RTT_MS, DEFAULT_WINDOW_SIZE
from .errors import ConfigError, SwtpError
from .net import Impairment, UdpEndpoint
from .receiver import Receiver
from .sender import GoBackNSender, check_source

log = logging.getLogger(__name__)


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_recv(args: argparse.Namespace) -> int:
    config = ReceiverConfig(
        listen_host=args.listen_host,
        listen_port=args.listen_port,
        out=args.out,
        window_size=args.window_size,
    )
    impair = Impairment(args.loss_rate, args.delay_ms)
    with UdpEndpoint.listening(config.listen_host, config.listen_port, impairment=impair) as udp:
        log.info("listening on %s:%d; writing to %s", *udp.address, config.out)
        with open(config.out, "wb") as out:
            metrics = Receiver.from_config(config, udp, out).run()

    _emit({"role": "receiver", **metrics.as_dict()}, args.json)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    config = SenderConfig(
        dest_host=args.dest_host,
        dest_port=args.dest_port,
        file=args.file,
        packet_size=args.packet_size,
        window_size=args.window_size,
        rtt_ms=args.rtt_ms,
        corrupt=args.corrupt,
        end_marker_retries=args.end_marker_retries,
    )
    impair = Impairment(args.loss_rate, args.delay_ms)
    with open(config.file, "rb") as f:
        check_source(f, config.packet_size)
        with UdpEndpoint.sending(impairment=impair) as udp:
            metrics = GoBackNSender.from_config(config, udp, f).run()

    _emit({"role": "sender", **metrics.as_dict()}, args.json)
    if not metrics.end_acknowledged:
        log.warning("transfer finished without confirmation from the receiver")
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
        packet_size=args.packet_size,
        window_size=args.window_size,
        rtt_ms=args.rtt_ms,
        seed=args.seed,
    )
    _emit({"role": "bench", **asdict(r)}, args.json)
    return 0 if r.intact else 1


def _seq_list(text: str):
    try:
        return parse_seq_list(text)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="swtp", description="Go-Back-N file transfer over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--window-size", type=int, default=DEFAULT_WINDOW_SIZE)
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulated datagram loss probability")
        x.add_argument("--delay-ms", type=int, default=0, help="simulated per-datagram delay")
        x.add_argument("--json", action="store_true")

    recv = sub.add_parser("recv", help="receive a file and write it to disk")
    add_common(recv)
    recv.add_argument("--listen-host", default="0.0.0.0")
    recv.add_argument("--listen-port", type=int, required=True)
    recv.add_argument("--out", required=True)
    recv.set_defaults(func=cmd_recv)

    send = sub.add_parser("send", help="send a file to a receiver")
    add_common(send)
    send.add_argument("--dest-host", required=True)
    send.add_argument("--dest-port", type=int, required=True)
    send.add_argument("--file", required=True)
    send.add_argument("--packet-size", type=int, default=DEFAULT_PACKET_SIZE)
    send.add_argument("--rtt-ms", type=int, default=DEFAULT_RTT_MS, help="round-trip estimate; timeout is 15x this")
    send.add_argument("--corrupt", type=_seq_list, default=(), help="comma-separated seqs to corrupt once")
    send.add_argument("--end-marker-retries", type=int, default=DEFAULT_END_MARKER_RETRIES)
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="loopback transfer of random data")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.add_argument("--packet-size", type=int, default=DEFAULT_PACKET_SIZE)
    bench.add_argument("--rtt-ms", type=int, default=DEFAULT_RTT_MS)
    bench.add_argument("--seed", type=int, default=None)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        return int(args.func(args))
    except ConfigError as e:
        p.error(str(e))
    except OSError as e:
        log.error("%s", e)
        return 1
    except SwtpError as e:
        log.error("transfer aborted: %s", e)
        return 1
    except ValueError as e:
        p.error(str(e))


if __name__ == "__main__":
    raise SystemExit(main())
