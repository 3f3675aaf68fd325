from __future__ import annotations

import json
import socket
import threading

import pytest

from swtp.cli import build_parser, main


def free_udp_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_send_arguments():
    args = build_parser().parse_args(
        ["send", "--dest-host", "127.0.0.1", "--dest-port", "9000", "--file", "f.bin", "--corrupt", "1,3"]
    )
    assert args.corrupt == (1, 3)
    assert args.window_size == 8
    assert args.func.__name__ == "cmd_send"


def test_bad_corrupt_list_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(
            ["send", "--dest-host", "h", "--dest-port", "1", "--file", "f", "--corrupt", "x"]
        )
    assert exc.value.code == 2


def test_invalid_config_exits_2(tmp_path):
    src = tmp_path / "in.bin"
    src.write_bytes(b"data")
    with pytest.raises(SystemExit) as exc:
        main(["send", "--dest-host", "127.0.0.1", "--dest-port", "9000", "--file", str(src), "--window-size", "0"])
    assert exc.value.code == 2


def test_missing_file_exits_1(tmp_path):
    rc = main(["send", "--dest-host", "127.0.0.1", "--dest-port", "9000", "--file", str(tmp_path / "nope.bin")])
    assert rc == 1


def test_send_and_recv_end_to_end(tmp_path, capsys):
    src = tmp_path / "in.bin"
    dst = tmp_path / "out.bin"
    src.write_bytes(bytes(range(254)) * 40)
    port = free_udp_port()

    rc_holder = {}

    def receive():
        rc_holder["rc"] = main(
            ["recv", "--listen-host", "127.0.0.1", "--listen-port", str(port), "--out", str(dst), "--window-size", "4"]
        )

    t = threading.Thread(target=receive, daemon=True)
    t.start()

    rc = main(
        [
            "send",
            "--dest-host", "127.0.0.1",
            "--dest-port", str(port),
            "--file", str(src),
            "--packet-size", "100",
            "--window-size", "4",
            "--rtt-ms", "10",
            "--corrupt", "2,5",
            "--json",
        ]
    )
    t.join(timeout=10)

    assert rc == 0
    assert rc_holder.get("rc") == 0
    assert dst.read_bytes() == src.read_bytes()

    out = capsys.readouterr().out
    sender_report, _ = json.JSONDecoder().raw_decode(out, out.index('{\n  "role": "sender"'))
    assert sender_report["retransmits"] > 0


def test_end_marker_collision_refused_before_sending(tmp_path, monkeypatch):
    src = tmp_path / "in.bin"
    src.write_bytes(b"abcd\xff")
    opened = []

    def sending(*args, **kwargs):
        opened.append(args)
        raise AssertionError("socket opened")

    monkeypatch.setattr("swtp.cli.UdpEndpoint.sending", sending)
    rc = main(
        ["send", "--dest-host", "127.0.0.1", "--dest-port", "9000", "--file", str(src), "--packet-size", "4"]
    )
    assert rc == 1
    assert opened == []
