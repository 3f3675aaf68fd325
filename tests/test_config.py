from __future__ import annotations

import pytest

from swtp.config import ReceiverConfig, SenderConfig, parse_seq_list
from swtp.errors import ConfigError


def sender_config(**kw) -> SenderConfig:
    base = dict(dest_host="127.0.0.1", dest_port=9000, file="in.bin")
    base.update(kw)
    return SenderConfig(**base)


def test_timeout_is_fifteen_rtts():
    assert sender_config(rtt_ms=20).timeout_s == pytest.approx(0.3)
    assert sender_config(rtt_ms=1).timeout_s == pytest.approx(0.015)


def test_dest_tuple():
    assert sender_config().dest == ("127.0.0.1", 9000)


@pytest.mark.parametrize(
    "kw",
    [
        {"dest_host": ""},
        {"dest_port": 0},
        {"dest_port": 70000},
        {"file": ""},
        {"packet_size": 0},
        {"packet_size": 70000},
        {"window_size": 0},
        {"rtt_ms": -5},
        {"end_marker_retries": -1},
        {"corrupt": (1, -2)},
    ],
)
def test_sender_config_rejects(kw):
    with pytest.raises(ConfigError):
        sender_config(**kw)


def test_receiver_config_allows_ephemeral_port():
    cfg = ReceiverConfig(listen_host="0.0.0.0", listen_port=0, out="out.bin", window_size=3)
    assert cfg.window_size == 3


@pytest.mark.parametrize("kw", [{"listen_port": -1}, {"out": ""}, {"window_size": 0}, {"listen_host": ""}])
def test_receiver_config_rejects(kw):
    base = dict(listen_host="0.0.0.0", listen_port=9000, out="out.bin")
    base.update(kw)
    with pytest.raises(ConfigError):
        ReceiverConfig(**base)


def test_parse_seq_list():
    assert parse_seq_list("1,2, 5") == (1, 2, 5)
    assert parse_seq_list("") == ()
    assert parse_seq_list("3,") == (3,)


@pytest.mark.parametrize("text", ["a,b", "1,-1", "1.5"])
def test_parse_seq_list_rejects(text):
    with pytest.raises(ConfigError):
        parse_seq_list(text)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
