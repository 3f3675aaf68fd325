from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, replace

from .constants import ACK_FORMAT, END_MARKER, HEADER_FORMAT
from .errors import ChecksumMismatchError, MalformedPacketError

HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
ACK_SIZE = struct.calcsize(ACK_FORMAT)


def checksum(payload: bytes) -> int:
    return zlib.crc32(payload) & 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class Packet:
    seq: int
    checksum: int
    payload: bytes = b""

    @property
    def is_end_marker(self) -> bool:
        return self.payload == END_MARKER

    @property
    def is_valid(self) -> bool:
        return checksum(self.payload) == self.checksum

    def to_bytes(self) -> bytes:
        return encode(self)

    @staticmethod
    def from_bytes(raw: bytes) -> "Packet":
        return decode(raw)

    @staticmethod
    def data(seq: int, payload: bytes) -> "Packet":
        return Packet(seq=seq, checksum=checksum(payload), payload=bytes(payload))

    @staticmethod
    def end_marker(seq: int) -> "Packet":
        return Packet.data(seq, END_MARKER)


def encode(packet: Packet) -> bytes:
    return struct.pack(HEADER_FORMAT, packet.seq, packet.checksum) + packet.payload


def decode(raw: bytes) -> Packet:
    """Split a datagram into header and payload.

    The checksum is carried through as transmitted; call :func:`validate`
    (or check ``Packet.is_valid``) before trusting the payload.
    """
    if len(raw) < HEADER_SIZE:
        raise MalformedPacketError(f"datagram too small to be a packet: {len(raw)} bytes")
    seq, crc = struct.unpack_from(HEADER_FORMAT, raw)
    return Packet(seq=seq, checksum=crc, payload=bytes(raw[HEADER_SIZE:]))


def validate(packet: Packet) -> Packet:
    actual = checksum(packet.payload)
    if actual != packet.checksum:
        raise ChecksumMismatchError(packet.seq, packet.checksum, actual)
    return packet


def encode_ack(seq: int) -> bytes:
    return struct.pack(ACK_FORMAT, seq)


def decode_ack(raw: bytes) -> int:
    if len(raw) != ACK_SIZE:
        raise MalformedPacketError(f"ack must be {ACK_SIZE} bytes, got {len(raw)}")
    (seq,) = struct.unpack(ACK_FORMAT, raw)
    return seq


def corrupt(packet: Packet) -> Packet:
    """Copy of ``packet`` that fails validation on the receiving side.

    Flips the low bit of the first payload byte, or of the checksum when there
    is no payload. Sequence number and transmitted checksum are kept.
    """
    if not packet.payload:
        return replace(packet, checksum=packet.checksum ^ 0x1)
    flipped = bytes([packet.payload[0] ^ 0x01]) + packet.payload[1:]
    return replace(packet, payload=flipped)
