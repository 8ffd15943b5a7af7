from __future__ import annotations


MAX_VARINT_SHIFT = 70


def read_varint(buf: bytes, offset: int) -> tuple[int, int] | None:
    """Decode an unsigned 7-bit-chunk varint starting at ``offset``.

    Returns ``(value, next_offset)`` or ``None`` when the input ends before a
    terminating byte or the encoding is longer than a 64-bit value allows.
    """
    value = 0
    shift = 0
    index = offset
    size = len(buf)
    while True:
        if index >= size:
            return None
        byte = buf[index]
        index += 1
        if byte < 0x80:
            if shift >= 64:
                return None
            value |= byte << shift
            return value, index
        value |= (byte & 0x7F) << shift
        shift += 7
        if shift > MAX_VARINT_SHIFT:
            return None


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"varint value must be non-negative: {value}")
    out = bytearray()
    while True:
        chunk = value & 0x7F
        value >>= 7
        if value:
            out.append(chunk | 0x80)
        else:
            out.append(chunk)
            return bytes(out)
