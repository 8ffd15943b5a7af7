from __future__ import annotations

import io
import logging
import lzma
from typing import BinaryIO

from PIL import Image

from tibiasprites.errors import DecodeError


logger = logging.getLogger(__name__)

CIP_MARKER_TAIL_SIZE = 4
LZMA_PROPS_SIZE = 5
LZMA_SIZE_FIELD_SIZE = 8
LZMA_HEADER_SIZE = LZMA_PROPS_SIZE + LZMA_SIZE_FIELD_SIZE
LZMA_UNKNOWN_SIZE = b"\xff" * LZMA_SIZE_FIELD_SIZE
READ_CHUNK_SIZE = 1024 * 1024
SHEET_IMAGE_FORMATS = ("BMP",)


def _read_exact(handle: BinaryIO, size: int, what: str) -> bytes:
    data = handle.read(size)
    if len(data) != size:
        raise DecodeError(f"unexpected end of stream while reading {what}: wanted {size} bytes, got {len(data)}")
    return data


def skip_cip_header(handle: BinaryIO) -> int:
    """Consume the CIP wrapper that precedes the LZMA payload.

    Layout: any number of 0x00 bytes, a 5-byte marker whose first byte is the
    first non-zero byte, then a 7-bit length field. Marker contents and the
    decoded length are not used. Returns the number of bytes consumed.
    """
    consumed = 0
    while True:
        byte = _read_exact(handle, 1, "CIP zero run")
        consumed += 1
        if byte != b"\x00":
            break

    _read_exact(handle, CIP_MARKER_TAIL_SIZE, "CIP marker")
    consumed += CIP_MARKER_TAIL_SIZE

    while True:
        byte = _read_exact(handle, 1, "CIP length field")[0]
        consumed += 1
        if (byte & 0x80) == 0:
            break
    return consumed


class RepairedLZMAStream:
    """LZMA "alone" stream whose size field was rewritten to "unknown".

    The corrected 13-byte header and the rest of ``handle`` are fed to one
    ``lzma.LZMADecompressor`` as a continuous byte source.
    """

    def __init__(self, header: bytes, handle: BinaryIO) -> None:
        self.header = header
        self._handle = handle
        self._decompressor = lzma.LZMADecompressor(format=lzma.FORMAT_ALONE)
        try:
            self._pending = self._decompressor.decompress(header)
        except lzma.LZMAError as exc:
            raise DecodeError(f"lzma rejected compression properties {header[:LZMA_PROPS_SIZE].hex()}: {exc}") from exc

    def read_all(self, max_size: int | None = None) -> bytes:
        out = bytearray(self._pending)
        self._pending = b""
        decompressor = self._decompressor
        while not decompressor.eof:
            if (max_size is not None) and (len(out) > max_size):
                break
            if decompressor.needs_input:
                chunk = self._handle.read(READ_CHUNK_SIZE)
                if not chunk:
                    raise DecodeError("compressed stream ended before the end-of-stream marker")
            else:
                chunk = b""
            limit = -1 if max_size is None else (max_size - len(out) + 1)
            try:
                out.extend(decompressor.decompress(chunk, max_length=limit))
            except lzma.LZMAError as exc:
                raise DecodeError(f"lzma decode: {exc}") from exc

        if (max_size is not None) and (len(out) > max_size):
            raise DecodeError(f"decompressed payload exceeds {max_size} bytes")
        return bytes(out)


def repair_lzma_header(handle: BinaryIO) -> RepairedLZMAStream:
    props = _read_exact(handle, LZMA_PROPS_SIZE, "lzma properties")
    # The encoder stores the compressed size here, which a conforming decoder would trust.
    _read_exact(handle, LZMA_SIZE_FIELD_SIZE, "lzma size field")
    return RepairedLZMAStream(props + LZMA_UNKNOWN_SIZE, handle)


def decode_sheet(stream: RepairedLZMAStream, max_decompressed_size: int | None = None) -> Image.Image:
    payload = stream.read_all(max_decompressed_size)
    logger.debug("decompressed %d bytes", len(payload))
    try:
        with Image.open(io.BytesIO(payload), formats=SHEET_IMAGE_FORMATS) as image:
            image.load()
            return image.convert("RGBA")
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"bmp decode: {exc}") from exc


def read_sheet(handle: BinaryIO, max_decompressed_size: int | None = None) -> Image.Image:
    skip_cip_header(handle)
    return decode_sheet(repair_lzma_header(handle), max_decompressed_size)
