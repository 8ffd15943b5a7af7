from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tibiasprites.varint import read_varint


logger = logging.getLogger(__name__)

TAG_WIDTH = 0x08
TAG_HEIGHT = 0x10
TAG_LAYERS = 0x18
TAG_PATTERN_WIDTH = 0x20
TAG_SPRITE_ID = 0x28
HEADER_TAGS = (TAG_WIDTH, TAG_HEIGHT, TAG_LAYERS, TAG_PATTERN_WIDTH)
MAX_SPRITE_IDS = 1_000_000
LOGGED_BLOCKS = 5


@dataclass(frozen=True)
class SpriteInfo:
    width: int
    height: int
    layers: int
    pattern_width: int
    sprite_ids: tuple[int, ...] = field(default_factory=tuple)


def _read_header(buf: bytes, offset: int) -> tuple[list[int], int] | None:
    values: list[int] = []
    position = offset
    for tag in HEADER_TAGS:
        if (position >= len(buf)) or (buf[position] != tag):
            return None
        decoded = read_varint(buf, position + 1)
        if decoded is None:
            return None
        value, position = decoded
        values.append(value)
    return values, position


def _read_sprite_ids(buf: bytes, offset: int) -> tuple[list[int], int]:
    ids: list[int] = []
    position = offset
    while (position < len(buf)) and (buf[position] == TAG_SPRITE_ID) and (len(ids) < MAX_SPRITE_IDS):
        decoded = read_varint(buf, position + 1)
        if decoded is None:
            break
        value, position = decoded
        ids.append(value)
    return ids, position


def scan_sprite_infos(buf: bytes) -> list[SpriteInfo]:
    """Recover sprite-info blocks from an unframed appearances blob.

    A block is ``08 w 10 h 18 layers 20 pattern_width`` followed by any number
    of ``28 id`` fields. Positions that do not match, or whose header fields are
    zero, are stepped over one byte at a time.
    """
    out: list[SpriteInfo] = []
    size = len(buf)
    index = 0
    while index < size:
        if buf[index] != TAG_WIDTH:
            index += 1
            continue
        header = _read_header(buf, index)
        if header is None:
            index += 1
            continue
        values, position = header
        if any(value <= 0 for value in values):
            index += 1
            continue

        ids, position = _read_sprite_ids(buf, position)
        width, height, layers, pattern_width = values
        out.append(
            SpriteInfo(
                width=width,
                height=height,
                layers=layers,
                pattern_width=pattern_width,
                sprite_ids=tuple(ids),
            )
        )
        if len(out) <= LOGGED_BLOCKS:
            logger.debug(
                "scan off=%d w=%d h=%d layers=%d pw=%d ids=%d",
                index,
                width,
                height,
                layers,
                pattern_width,
                len(ids),
            )
        index = position

    logger.debug("scan total=%d sprite-info blocks", len(out))
    return out

