from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from tibiasprites.errors import FatalIOError


logger = logging.getLogger(__name__)

CATALOG_FILE_NAME = "catalog-content.json"
KIND_SPRITE = "sprite"
KIND_APPEARANCES = "appearances"


@dataclass(frozen=True)
class AssetRecord:
    type: str
    file: str
    sprite_type: int = 0
    first_sprite_id: int = 0
    last_sprite_id: int = 0
    area: int = 0


def _as_int(value: object, key: str, index: int) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise FatalIOError(f"catalog element {index}: {key} must be an integer, got {value!r}")
    return value


def parse_record(elem: object, index: int) -> AssetRecord:
    if not isinstance(elem, dict):
        raise FatalIOError(f"catalog element {index} is not an object")
    return AssetRecord(
        type=str(elem.get("type") or ""),
        file=str(elem.get("file") or ""),
        sprite_type=_as_int(elem.get("spritetype"), "spritetype", index),
        first_sprite_id=_as_int(elem.get("firstspriteid"), "firstspriteid", index),
        last_sprite_id=_as_int(elem.get("lastspriteid"), "lastspriteid", index),
        area=_as_int(elem.get("area"), "area", index),
    )


def stream_catalog(path: Path) -> Iterator[AssetRecord]:
    """Yield the records of a catalog-content.json one at a time.

    The generator is single-use; structural problems raise ``FatalIOError``
    when the consumer reaches them.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            content = json.load(handle)
    except OSError as exc:
        raise FatalIOError(f"failed to open catalog {path}: {exc}") from exc
    except ValueError as exc:
        raise FatalIOError(f"failed to decode catalog {path}: {exc}") from exc

    if not isinstance(content, list):
        raise FatalIOError(f"expected top-level JSON array in {path}")

    for index, elem in enumerate(content):
        yield parse_record(elem, index)


def find_appearances_file(path: Path) -> str:
    for record in stream_catalog(path):
        if (record.type == KIND_APPEARANCES) and record.file:
            return record.file
        logger.debug("skip type=%s file=%s", record.type, record.file)
    raise FatalIOError(f"no appearances file found in {path}")
