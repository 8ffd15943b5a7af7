from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from tibiasprites.errors import DecodeError, FatalIOError
from tibiasprites.images import load_png, write_png
from tibiasprites.progress import ProgressBar
from tibiasprites.summary import EXPORTED, FAILED, BatchSummary, drain_in_order


logger = logging.getLogger(__name__)

CANONICAL_SHEET_SIZE = 384
LARGE_TILE_SIZE = 64
SMALL_TILE_SIZE = 32
LARGE_TILE_MAX_COUNT = 36
SHEET_FILE_PATTERN = re.compile(r"^Sprites-(\d+)-(\d+)\.png$")


@dataclass(frozen=True)
class Tile:
    sprite_id: int
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def tile_size_for_count(count: int) -> int:
    if count <= LARGE_TILE_MAX_COUNT:
        return LARGE_TILE_SIZE
    return SMALL_TILE_SIZE


def iter_tiles(sheet: Image.Image, first_id: int, last_id: int) -> Iterator[Tile]:
    """Yield the tiles of ``sheet`` in row-major order, numbered from ``first_id``."""
    count = last_id - first_id + 1
    if count <= 0:
        return

    width, height = sheet.size
    if (width != CANONICAL_SHEET_SIZE) or (height != CANONICAL_SHEET_SIZE):
        logger.debug("unexpected sheet size %dx%d; proceeding to split", width, height)

    tile = tile_size_for_count(count)
    columns = width // tile
    rows = height // tile
    capacity = columns * rows
    if count > capacity:
        logger.warning(
            "sprite count %d for ids %d-%d exceeds sheet capacity %d; truncating",
            count,
            first_id,
            last_id,
            capacity,
        )
        count = capacity

    if sheet.mode not in ("RGBA", "RGB", "L"):
        sheet = sheet.convert("RGBA")
    pixels = np.asarray(sheet)
    for index in range(count):
        row, column = divmod(index, columns)
        top = row * tile
        left = column * tile
        block = np.ascontiguousarray(pixels[top : top + tile, left : left + tile])
        yield Tile(sprite_id=first_id + index, pixels=block)


def split_sprite_sheet(sheet: Image.Image, first_id: int, last_id: int, output_dir: Path) -> int:
    written = 0
    for tile in iter_tiles(sheet, first_id, last_id):
        write_png(output_dir / f"{tile.sprite_id}.png", tile.to_image())
        written += 1
    return written


def find_sheet_files(extracted_dir: Path) -> list[tuple[Path, int, int]]:
    try:
        entries = sorted(extracted_dir.iterdir())
    except OSError as exc:
        raise FatalIOError(f"failed to read {extracted_dir}: {exc}. Did you run the extract command?") from exc

    sheets: list[tuple[Path, int, int]] = []
    for path in entries:
        if not path.is_file():
            continue
        match = SHEET_FILE_PATTERN.match(path.name)
        if match is None:
            continue
        sheets.append((path, int(match.group(1)), int(match.group(2))))
    return sheets


def split_sheet_file(path: Path, first_id: int, last_id: int, split_dir: Path) -> str:
    sheet = load_png(path)
    logger.debug("processing %s (first=%d, last=%d)", path.name, first_id, last_id)
    split_sprite_sheet(sheet, first_id, last_id, split_dir)
    return EXPORTED


def _split_sheet_outcome(path: Path, first_id: int, last_id: int, split_dir: Path) -> str:
    try:
        return split_sheet_file(path, first_id, last_id, split_dir)
    except (DecodeError, OSError) as exc:
        logger.error("failed to split %s: %s", path.name, exc)
        return FAILED


def split_sprites(extracted_dir: Path, split_dir: Path, workers: int = 1) -> BatchSummary:
    sheets = find_sheet_files(extracted_dir)
    summary = BatchSummary("split")
    if not sheets:
        logger.warning("no sprite sheets found in %s. Did you run the extract command?", extracted_dir)
        return summary

    split_dir.mkdir(parents=True, exist_ok=True)
    progress = ProgressBar("Splitting sprites", len(sheets), unit="files")
    worker_count = max(1, workers)
    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        jobs = (
            (_split_sheet_outcome, (path, first_id, last_id, split_dir))
            for path, first_id, last_id in sheets
        )
        for outcome in drain_in_order(executor, jobs, worker_count * 2):
            summary.record(outcome)
            progress.advance()
    progress.finish()
    return summary
