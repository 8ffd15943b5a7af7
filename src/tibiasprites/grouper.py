from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from PIL import Image

from tibiasprites.appearances import scan_sprite_infos
from tibiasprites.errors import ComposeError, DecodeError, FatalIOError
from tibiasprites.images import load_png, write_png
from tibiasprites.progress import ProgressBar
from tibiasprites.summary import EXPORTED, FAILED, SKIPPED, BatchSummary, drain_in_order


logger = logging.getLogger(__name__)

MIN_TILE_SIZE = 32

TileLoader = Callable[[int], Image.Image]


def tile_loader(split_dir: Path) -> TileLoader:
    def load(sprite_id: int) -> Image.Image:
        return load_png(split_dir / f"{sprite_id}.png")

    return load


def group_output_name(sprite_ids: Sequence[int]) -> str:
    first = sprite_ids[0]
    last = sprite_ids[-1]
    if len(sprite_ids) == 1:
        return str(first)
    return f"{first}-{last}"


def compose_group_image(sprite_ids: Sequence[int], load_tile: TileLoader) -> Image.Image:
    """Stitch the tiles of ``sprite_ids`` left to right into one RGBA image.

    Tiles that fail to load keep their slot and stay transparent. The first
    loaded tile fixes the tile size for the whole group.
    """
    total = len(sprite_ids)
    if total == 0:
        raise ComposeError("no sprite ids")

    tiles: list[Image.Image | None] = [None] * total
    tile_width = 0
    tile_height = 0
    for index, sprite_id in enumerate(sprite_ids):
        try:
            tile = load_tile(sprite_id)
        except (DecodeError, OSError, ValueError) as exc:
            logger.warning("tile %d unavailable: %s", sprite_id, exc)
            continue
        if tile.mode != "RGBA":
            tile = tile.convert("RGBA")
        if tile_width == 0:
            tile_width, tile_height = tile.size
        tiles[index] = tile

    if tile_width == 0:
        raise ComposeError("no tiles found for this group (check the split sprites directory)")
    if (tile_width < MIN_TILE_SIZE) or (tile_height < MIN_TILE_SIZE):
        raise ComposeError(f"tile size too small: {tile_width}x{tile_height}")

    canvas = Image.new("RGBA", (tile_width * total, tile_height), (0, 0, 0, 0))
    for index, tile in enumerate(tiles):
        if tile is None:
            continue
        if tile.size != (tile_width, tile_height):
            tile = tile.crop((0, 0, tile_width, tile_height))
        canvas.alpha_composite(tile, dest=(index * tile_width, 0))
    return canvas


def export_group(sprite_ids: Sequence[int], load_tile: TileLoader, grouped_dir: Path) -> str:
    if not sprite_ids:
        return SKIPPED

    out_path = grouped_dir / f"{group_output_name(sprite_ids)}.png"
    try:
        image = compose_group_image(sprite_ids, load_tile)
        write_png(out_path, image)
    except (ComposeError, OSError) as exc:
        logger.error("group %s: %s", out_path.name, exc)
        return FAILED

    logger.debug("wrote grouped PNG %s", out_path)
    return EXPORTED


def read_appearances(path: Path) -> bytes:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise FatalIOError(f"failed to read appearances file {path}: {exc}") from exc
    logger.debug("appearances file %s bytes=%d", path.name, len(data))
    return data


def group_split_sprites(appearances_path: Path, split_dir: Path, grouped_dir: Path, workers: int = 1) -> BatchSummary:
    infos = scan_sprite_infos(read_appearances(appearances_path))
    logger.info("found %d candidate groups in %s", len(infos), appearances_path.name)

    try:
        grouped_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FatalIOError(f"failed to create {grouped_dir}: {exc}") from exc

    summary = BatchSummary("groups")
    load_tile = tile_loader(split_dir)
    progress = ProgressBar("Grouping sprites", len(infos), unit="groups")
    worker_count = max(1, workers)
    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        jobs = ((export_group, (info.sprite_ids, load_tile, grouped_dir)) for info in infos)
        for outcome in drain_in_order(executor, jobs, worker_count * 2):
            summary.record(outcome)
            progress.advance()
    progress.finish()
    return summary
