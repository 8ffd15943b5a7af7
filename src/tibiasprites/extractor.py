from __future__ import annotations

import logging
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from tibiasprites.catalog import KIND_APPEARANCES, KIND_SPRITE, AssetRecord, stream_catalog
from tibiasprites.config import ExporterConfig
from tibiasprites.container import read_sheet
from tibiasprites.errors import DecodeError
from tibiasprites.images import write_png
from tibiasprites.splitter import split_sprite_sheet
from tibiasprites.summary import EXPORTED, FAILED, SKIPPED, BatchSummary, drain_in_order


logger = logging.getLogger(__name__)


def sheet_file_name(first_id: int, last_id: int) -> str:
    return f"Sprites-{first_id}-{last_id}.png"


def convert_asset(
    assets_dir: Path,
    output_dir: Path,
    file_name: str,
    first_id: int,
    last_id: int,
    split_dir: Path | None = None,
    max_decompressed_size: int | None = None,
) -> Path | None:
    """Convert one CIP container into ``Sprites-<first>-<last>.png``.

    Returns the written path, or ``None`` when the container file does not
    exist. Malformed containers raise ``DecodeError``.
    """
    in_path = assets_dir / file_name
    out_path = output_dir / sheet_file_name(first_id, last_id)
    try:
        handle = in_path.open("rb")
    except FileNotFoundError:
        logger.debug("skipping %s: file does not exist", file_name)
        return None
    except OSError as exc:
        raise DecodeError(f"open {in_path}: {exc}") from exc

    logger.debug("converting %s -> %s", file_name, out_path.name)
    try:
        with handle:
            sheet = read_sheet(handle, max_decompressed_size)
    except OSError as exc:
        raise DecodeError(f"read {in_path}: {exc}") from exc

    try:
        write_png(out_path, sheet)
        if split_dir is not None:
            split_sprite_sheet(sheet, first_id, last_id, split_dir)
    except OSError as exc:
        raise DecodeError(f"write {out_path}: {exc}") from exc
    return out_path


def _convert_record(record: AssetRecord, config: ExporterConfig) -> str:
    try:
        written = convert_asset(
            config.assets_dir,
            config.output_dir,
            record.file,
            record.first_sprite_id,
            record.last_sprite_id,
            split_dir=config.split_dir if config.split_sheets else None,
            max_decompressed_size=config.max_decompressed_size,
        )
    except DecodeError as exc:
        logger.error("failed to convert %s: %s", record.file, exc)
        return FAILED
    if written is None:
        return SKIPPED
    return EXPORTED


def iter_sprite_records(catalog_path: Path) -> Iterator[AssetRecord]:
    for record in stream_catalog(catalog_path):
        if (record.type == KIND_SPRITE) and record.file:
            logger.debug("sprite range %d..%d file=%s", record.first_sprite_id, record.last_sprite_id, record.file)
            yield record
        elif record.type != KIND_APPEARANCES:
            logger.debug("skip type=%s file=%s", record.type, record.file)


def convert_assets_from_catalog(config: ExporterConfig) -> BatchSummary:
    summary = BatchSummary("sprites")
    worker_count = max(1, config.workers)
    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        jobs = ((_convert_record, (record, config)) for record in iter_sprite_records(config.catalog_path))
        for outcome in drain_in_order(executor, jobs, worker_count * 2):
            summary.record(outcome)
            if (summary.total % 128) == 0:
                logger.info("converted %d assets", summary.total)
    return summary
