#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from tibiasprites.catalog import find_appearances_file
from tibiasprites.config import DEFAULT_MAX_DECOMPRESSED_SIZE, ExporterConfig, default_workers, load_config
from tibiasprites.errors import FatalIOError
from tibiasprites.extractor import convert_assets_from_catalog
from tibiasprites.grouper import group_split_sprites
from tibiasprites.splitter import split_sprites
from tibiasprites.summary import BatchSummary


logger = logging.getLogger("tibiasprites")


def add_shared_args(parser: argparse.ArgumentParser, workers: int) -> None:
    parser.add_argument("--json-path", type=Path, default=None, help="Assets directory or path to catalog-content.json")
    parser.add_argument("--output", type=Path, default=None, help="Where to write extracted sprite sheets (default: ./output)")
    parser.add_argument("--workers", type=int, default=workers, help=f"Worker threads (default: {workers})")
    parser.add_argument(
        "--max-decompressed-size",
        type=int,
        default=DEFAULT_MAX_DECOMPRESSED_SIZE,
        help="Reject payloads that decompress beyond this many bytes (0 disables the cap)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")


def add_split_output_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--split-output", type=Path, default=None, help="Split sprites output path (default: <output>/split)")


def add_grouped_output_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--grouped-output", type=Path, default=None, help="Grouped sprites output path (default: <output>/grouped)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    workers = default_workers()

    parser = argparse.ArgumentParser(description="Export Tibia client sprites from CIP asset containers")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Convert sprite containers into Sprites-<first>-<last>.png sheets")
    add_shared_args(extract_parser, workers)
    add_split_output_arg(extract_parser)
    extract_parser.add_argument("--split", action="store_true", help="Also split every sheet into per-id tiles")

    split_parser = subparsers.add_parser("split", help="Split extracted sheets into <id>.png tiles")
    add_shared_args(split_parser, workers)
    add_split_output_arg(split_parser)

    group_parser = subparsers.add_parser("group", help="Stitch split tiles into groups from the appearances file")
    add_shared_args(group_parser, workers)
    add_split_output_arg(group_parser)
    add_grouped_output_arg(group_parser)

    all_parser = subparsers.add_parser("all", help="Extract with splitting, then group")
    add_shared_args(all_parser, workers)
    add_split_output_arg(all_parser)
    add_grouped_output_arg(all_parser)

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ExporterConfig:
    return load_config(
        json_path=args.json_path,
        output=args.output,
        split_output=args.split_output,
        grouped_output=getattr(args, "grouped_output", None),
        workers=args.workers,
        split_sheets=(args.command == "all") or getattr(args, "split", False),
        max_decompressed_size=args.max_decompressed_size,
        require_catalog=args.command != "split",
    )


def print_summary(summary: BatchSummary) -> None:
    for line in summary.lines():
        print(line)


def run_extract(config: ExporterConfig) -> None:
    logger.info("catalog content path: %s", config.catalog_path)
    logger.info("output path: %s", config.output_dir)
    print_summary(convert_assets_from_catalog(config))


def run_split(config: ExporterConfig) -> None:
    logger.info("splitting %s into %s", config.output_dir, config.split_dir)
    print_summary(split_sprites(config.output_dir, config.split_dir, workers=config.workers))


def run_group(config: ExporterConfig) -> None:
    appearances_name = find_appearances_file(config.catalog_path)
    logger.info("appearances file name: %s", appearances_name)
    summary = group_split_sprites(
        config.assets_dir / appearances_name,
        config.split_dir,
        config.grouped_dir,
        workers=config.workers,
    )
    print_summary(summary)
    print(f"grouped output  : {config.grouped_dir}")


def run_all(config: ExporterConfig) -> None:
    run_extract(config)
    run_group(config)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        if args.command == "extract":
            run_extract(config)
        elif args.command == "split":
            run_split(config)
        elif args.command == "group":
            run_group(config)
        elif args.command == "all":
            run_all(config)
        else:
            raise SystemExit(f"error: unknown command {args.command}")
    except FatalIOError as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":
    main()
