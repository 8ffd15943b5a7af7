from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from tibiasprites.catalog import CATALOG_FILE_NAME
from tibiasprites.errors import FatalIOError


ENV_JSON_PATH = "TES_JSON_PATH"
ENV_OUTPUT_DIR = "TES_OUTPUT_DIR"
DEFAULT_ASSETS_DIR = Path(
    "~/Library/Application Support/CipSoft GmbH/Tibia/packages/Tibia.app/Contents/Resources/assets"
)
DEFAULT_OUTPUT_DIR = Path("output")
SPLIT_SUBDIR = "split"
GROUPED_SUBDIR = "grouped"
DEFAULT_MAX_DECOMPRESSED_SIZE = 256 * 1024 * 1024


def default_workers() -> int:
    return max(1, min(8, (os.cpu_count() or 1)))


@dataclass(frozen=True)
class ExporterConfig:
    assets_dir: Path
    catalog_path: Path
    output_dir: Path
    split_dir: Path
    grouped_dir: Path
    workers: int = 1
    split_sheets: bool = False
    max_decompressed_size: int | None = DEFAULT_MAX_DECOMPRESSED_SIZE


def _env_value(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key)
    if value:
        return value
    return None


def sanitize_catalog_path(path: Path) -> Path:
    path = path.expanduser()
    if path.name == CATALOG_FILE_NAME:
        return path.parent
    return path


def resolve_assets_dir(flag_value: Path | None, environ: Mapping[str, str]) -> Path:
    env_value = _env_value(environ, ENV_JSON_PATH)
    if env_value is not None:
        return sanitize_catalog_path(Path(env_value))
    if flag_value is not None:
        return sanitize_catalog_path(flag_value)
    return DEFAULT_ASSETS_DIR.expanduser()


def resolve_output_dir(flag_value: Path | None, environ: Mapping[str, str]) -> Path:
    env_value = _env_value(environ, ENV_OUTPUT_DIR)
    if env_value is not None:
        return Path(env_value).expanduser()
    if flag_value is not None:
        return flag_value.expanduser()
    return DEFAULT_OUTPUT_DIR


def validate_assets_dir(assets_dir: Path) -> Path:
    if not assets_dir.exists():
        raise FatalIOError(f"path does not exist: {assets_dir}")
    if not assets_dir.is_dir():
        raise FatalIOError(f"not a directory: {assets_dir}")
    catalog_path = assets_dir / CATALOG_FILE_NAME
    if not catalog_path.is_file():
        raise FatalIOError(f"{CATALOG_FILE_NAME} not found in directory: {assets_dir}")
    return catalog_path


def ensure_output_dir(output_dir: Path) -> None:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FatalIOError(f"failed to create output path {output_dir}: {exc}") from exc


def load_config(
    json_path: Path | None = None,
    output: Path | None = None,
    split_output: Path | None = None,
    grouped_output: Path | None = None,
    workers: int | None = None,
    split_sheets: bool = False,
    max_decompressed_size: int | None = DEFAULT_MAX_DECOMPRESSED_SIZE,
    require_catalog: bool = True,
    environ: Mapping[str, str] | None = None,
) -> ExporterConfig:
    env = os.environ if environ is None else environ
    assets_dir = resolve_assets_dir(json_path, env)
    if require_catalog:
        catalog_path = validate_assets_dir(assets_dir)
    else:
        catalog_path = assets_dir / CATALOG_FILE_NAME
    output_dir = resolve_output_dir(output, env)
    ensure_output_dir(output_dir)

    if (max_decompressed_size is not None) and (max_decompressed_size <= 0):
        max_decompressed_size = None

    return ExporterConfig(
        assets_dir=assets_dir,
        catalog_path=catalog_path,
        output_dir=output_dir,
        split_dir=split_output.expanduser() if split_output is not None else output_dir / SPLIT_SUBDIR,
        grouped_dir=grouped_output.expanduser() if grouped_output is not None else output_dir / GROUPED_SUBDIR,
        workers=max(1, workers if workers is not None else default_workers()),
        split_sheets=split_sheets,
        max_decompressed_size=max_decompressed_size,
    )
