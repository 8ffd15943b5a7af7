from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from builders import cip_asset_from_image, cip_wrap, gradient_image, lzma_alone
from tibiasprites import extractor
from tibiasprites.config import ExporterConfig
from tibiasprites.errors import DecodeError
from tibiasprites.extractor import convert_asset, convert_assets_from_catalog


def assert_png_matches(path: Path, source: Image.Image) -> None:
    with Image.open(path) as image:
        assert np.array_equal(np.asarray(image.convert("RGBA")), np.asarray(source.convert("RGBA")))


def make_config(tmp_path: Path, split_sheets: bool = False, workers: int = 2) -> ExporterConfig:
    output = tmp_path / "output"
    return ExporterConfig(
        assets_dir=tmp_path / "assets",
        catalog_path=tmp_path / "assets" / "catalog-content.json",
        output_dir=output,
        split_dir=output / "split",
        grouped_dir=output / "grouped",
        workers=workers,
        split_sheets=split_sheets,
    )


def test_convert_asset_creates_png_from_compressed_bmp(tmp_path):
    source = gradient_image(4, 3)
    (tmp_path / "sprite.bin").write_bytes(cip_asset_from_image(source))

    written = convert_asset(tmp_path, tmp_path / "out", "sprite.bin", 10, 12)

    assert written == tmp_path / "out" / "Sprites-10-12.png"
    assert_png_matches(written, source)


def test_convert_asset_skips_missing_file(tmp_path):
    assert convert_asset(tmp_path, tmp_path / "out", "missing.bin", 5, 6) is None
    assert not (tmp_path / "out" / "Sprites-5-6.png").exists()


def test_convert_asset_rejects_invalid_bmp(tmp_path):
    (tmp_path / "corrupt.bin").write_bytes(cip_wrap(lzma_alone(b"not a bmp")))

    with pytest.raises(DecodeError):
        convert_asset(tmp_path, tmp_path / "out", "corrupt.bin", 5, 6)
    assert not (tmp_path / "out" / "Sprites-5-6.png").exists()


def test_convert_asset_enforces_size_cap(tmp_path):
    (tmp_path / "big.bin").write_bytes(cip_asset_from_image(gradient_image(64, 64)))

    with pytest.raises(DecodeError):
        convert_asset(tmp_path, tmp_path / "out", "big.bin", 1, 1, max_decompressed_size=1024)


def test_convert_asset_can_split_sheet(tmp_path):
    (tmp_path / "sheet.bin").write_bytes(cip_asset_from_image(gradient_image(384, 384)))
    split_dir = tmp_path / "split"

    convert_asset(tmp_path, tmp_path / "out", "sheet.bin", 7, 9, split_dir=split_dir)

    assert sorted(path.name for path in split_dir.iterdir()) == ["7.png", "8.png", "9.png"]


def test_convert_assets_from_catalog_isolates_failures(tmp_path):
    config = make_config(tmp_path, split_sheets=True)
    config.assets_dir.mkdir()
    image_a = gradient_image(4, 4)
    image_b = gradient_image(64, 64)
    (config.assets_dir / "spriteA.bin").write_bytes(cip_asset_from_image(image_a))
    (config.assets_dir / "spriteB.bin").write_bytes(cip_asset_from_image(image_b))
    (config.assets_dir / "corrupt.bin").write_bytes(cip_wrap(lzma_alone(b"x")[:13] + b"\xff" * 32))
    catalog = [
        {"type": "appearances", "file": "appearances.dat"},
        {"type": "sprite", "file": "spriteA.bin", "spritetype": 0, "firstspriteid": 1, "lastspriteid": 2, "area": 0},
        {"type": "effect", "file": "ignore.bin", "spritetype": 0, "firstspriteid": 3, "lastspriteid": 3, "area": 0},
        {"type": "sprite", "file": "corrupt.bin", "spritetype": 0, "firstspriteid": 3, "lastspriteid": 4, "area": 0},
        {"type": "sprite", "file": "missing.bin", "spritetype": 0, "firstspriteid": 5, "lastspriteid": 6, "area": 0},
        {"type": "sprite", "file": "spriteB.bin", "spritetype": 0, "firstspriteid": 8, "lastspriteid": 8, "area": 0},
    ]
    config.catalog_path.write_text(json.dumps(catalog), encoding="utf-8")

    summary = convert_assets_from_catalog(config)

    assert (summary.exported, summary.skipped, summary.failed) == (2, 1, 1)
    assert_png_matches(config.output_dir / "Sprites-1-2.png", image_a)
    assert_png_matches(config.output_dir / "Sprites-8-8.png", image_b)
    assert not (config.output_dir / "Sprites-3-4.png").exists()
    assert not (config.output_dir / "Sprites-5-6.png").exists()
    assert [path.name for path in config.split_dir.iterdir()] == ["8.png"]


def test_convert_asset_wraps_read_failure(tmp_path, monkeypatch):
    (tmp_path / "sprite.bin").write_bytes(cip_asset_from_image(gradient_image(4, 4)))

    def failing_read(handle, max_decompressed_size):
        raise OSError(5, "Input/output error")

    monkeypatch.setattr(extractor, "read_sheet", failing_read)

    with pytest.raises(DecodeError, match="Input/output error"):
        convert_asset(tmp_path, tmp_path / "out", "sprite.bin", 1, 1)


def test_convert_assets_from_catalog_counts_read_failure(tmp_path, monkeypatch):
    config = make_config(tmp_path)
    config.assets_dir.mkdir()
    image = gradient_image(4, 4)
    (config.assets_dir / "good.bin").write_bytes(cip_asset_from_image(image))
    (config.assets_dir / "flaky.bin").write_bytes(cip_asset_from_image(image))
    catalog = [
        {"type": "sprite", "file": "flaky.bin", "spritetype": 0, "firstspriteid": 1, "lastspriteid": 1, "area": 0},
        {"type": "sprite", "file": "good.bin", "spritetype": 0, "firstspriteid": 2, "lastspriteid": 2, "area": 0},
    ]
    config.catalog_path.write_text(json.dumps(catalog), encoding="utf-8")
    real_read_sheet = extractor.read_sheet

    def flaky_read(handle, max_decompressed_size):
        if Path(handle.name).name == "flaky.bin":
            raise OSError(5, "Input/output error")
        return real_read_sheet(handle, max_decompressed_size)

    monkeypatch.setattr(extractor, "read_sheet", flaky_read)

    summary = convert_assets_from_catalog(config)

    assert (summary.exported, summary.skipped, summary.failed) == (1, 0, 1)
    assert_png_matches(config.output_dir / "Sprites-2-2.png", image)
    assert not (config.output_dir / "Sprites-1-1.png").exists()
