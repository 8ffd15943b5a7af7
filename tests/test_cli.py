from __future__ import annotations

import json

import pytest
from PIL import Image

from builders import cip_asset_from_image, gradient_image, sprite_info_block
from tibiasprites.cli import main


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.delenv("TES_JSON_PATH", raising=False)
    monkeypatch.delenv("TES_OUTPUT_DIR", raising=False)


def make_assets(tmp_path):
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "sheet.bin").write_bytes(cip_asset_from_image(gradient_image(384, 384)))
    (assets / "appearances.dat").write_bytes(sprite_info_block(64, 64, 1, 1, 1, 2) + sprite_info_block(64, 64, 1, 1, 3))
    catalog = [
        {"type": "appearances", "file": "appearances.dat"},
        {"type": "sprite", "file": "sheet.bin", "spritetype": 0, "firstspriteid": 1, "lastspriteid": 3, "area": 0},
    ]
    (assets / "catalog-content.json").write_text(json.dumps(catalog), encoding="utf-8")
    return assets


def test_all_command_extracts_splits_and_groups(tmp_path, capsys):
    assets = make_assets(tmp_path)
    output = tmp_path / "out"

    main(["all", "--json-path", str(assets / "catalog-content.json"), "--output", str(output), "--workers", "1"])

    assert (output / "Sprites-1-3.png").is_file()
    assert sorted(path.name for path in (output / "split").iterdir()) == ["1.png", "2.png", "3.png"]
    with Image.open(output / "grouped" / "1-2.png") as image:
        assert image.size == (128, 64)
    assert (output / "grouped" / "3.png").is_file()
    captured = capsys.readouterr().out
    assert "sprites exported : 1" in captured
    assert "groups exported : 2" in captured


def test_split_command_uses_extracted_sheets(tmp_path, capsys):
    output = tmp_path / "out"
    output.mkdir()
    gradient_image(384, 384).save(output / "Sprites-4-5.png")

    main(["split", "--json-path", str(tmp_path / "nowhere"), "--output", str(output)])

    assert sorted(path.name for path in (output / "split").iterdir()) == ["4.png", "5.png"]
    assert "split exported : 1" in capsys.readouterr().out


def test_environment_selects_paths(tmp_path, monkeypatch):
    assets = make_assets(tmp_path)
    output = tmp_path / "env-out"
    monkeypatch.setenv("TES_JSON_PATH", str(assets))
    monkeypatch.setenv("TES_OUTPUT_DIR", str(output))

    main(["extract", "--workers", "2"])

    assert (output / "Sprites-1-3.png").is_file()


def test_missing_catalog_exits_with_error(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["extract", "--json-path", str(tmp_path / "missing"), "--output", str(tmp_path / "out")])

    assert "error:" in str(excinfo.value.code)
