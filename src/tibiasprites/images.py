from __future__ import annotations

from pathlib import Path

from PIL import Image

from tibiasprites.errors import DecodeError


def write_png(path: Path, image: Image.Image) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    image.save(tmp_path, format="PNG")
    tmp_path.replace(path)


def load_png(path: Path) -> Image.Image:
    try:
        with Image.open(path) as image:
            image.load()
            return image.convert("RGBA")
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"failed to decode {path}: {exc}") from exc
