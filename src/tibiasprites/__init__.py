from __future__ import annotations

from tibiasprites.errors import ComposeError, DecodeError, ExportError, FatalIOError

__all__ = ["ComposeError", "DecodeError", "ExportError", "FatalIOError"]
__version__ = "0.1.0"
