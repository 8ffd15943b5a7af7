from __future__ import annotations


class ExportError(Exception):
    pass


class DecodeError(ExportError):
    """A single asset container could not be unwrapped, decompressed or decoded."""


class ComposeError(ExportError):
    """A sprite group could not be stitched into one image."""


class FatalIOError(ExportError):
    """Catalog, metadata or configuration level failure that ends the run."""
