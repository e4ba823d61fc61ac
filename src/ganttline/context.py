"""Global CLI state."""

from __future__ import annotations

from pathlib import Path


class _Context:
    """State shared between the CLI callback and its commands."""

    def __init__(self) -> None:
        self.config_path: Path | None = None


_context = _Context()


def get_config_path() -> Path | None:
    """Config path given with --config, if any."""
    return _context.config_path


def set_config_path(path: Path | None) -> None:
    _context.config_path = path
