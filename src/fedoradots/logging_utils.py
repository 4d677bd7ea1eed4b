from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    console: Console,
    *,
    verbose: bool = False,
    log_file: Path | None = None,
) -> None:
    """Route log records to the rich console and, optionally, a plain file.

    Calling this more than once adjusts the level and adds a file handler for
    a log file not seen before; the console handler is installed only once.
    """

    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    if not getattr(root, "_fedoradots_configured", False):
        rich_handler = RichHandler(console=console, show_path=False, markup=False)
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(rich_handler)
        setattr(root, "_fedoradots_configured", True)

    if log_file is not None:
        _add_file_handler(root, log_file)


def _add_file_handler(root: logging.Logger, log_file: Path) -> None:
    path = Path(log_file).resolve(strict=False)
    for handler in root.handlers:
        if not isinstance(handler, logging.FileHandler):
            continue
        if Path(handler.baseFilename).resolve(strict=False) == path:
            return

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path)
    file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    root.addHandler(file_handler)
