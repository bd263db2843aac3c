"""Loading of the line-oriented text tables (URL list, product overrides)."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def read_lines_from_file(path: str | Path) -> list[str] | None:
    """Return the trimmed, non-comment, non-blank lines of *path*.

    Lines starting with ``#`` are comments.  Returns ``None`` (and logs)
    when the file is missing, unreadable or has no usable lines.
    """
    path = Path(path)
    try:
        raw_lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        logger.error("Unable to read file %s", path)
        return None

    lines = [
        line.strip()
        for line in raw_lines
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not lines:
        logger.error("No lines found in %s", path)
        return None
    return lines
