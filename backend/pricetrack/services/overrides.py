"""Manual product corrections keyed by product identifier.

The override table is a plain text file, one correction per line::

    # id        size   category          flag
    P5022829    800g
    P5011234           category=butter
    P5000001                             invalid

A size token is anything that looks like ``<number><g|kg|ml|l>``.  When
several lines mention the same identifier, later lines win field by field.
``invalid`` removes the product from the scrape entirely.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from pricetrack.services.text_tables import read_lines_from_file

logger = logging.getLogger(__name__)

_SIZE_TOKEN_RE = re.compile(r"\d+(?:\.\d+)?(?:g|kg|ml|l)", re.IGNORECASE)
_CATEGORY_PREFIX = "category="
_INVALID_MARKER = "invalid"


@dataclass(frozen=True, slots=True)
class SizeAndOverride:
    """Resolved corrections for one identifier."""

    identifier: str
    size: Optional[str] = None
    category: Optional[str] = None
    invalid: bool = False


class OverrideResolver:
    """Looks up manual size/category corrections and invalidation markers."""

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self._params: dict[str, list[list[str]]] = defaultdict(list)
        for line in lines:
            tokens = line.strip().split()
            if not tokens or tokens[0].startswith(("#", "//")):
                continue
            self._params[tokens[0]].append(tokens[1:])

    @classmethod
    def from_file(cls, path: str | Path) -> OverrideResolver:
        """Load the table from *path*; a missing file means no overrides."""
        lines = read_lines_from_file(path)
        if lines is None:
            logger.warning("Override table %s unavailable, continuing without overrides", path)
            return cls()
        resolver = cls(lines)
        logger.info("Loaded %d override entries from %s", len(resolver), path)
        return resolver

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._params.values())

    def lines_for(self, identifier: str) -> list[list[str]]:
        """Parameter tokens of every line keyed by *identifier*, in file order."""
        return self._params.get(identifier, [])

    def resolve(self, identifier: str) -> SizeAndOverride:
        size: str | None = None
        category: str | None = None
        invalid = False

        for params in self.lines_for(identifier):
            for token in params:
                if token.startswith(_CATEGORY_PREFIX):
                    category = token[len(_CATEGORY_PREFIX):] or None
                elif token.lower() == _INVALID_MARKER:
                    invalid = True
                elif _SIZE_TOKEN_RE.search(token):
                    size = token

        return SizeAndOverride(identifier, size=size, category=category, invalid=invalid)

    def overridden_size(self, identifier: str, fallback: str) -> str:
        """Return the size override for *identifier*, else *fallback*."""
        return self.resolve(identifier).size or fallback
