"""Precomputed per-year calendar table."""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .fields import PRECISION_LOWER_YEAR, PRECISION_UPPER_YEAR, Field

__all__ = ["PrecomputedTable", "TableError"]

LOGGER = logging.getLogger(__name__)


class TableError(ValueError):
    """Raised when a precomputed table cannot be read."""


class PrecomputedTable:
    """Year-keyed records used as the highest-priority data source.

    Records are plain mappings carrying a ``year`` key plus any of the
    output keys given by :attr:`Field.output_key`. Lookups outside ``coverage`` miss.
    """

    def __init__(
        self,
        records: Iterable[Mapping[str, Any]],
        coverage: Tuple[int, int] = (PRECISION_LOWER_YEAR, PRECISION_UPPER_YEAR),
    ) -> None:
        self._records = tuple(dict(record) for record in records)
        self.coverage = coverage

    @classmethod
    def load(cls, path: str, **kwargs: Any) -> "PrecomputedTable":
        """Read a JSON list of records, or an object with a ``data`` list."""
        source = Path(path).expanduser()
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TableError(f"Cannot read precomputed table '{source}': {exc}") from exc
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            raise TableError(f"Precomputed table '{source}' must hold a list of year records")
        table = cls(payload, **kwargs)
        LOGGER.info(json.dumps({"event": "table_loaded", "path": str(source), "years": len(table)}))
        return table

    @cached_property
    def _index(self) -> Dict[int, Dict[str, Any]]:
        index: Dict[int, Dict[str, Any]] = {}
        for record in self._records:
            year = record.get("year")
            if isinstance(year, int) and not isinstance(year, bool):
                index[year] = record
        return index

    def __len__(self) -> int:
        return len(self._index)

    def covers(self, year: int) -> bool:
        low, high = self.coverage
        return low <= year <= high and year in self._index

    def has(self, year: int, field: Field) -> bool:
        return self.covers(year) and field.output_key in self._index[year]

    def lookup(self, year: int, field: Field) -> Optional[Any]:
        """Return the stored value; callers check :meth:`has` first since ``None`` is a valid value."""
        if not self.has(year, field):
            raise KeyError((year, field.value))
        return self._index[year][field.output_key]

    def record(self, year: int) -> Dict[str, Any]:
        """Raw stored record for *year* (a copy), empty outside coverage."""
        return dict(self._index[year]) if self.covers(year) else {}
