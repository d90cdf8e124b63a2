"""Offline secondary calendar capability.

The engine receives this capability explicitly; it is never looked up as
module-level state. :class:`LunarPythonCalendar` adapts the ``lunar_python``
library, whose year objects are anchored on the civil-date lunar new year.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Optional, Protocol, TypeVar

from lunar_python import Lunar, LunarYear
from lunar_python.util import LunarUtil

from .years import DerivationError

__all__ = ["SecondaryCalendar", "LunarPythonCalendar", "ELEMENT_NAMES", "ZODIAC_NAMES"]

ELEMENT_NAMES = {"金": "Metal", "木": "Wood", "水": "Water", "火": "Fire", "土": "Earth"}
ZODIAC_NAMES = {
    "鼠": "Rat", "牛": "Ox", "虎": "Tiger", "兔": "Rabbit", "龙": "Dragon", "蛇": "Snake",
    "马": "Horse", "羊": "Goat", "猴": "Monkey", "鸡": "Rooster", "狗": "Dog", "猪": "Pig",
}

T = TypeVar("T")

# Lunar year objects kept per adapter; older years are evicted first.
MAX_CACHED_YEARS = 256


class SecondaryCalendar(Protocol):
    """Per-year lookups offered by an offline calendar library."""

    name: str

    def lunar_new_year(self, year: int) -> str:
        """Civil (Beijing) date of the lunar new year as ``YYYY-MM-DD``."""

    def li_chun(self, year: int) -> str:
        ...

    def year_length(self, year: int) -> int:
        ...

    def leap_month(self, year: int) -> Optional[int]:
        ...

    def zodiac(self, year: int) -> str:
        ...

    def sexagenary(self, year: int) -> str:
        ...

    def element(self, year: int) -> str:
        ...


def _ymd(solar: Any) -> str:
    return f"{solar.getYear():04d}-{solar.getMonth():02d}-{solar.getDay():02d}"


class LunarPythonCalendar:
    """:class:`SecondaryCalendar` backed by ``lunar_python``."""

    name = "lunar_python"

    def __init__(self, max_years: int = MAX_CACHED_YEARS) -> None:
        if max_years < 1:
            raise ValueError("max_years must be positive")
        self.max_years = max_years
        self._lunar: "OrderedDict[int, Any]" = OrderedDict()

    def _call(self, year: int, what: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except Exception as exc:
            # lunar_python raises assorted built-in errors for unsupported years.
            raise DerivationError(f"lunar_python could not provide {what} for {year}: {exc}") from exc

    def _new_year(self, year: int) -> Any:
        lunar = self._lunar.get(year)
        if lunar is None:
            lunar = self._call(year, "the lunar new year", lambda: Lunar.fromYmd(year, 1, 1))
            self._lunar[year] = lunar
            while len(self._lunar) > self.max_years:
                self._lunar.popitem(last=False)
        else:
            self._lunar.move_to_end(year)
        return lunar

    def lunar_new_year(self, year: int) -> str:
        lunar = self._new_year(year)
        return self._call(year, "the lunar new year", lambda: _ymd(lunar.getSolar()))

    def li_chun(self, year: int) -> str:
        lunar = self._new_year(year)
        table = self._call(year, "solar terms", lunar.getJieQiTable)
        solar = table.get("立春")
        if solar is None:
            raise DerivationError(f"lunar_python has no Li Chun for {year}")
        return _ymd(solar)

    def year_length(self, year: int) -> int:
        return int(self._call(year, "the year length", lambda: LunarYear.fromYear(year).getDayCount()))

    def leap_month(self, year: int) -> Optional[int]:
        leap = int(self._call(year, "the leap month", lambda: LunarYear.fromYear(year).getLeapMonth()))
        return leap if leap > 0 else None

    def zodiac(self, year: int) -> str:
        animal = self._call(year, "the zodiac", self._new_year(year).getYearShengXiao)
        return ZODIAC_NAMES.get(animal, animal)

    def sexagenary(self, year: int) -> str:
        return self._call(year, "the sexagenary label", self._new_year(year).getYearInGanZhi)

    def element(self, year: int) -> str:
        stem = self._call(year, "the year stem", self._new_year(year).getYearGan)
        element = LunarUtil.WU_XING_GAN.get(stem, stem)
        return ELEMENT_NAMES.get(element, element)
