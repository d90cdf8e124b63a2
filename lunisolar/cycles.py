"""Closed-form sexagenary, zodiac and element cycles.

Every cycle is anchored so that year 4 CE maps to index 0 (甲子, Rat, Wood).
"""

from __future__ import annotations

__all__ = [
    "STEMS",
    "BRANCHES",
    "ZODIAC_ANIMALS",
    "ELEMENTS",
    "zodiac_for_year",
    "sexagenary_for_year",
    "element_for_year",
    "stem_index",
    "branch_index",
]

STEMS = ("甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸")
BRANCHES = ("子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥")
ZODIAC_ANIMALS = (
    "Rat", "Ox", "Tiger", "Rabbit", "Dragon", "Snake",
    "Horse", "Goat", "Monkey", "Rooster", "Dog", "Pig",
)
ELEMENTS = ("Wood", "Wood", "Fire", "Fire", "Earth", "Earth", "Metal", "Metal", "Water", "Water")

_EPOCH_YEAR = 4


def stem_index(year: int) -> int:
    # Python's modulo is already non-negative for a positive divisor.
    return (year - _EPOCH_YEAR) % 10


def branch_index(year: int) -> int:
    return (year - _EPOCH_YEAR) % 12


def zodiac_for_year(year: int) -> str:
    return ZODIAC_ANIMALS[branch_index(year)]


def sexagenary_for_year(year: int) -> str:
    return STEMS[stem_index(year)] + BRANCHES[branch_index(year)]


def element_for_year(year: int) -> str:
    return ELEMENTS[stem_index(year)]
