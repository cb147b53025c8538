"""Keyword-based brand classification for listing titles."""

import re
from typing import Iterable, List, NamedTuple, Optional, Tuple

from scancar.processor.normalizer import slugify

BRANDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Audi", ("audi",)),
    ("BMW", ("bmw",)),
    ("Chevrolet", ("chevrolet", "chevy")),
    ("Dongfeng", ("dongfeng",)),
    ("Ford", ("ford",)),
    ("Hino", ("hino",)),
    ("Honda", ("honda",)),
    ("Hyundai", ("hyundai", "huynhdai", "huyndai")),
    ("Isuzu", ("isuzu",)),
    ("Kia", ("kia",)),
    ("Land Rover", ("land rover", "landrover")),
    ("Lexus", ("lexus",)),
    ("Mazda", ("mazda",)),
    ("Mercedes-Benz", ("mercedes benz", "mercedes-benz", "mercedes")),
    ("Mitsubishi", ("mitsubishi",)),
    ("Nissan", ("nissan",)),
    ("Peugeot", ("peugeot",)),
    ("Porsche", ("porsche",)),
    ("Subaru", ("subaru",)),
    ("Suzuki", ("suzuki",)),
    ("Toyota", ("toyota",)),
    ("VinFast", ("vinfast",)),
    ("Volkswagen", ("volkswagen", "vw")),
    ("Volvo", ("volvo",)),
]

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


class BrandInfo(NamedTuple):
    brand: str
    slug: str


NO_BRAND = BrandInfo("", "")


def _normalize(value: str) -> str:
    return _NON_ALNUM_RE.sub(" ", str(value).lower()).strip()


_KEYWORDS = [(_normalize(keyword), name) for name, keywords in BRANDS for keyword in keywords]


def detect_brand(value: Optional[str]) -> str:
    """Return the first brand whose keyword appears as whole words in ``value``."""
    normalized = _normalize(value or "")
    if not normalized:
        return ""
    padded = f" {normalized} "
    for keyword, name in _KEYWORDS:
        if f" {keyword} " in padded:
            return name
    return ""


def infer_brand(candidates: Iterable[Optional[str]]) -> BrandInfo:
    """Try each candidate string (title, URL slug, dealer name...) in order."""
    for candidate in candidates:
        name = detect_brand(candidate)
        if name:
            return BrandInfo(name, slugify(name))
    return NO_BRAND
