"""Text and URL normalization shared by provider adapters.

Adapters map heterogeneous upstream markup into the unified listing schema.
Missing values become empty strings, never exceptions.
"""

import re
import unicodedata
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from scancar.models.data_models import Attribute

_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def clean_text(value: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def clean_multiline(value: Optional[str]) -> str:
    """Clean each line separately, dropping blank ones."""
    if not value:
        return ""
    lines = (clean_text(line) for line in str(value).splitlines())
    return "\n".join(line for line in lines if line)


def fold_diacritics(value: str) -> str:
    """
    Strip combining marks and map Vietnamese 'đ' to 'd'.

    'Đắk Lắk' -> 'Dak Lak'
    """
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace("đ", "d").replace("Đ", "D")


def slugify(value: Optional[str]) -> str:
    """ASCII slug with dashes: 'Mercedes-Benz GLC 300' -> 'mercedes-benz-glc-300'."""
    if not value:
        return ""
    folded = fold_diacritics(str(value)).lower()
    return _NON_SLUG_RE.sub("-", folded).strip("-")


def absolute_url(value: Optional[str], base_url: str) -> str:
    """Resolve ``value`` against ``base_url``; empty input stays empty."""
    if not value:
        return ""
    try:
        return urljoin(base_url, value.strip())
    except ValueError:
        return value


def format_number_vi(value: int) -> str:
    """Group thousands with dots: 1234567 -> '1.234.567'."""
    return f"{int(value):,}".replace(",", ".")


def build_attributes(pairs: Iterable[Tuple[str, Optional[str]]]) -> Tuple[Attribute, ...]:
    """Build attributes from (label, value) pairs, skipping empty values."""
    attributes: List[Attribute] = []
    for label, value in pairs:
        text = clean_text(value) if value is not None else ""
        if label and text:
            attributes.append(Attribute(label=label, value=text))
    return tuple(attributes)


def collation_key(title: str, *tiebreakers: str) -> Sequence[str]:
    """
    Sort key approximating Vietnamese collation.

    Compares titles ignoring case and diacritics first, then by the raw
    title, then by any tiebreakers, giving a total order.
    """
    return (fold_diacritics(title).casefold(), title, *tiebreakers)
