"""
Specialty classification.

The classification table maps a specialty code to 'acute' or 'nonacute'. It is
not exhaustive: codes missing from it classify as unknown and never count as
acute.
"""

from collections import OrderedDict
from typing import Iterable, Mapping, Optional, Tuple, Union

from .model import Category


def normalize_code(code) -> Optional[str]:
    """Return the code as a stripped string, or None for missing/blank codes."""
    if code is None:
        return None
    if isinstance(code, float):
        if code != code:  # NaN
            return None
        if code.is_integer():
            code = int(code)
    text = str(code).strip()
    return text or None


class SpecialtyClassifier:
    """
    Read-only lookup from specialty code to Category.

    Args:
        table: Mapping or iterable of (code, category) pairs. Categories may be
            given as Category members or as the strings 'acute'/'nonacute'.
            The first occurrence of a code wins.
    """

    def __init__(
        self,
        table: Union[Mapping[str, Union[str, Category]], Iterable[Tuple[str, Union[str, Category]]]],
    ) -> None:
        items = table.items() if isinstance(table, Mapping) else table
        entries: "OrderedDict[str, Category]" = OrderedDict()
        for code, category in items:
            key = normalize_code(code)
            # Blank codes are skipped; the first entry for a code wins
            if key is None or key in entries:
                continue
            # Category() rejects anything outside acute/nonacute/unknown
            resolved = Category(str(getattr(category, "value", category)).strip().lower())
            if resolved is Category.UNKNOWN:
                raise ValueError(f"Specialty {key!r} cannot be classified as 'unknown'")
            entries[key] = resolved
        self._table = entries

    def __len__(self) -> int:
        return len(self._table)

    def classify(self, code) -> Category:
        key = normalize_code(code)
        if key is None:
            return Category.UNKNOWN
        return self._table.get(key, Category.UNKNOWN)

    def is_acute(self, code) -> bool:
        return self.classify(code) is Category.ACUTE

    def codes(self) -> Tuple[str, ...]:
        return tuple(self._table)
