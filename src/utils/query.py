"""Filter, sort and pagination plumbing shared by the store layer."""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Union

from src.utils.errors import ValidationFailedError

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class Filters:
    """
    Recorded PostgREST filter chain.

    Calls are replayed in order onto a supabase query builder, so the same
    predicate drives both the count query and the page query.
    """

    def __init__(self):
        self._calls: list[tuple[str, tuple]] = []

    def _add(self, method: str, *args: Any) -> "Filters":
        self._calls.append((method, args))
        return self

    def eq(self, column: str, value: Any) -> "Filters":
        return self._add("eq", column, _plain(value))

    def neq(self, column: str, value: Any) -> "Filters":
        return self._add("neq", column, _plain(value))

    def in_(self, column: str, values: Iterable[Any]) -> "Filters":
        return self._add("in_", column, [_plain(v) for v in values])

    def is_null(self, column: str) -> "Filters":
        return self._add("is_", column, "null")

    def gte(self, column: str, value: Any) -> "Filters":
        return self._add("gte", column, _plain(value))

    def lte(self, column: str, value: Any) -> "Filters":
        return self._add("lte", column, _plain(value))

    def ilike(self, column: str, pattern: str) -> "Filters":
        return self._add("ilike", column, pattern)

    def or_(self, expression: str) -> "Filters":
        return self._add("or_", expression)

    def apply(self, builder):
        for method, args in self._calls:
            builder = getattr(builder, method)(*args)
        return builder

    @property
    def calls(self) -> list[tuple[str, tuple]]:
        return list(self._calls)

    def __bool__(self) -> bool:
        return bool(self._calls)

    def __repr__(self) -> str:
        return f"Filters({self._calls!r})"


def clean_search_term(term: Optional[str]) -> str:
    """Drop characters that carry meaning in PostgREST logic trees."""
    if not term:
        return ""
    return re.sub(r'[,()"\\%*:]', " ", term).strip()


def search_expression(columns: Iterable[str], term: Optional[str]) -> Optional[str]:
    """Case-insensitive substring match over any of the columns."""
    cleaned = clean_search_term(term)
    if not cleaned:
        return None
    return ",".join(f"{column}.ilike.%{cleaned}%" for column in columns)


def all_of(*expressions: Optional[str]) -> Optional[str]:
    """Combine or-expressions into one tree that requires every one of them."""
    present = [e for e in expressions if e]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return "and(" + ",".join(f"or({e})" for e in present) + ")"


def parse_sort(sort: Optional[str], default: str) -> tuple[str, bool]:
    """Parse "-field" / "field" into (column, descending)."""
    value = (sort or default).strip() or default
    if value.startswith("-"):
        return value[1:], True
    return value.lstrip("+"), False


def page_count(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def round_half_up(value: float, places: int = 0) -> Union[int, float]:
    """Round with .5 going away from zero; integers when ``places`` is 0."""
    rounded = Decimal(str(value)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def filter_identifier(value: str, field: str) -> str:
    """Reject ids that could alter a PostgREST logic tree."""
    if not IDENTIFIER_PATTERN.match(value or ""):
        raise ValidationFailedError(
            f"Invalid {field}",
            details=[{"field": field, "message": "must contain only letters, digits, '-' or '_'"}],
        )
    return value
