from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    total: int
    data: List[T] = []
    filter: Optional[Dict[str, Any]] = None


def normalize_page(page: Optional[int]) -> int:
    return page if page and page > 0 else 1


def clamp_limit(limit: Optional[int], low: int, high: int, default: int) -> int:
    """Out-of-range limits fall back to the default instead of failing."""
    if limit is None or limit < low or limit > high:
        return default
    return limit


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """LIKE pattern matching `term` anywhere, with its own wildcards taken literally."""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"
