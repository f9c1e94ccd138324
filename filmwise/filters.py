from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .config import DEFAULT_PAGE, DEFAULT_PER_PAGE, MAX_PER_PAGE
from .errors import InputError

ORDER_CHOICES = ("rating", "runtime", "old", "name")


@dataclass
class MovieFilter:
    """
    Normalized listing criteria.

    `find_by_name` is always lower-cased; an empty value matches every movie.
    Genre and year values of zero or below mean "not filtered". Unknown
    `order_by` values fall back to the default (most recently updated first).
    """

    find_by_name: str = ""
    filter_by_genre: int = 0
    filter_by_year: int = 0
    order_by: str = ""

    def __post_init__(self):
        self.find_by_name = (self.find_by_name or "").lower()
        self.filter_by_genre = self.filter_by_genre if self.filter_by_genre and self.filter_by_genre > 0 else 0
        self.filter_by_year = self.filter_by_year if self.filter_by_year and self.filter_by_year > 0 else 0
        if self.order_by not in ORDER_CHOICES:
            self.order_by = ""


def _optional_int(value: str | None) -> int:
    try:
        return int(value) if value not in (None, "") else 0
    except (TypeError, ValueError):
        return 0


def _page_int(value: str | None, default: int, message: str) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InputError(message)


def validate_pagination(page: int, per_page: int) -> None:
    if page < 1:
        raise InputError("current page should be 1 or greater")
    if per_page < 1:
        raise InputError("per page limit should be 1 or greater")
    if per_page > MAX_PER_PAGE:
        raise InputError(f"per page limit should not exceed {MAX_PER_PAGE}")


def listing_params_from_args(args: Mapping[str, str]) -> tuple[int, int, MovieFilter]:
    """
    Turn raw query-string values into (page, per_page, filter).

    Query keys: `s` search text, `page`, `limit`, `genre`, `year`, `order_by`.
    A present but non-numeric page or limit fails the request; a non-numeric
    genre or year is simply ignored.
    """
    page = _page_int(args.get("page"), DEFAULT_PAGE, "current page should be a number")
    per_page = _page_int(args.get("limit"), DEFAULT_PER_PAGE, "per page limit should be a number")
    validate_pagination(page, per_page)

    movie_filter = MovieFilter(
        find_by_name=args.get("s") or "",
        filter_by_genre=_optional_int(args.get("genre")),
        filter_by_year=_optional_int(args.get("year")),
        order_by=args.get("order_by") or "",
    )
    return page, per_page, movie_filter
