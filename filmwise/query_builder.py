"""
Parameterized SQL for the movie listing.

User values only ever travel as bound parameters. Fragments are written with
bare `?` markers and numbered (`?1`, `?2`, ...) in a single pass when the
statement is rendered, so optional predicates can be added or dropped without
any fragment knowing its own position.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .filters import MovieFilter

MARKER = "?"

ORDER_BY_SQL = {
    "rating": "rating DESC, m.id DESC",
    "runtime": "m.runtime DESC, m.id DESC",
    "old": "m.updated_at ASC, m.id ASC",
    "name": "m.title ASC, m.id ASC",
}
DEFAULT_ORDER_BY_SQL = "m.updated_at DESC, m.id DESC"

MOVIE_COLUMNS_SQL = """
    m.id,
    m.title,
    m.image,
    m.description,
    m.year,
    m.release_date,
    m.runtime,
    m.created_at,
    m.updated_at,
    COALESCE(
        ROUND((SELECT AVG(r.rating) FROM ratings r WHERE r.movie_id = m.id), 1),
        1.0
    ) AS rating,
    (SELECT COUNT(*) FROM comments c WHERE c.movie_id = m.id) AS comments_count,
    (SELECT COUNT(*) FROM favorites f WHERE f.movie_id = m.id) AS favorites_count
"""


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text is matched literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def number_markers(fragment: str, start: int) -> tuple[str, int]:
    """Replace each bare `?` in `fragment` with `?N` counting from `start`."""
    pieces = fragment.split(MARKER)
    out = [pieces[0]]
    index = start
    for piece in pieces[1:]:
        out.append(f"{MARKER}{index}{piece}")
        index += 1
    return "".join(out), index


@dataclass
class PredicateBuilder:
    """Ordered list of (fragment, values) pairs joined with AND."""

    clauses: list[tuple[str, tuple]] = field(default_factory=list)

    def add(self, fragment: str, *values: Any) -> "PredicateBuilder":
        if fragment.count(MARKER) != len(values):
            raise ValueError(
                f"fragment has {fragment.count(MARKER)} placeholders but {len(values)} values"
            )
        self.clauses.append((fragment, values))
        return self

    def render(self, start: int = 1) -> tuple[str, list[Any]]:
        """Return the WHERE body and its parameters, numbered from `start`."""
        if not self.clauses:
            return "1 = 1", []
        parts: list[str] = []
        params: list[Any] = []
        index = start
        for fragment, values in self.clauses:
            numbered, index = number_markers(fragment, index)
            parts.append(numbered)
            params.extend(values)
        return " AND ".join(parts), params


def build_movie_predicate(movie_filter: MovieFilter) -> PredicateBuilder:
    builder = PredicateBuilder()
    needle = f"%{escape_like(movie_filter.find_by_name)}%"
    builder.add(
        "(unicode_lower(m.title) LIKE ? ESCAPE '\\' OR unicode_lower(m.description) LIKE ? ESCAPE '\\')",
        needle,
        needle,
    )
    if movie_filter.filter_by_year > 0:
        builder.add("m.year = ?", movie_filter.filter_by_year)
    if movie_filter.filter_by_genre > 0:
        builder.add(
            "m.id IN (SELECT mg.movie_id FROM movies_genres mg WHERE mg.genre_id = ?)",
            movie_filter.filter_by_genre,
        )
    return builder


def order_by_sql(order_by: str) -> str:
    return ORDER_BY_SQL.get(order_by, DEFAULT_ORDER_BY_SQL)


def page_offset(page: int, per_page: int) -> int:
    return (page - 1) * per_page


@dataclass
class ListingQuery:
    count_sql: str
    count_params: list[Any]
    rows_sql: str
    rows_params: list[Any]


def build_listing_query(movie_filter: MovieFilter, page: int, per_page: int) -> ListingQuery:
    """
    Build the count and page statements for one listing request.

    Both statements share the exact same WHERE body and parameters; the page
    statement appends LIMIT/OFFSET as the next numbered parameters.
    """
    where, params = build_movie_predicate(movie_filter).render()

    count_sql = f"SELECT COUNT(*) AS cnt FROM movies m WHERE {where}"

    limit_sql, _ = number_markers("LIMIT ? OFFSET ?", len(params) + 1)
    rows_sql = (
        f"SELECT {MOVIE_COLUMNS_SQL}"
        f" FROM movies m"
        f" WHERE {where}"
        f" ORDER BY {order_by_sql(movie_filter.order_by)}"
        f" {limit_sql}"
    )
    rows_params = params + [per_page, page_offset(page, per_page)]
    return ListingQuery(count_sql, list(params), rows_sql, rows_params)
