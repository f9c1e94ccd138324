"""
Movie reads and writes.

`list_movies` and `get_movie_detail` are the two read paths the HTTP layer
calls. Every statement they issue is bounded by the store deadline; any
failure aborts the whole call, so partial listings are never returned.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Sequence

from .db import execute, query, query_one, transaction
from .errors import ConflictError, NotFoundError
from .filters import MovieFilter, validate_pagination
from .genres import genres_for_movies, resolve_genre_names
from .images import get_image_by_name, image_url, release_image
from .models import comment_row_to_dict, movie_row_to_dict
from .query_builder import MOVIE_COLUMNS_SQL, build_listing_query

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 5


def favorites_among(viewer_id: int, movie_ids: Sequence[int]) -> set[int]:
    """Ids from `movie_ids` the viewer has favorited, in one query."""
    if not movie_ids:
        return set()
    marks = ", ".join("?" for _ in movie_ids)
    rows = query(
        f"SELECT movie_id FROM favorites WHERE user_id = ? AND movie_id IN ({marks})",
        (viewer_id, *movie_ids),
    )
    return {int(r["movie_id"]) for r in rows}


def _assemble(rows: Sequence[sqlite3.Row], viewer_id: int | None) -> List[dict]:
    """Fold genre maps and the viewer favorite flag into listing rows."""
    movies = [movie_row_to_dict(r, image_url(r["image"])) for r in rows]
    ids = [m["id"] for m in movies]
    genre_maps = genres_for_movies(ids)
    favorites = favorites_among(viewer_id, ids) if viewer_id else set()
    for movie in movies:
        movie["genres"] = genre_maps.get(movie["id"], {})
        movie["is_favorite"] = movie["id"] in favorites
    return movies


def list_movies(page: int, per_page: int, movie_filter: MovieFilter, viewer_id: int | None = None) -> Dict[str, Any]:
    """
    One page of movies matching `movie_filter`.

    The count and the page are two separate statements built from the same
    predicate; under concurrent writes `total_count` is approximate.
    """
    validate_pagination(page, per_page)
    listing = build_listing_query(movie_filter, page, per_page)

    total = query_one(listing.count_sql, listing.count_params)["cnt"]
    rows = query(listing.rows_sql, listing.rows_params)

    return {
        "total_count": int(total),
        "per_page": per_page,
        "current_page": page,
        "movies": _assemble(rows, viewer_id),
    }


def featured_movies(viewer_id: int | None = None) -> List[dict]:
    rows = query(
        f"SELECT {MOVIE_COLUMNS_SQL} FROM movies m ORDER BY m.updated_at DESC, m.id DESC LIMIT ?",
        (FEATURED_LIMIT,),
    )
    return _assemble(rows, viewer_id)


def _movie_row(movie_id: int) -> sqlite3.Row:
    row = query_one(f"SELECT {MOVIE_COLUMNS_SQL} FROM movies m WHERE m.id = ?", (movie_id,))
    if not row:
        raise NotFoundError("movie not found")
    return row


def get_movie_detail(movie_id: int, viewer_id: int | None = None) -> dict:
    """Movie with its genre map, comment thread (newest first) and viewer flag."""
    row = _movie_row(movie_id)
    movie = movie_row_to_dict(row, image_url(row["image"]))
    movie["genres"] = genres_for_movies([movie_id])[movie_id]

    comments = query(
        """
        SELECT c.id, c.user_id, u.name AS user_name, c.comment, c.created_at, c.updated_at
        FROM comments c
        JOIN users u ON u.id = c.user_id
        WHERE c.movie_id = ?
        ORDER BY c.created_at DESC, c.id DESC
        """,
        (movie_id,),
    )
    movie["comments"] = [comment_row_to_dict(c) for c in comments]
    movie["total_comments"] = len(movie["comments"])

    if viewer_id:
        fav = query_one(
            "SELECT 1 FROM favorites WHERE user_id = ? AND movie_id = ? LIMIT 1",
            (viewer_id, movie_id),
        )
        movie["is_favorite"] = fav is not None
    return movie


def movie_exists(movie_id: int) -> bool:
    return query_one("SELECT 1 FROM movies WHERE id = ?", (movie_id,)) is not None


def _insert_genre_links(tx: transaction, movie_id: int, genre_ids) -> None:
    for genre_id in genre_ids:
        tx.execute(
            "INSERT INTO movies_genres (movie_id, genre_id) VALUES (?, ?)",
            (movie_id, genre_id),
        )


def _claim_image(tx: transaction, image: dict) -> None:
    """Mark an upload as attached; an image already used by a movie is refused."""
    cur = tx.execute(
        "UPDATE images SET is_used = 1, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND is_used = 0",
        (image["id"],),
    )
    if cur.rowcount == 0:
        raise ConflictError("image is already in use")


def insert_movie(payload: dict, image: dict) -> tuple[int, Dict[int, str]]:
    """
    Create a movie with its genre links and attach the uploaded image.

    `payload` holds validated fields (title, description, year, release_date,
    runtime, genres). Returns `(movie_id, {genre_id: genre_name})`.
    """
    if query_one("SELECT id FROM movies WHERE title = ?", (payload["title"],)):
        raise ConflictError("the movie is already exist")

    try:
        with transaction() as tx:
            genre_map = resolve_genre_names(tx, payload.get("genres") or [])
            cur = tx.execute(
                """
                INSERT INTO movies (title, description, year, release_date, runtime, image)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    payload["title"],
                    payload["description"],
                    payload["year"],
                    payload["release_date"],
                    payload["runtime"],
                    image["image_name"],
                ),
            )
            movie_id = int(cur.lastrowid)
            _insert_genre_links(tx, movie_id, genre_map)
            _claim_image(tx, image)
    except sqlite3.IntegrityError:
        raise ConflictError("the movie is already exist")

    logger.info("movie %s inserted: %r", movie_id, payload["title"])
    return movie_id, genre_map


def update_movie(movie_id: int, payload: dict, image: dict | None = None) -> tuple[int, Dict[int, str]]:
    """
    Update a movie and replace its genre set.

    When a different image is supplied the previous one is released from the
    image store and the `images` table after the update commits.
    """
    current = query_one("SELECT id, image FROM movies WHERE id = ?", (movie_id,))
    if not current:
        raise NotFoundError("invalid movie id")

    image_name = image["image_name"] if image else current["image"]
    try:
        with transaction() as tx:
            genre_map = resolve_genre_names(tx, payload.get("genres") or [])
            tx.execute(
                """
                UPDATE movies
                SET title = ?, description = ?, year = ?, release_date = ?, runtime = ?,
                    image = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (
                    payload["title"],
                    payload["description"],
                    payload["year"],
                    payload["release_date"],
                    payload["runtime"],
                    image_name,
                    movie_id,
                ),
            )
            tx.execute("DELETE FROM movies_genres WHERE movie_id = ?", (movie_id,))
            _insert_genre_links(tx, movie_id, genre_map)
            if image and image["image_name"] != current["image"]:
                _claim_image(tx, image)
    except sqlite3.IntegrityError:
        raise ConflictError("the movie is already exist")

    if image and current["image"] and current["image"] != image["image_name"]:
        previous = get_image_by_name(current["image"])
        if previous:
            release_image(previous)

    logger.info("movie %s updated", movie_id)
    return movie_id, genre_map


def delete_movie(movie_id: int) -> None:
    current = query_one("SELECT id, image FROM movies WHERE id = ?", (movie_id,))
    if not current:
        raise NotFoundError("invalid movie id")
    execute("DELETE FROM movies WHERE id = ?", (movie_id,))
    if current["image"]:
        image = get_image_by_name(current["image"])
        if image:
            release_image(image)
    logger.info("movie %s deleted", movie_id)
