from __future__ import annotations

import logging
import sqlite3
from typing import Dict, Iterable, List

from .db import execute, query, query_one, transaction
from .errors import ConflictError, InputError, NotFoundError
from .models import UNKNOWN_GENRE, genre_row_to_dict
from .validator import Validator

logger = logging.getLogger(__name__)


def validate_genre_name(name: str | None) -> str:
    v = Validator()
    v.is_length(name, "genre_name", 3, 50)
    v.raise_if_invalid()
    return name.strip()


def list_genres() -> List[dict]:
    rows = query("SELECT id, genre_name FROM genres ORDER BY genre_name ASC")
    return [genre_row_to_dict(r) for r in rows]


def get_genre(genre_id: int) -> dict:
    row = query_one("SELECT id, genre_name FROM genres WHERE id = ?", (genre_id,))
    if not row:
        raise NotFoundError("invalid genre id")
    return genre_row_to_dict(row)


def insert_genre(name: str) -> int:
    name = validate_genre_name(name)
    try:
        cur = execute("INSERT INTO genres (genre_name) VALUES (?)", (name,))
    except sqlite3.IntegrityError:
        raise ConflictError("the genre is already exist")
    logger.info("genre %r added", name)
    return int(cur.lastrowid)


def update_genre(genre_id: int, name: str) -> int:
    name = validate_genre_name(name)
    get_genre(genre_id)
    try:
        execute(
            "UPDATE genres SET genre_name = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (name, genre_id),
        )
    except sqlite3.IntegrityError:
        raise ConflictError("the genre is already exist")
    return genre_id


def delete_genre(genre_id: int) -> None:
    get_genre(genre_id)
    execute("DELETE FROM genres WHERE id = ?", (genre_id,))
    logger.info("genre %s deleted", genre_id)


def resolve_genre_names(tx: transaction, names: Iterable[str]) -> Dict[int, str]:
    """
    Map genre names from a movie payload to `{genre_id: genre_name}`.

    Repeated names collapse to one entry. An empty list resolves to the
    `Unknown` genre, which is created the first time it is needed.
    """
    resolved: Dict[int, str] = {}
    for name in names:
        row = tx.query_one("SELECT id, genre_name FROM genres WHERE genre_name = ?", (name,))
        if not row:
            raise InputError("invalid genre name")
        resolved.setdefault(int(row["id"]), row["genre_name"])

    if not resolved:
        row = tx.query_one("SELECT id FROM genres WHERE genre_name = ?", (UNKNOWN_GENRE,))
        if row:
            genre_id = int(row["id"])
        else:
            genre_id = int(tx.execute("INSERT INTO genres (genre_name) VALUES (?)", (UNKNOWN_GENRE,)).lastrowid)
        resolved[genre_id] = UNKNOWN_GENRE
    return resolved


def genres_for_movies(movie_ids: List[int]) -> Dict[int, Dict[int, str]]:
    """Genre maps for several movies in one query; every id gets a (possibly empty) map."""
    genre_maps: Dict[int, Dict[int, str]] = {mid: {} for mid in movie_ids}
    if not movie_ids:
        return genre_maps
    marks = ", ".join("?" for _ in movie_ids)
    rows = query(
        f"""
        SELECT mg.movie_id, g.id AS genre_id, g.genre_name
        FROM movies_genres mg
        JOIN genres g ON g.id = mg.genre_id
        WHERE mg.movie_id IN ({marks})
        ORDER BY g.genre_name ASC
        """,
        tuple(movie_ids),
    )
    for row in rows:
        genre_maps[int(row["movie_id"])][int(row["genre_id"])] = row["genre_name"]
    return genre_maps
