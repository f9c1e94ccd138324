from __future__ import annotations

import logging

from .db import execute, query_one, transaction
from .errors import NotFoundError, PermissionDenied
from .models import comment_row_to_dict
from .movies import movie_exists
from .validator import Validator

logger = logging.getLogger(__name__)

MIN_RATING = 1.0
MAX_RATING = 10.0


def _require_movie(movie_id: int) -> None:
    if not movie_id or movie_id <= 0 or not movie_exists(movie_id):
        raise NotFoundError("invalid movie id")


def rate_movie(user_id: int, movie_id: int, value) -> tuple[int, bool]:
    """
    Record the user's rating for a movie, replacing any earlier one.

    The (movie_id, user_id) unique key makes the write a single atomic upsert.
    Returns `(rating_id, created)`.
    """
    v = Validator()
    try:
        # JSON true/false would otherwise pass as 1.0/0.0
        rating = 0.0 if isinstance(value, bool) else float(value)
    except (TypeError, ValueError):
        rating = 0.0
    v.check(MIN_RATING <= rating <= MAX_RATING, "rating", "movie rating should be between 1.0 to 10.0")
    v.raise_if_invalid()
    _require_movie(movie_id)

    with transaction() as tx:
        existed = tx.query_one(
            "SELECT 1 FROM ratings WHERE movie_id = ? AND user_id = ?",
            (movie_id, user_id),
        ) is not None
        tx.execute(
            """
            INSERT INTO ratings (movie_id, user_id, rating) VALUES (?, ?, ?)
            ON CONFLICT (movie_id, user_id)
            DO UPDATE SET rating = excluded.rating, updated_at = CURRENT_TIMESTAMP
            """,
            (movie_id, user_id, rating),
        )
        row = tx.query_one(
            "SELECT id FROM ratings WHERE movie_id = ? AND user_id = ?",
            (movie_id, user_id),
        )
    return int(row["id"]), not existed


def validate_comment(text: str | None) -> str:
    v = Validator()
    v.is_length(text, "comment", 10, 500)
    v.raise_if_invalid()
    return text.strip()


def get_comment(comment_id: int) -> dict:
    row = query_one(
        """
        SELECT c.id, c.movie_id, c.user_id, u.name AS user_name, c.comment, c.created_at, c.updated_at
        FROM comments c
        JOIN users u ON u.id = c.user_id
        WHERE c.id = ?
        """,
        (comment_id,),
    )
    if not row:
        raise NotFoundError("invalid comment id")
    data = comment_row_to_dict(row)
    data["movie_id"] = row["movie_id"]
    return data


def _require_owner(user: dict, comment: dict) -> None:
    if user.get("user_type") != "admin" and comment["user_id"] != user["id"]:
        raise PermissionDenied("you can only change your own comments")


def add_comment(user_id: int, movie_id: int, text: str) -> int:
    text = validate_comment(text)
    _require_movie(movie_id)
    cur = execute(
        "INSERT INTO comments (movie_id, user_id, comment) VALUES (?, ?, ?)",
        (movie_id, user_id, text),
    )
    return int(cur.lastrowid)


def update_comment(user: dict, comment_id: int, text: str) -> int:
    text = validate_comment(text)
    comment = get_comment(comment_id)
    _require_owner(user, comment)
    execute(
        "UPDATE comments SET comment = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (text, comment_id),
    )
    return comment_id


def delete_comment(user: dict, comment_id: int) -> None:
    comment = get_comment(comment_id)
    _require_owner(user, comment)
    execute("DELETE FROM comments WHERE id = ?", (comment_id,))
    logger.info("comment %s deleted by user %s", comment_id, user["id"])


def is_favorite(user_id: int, movie_id: int) -> bool:
    row = query_one(
        "SELECT 1 FROM favorites WHERE user_id = ? AND movie_id = ? LIMIT 1",
        (user_id, movie_id),
    )
    return row is not None


def add_favorite(user_id: int, movie_id: int) -> bool:
    """Mark a favorite; returns False when it was already there."""
    _require_movie(movie_id)
    cur = execute(
        "INSERT OR IGNORE INTO favorites (user_id, movie_id) VALUES (?, ?)",
        (user_id, movie_id),
    )
    return cur.rowcount > 0


def remove_favorite(user_id: int, movie_id: int) -> bool:
    """Drop a favorite; returns False when there was none."""
    _require_movie(movie_id)
    cur = execute(
        "DELETE FROM favorites WHERE user_id = ? AND movie_id = ?",
        (user_id, movie_id),
    )
    return cur.rowcount > 0


def toggle_favorite(user_id: int, movie_id: int) -> bool:
    """Flip the favorite state and return the new one."""
    if remove_favorite(user_id, movie_id):
        return False
    add_favorite(user_id, movie_id)
    return True
