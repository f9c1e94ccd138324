from __future__ import annotations

import sqlite3
from typing import Callable, Mapping, Sequence

from werkzeug.security import generate_password_hash

USERS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    user_type TEXT NOT NULL DEFAULT 'user' CHECK (user_type IN ('user', 'admin')),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

GENRES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    genre_name TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

MOVIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS movies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    year INTEGER,
    release_date TEXT,
    runtime INTEGER,
    image TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

MOVIES_GENRES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS movies_genres (
    movie_id INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    genre_id INTEGER NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (movie_id, genre_id)
);
"""

RATINGS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS ratings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    movie_id INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    rating REAL NOT NULL CHECK (rating >= 1.0 AND rating <= 10.0),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (movie_id, user_id)
);
"""

COMMENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    movie_id INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    comment TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

FAVORITES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS favorites (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    movie_id INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, movie_id)
);
"""

IMAGES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
    image_path TEXT NOT NULL,
    image_name TEXT NOT NULL UNIQUE,
    is_used INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

INDEX_SQL: Sequence[str] = (
    "CREATE INDEX IF NOT EXISTS ix_movies_year ON movies (year);",
    "CREATE INDEX IF NOT EXISTS ix_movies_updated_at ON movies (updated_at);",
    "CREATE INDEX IF NOT EXISTS ix_movies_genres_genre ON movies_genres (genre_id);",
    "CREATE INDEX IF NOT EXISTS ix_ratings_movie ON ratings (movie_id);",
    "CREATE INDEX IF NOT EXISTS ix_comments_movie ON comments (movie_id, created_at);",
    "CREATE INDEX IF NOT EXISTS ix_favorites_movie ON favorites (movie_id);",
    "CREATE INDEX IF NOT EXISTS ix_images_unused ON images (is_used, created_at);",
)

TABLES_SQL: Sequence[str] = (
    USERS_TABLE_SQL,
    GENRES_TABLE_SQL,
    MOVIES_TABLE_SQL,
    MOVIES_GENRES_TABLE_SQL,
    RATINGS_TABLE_SQL,
    COMMENTS_TABLE_SQL,
    FAVORITES_TABLE_SQL,
    IMAGES_TABLE_SQL,
)

UNKNOWN_GENRE = "Unknown"


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they do not yet exist."""
    for stmt in TABLES_SQL:
        conn.execute(stmt)
    for stmt in INDEX_SQL:
        conn.execute(stmt)
    conn.commit()


def ensure_admin_user(
    conn: sqlite3.Connection,
    email: str,
    password: str,
    name: str = "Admin",
    hash_password: Callable[[str], str] = generate_password_hash,
) -> int:
    """Seed the admin account, or promote an existing account with that email."""
    row = conn.execute(
        "SELECT id FROM users WHERE lower(email) = lower(?) LIMIT 1",
        (email,),
    ).fetchone()
    if row:
        conn.execute("UPDATE users SET user_type = 'admin' WHERE id = ?", (row["id"],))
        conn.commit()
        return int(row["id"])
    cur = conn.execute(
        "INSERT INTO users (name, email, password, user_type) VALUES (?, ?, ?, 'admin')",
        (name, email, hash_password(password)),
    )
    conn.commit()
    return int(cur.lastrowid)


def movie_row_to_dict(row: Mapping[str, object], image: str) -> dict:
    """Convert a listing/detail row into the API shape (without genres/comments)."""
    data = dict(row)
    return {
        "id": data.get("id"),
        "title": data.get("title"),
        "description": data.get("description") or "",
        "year": data.get("year"),
        "release_date": data.get("release_date"),
        "runtime": data.get("runtime"),
        "rating": float(data.get("rating") if data.get("rating") is not None else 1.0),
        "total_comments": int(data.get("comments_count") or 0),
        "total_favorites": int(data.get("favorites_count") or 0),
        "is_favorite": False,
        "genres": {},
        "image": image,
    }


def genre_row_to_dict(row: Mapping[str, object]) -> dict:
    return {"id": row["id"], "genre_name": row["genre_name"]}


def comment_row_to_dict(row: Mapping[str, object]) -> dict:
    data = dict(row)
    return {
        "id": data.get("id"),
        "user_id": data.get("user_id"),
        "user_name": data.get("user_name") or "",
        "comment": data.get("comment"),
        "commented_at": data.get("updated_at"),
    }


def image_row_to_dict(row: Mapping[str, object]) -> dict:
    data = dict(row)
    return {
        "id": data.get("id"),
        "user_id": data.get("user_id"),
        "image_path": data.get("image_path"),
        "image_name": data.get("image_name"),
        "is_used": bool(data.get("is_used")),
    }
