import pytest
from werkzeug.security import generate_password_hash

from filmwise import create_app
from filmwise.auth import issue_token
from filmwise.db import get_db

USERS = [
    (1, "Admin", "admin@test.com", "Admin#1234", "admin"),
    (2, "Alice Smith", "alice@test.com", "Alice#1234", "user"),
    (3, "Bob Jones", "bob@test.com", "Bob#12345", "user"),
]

GENRES = [(1, "Action"), (2, "Drama"), (3, "Comedy")]

# id, title, description, year, release_date, runtime, image, updated_at
MOVIES = [
    (1, "The Dark Knight", "A vigilante faces a chaotic criminal mastermind in Gotham.", 2008, "2008-07-18", 152, "dark.jpg", "2024-01-01 10:00:00"),
    (2, "Dark Waters", "A lawyer uncovers a dark secret hidden by a chemical company.", 2019, "2019-11-22", 126, "", "2024-01-02 10:00:00"),
    (3, "Amelie", "A shy waitress decides to change the lives of those around her.", 2001, "2001-04-25", 122, "amelie.png", "2024-01-03 10:00:00"),
    (4, "Zodiac", "A cartoonist becomes obsessed with tracking down a killer.", 2007, "2007-03-02", 157, None, "2024-01-04 10:00:00"),
]

MOVIE_GENRES = [(1, 1), (1, 2), (2, 2), (3, 3)]

# movie_id, user_id, rating
RATINGS = [(1, 2, 4.0), (1, 3, 6.0), (2, 2, 9.0), (4, 3, 7.5)]

# id, movie_id, user_id, comment, created_at
COMMENTS = [
    (1, 1, 2, "Brilliant film, loved the Joker.", "2024-02-01 09:00:00"),
    (2, 1, 3, "Too long but worth it overall.", "2024-02-02 09:00:00"),
]

# user_id, movie_id
FAVORITES = [(2, 1), (3, 1), (3, 3)]

IMAGES = [(1, 1, "dark", "dark.jpg", 1), (2, 1, "amelie", "amelie.png", 1)]


def seed(conn):
    conn.executemany(
        "INSERT INTO users (id, name, email, password, user_type) VALUES (?, ?, ?, ?, ?)",
        [(uid, name, email, generate_password_hash(pw), kind) for uid, name, email, pw, kind in USERS],
    )
    conn.executemany("INSERT INTO genres (id, genre_name) VALUES (?, ?)", GENRES)
    conn.executemany(
        """
        INSERT INTO movies (id, title, description, year, release_date, runtime, image, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [row[:-1] + (row[-1], row[-1]) for row in MOVIES],
    )
    conn.executemany("INSERT INTO movies_genres (movie_id, genre_id) VALUES (?, ?)", MOVIE_GENRES)
    conn.executemany("INSERT INTO ratings (movie_id, user_id, rating) VALUES (?, ?, ?)", RATINGS)
    conn.executemany(
        "INSERT INTO comments (id, movie_id, user_id, comment, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
        [row + (row[-1],) for row in COMMENTS],
    )
    conn.executemany("INSERT INTO favorites (user_id, movie_id) VALUES (?, ?)", FAVORITES)
    conn.executemany(
        "INSERT INTO images (id, user_id, image_path, image_name, is_used) VALUES (?, ?, ?, ?, ?)",
        IMAGES,
    )
    conn.commit()


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE_PATH": str(tmp_path / "filmwise-test.db"),
        "IMAGE_STORE": "local",
        "IMAGE_UPLOAD_FOLDER": str(tmp_path / "images"),
        "IMAGE_BASE_URL": "http://img.test",
        "CLOUD_NAME": "",
        "JWT_SECRET": "test-secret",
        "JWT_TTL_HOURS": 24,
        "ADMIN_EMAIL": "",
        "ADMIN_PASSWORD": "",
        "FILMWISE_CONFIG": str(tmp_path / "missing.yaml"),
    })
    with app.app_context():
        seed(get_db())
    return app


@pytest.fixture
def ctx(app):
    """An app context for calling data-layer functions directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def _token(app, user_id):
    uid, name, _, _, kind = USERS[user_id - 1]
    with app.app_context():
        return issue_token({"id": uid, "name": name, "user_type": kind})["token"]


@pytest.fixture
def admin_headers(app):
    return {"Authorization": f"Bearer {_token(app, 1)}"}


@pytest.fixture
def alice_headers(app):
    return {"Authorization": f"Bearer {_token(app, 2)}"}


@pytest.fixture
def bob_headers(app):
    return {"Authorization": f"Bearer {_token(app, 3)}"}
