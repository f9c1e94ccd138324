from flask import Blueprint, abort, jsonify, request

from ..auth import admin_required
from ..errors import InputError
from ..genres import delete_genre, insert_genre, update_genre
from ..images import get_image
from ..movies import delete_movie, insert_movie, update_movie
from ..validator import Validator

bp = Blueprint("admin", __name__, url_prefix="/v1/admin")

MAX_MOVIE_GENRES = 5


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="invalid json request")
    return data


def _positive_int(value, message: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InputError(message)
    if number <= 0:
        raise InputError(message)
    return number


def movie_payload(data: dict) -> dict:
    """Validate a movie body from the admin form into storable fields."""
    v = Validator()
    v.is_length(data.get("title"), "title", 3, 255)
    v.is_length(data.get("description"), "description", 20, 500)
    v.required(data.get("year"), "year", "year is required")
    v.required(data.get("release_date"), "release_date", "release_date is required")
    year = v.is_int(data.get("year"), "year", "invalid year!")
    release_date = v.is_date(data.get("release_date"), "release_date", message="invalid release_date!")
    runtime = v.is_int(data.get("runtime"), "runtime", "invalid runtime!")

    genres = data.get("genres")
    if genres is None:
        genres = []
    if not isinstance(genres, list) or not all(isinstance(name, str) for name in genres):
        v.add_error("genres", "genres should be a list of genre names")
        genres = []
    v.check(len(genres) > 0, "genres", "movie genre is required")
    v.check(len(genres) <= MAX_MOVIE_GENRES, "genres", f"maximum {MAX_MOVIE_GENRES} genres are allowed")
    v.raise_if_invalid()

    return {
        "title": str(data["title"]).strip(),
        "description": str(data["description"]).strip(),
        "year": year,
        "release_date": release_date,
        "runtime": runtime,
        "genres": genres,
    }


@bp.post("/genre/add")
@admin_required
def add_genre():
    data = _json_body()
    genre_id = insert_genre(data.get("genre_name"))
    return jsonify({"ok": True, "id": genre_id, "message": "Genre is inserted successfully!"}), 201


@bp.put("/genre/edit")
@admin_required
def edit_genre():
    data = _json_body()
    genre_id = _positive_int(data.get("id"), "invalid genre id")
    update_genre(genre_id, data.get("genre_name"))
    return jsonify({"ok": True, "id": genre_id, "message": "Genre is updated successfully!"})


@bp.delete("/genre/<int:genre_id>")
@admin_required
def remove_genre(genre_id: int):
    delete_genre(genre_id)
    return jsonify({"ok": True, "id": genre_id, "message": "Genre is deleted successfully!"})


@bp.post("/movie/add")
@admin_required
def add_movie():
    data = _json_body()
    payload = movie_payload(data)
    if data.get("image_id") in (None, ""):
        raise InputError("image is required")
    image = get_image(_positive_int(data.get("image_id"), "invalid image id"))
    movie_id, genres = insert_movie(payload, image)
    return jsonify({
        "ok": True,
        "id": movie_id,
        "movies_genres": genres,
        "message": "Movie is inserted successfully!",
    }), 201


@bp.put("/movie/edit")
@admin_required
def edit_movie():
    data = _json_body()
    movie_id = _positive_int(data.get("id"), "invalid movie id")
    payload = movie_payload(data)
    image = None
    if data.get("image_id") not in (None, ""):
        image = get_image(_positive_int(data.get("image_id"), "invalid image id"))
    movie_id, genres = update_movie(movie_id, payload, image)
    return jsonify({
        "ok": True,
        "id": movie_id,
        "movies_genres": genres,
        "message": "Movie is successfully updated",
    })


@bp.delete("/movie/<int:movie_id>")
@admin_required
def remove_movie(movie_id: int):
    delete_movie(movie_id)
    return jsonify({"ok": True, "id": movie_id, "message": "Movie is deleted successfully!"})
