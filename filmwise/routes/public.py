from dataclasses import replace

from flask import Blueprint, abort, current_app, jsonify, request, send_from_directory

from ..auth import authenticate, issue_token, register_user, viewer_id
from ..config import APP_VERSION
from ..filters import listing_params_from_args
from ..genres import list_genres
from ..images import LocalImageStore, get_image_store
from ..movies import featured_movies, get_movie_detail, list_movies

bp = Blueprint("public", __name__)


@bp.get("/status")
def status():
    return jsonify({
        "app_status": {
            "status": "available",
            "environment": current_app.config["ENV"],
            "version": APP_VERSION,
        }
    })


@bp.get("/v1/movies")
def movies():
    """Paginated movie listing filtered by `s`, `genre`, `year` and sorted by `order_by`."""
    page, per_page, movie_filter = listing_params_from_args(request.args)
    data = list_movies(page, per_page, movie_filter, viewer_id=viewer_id())
    return jsonify(data)


@bp.get("/v1/movies/genre/<int:genre_id>")
def movies_by_genre(genre_id: int):
    if genre_id <= 0:
        abort(404, description="invalid genre id")
    page, per_page, movie_filter = listing_params_from_args(request.args)
    movie_filter = replace(movie_filter, filter_by_genre=genre_id)
    return jsonify(list_movies(page, per_page, movie_filter, viewer_id=viewer_id()))


@bp.get("/v1/movies/featured")
def featured():
    return jsonify({"movies": featured_movies(viewer_id=viewer_id())})


@bp.get("/v1/movie/get_one/<int:movie_id>")
def get_one(movie_id: int):
    return jsonify({"movie": get_movie_detail(movie_id, viewer_id=viewer_id())})


@bp.get("/v1/genres")
def genres():
    return jsonify({"genres": list_genres()})


@bp.post("/v1/user/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    user = authenticate(email, password)
    token = issue_token(user)
    return jsonify({
        "ok": True,
        "token": token["token"],
        "expiry": token["expiry"],
        "user": {"id": user["id"], "name": user["name"], "email": user["email"], "user_type": user["user_type"]},
    })


@bp.post("/v1/user/signup")
def signup():
    data = request.get_json(silent=True)
    if data is None:
        abort(400, description="invalid json request")
    register_user(data.get("full_name"), (data.get("email") or "").strip(), data.get("password"))
    return jsonify({
        "ok": True,
        "message": "User have sign up successfully now login with your credentials!",
    })


@bp.get("/v1/images/<path:filename>")
def serve_image(filename: str):
    store = get_image_store()
    if not isinstance(store, LocalImageStore):
        abort(404, description="image not found")
    path = store.path_for(filename)
    if path is None:
        abort(404, description="image not found")
    return send_from_directory(str(store.folder), path.name)
