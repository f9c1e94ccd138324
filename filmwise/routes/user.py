from flask import Blueprint, abort, g, jsonify, request

from ..auth import login_required
from ..errors import InputError
from ..images import save_upload
from ..interactions import add_comment, delete_comment, rate_movie, remove_favorite, toggle_favorite, update_comment

bp = Blueprint("user", __name__, url_prefix="/v1")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="invalid json")
    return data


def _int_field(data: dict, key: str, message: str) -> int:
    try:
        value = int(data.get(key))
    except (TypeError, ValueError):
        raise InputError(message)
    if value <= 0:
        raise InputError(message)
    return value


@bp.post("/rating/add")
@login_required
def add_rating():
    data = _json_body()
    movie_id = _int_field(data, "movie_id", "invalid movie id")
    rating_id, created = rate_movie(g.user["id"], movie_id, data.get("rating"))
    message = "Rating is added successfully!" if created else "Rating is updated successfully!"
    return jsonify({"ok": True, "id": rating_id, "message": message}), 201 if created else 200


@bp.post("/movie/comments/add")
@login_required
def add_movie_comment():
    data = _json_body()
    movie_id = _int_field(data, "movie_id", "invalid movie_id!")
    comment_id = add_comment(g.user["id"], movie_id, data.get("comment"))
    return jsonify({"ok": True, "id": comment_id, "message": "Comment is inserted successfully!"}), 201


@bp.put("/movie/comments/update")
@login_required
def update_movie_comment():
    data = _json_body()
    comment_id = _int_field(data, "comment_id", "invalid comment id")
    update_comment(g.user, comment_id, data.get("comment"))
    return jsonify({"ok": True, "id": comment_id, "message": "Comment is updated successfully!"})


@bp.delete("/movie/comments/<int:comment_id>")
@login_required
def delete_movie_comment(comment_id: int):
    delete_comment(g.user, comment_id)
    return jsonify({"ok": True, "id": comment_id, "message": "comment is successfully deleted!"})


@bp.post("/movie/favorites/<int:movie_id>")
@login_required
def toggle_movie_favorite(movie_id: int):
    favorited = toggle_favorite(g.user["id"], movie_id)
    message = (
        "movie is successfully added to favorites!"
        if favorited
        else "movie is successfully removed from favorites!"
    )
    return jsonify({"ok": True, "is_favorite": favorited, "message": message})


@bp.delete("/movie/favorites/<int:movie_id>")
@login_required
def remove_movie_favorite(movie_id: int):
    removed = remove_favorite(g.user["id"], movie_id)
    return jsonify({"ok": True, "is_favorite": False, "removed": removed})


@bp.post("/images/upload")
@login_required
def upload_image():
    image = save_upload(g.user["id"], request.files.get("image"))
    return jsonify({"ok": True, "image": image, "message": "image is uploaded successfully"}), 201
