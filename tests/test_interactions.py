import pytest

from filmwise.db import query_one
from filmwise.errors import NotFoundError, PermissionDenied, ValidationError
from filmwise.interactions import (
    add_comment,
    add_favorite,
    delete_comment,
    get_comment,
    is_favorite,
    rate_movie,
    remove_favorite,
    toggle_favorite,
    update_comment,
)
from filmwise.movies import get_movie_detail

ADMIN = {"id": 1, "name": "Admin", "user_type": "admin"}
ALICE = {"id": 2, "name": "Alice Smith", "user_type": "user"}
BOB = {"id": 3, "name": "Bob Jones", "user_type": "user"}


def test_first_rating_is_created(ctx):
    rating_id, created = rate_movie(2, 3, 8)
    assert created is True
    assert get_movie_detail(3)["rating"] == 8.0
    assert query_one("SELECT rating FROM ratings WHERE id = ?", (rating_id,))["rating"] == 8.0


def test_rating_again_updates_in_place(ctx):
    first_id, _ = rate_movie(2, 3, 8)
    second_id, created = rate_movie(2, 3, 3.5)
    assert created is False
    assert second_id == first_id
    assert query_one("SELECT COUNT(*) AS cnt FROM ratings WHERE movie_id = 3")["cnt"] == 1
    assert get_movie_detail(3)["rating"] == 3.5


def test_existing_seeded_rating_is_replaced(ctx):
    _, created = rate_movie(2, 1, 10)
    assert created is False
    assert get_movie_detail(1)["rating"] == 8.0


@pytest.mark.parametrize("value", [0, 0.5, 10.5, "ten", None, True, False])
def test_rating_out_of_range(ctx, value):
    with pytest.raises(ValidationError) as info:
        rate_movie(2, 3, value)
    assert info.value.errors == {"rating": "movie rating should be between 1.0 to 10.0"}


def test_rating_unknown_movie(ctx):
    with pytest.raises(NotFoundError):
        rate_movie(2, 999, 5)


def test_toggle_favorite_round_trip(ctx):
    assert is_favorite(2, 3) is False
    assert toggle_favorite(2, 3) is True
    assert is_favorite(2, 3) is True
    assert toggle_favorite(2, 3) is False
    assert is_favorite(2, 3) is False


def test_add_favorite_is_idempotent(ctx):
    assert add_favorite(2, 4) is True
    assert add_favorite(2, 4) is False
    assert query_one("SELECT COUNT(*) AS cnt FROM favorites WHERE user_id = 2 AND movie_id = 4")["cnt"] == 1


def test_remove_missing_favorite(ctx):
    assert remove_favorite(2, 4) is False
    assert remove_favorite(3, 3) is True


def test_favorite_unknown_movie(ctx):
    with pytest.raises(NotFoundError):
        toggle_favorite(2, 999)


def test_add_comment(ctx):
    comment_id = add_comment(2, 3, "  Charming and whimsical.  ")
    comment = get_comment(comment_id)
    assert comment["comment"] == "Charming and whimsical."
    assert comment["user_name"] == "Alice Smith"
    assert comment["movie_id"] == 3


def test_comment_length_is_validated(ctx):
    with pytest.raises(ValidationError) as info:
        add_comment(2, 3, "too short")
    assert "comment" in info.value.errors


def test_comment_on_unknown_movie(ctx):
    with pytest.raises(NotFoundError):
        add_comment(2, 999, "This movie does not exist.")


def test_owner_can_update_comment(ctx):
    update_comment(ALICE, 1, "Changed my mind, still brilliant.")
    assert get_comment(1)["comment"] == "Changed my mind, still brilliant."


def test_other_user_cannot_update_comment(ctx):
    with pytest.raises(PermissionDenied):
        update_comment(BOB, 1, "Rewriting someone else's words.")


def test_admin_can_delete_any_comment(ctx):
    delete_comment(ADMIN, 2)
    with pytest.raises(NotFoundError):
        get_comment(2)


def test_other_user_cannot_delete_comment(ctx):
    with pytest.raises(PermissionDenied):
        delete_comment(ALICE, 2)
