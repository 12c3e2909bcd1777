import uuid

import pytest

from mealprep.core.errors import ConflictError, NotFoundError, ValidationError
from mealprep.models import CollectionCreate, CollectionUpdate
from mealprep.repositories import collections as collections_repo
from mealprep.repositories import recipes as recipes_repo


def _create(session, user_id, name="Favourites", **kwargs):
    return collections_repo.create_collection(session, user_id, CollectionCreate(name=name, **kwargs))


def test_create_collection_defaults(db_session, user):
    collection = _create(db_session, user.id, tags=["Fast", "fast"])
    assert collection.color == "#4DB6AC"
    assert collection.icon == "heart"
    assert collection.is_public is False
    assert collection.tags == ["Fast"]
    assert collection.recipe_count == 0


def test_collection_names_unique_per_user(db_session, user, make_user):
    _create(db_session, user.id, name="Soups")
    with pytest.raises(ConflictError):
        _create(db_session, user.id, name="Soups")
    assert _create(db_session, make_user().id, name="Soups").name == "Soups"


def test_create_collection_rejects_bad_color(db_session, user):
    with pytest.raises(ValidationError):
        _create(db_session, user.id, color="blue")


def test_membership(db_session, user, make_recipe):
    collection = _create(db_session, user.id)
    first, second = make_recipe(name="First"), make_recipe(name="Second")

    assert collections_repo.add_to_collection(db_session, user.id, collection.id, first.id) is True
    assert collections_repo.add_to_collection(db_session, user.id, collection.id, first.id) is False
    assert collections_repo.add_to_collection(db_session, user.id, collection.id, second.id) is True

    meals = collections_repo.get_collection_meals(db_session, user.id, collection.id)
    assert {m.recipe.name for m in meals} == {"First", "Second"}
    assert collections_repo.get_collection(db_session, user.id, collection.id).recipe_count == 2

    assert collections_repo.remove_from_collection(db_session, user.id, collection.id, first.id) is True
    assert collections_repo.remove_from_collection(db_session, user.id, collection.id, first.id) is False

    with pytest.raises(NotFoundError):
        collections_repo.add_to_collection(db_session, user.id, collection.id, uuid.uuid4())


def test_list_collections_with_counts(db_session, user, make_recipe):
    empty = _create(db_session, user.id, name="Empty")
    full = _create(db_session, user.id, name="Full")
    collections_repo.add_to_collection(db_session, user.id, full.id, make_recipe().id)

    counts = {c.name: c.recipe_count for c in collections_repo.get_collections_for_user(db_session, user.id)}
    assert counts == {"Empty": 0, "Full": 1}
    assert empty.id != full.id


def test_update_and_delete_collection(db_session, user, make_recipe):
    collection = _create(db_session, user.id, name="Before")
    _create(db_session, user.id, name="Taken")
    recipe = make_recipe()
    collections_repo.add_to_collection(db_session, user.id, collection.id, recipe.id)

    updated = collections_repo.update_collection(
        db_session, user.id, collection.id, CollectionUpdate(name="After", color="#ff0000", is_public=True)
    )
    assert (updated.name, updated.color, updated.is_public) == ("After", "#FF0000", True)

    with pytest.raises(ConflictError):
        collections_repo.update_collection(db_session, user.id, collection.id, {"name": "Taken"})

    collections_repo.delete_collection(db_session, user.id, collection.id)
    with pytest.raises(NotFoundError):
        collections_repo.get_collection(db_session, user.id, collection.id)
    # Deleting a collection never deletes its recipes.
    assert recipes_repo.get_recipe_by_id(db_session, recipe.id).id == recipe.id


def test_collections_are_private_to_owner(db_session, user, make_user):
    collection = _create(db_session, user.id)
    intruder = make_user()
    with pytest.raises(NotFoundError):
        collections_repo.get_collection(db_session, intruder.id, collection.id)
    with pytest.raises(NotFoundError):
        collections_repo.delete_collection(db_session, intruder.id, collection.id)
