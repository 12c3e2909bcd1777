import threading
import uuid

import pytest

from mealprep.core.errors import MealPrepError, NotFoundError, TransientStoreError, ValidationError
from mealprep.models import FavoriteFilters, FavoriteUpdate, MealType
from mealprep.repositories import favorites as favorites_repo
from mealprep.repositories import recipes as recipes_repo


def test_add_favorite_sets_defaults(db_session, make_recipe, user):
    recipe = make_recipe()
    favorite = favorites_repo.add_favorite(db_session, user.id, recipe.id, rating=4, notes=" tasty ", tags=["Quick", "quick"])

    assert favorite.personal_rating == 4
    assert favorite.personal_notes == "tasty"
    assert favorite.tags == ["Quick"]
    assert favorite.use_count == 0
    assert favorite.last_used_at is None
    assert favorite.recipe.id == recipe.id
    assert favorites_repo.is_favorited(db_session, user.id, recipe.id)


def test_add_favorite_twice_refreshes_instead_of_duplicating(db_session, make_recipe, user):
    recipe = make_recipe()
    favorites_repo.add_favorite(db_session, user.id, recipe.id, rating=2, tags=["keep"])
    favorites_repo.increment_use_count(db_session, user.id, recipe.id)

    again = favorites_repo.add_favorite(db_session, user.id, recipe.id, rating=5)

    assert again.personal_rating == 5
    assert again.tags == ["keep"]
    assert again.use_count == 1
    assert favorites_repo.get_user_favorites(db_session, user.id).total == 1
    assert recipes_repo.get_recipe_by_id(db_session, recipe.id).avg_rating == 5.0


def test_add_favorite_for_missing_recipe(db_session, user):
    with pytest.raises(NotFoundError):
        favorites_repo.add_favorite(db_session, user.id, uuid.uuid4())


def test_add_favorite_rejects_bad_rating(db_session, make_recipe, user):
    recipe = make_recipe()
    with pytest.raises(ValidationError):
        favorites_repo.add_favorite(db_session, user.id, recipe.id, rating=6)
    assert not favorites_repo.is_favorited(db_session, user.id, recipe.id)


def test_remove_favorite(db_session, make_recipe, user):
    recipe = make_recipe()
    favorites_repo.add_favorite(db_session, user.id, recipe.id, rating=3)

    assert favorites_repo.remove_favorite(db_session, user.id, recipe.id) is True
    assert favorites_repo.remove_favorite(db_session, user.id, recipe.id) is False

    refreshed = recipes_repo.get_recipe_by_id(db_session, recipe.id)
    assert (refreshed.avg_rating, refreshed.rating_count) == (0.0, 0)


def test_update_favorite_fields(db_session, make_recipe, user):
    recipe = make_recipe()
    favorites_repo.add_favorite(db_session, user.id, recipe.id)

    favorite = favorites_repo.update_favorite_rating(db_session, user.id, recipe.id, 3)
    assert favorite.personal_rating == 3
    assert favorite.recipe.rating_count == 1

    favorite = favorites_repo.update_favorite_notes(db_session, user.id, recipe.id, "  ")
    assert favorite.personal_notes is None

    favorite = favorites_repo.update_favorite_tags(db_session, user.id, recipe.id, ["b", "a"])
    assert favorite.tags == ["b", "a"]

    favorite = favorites_repo.update_favorite(db_session, user.id, recipe.id, FavoriteUpdate(rating=None))
    assert favorite.personal_rating is None
    assert favorite.recipe.rating_count == 0

    with pytest.raises(ValidationError):
        favorites_repo.update_favorite(db_session, user.id, recipe.id, FavoriteUpdate())
    with pytest.raises(NotFoundError):
        favorites_repo.update_favorite_rating(db_session, user.id, uuid.uuid4(), 2)


def test_increment_use_count(db_session, make_recipe, user):
    recipe = make_recipe()
    favorites_repo.add_favorite(db_session, user.id, recipe.id)

    for _ in range(3):
        favorite = favorites_repo.increment_use_count(db_session, user.id, recipe.id)

    assert favorite.use_count == 3
    assert favorite.last_used_at is not None

    with pytest.raises(NotFoundError):
        favorites_repo.increment_use_count(db_session, user.id, uuid.uuid4())


def test_listing_and_status(db_session, make_recipe, user, make_user):
    breakfast = make_recipe(name="Porridge", meal_type=MealType.breakfast)
    dinner = make_recipe(name="Stew", meal_type=MealType.dinner)
    unloved = make_recipe(name="Plain")
    favorites_repo.add_favorite(db_session, user.id, breakfast.id)
    favorites_repo.add_favorite(db_session, user.id, dinner.id)
    favorites_repo.add_favorite(db_session, make_user().id, unloved.id)

    page = favorites_repo.get_user_favorites(db_session, user.id, limit=1)
    assert page.total == 2
    assert len(page.items) == 1
    assert page.items[0].recipe.name == "Stew"

    by_meal = favorites_repo.get_favorites_by_meal_type(db_session, user.id, "breakfast")
    assert [f.recipe.name for f in by_meal] == ["Porridge"]

    status = favorites_repo.get_favorite_status_for_recipes(
        db_session, user.id, [breakfast.id, unloved.id, breakfast.id]
    )
    assert status == {breakfast.id: True, unloved.id: False}
    assert favorites_repo.get_favorite_status_for_recipes(db_session, user.id, []) == {}


def test_search_favorites(db_session, make_recipe, user):
    curry = make_recipe(name="Curry", cuisine="Thai")
    pasta = make_recipe(name="Pasta", cuisine="Italian")
    favorites_repo.add_favorite(db_session, user.id, curry.id, rating=5, tags=["spicy"])
    favorites_repo.add_favorite(db_session, user.id, pasta.id, rating=2)

    found = favorites_repo.search_favorites(db_session, user.id, FavoriteFilters(tags=["SPICY"]))
    assert [f.recipe_id for f in found] == [curry.id]

    ranked = favorites_repo.search_favorites(
        db_session, user.id, FavoriteFilters(sort_by="rating", sort_order="asc")
    )
    assert [f.recipe_id for f in ranked] == [pasta.id, curry.id]


def test_bulk_delete_reports_per_item_outcome(db_session, make_recipe, user):
    kept, gone = make_recipe(), make_recipe()
    favorites_repo.add_favorite(db_session, user.id, gone.id)
    missing = uuid.uuid4()

    result = favorites_repo.bulk_delete(db_session, user.id, [gone.id, missing])

    assert result.succeeded == [gone.id]
    assert set(result.failed) == {str(missing)}
    assert not result.ok
    assert not favorites_repo.is_favorited(db_session, user.id, gone.id)
    assert not favorites_repo.is_favorited(db_session, user.id, kept.id)


def test_bulk_update_tags_replace_and_merge(db_session, make_recipe, user):
    first, second = make_recipe(), make_recipe()
    favorites_repo.add_favorite(db_session, user.id, first.id, tags=["old"])
    favorites_repo.add_favorite(db_session, user.id, second.id)
    missing = uuid.uuid4()

    merged = favorites_repo.bulk_update_tags(
        db_session, user.id, [first.id, missing], ["new", "OLD"], replace=False
    )
    assert merged.succeeded == [first.id]
    assert str(missing) in merged.failed
    assert favorites_repo.get_favorite(db_session, user.id, first.id).tags == ["old", "new"]

    replaced = favorites_repo.bulk_update_tags(db_session, user.id, [first.id, second.id], ["weekday"])
    assert replaced.ok
    assert favorites_repo.get_favorite(db_session, user.id, first.id).tags == ["weekday"]
    assert favorites_repo.get_favorite(db_session, user.id, second.id).tags == ["weekday"]


def test_concurrent_adds_of_one_favorite_keep_a_single_row(
    db_session, session_factory, make_recipe, user
):
    recipe = make_recipe()
    written, errors = [], []

    def add(rating):
        with session_factory() as session:
            for _ in range(3):
                try:
                    favorites_repo.add_favorite(session, user.id, recipe.id, rating=rating)
                    written.append(rating)
                    return
                except TransientStoreError:
                    continue
                except MealPrepError as exc:
                    errors.append(exc)
                    return

    threads = [threading.Thread(target=add, args=(rating,)) for rating in (1, 2, 3, 4, 5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert written
    favorites = favorites_repo.get_all_favorites(db_session, user.id)
    assert len(favorites) == 1
    assert favorites[0].personal_rating in written
    refreshed = recipes_repo.get_recipe_by_id(db_session, recipe.id)
    assert refreshed.rating_count == 1
    assert refreshed.avg_rating == float(favorites[0].personal_rating)
