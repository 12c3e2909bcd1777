import uuid

import pytest
from httpx import AsyncClient

from mealprep.deps import get_generation_service
from mealprep.services.generation import GeneratedRecipe, GeneratedSlot, GeneratedWeeklyPlan

RECIPE = {
    "name": "Shakshuka",
    "description": "Eggs poached in spiced tomato sauce",
    "ingredients": [
        {"name": "Eggs", "amount": 4, "unit": "pieces"},
        {"name": "Tomatoes", "amount": 400, "unit": "g"},
    ],
    "instructions": "Simmer the sauce, crack in the eggs, cover until set.",
    "cuisine": "Middle Eastern",
    "meal_type": "breakfast",
    "prep_time": 10,
    "cook_time": 20,
    "tags": ["vegetarian", "one-pan"],
}


async def _register(client: AsyncClient, username: str) -> dict:
    r = await client.post(
        "/users",
        json={"username": username, "email": f"{username}@example.com", "password": "correct-horse"},
    )
    assert r.status_code == 201, r.text
    return {"X-User-Id": r.json()["id"]}


async def _create_recipe(client: AsyncClient, headers: dict, **overrides) -> dict:
    r = await client.post("/recipes", json={**RECIPE, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_user_routes_require_identity(client: AsyncClient):
    assert (await client.get("/users/me")).status_code == 401
    assert (await client.get("/users/me", headers={"X-User-Id": "nope"})).status_code == 401
    r = await client.get("/users/me", headers={"X-User-Id": str(uuid.uuid4())})
    assert r.status_code == 404
    assert r.json()["error"] == "NotFoundError"


@pytest.mark.asyncio
async def test_register_login_and_profile(client: AsyncClient):
    headers = await _register(client, "chef")

    dup = await client.post(
        "/users", json={"username": "chef", "email": "x@example.com", "password": "correct-horse"}
    )
    assert dup.status_code == 409

    ok = await client.post("/users/login", json={"login": "chef@example.com", "password": "correct-horse"})
    assert ok.status_code == 200
    bad = await client.post("/users/login", json={"login": "chef", "password": "wrong-horse"})
    assert bad.status_code == 401

    r = await client.patch("/users/me", json={"display_name": "Chef"}, headers=headers)
    assert r.json()["display_name"] == "Chef"

    r = await client.post(
        "/users/me/password",
        json={"current_password": "nope-nope", "new_password": "another-horse"},
        headers=headers,
    )
    assert r.status_code == 422
    assert r.json()["field"] == "current_password"


@pytest.mark.asyncio
async def test_recipe_crud_and_search(client: AsyncClient):
    headers = await _register(client, "cook")
    recipe = await _create_recipe(client, headers)
    assert recipe["total_time"] == 30

    r = await client.get("/recipes", params={"q": "shakshuka", "tags": ["vegetarian"]})
    assert r.json()["total"] == 1

    r = await client.patch(f"/recipes/{recipe['id']}", json={"cook_time": 5}, headers=headers)
    assert r.status_code == 200
    assert r.json()["total_time"] == 15

    r = await client.patch(f"/recipes/{recipe['id']}", json={"rating_count": 9}, headers=headers)
    assert r.status_code == 422

    invalid = await client.post("/recipes", json={**RECIPE, "ingredients": []}, headers=headers)
    assert invalid.status_code == 422

    r = await client.delete(f"/recipes/{recipe['id']}", headers=headers)
    assert r.status_code == 204
    assert (await client.get(f"/recipes/{recipe['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_recipe_in_use_cannot_be_deleted(client: AsyncClient):
    headers = await _register(client, "planner")
    recipe = await _create_recipe(client, headers)
    plan = (await client.post(
        "/meal-plans", json={"name": "Week", "week_start_date": "2025-01-06"}, headers=headers
    )).json()
    r = await client.put(
        f"/meal-plans/{plan['id']}/items/0/breakfast", json={"recipe_id": recipe["id"]}, headers=headers
    )
    assert r.status_code == 200, r.text

    r = await client.delete(f"/recipes/{recipe['id']}", headers=headers)
    assert r.status_code == 409
    assert r.json()["details"] == [{"meal_plan_id": plan["id"], "meal_plan_name": "Week"}]

    r = await client.get(f"/recipes/{recipe['id']}/usage")
    assert r.json()[0]["slots"] == 1

    r = await client.delete(
        f"/recipes/{recipe['id']}", params={"remove_from_meal_plans": True}, headers=headers
    )
    assert r.status_code == 204
    items = await client.get(f"/meal-plans/{plan['id']}/items", headers=headers)
    assert items.json() == []


@pytest.mark.asyncio
async def test_meal_plan_flow(client: AsyncClient):
    headers = await _register(client, "weekly")
    recipe = await _create_recipe(client, headers)

    first = (await client.post(
        "/meal-plans", json={"name": "A", "week_start_date": "2025-01-06", "is_active": True}, headers=headers
    )).json()
    second = (await client.post(
        "/meal-plans", json={"name": "B", "week_start_date": "2025-01-13"}, headers=headers
    )).json()

    r = await client.post(f"/meal-plans/{second['id']}/activate", headers=headers)
    assert r.json()["is_active"] is True
    active = await client.get("/meal-plans/active", headers=headers)
    assert active.json()["id"] == second["id"]
    listing = await client.get("/meal-plans", params={"is_active": True}, headers=headers)
    assert [p["id"] for p in listing.json()["items"]] == [second["id"]]

    await client.put(f"/meal-plans/{first['id']}/items/1/lunch", json={"recipe_id": recipe["id"]}, headers=headers)
    moved = await client.post(
        f"/meal-plans/{first['id']}/items/move",
        json={"from_day": 1, "from_meal_type": "lunch", "to_day": 2, "to_meal_type": "dinner"},
        headers=headers,
    )
    assert moved.status_code == 200
    assert (moved.json()["day_of_week"], moved.json()["meal_type"]) == (2, "dinner")

    bad_slot = await client.put(
        f"/meal-plans/{first['id']}/items/9/lunch", json={"recipe_id": recipe["id"]}, headers=headers
    )
    assert bad_slot.status_code == 422

    removed = await client.delete(f"/meal-plans/{first['id']}/items/2/dinner", headers=headers)
    assert removed.json() == {"removed": True}

    other = await _register(client, "stranger")
    assert (await client.get(f"/meal-plans/{first['id']}", headers=other)).status_code == 404

    assert (await client.delete(f"/meal-plans/{first['id']}", headers=headers)).status_code == 204


@pytest.mark.asyncio
async def test_favorites_and_cache_invalidation(client: AsyncClient, cache):
    headers = await _register(client, "fan")
    user_id = headers["X-User-Id"]
    recipe = await _create_recipe(client, headers)

    assert (await client.get("/favorites", headers=headers)).json()["total"] == 0
    assert f"favorites:{user_id}" in cache

    r = await client.post("/favorites", json={"recipe_id": recipe["id"], "rating": 5, "tags": ["brunch"]}, headers=headers)
    assert r.status_code == 201
    assert r.json()["recipe"]["avg_rating"] == 5.0
    assert f"favorites:{user_id}" not in cache

    page = (await client.get("/favorites", headers=headers)).json()
    assert page["total"] == 1

    r = await client.post(f"/favorites/{recipe['id']}/use", headers=headers)
    assert r.json()["use_count"] == 1

    status = await client.post("/favorites/status", json={"recipe_ids": [recipe["id"]]}, headers=headers)
    assert status.json() == {recipe["id"]: True}

    analytics = (await client.get("/favorites/analytics", headers=headers)).json()
    assert analytics["total_favorites"] == 1
    assert analytics["top_cuisines"] == [{"name": "Middle Eastern", "count": 1}]

    tags = (await client.get("/favorites/analytics/tags", headers=headers)).json()
    assert tags["tag_usage"][0]["tag"] == "brunch"

    found = await client.post("/favorites/search", json={"search_query": "tomatoes"}, headers=headers)
    assert len(found.json()) == 1

    bad = await client.patch(f"/favorites/{recipe['id']}", json={"rating": 9}, headers=headers)
    assert bad.status_code == 422

    bulk = await client.post(
        "/favorites/bulk-delete", json={"recipe_ids": [recipe["id"], str(uuid.uuid4())]}, headers=headers
    )
    assert bulk.json()["succeeded"] == [recipe["id"]]
    assert len(bulk.json()["failed"]) == 1


@pytest.mark.asyncio
async def test_deleted_recipe_leaves_other_users_favorites(client: AsyncClient):
    owner = await _register(client, "owner")
    fan = await _register(client, "fan")
    recipe = await _create_recipe(client, owner)
    r = await client.post("/favorites", json={"recipe_id": recipe["id"], "rating": 4}, headers=fan)
    assert r.status_code == 201
    assert (await client.get("/favorites", headers=fan)).json()["total"] == 1

    r = await client.patch(f"/recipes/{recipe['id']}", json={"name": "Green Shakshuka"}, headers=owner)
    assert r.status_code == 200
    page = (await client.get("/favorites", headers=fan)).json()
    assert page["items"][0]["recipe"]["name"] == "Green Shakshuka"

    assert (await client.delete(f"/recipes/{recipe['id']}", headers=owner)).status_code == 204
    assert (await client.get("/favorites", headers=fan)).json()["total"] == 0


@pytest.mark.asyncio
async def test_only_the_creator_may_edit_or_delete_a_recipe(client: AsyncClient):
    owner = await _register(client, "author")
    stranger = await _register(client, "stranger")
    recipe = await _create_recipe(client, owner)

    r = await client.patch(f"/recipes/{recipe['id']}", json={"name": "Stolen"}, headers=stranger)
    assert r.status_code == 403
    assert r.json()["error"] == "ForbiddenError"
    r = await client.delete(f"/recipes/{recipe['id']}", headers=stranger)
    assert r.status_code == 403

    r = await client.get(f"/recipes/{recipe['id']}")
    assert r.json()["name"] == "Shakshuka"
    assert (await client.delete(f"/recipes/{recipe['id']}", headers=owner)).status_code == 204


@pytest.mark.asyncio
async def test_collections_api(client: AsyncClient):
    headers = await _register(client, "collector")
    recipe = await _create_recipe(client, headers)

    collection = (await client.post("/collections", json={"name": "Brunch"}, headers=headers)).json()
    assert collection["color"] == "#4DB6AC"
    assert (await client.post("/collections", json={"name": "Brunch"}, headers=headers)).status_code == 409

    added = await client.put(f"/collections/{collection['id']}/recipes/{recipe['id']}", headers=headers)
    assert added.json() == {"added": True}

    listing = (await client.get("/collections", headers=headers)).json()
    assert listing[0]["recipe_count"] == 1

    meals = (await client.get(f"/collections/{collection['id']}/recipes", headers=headers)).json()
    assert meals[0]["recipe"]["name"] == "Shakshuka"

    assert (await client.delete(f"/collections/{collection['id']}", headers=headers)).status_code == 204


class StubGenerator:
    def generate_weekly_plan(self, request):
        recipe = GeneratedRecipe(
            name="Generated Oats",
            ingredients=[{"name": "Oats", "amount": 60, "unit": "g"}],
            instructions="Soak overnight.",
        )
        return GeneratedWeeklyPlan(slots=[GeneratedSlot(day_of_week=d, meal_type="breakfast", recipe=recipe) for d in range(3)])

    def generate_recipe(self, request):
        return GeneratedRecipe(name="Broken", ingredients=[], instructions="n/a")


@pytest.mark.asyncio
async def test_generation_endpoints(client: AsyncClient, test_app):
    headers = await _register(client, "dreamer")

    r = await client.post("/recipes/generate", json={"prompt": "anything"}, headers=headers)
    assert r.status_code == 502

    test_app.dependency_overrides[get_generation_service] = StubGenerator
    r = await client.post(
        "/meal-plans/generate",
        json={"name": "Generated", "week_start_date": "2025-01-06", "activate": True},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    assert len(r.json()["items"]) == 3

    r = await client.post("/recipes/generate", json={"prompt": "anything"}, headers=headers)
    assert r.status_code == 502
    assert r.json()["error"] == "GenerationError"
