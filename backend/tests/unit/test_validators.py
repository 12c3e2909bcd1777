import pytest

from mealprep.core.errors import ValidationError
from mealprep.models import Ingredient, MealType
from mealprep.utils.validators import (
    clamp,
    normalize_tags,
    safe_float,
    sanitize_text,
    validate_color,
    validate_day_of_week,
    validate_email,
    validate_ingredients,
    validate_meal_type,
    validate_minutes,
    validate_nutrition,
    validate_rating,
    validate_username,
)


def test_clamp_within_bounds():
    assert clamp(5, 0, 10) == 5
    assert clamp(-2, 0, 10) == 0
    assert clamp(12, 0, 10) == 10


def test_safe_float_handles_invalid_input():
    assert safe_float("3.14") == 3.14
    assert safe_float(None) == 0.0
    assert safe_float(object()) == 0.0


def test_sanitize_text_collapses_whitespace():
    assert sanitize_text("  hello \n  world ") == "hello world"
    assert sanitize_text("   ") is None
    assert sanitize_text("abcdef", 3) == "abc"


def test_normalize_tags_dedupes_case_insensitively_keeping_first_spelling():
    assert normalize_tags([" Quick", "quick", "", "Vegan", "QUICK", "  "]) == ["Quick", "Vegan"]
    assert normalize_tags(None) == []


def test_validate_ingredients_accepts_models_and_dicts():
    cleaned = validate_ingredients(
        [Ingredient(name=" Oats ", amount=50, unit="g"), {"name": "Milk", "amount": "200", "unit": "ml"}]
    )
    assert cleaned == [
        {"name": "Oats", "amount": 50.0, "unit": "g"},
        {"name": "Milk", "amount": 200.0, "unit": "ml"},
    ]


@pytest.mark.parametrize(
    "ingredients, field",
    [
        ([], "ingredients"),
        ([{"name": "Salt", "amount": 0}], "ingredients[0].amount"),
        ([{"name": "Salt", "amount": -1}], "ingredients[0].amount"),
        ([{"name": "  ", "amount": 1}], "ingredients[0].name"),
    ],
)
def test_validate_ingredients_rejects_bad_input(ingredients, field):
    with pytest.raises(ValidationError) as info:
        validate_ingredients(ingredients)
    assert info.value.field == field


def test_validate_nutrition_rejects_negative_values():
    assert validate_nutrition({"calories": 300, "protein": None}) == {"calories": 300.0}
    with pytest.raises(ValidationError):
        validate_nutrition({"fat": -1})


def test_validate_minutes():
    assert validate_minutes(0, "prep_time") == 0
    with pytest.raises(ValidationError):
        validate_minutes(-5, "prep_time")
    with pytest.raises(ValidationError):
        validate_minutes("ten", "cook_time")


@pytest.mark.parametrize("day", [-1, 7, True, "1", 2.0])
def test_validate_day_of_week_rejects_out_of_range(day):
    with pytest.raises(ValidationError):
        validate_day_of_week(day)


def test_validate_meal_type():
    assert validate_meal_type("lunch") is MealType.lunch
    with pytest.raises(ValidationError) as info:
        validate_meal_type("brunch")
    assert info.value.field == "meal_type"


def test_validate_rating():
    assert validate_rating(None) is None
    assert validate_rating(5) == 5
    for bad in (0, 6, 4.5, True):
        with pytest.raises(ValidationError):
            validate_rating(bad)


def test_validate_email_and_username():
    assert validate_email(" Cook@Example.COM ") == "cook@example.com"
    with pytest.raises(ValidationError):
        validate_email("not-an-email")
    assert validate_username("chef_01") == "chef_01"
    with pytest.raises(ValidationError):
        validate_username("a b")


def test_validate_color():
    assert validate_color("#4db6ac") == "#4DB6AC"
    with pytest.raises(ValidationError):
        validate_color("teal")
