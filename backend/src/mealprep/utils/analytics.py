# backend/src/mealprep/utils/analytics.py
"""Pure reducers over already-fetched favorites.

Nothing here touches the database. Rankings sort by count descending and keep
first-seen order between equal counts, so the same input always produces the
same output.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from mealprep.models.common import as_utc, utcnow
from mealprep.models.favorites import FavoriteFilters, FavoriteRead

COOKING_TIME_BUCKETS: Tuple[Tuple[str, int, Optional[int]], ...] = (
    ("0-15", 0, 15),
    ("16-30", 16, 30),
    ("31-45", 31, 45),
    ("46-60", 46, 60),
    ("60+", 61, None),
)

ACTIVE_TAG_WINDOW = timedelta(days=30)

_QUANTITY = re.compile(r"^(?:\d+(?:[.,/]\d+)?(?:-\d+(?:[.,/]\d+)?)?|[½¼¾⅓⅔⅛])[a-z]*$", re.IGNORECASE)
_UNITS = {
    "g", "gram", "grams", "kg", "mg", "ml", "l", "liter", "liters", "litre", "litres",
    "cup", "cups", "tbsp", "tablespoon", "tablespoons", "tsp", "teaspoon", "teaspoons",
    "oz", "ounce", "ounces", "lb", "lbs", "pound", "pounds", "pinch", "dash",
    "piece", "pieces", "clove", "cloves", "slice", "slices", "can", "cans",
    "handful", "bunch", "stick", "sticks", "of",
}


@dataclass
class CountEntry:
    name: str
    count: int


@dataclass
class TimeBucket:
    range: str
    count: int


@dataclass
class TagUsage:
    tag: str
    count: int
    percentage: float
    average_rating: float
    cuisines: List[str] = field(default_factory=list)


@dataclass
class TagAnalytics:
    total_tags: int
    active_tags: int
    tag_usage: List[TagUsage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FavoriteAnalytics:
    total_favorites: int
    average_rating: float
    top_cuisines: List[CountEntry] = field(default_factory=list)
    top_ingredients: List[CountEntry] = field(default_factory=list)
    cooking_time_preferences: List[TimeBucket] = field(default_factory=list)
    meal_type_distribution: List[CountEntry] = field(default_factory=list)
    most_used: List[FavoriteRead] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_favorites": self.total_favorites,
            "average_rating": self.average_rating,
            "top_cuisines": [asdict(entry) for entry in self.top_cuisines],
            "top_ingredients": [asdict(entry) for entry in self.top_ingredients],
            "cooking_time_preferences": [asdict(b) for b in self.cooking_time_preferences],
            "meal_type_distribution": [asdict(entry) for entry in self.meal_type_distribution],
            "most_used": [fav.model_dump(mode="json") for fav in self.most_used],
        }


def round_half_up(value: float, ndigits: int = 1) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def _rank(values: Iterable[str], n: Optional[int] = None) -> List[CountEntry]:
    # dict keeps insertion order; sorted() is stable, so ties stay first-seen.
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if n is not None:
        ranked = ranked[:n]
    return [CountEntry(name=name, count=count) for name, count in ranked]


def ingredient_name(text: str) -> str:
    """Reduce an ingredient line to its name.

    ``"2 cups flour"`` -> ``"flour"``, ``"avocado 1 piece"`` -> ``"avocado"``.
    """
    tokens = text.split()
    while tokens and (_QUANTITY.match(tokens[0]) or tokens[0].lower().rstrip(".") in _UNITS):
        tokens.pop(0)
    for index, token in enumerate(tokens):
        if _QUANTITY.match(token):
            tokens = tokens[:index]
            break
    name = " ".join(tokens).strip(" ,;:-").lower()
    return name or text.strip().lower()


def average_rating(favorites: Sequence[FavoriteRead]) -> float:
    ratings = [fav.personal_rating for fav in favorites if fav.personal_rating is not None]
    if not ratings:
        return 0.0
    return round_half_up(sum(ratings) / len(ratings), 1)


def top_cuisines(favorites: Sequence[FavoriteRead], n: int = 5) -> List[CountEntry]:
    return _rank((fav.recipe.cuisine for fav in favorites if fav.recipe.cuisine), n)


def top_ingredients(favorites: Sequence[FavoriteRead], n: int = 10) -> List[CountEntry]:
    names = (
        ingredient_name(ingredient.name)
        for fav in favorites
        for ingredient in fav.recipe.ingredients
    )
    return _rank(names, n)


def cooking_time_histogram(favorites: Sequence[FavoriteRead]) -> List[TimeBucket]:
    buckets = [TimeBucket(range=label, count=0) for label, _, _ in COOKING_TIME_BUCKETS]
    for fav in favorites:
        minutes = fav.recipe.total_time
        for bucket, (_, low, high) in zip(buckets, COOKING_TIME_BUCKETS):
            if minutes >= low and (high is None or minutes <= high):
                bucket.count += 1
                break
    return buckets


def meal_type_distribution(favorites: Sequence[FavoriteRead]) -> List[CountEntry]:
    return _rank(fav.recipe.meal_type.value for fav in favorites if fav.recipe.meal_type)


def most_used(favorites: Sequence[FavoriteRead], n: int = 5) -> List[FavoriteRead]:
    return sorted(favorites, key=lambda fav: fav.use_count, reverse=True)[:n]


def tag_usage(favorites: Sequence[FavoriteRead], now: Optional[datetime] = None) -> TagAnalytics:
    """Per-tag counts over the personal tags of each favorite."""
    now = now or utcnow()
    stats: Dict[str, Dict[str, Any]] = {}
    for fav in favorites:
        for tag in fav.tags:
            entry = stats.setdefault(tag, {"count": 0, "ratings": [], "cuisines": []})
            entry["count"] += 1
            if fav.personal_rating is not None:
                entry["ratings"].append(fav.personal_rating)
            cuisine = fav.recipe.cuisine
            if cuisine and cuisine not in entry["cuisines"]:
                entry["cuisines"].append(cuisine)

    total = len(favorites)
    usage = [
        TagUsage(
            tag=tag,
            count=data["count"],
            percentage=round_half_up(data["count"] / total * 100, 1) if total else 0.0,
            average_rating=(
                round_half_up(sum(data["ratings"]) / len(data["ratings"]), 1)
                if data["ratings"]
                else 0.0
            ),
            cuisines=data["cuisines"],
        )
        for tag, data in stats.items()
    ]
    usage.sort(key=lambda item: item.count, reverse=True)

    cutoff = now - ACTIVE_TAG_WINDOW
    active = {
        tag
        for fav in favorites
        if fav.last_used_at is not None and as_utc(fav.last_used_at) > cutoff
        for tag in fav.tags
    }
    return TagAnalytics(total_tags=len(stats), active_tags=len(active), tag_usage=usage)


def build_favorite_analytics(favorites: Sequence[FavoriteRead]) -> FavoriteAnalytics:
    return FavoriteAnalytics(
        total_favorites=len(favorites),
        average_rating=average_rating(favorites),
        top_cuisines=top_cuisines(favorites),
        top_ingredients=top_ingredients(favorites),
        cooking_time_preferences=cooking_time_histogram(favorites),
        meal_type_distribution=meal_type_distribution(favorites),
        most_used=most_used(favorites),
    )


# ----------------------------
# Favorite search (in-memory)
# ----------------------------

def _matches_query(fav: FavoriteRead, query: str) -> bool:
    recipe = fav.recipe
    haystacks = [recipe.name, recipe.description or ""]
    haystacks.extend(ingredient.name for ingredient in recipe.ingredients)
    haystacks.extend(recipe.tags)
    haystacks.extend(fav.tags)
    return any(query in text.casefold() for text in haystacks)


_SORT_KEYS: Dict[str, Callable[[FavoriteRead], Any]] = {
    "rating": lambda fav: fav.personal_rating or 0,
    "date": lambda fav: fav.added_at,
    "usage": lambda fav: fav.use_count,
    "name": lambda fav: fav.recipe.name.casefold(),
}


def filter_favorites(favorites: Sequence[FavoriteRead], filters: FavoriteFilters) -> List[FavoriteRead]:
    result = list(favorites)

    query = (filters.search_query or "").strip().casefold()
    if query:
        result = [fav for fav in result if _matches_query(fav, query)]

    if filters.tags:
        wanted = {tag.casefold() for tag in filters.tags}
        result = [
            fav
            for fav in result
            if wanted.intersection(t.casefold() for t in list(fav.tags) + list(fav.recipe.tags))
        ]

    if filters.cuisines:
        cuisines = {c.casefold() for c in filters.cuisines}
        result = [fav for fav in result if (fav.recipe.cuisine or "").casefold() in cuisines]

    if filters.meal_types:
        result = [fav for fav in result if fav.recipe.meal_type in filters.meal_types]

    if filters.rating_range:
        low, high = filters.rating_range
        result = [
            fav
            for fav in result
            if fav.personal_rating is not None and low <= fav.personal_rating <= high
        ]

    if filters.difficulties:
        result = [fav for fav in result if fav.recipe.difficulty in filters.difficulties]

    # Stable two-pass sort: id order first, so equal keys keep a fixed order.
    result.sort(key=lambda fav: str(fav.recipe_id))
    result.sort(key=_SORT_KEYS[filters.sort_by], reverse=filters.sort_order == "desc")
    return result
