"""
Free-text grocery list parser.

Turns lines like "1 1/2 cups Carrots (shredded)" into GroceryItem records.
Pure and idempotent: the same text always yields the same items.
"""

import re
from typing import List, Optional, Tuple

from heb_shopper.models.grocery_list import GroceryItem

CATEGORY_HEADER = re.compile(r"^\s*\[(?P<category>[^\[\]]+)\]\s*$")
MIXED_FRACTION = re.compile(r"^(\d+)\s+(\d+)/(\d+)$")
SIMPLE_FRACTION = re.compile(r"^(\d+)/(\d+)$")

SUPPORTED_UNITS = [
    "cup", "cups",
    "tsp", "teaspoon", "teaspoons",
    "tbsp", "tablespoon", "tablespoons",
    "oz", "ounce", "ounces",
    "lb", "lbs", "pound", "pounds",
    "g", "gram", "grams",
    "kg", "kilogram", "kilograms",
    "bag", "bags",
    "ct", "count",
    "can", "cans",
    "pkg", "package", "packages",
    "bottle", "bottles",
]

QUANTITY_UNIT = re.compile(
    r"^(?P<quantity>(?:\d+\s+\d+/\d+)|(?:\d+/\d+)|(?:\d+(?:\.\d+)?))"
    r"(?:\s*(?P<unit>" + "|".join(SUPPORTED_UNITS) + r"))?"
    r"(?:\s+(?:of|x))?"
    r"\s+(?P<remainder>.+)$",
    re.IGNORECASE,
)

BULLET_PREFIX = re.compile(r"^\s*(?:[-*•+]\s+|\d+[.)]\s+)?")
TRAILING_NOTE = re.compile(r"\((?P<note>[^)]+)\)\s*$")

GENERIC_SECTION_HEADERS = {"groceries", "grocery list", "shopping list"}


def fraction_to_number(value: str) -> float:
    """Convert "1 1/2", "3/4" or "2.5" into a float."""
    value = value.strip()
    mixed = MIXED_FRACTION.match(value)
    if mixed:
        whole, numerator, denominator = (int(g) for g in mixed.groups())
        return whole + numerator / denominator

    simple = SIMPLE_FRACTION.match(value)
    if simple:
        numerator, denominator = (int(g) for g in simple.groups())
        return numerator / denominator

    return float(value)


def extract_notes(name: str) -> Tuple[str, Optional[str]]:
    match = TRAILING_NOTE.search(name)
    if not match:
        return name.strip(), None
    cleaned = (name[:match.start()] + name[match.end():]).strip()
    return cleaned, match.group("note").strip()


def parse_shopping_list(text: str) -> List[GroceryItem]:
    """
    Parse list text into ordered GroceryItems.

    Blank lines and generic headers are dropped; "[Category]" headers set the
    category of every following item until the next header.
    """
    items: List[GroceryItem] = []
    current_category: Optional[str] = None

    for line in re.split(r"\r?\n", text or ""):
        trimmed = line.strip()
        if not trimmed:
            continue

        header = CATEGORY_HEADER.match(trimmed)
        if header:
            current_category = header.group("category").strip()
            continue

        if trimmed.lower() in GENERIC_SECTION_HEADERS:
            continue

        without_bullet = BULLET_PREFIX.sub("", trimmed, count=1).strip()
        if not without_bullet:
            continue

        quantity = None
        unit = None
        name_part = without_bullet

        match = QUANTITY_UNIT.match(without_bullet)
        if match and match.group("quantity"):
            quantity = fraction_to_number(match.group("quantity"))
            if match.group("unit"):
                unit = match.group("unit").lower()
            remainder = (match.group("remainder") or "").strip()
            if remainder:
                name_part = remainder

        name, notes = extract_notes(name_part)
        if not name:
            name = name_part.strip()

        items.append(GroceryItem(
            raw=line,
            name=name,
            category=current_category,
            quantity=quantity,
            unit=unit,
            notes=notes,
        ))

    return items


class ListParser:
    """Callable wrapper so the controller can take any parser with the same contract."""

    def parse(self, text: str) -> List[GroceryItem]:
        return parse_shopping_list(text)
