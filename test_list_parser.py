"""
Tests for the free-text shopping list parser.
"""

import pytest

from heb_shopper.core.list_parser import ListParser, parse_shopping_list, fraction_to_number, extract_notes

EXAMPLE = """Groceries

[Canned Goods & Soups]
2 cups Chicken or Veg Broth

[Dairy]
1 cup Milk

[Produce]
1 large Sweet Onion (finely chopped)
1 1/2 cups Carrots (shredded or chopped)
- Celery

[Other]
1/2 cup Parmigiano (grated)"""


class TestParseShoppingList:
    def test_category_quantity_and_unit(self):
        items = parse_shopping_list("[Dairy]\n1 cup Milk")

        assert len(items) == 1
        milk = items[0]
        assert milk.name == "Milk"
        assert milk.category == "Dairy"
        assert milk.quantity == 1.0
        assert milk.unit == "cup"
        assert milk.raw == "1 cup Milk"

    def test_full_list_keeps_order_and_sections(self):
        items = parse_shopping_list(EXAMPLE)

        assert [i.name for i in items] == [
            "Chicken or Veg Broth",
            "Milk",
            "large Sweet Onion",
            "Carrots",
            "Celery",
            "Parmigiano",
        ]
        assert [i.category for i in items] == [
            "Canned Goods & Soups", "Dairy", "Produce", "Produce", "Produce", "Other"
        ]

    def test_mixed_fraction_and_trailing_note(self):
        carrots = parse_shopping_list("1 1/2 cups Carrots (shredded or chopped)")[0]

        assert carrots.quantity == 1.5
        assert carrots.unit == "cups"
        assert carrots.name == "Carrots"
        assert carrots.notes == "shredded or chopped"

    def test_quantity_without_unit(self):
        onion = parse_shopping_list("1 large Sweet Onion (finely chopped)")[0]

        assert onion.quantity == 1.0
        assert onion.unit is None
        assert onion.name == "large Sweet Onion"
        assert onion.notes == "finely chopped"

    @pytest.mark.parametrize("line", ["- Celery", "* Celery", "• Celery", "3. Celery", "3) Celery"])
    def test_bullets_are_stripped(self, line):
        item = parse_shopping_list(line)[0]
        assert item.name == "Celery"
        assert item.quantity is None

    def test_blank_and_generic_headers_yield_nothing(self):
        assert parse_shopping_list("") == []
        assert parse_shopping_list("\n   \n\t\n") == []
        assert parse_shopping_list("Groceries\nShopping List\n[Dairy]") == []

    def test_items_before_any_header_have_no_category(self):
        items = parse_shopping_list("Eggs\n[Dairy]\nButter")
        assert items[0].category is None
        assert items[1].category == "Dairy"

    def test_parse_is_idempotent(self):
        parser = ListParser()
        assert parser.parse(EXAMPLE) == parser.parse(EXAMPLE)

    def test_windows_line_endings(self):
        items = parse_shopping_list("[Dairy]\r\n1 cup Milk\r\n2 lbs Butter")
        assert [i.name for i in items] == ["Milk", "Butter"]
        assert items[1].unit == "lbs"


class TestHelpers:
    @pytest.mark.parametrize("value, expected", [
        ("1 1/2", 1.5),
        ("3/4", 0.75),
        ("2.5", 2.5),
        ("2", 2.0),
    ])
    def test_fraction_to_number(self, value, expected):
        assert fraction_to_number(value) == pytest.approx(expected)

    def test_extract_notes(self):
        assert extract_notes("Parmigiano (grated)") == ("Parmigiano", "grated")
        assert extract_notes("Milk") == ("Milk", None)
