"""
Tests for ordered selector fallback and bounded polling.
"""

import pytest

from conftest import FakeElement
from heb_shopper.core.errors import NotFound
from heb_shopper.core.selector_resolver import (
    Locator, SelectorResolver, PRODUCT_CARD_LOCATORS, ADD_CONTROL_LOCATORS, locators
)


def scope_with(*elements):
    return FakeElement(children=list(elements))


class TestSelectorResolver:
    def test_highest_priority_candidate_wins(self, fake_clock):
        legacy = FakeElement({".product-card"})
        current = FakeElement({"[data-qa='product-card']"})
        resolver = SelectorResolver(sleep=fake_clock.sleep, clock=fake_clock)

        match = resolver.locate(scope_with(legacy, current), PRODUCT_CARD_LOCATORS, timeout=1)

        assert match.locator.css == "[data-qa='product-card']"
        assert match.first is current
        assert fake_clock.sleeps == []

    def test_falls_back_to_later_candidate(self, fake_clock):
        card = FakeElement({".product-grid__item"})
        resolver = SelectorResolver(sleep=fake_clock.sleep, clock=fake_clock)

        match = resolver.locate(scope_with(card), PRODUCT_CARD_LOCATORS, timeout=1)

        assert match.locator.css == ".product-grid__item"
        assert match.elements == [card]

    def test_polls_until_element_appears(self, fake_clock):
        scope = scope_with()
        card = FakeElement({".product-card"})

        def sleep(seconds):
            fake_clock.sleep(seconds)
            if len(fake_clock.sleeps) == 3:
                scope.children.append(card)

        resolver = SelectorResolver(poll_interval=0.2, sleep=sleep, clock=fake_clock)
        match = resolver.locate(scope, PRODUCT_CARD_LOCATORS, timeout=8)

        assert match.first is card
        assert fake_clock.sleeps == [0.2, 0.2, 0.2]

    def test_not_found_after_timeout(self, fake_clock):
        resolver = SelectorResolver(poll_interval=0.2, sleep=fake_clock.sleep, clock=fake_clock)

        with pytest.raises(NotFound) as exc_info:
            resolver.locate(scope_with(), PRODUCT_CARD_LOCATORS, timeout=1)

        assert exc_info.value.timeout == 1
        assert list(exc_info.value.candidates) == PRODUCT_CARD_LOCATORS
        assert sum(fake_clock.sleeps) == pytest.approx(1.0)

    def test_zero_timeout_tries_once(self, fake_clock):
        resolver = SelectorResolver(sleep=fake_clock.sleep, clock=fake_clock)

        with pytest.raises(NotFound):
            resolver.locate(scope_with(), locators(".missing"), timeout=0)

        assert fake_clock.sleeps == []


class TestLocator:
    def test_text_pattern_filters_case_insensitively(self):
        remove = FakeElement({"button"}, text="Remove")
        add = FakeElement({"button"}, text="ADD to cart")
        locator = Locator(css="button", text_pattern=r"\badd\b")

        assert locator.find_all(scope_with(remove, add)) == [add]

    def test_text_add_button_is_last_resort(self):
        button = FakeElement({"button"}, text="Add")
        match = SelectorResolver().try_once(scope_with(button), ADD_CONTROL_LOCATORS)

        assert match.locator == ADD_CONTROL_LOCATORS[-1]
        assert str(match.locator) == r"button /\badd\b/"
