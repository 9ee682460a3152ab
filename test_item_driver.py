"""
Tests for the per-item driver steps and the item workflow graph.
"""

import pytest

from conftest import FakeElement, FakePage, product_card
from heb_shopper.agents.executor import DriverReporter, ItemDriver, ItemWorkflow, POINTER_SEQUENCE
from heb_shopper.core.cancellation import CancelToken
from heb_shopper.core.errors import NoAddControlFound, NoProductsFound, RunCancelled
from heb_shopper.core.list_parser import parse_shopping_list
from heb_shopper.models.events import ItemUpdateMessage, LogMessage


def item(line):
    return parse_shopping_list(line)[0]


@pytest.fixture
def sent():
    return []


@pytest.fixture
def reporter(sent):
    return DriverReporter("run-1", sent.append)


def phases(sent):
    return [m.phase for m in sent if isinstance(m, ItemUpdateMessage)]


class TestItemDriver:
    def test_search_url_encodes_query(self, fast_config):
        driver = ItemDriver(FakePage(), fast_config, CancelToken())
        url = driver.search_url(item("2 cups Chicken or Veg Broth"))
        assert url == "https://www.heb.com/search/?q=Chicken+or+Veg+Broth"

    def test_search_navigates_and_waits(self, fast_config, grocery_catalog):
        page = FakePage(grocery_catalog)
        driver = ItemDriver(page, fast_config, CancelToken())

        navigated = driver.search(item("1 cup Milk"))

        assert navigated is False
        assert page.visited == ["https://www.heb.com/search/?q=Milk"]
        assert page.loads == 1

    def test_search_reports_destroyed_context(self, fast_config):
        page = FakePage(destroys_on_navigation=True)
        driver = ItemDriver(page, fast_config, CancelToken())

        assert driver.search(item("Milk")) is True
        assert page.loads == 0

    def test_search_refuses_when_cancelled(self, fast_config):
        page = FakePage()
        token = CancelToken()
        token.cancel()

        with pytest.raises(RunCancelled):
            ItemDriver(page, fast_config, token).search(item("Milk"))
        assert page.visited == []

    def test_locate_product_returns_first_card(self, fast_config):
        first, second = product_card("Whole Milk"), product_card("2% Milk")
        driver = ItemDriver(FakePage(initial=[first, second]), fast_config, CancelToken())

        assert driver.locate_product("Milk") is first

    def test_locate_product_not_found(self, fast_config):
        driver = ItemDriver(FakePage(), fast_config, CancelToken())

        with pytest.raises(NoProductsFound) as exc_info:
            driver.locate_product("Milk")
        assert exc_info.value.message == 'No products found for "Milk"'

    def test_display_name_falls_back(self, fast_config):
        driver = ItemDriver(FakePage(), fast_config, CancelToken())
        blank = FakeElement({".product-card"}, children=[FakeElement({"h2"}, text="   ")])

        assert driver.extract_display_name(product_card("Whole Milk"), "Milk") == "Whole Milk"
        assert driver.extract_display_name(blank, "Milk") == "Milk"

    def test_add_to_cart_dispatches_pointer_sequence(self, fast_config):
        card = product_card("Whole Milk")
        button = card.children[1]
        driver = ItemDriver(FakePage(initial=[card]), fast_config, CancelToken())

        driver.add_to_cart(card)

        assert button.hovered
        assert button.events == list(POINTER_SEQUENCE)

    def test_add_to_cart_text_fallback(self, fast_config):
        button = FakeElement({"button"}, text="Add")
        card = product_card("Whole Milk", add_button=button)

        ItemDriver(FakePage(), fast_config, CancelToken()).add_to_cart(card)

        assert button.events == list(POINTER_SEQUENCE)

    def test_add_to_cart_without_control(self, fast_config):
        card = product_card("Whole Milk", add_button=FakeElement({"button"}, text="Details"))

        with pytest.raises(NoAddControlFound) as exc_info:
            ItemDriver(FakePage(), fast_config, CancelToken()).add_to_cart(card)
        assert exc_info.value.message == "Could not find add-to-cart button"


class TestItemWorkflow:
    def test_happy_path_reports_each_phase(self, fast_config, grocery_catalog, reporter, sent):
        page = FakePage(grocery_catalog)
        workflow = ItemWorkflow(ItemDriver(page, fast_config, CancelToken()), reporter)

        outcome = workflow.run(0, item("1 cup Milk"))

        assert outcome.phase == "completed"
        assert not outcome.navigated
        assert phases(sent) == ["searching", "evaluating", "adding-to-cart", "completed"]
        completed = [m for m in sent if isinstance(m, ItemUpdateMessage)][-1]
        assert completed.detail == 'Added "H-E-B Whole Milk, 1 gal" to cart'
        assert all(m.run_id == "run-1" for m in sent)

    def test_no_products_is_item_error(self, fast_config, reporter, sent):
        workflow = ItemWorkflow(ItemDriver(FakePage(), fast_config, CancelToken()), reporter)

        outcome = workflow.run(3, item("1 cup Milk"))

        assert outcome.phase == "error"
        assert phases(sent) == ["searching", "evaluating", "error"]
        error = [m for m in sent if isinstance(m, ItemUpdateMessage)][-1]
        assert error.item_index == 3
        assert error.error == 'No products found for "Milk"'
        logs = [m for m in sent if isinstance(m, LogMessage) and m.level == "error"]
        assert logs[-1].message.startswith('Failed to process "Milk"')

    def test_resume_entry_skips_search(self, fast_config, reporter, sent):
        page = FakePage(initial=[product_card("H-E-B Whole Milk, 1 gal")])
        workflow = ItemWorkflow(ItemDriver(page, fast_config, CancelToken()), reporter)

        outcome = workflow.run(0, item("Milk"), entry="locate_product")

        assert outcome.phase == "completed"
        assert page.visited == []
        assert phases(sent) == ["evaluating", "adding-to-cart", "completed"]

    def test_navigation_hands_off(self, fast_config, reporter, sent):
        page = FakePage(destroys_on_navigation=True)
        saved = []
        workflow = ItemWorkflow(
            ItemDriver(page, fast_config, CancelToken()), reporter, before_navigate=saved.append
        )

        outcome = workflow.run(2, item("Milk"))

        assert outcome.navigated
        assert outcome.phase is None
        assert saved == [2]
        assert phases(sent) == ["searching"]

    def test_cancellation_propagates(self, fast_config, grocery_catalog, reporter, sent):
        token = CancelToken()
        page = FakePage(grocery_catalog, on_navigate=lambda url: token.cancel())
        workflow = ItemWorkflow(ItemDriver(page, fast_config, token), reporter)

        with pytest.raises(RunCancelled):
            workflow.run(0, item("Milk"))
        assert "error" not in phases(sent)
