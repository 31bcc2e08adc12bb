from chatorder.services.catalog import CatalogEntry
from chatorder.services.catalog_search import (
    MAX_LINE_QTY,
    Ambiguous,
    Matched,
    NoMatch,
    VariantChoice,
    fuzzy_choose_option,
    parse_choice,
    parse_multi_item,
    parse_quantity,
    resolve_item,
)
from tests.fixtures_data import RESTAURANT_CATALOG

CATALOG = [
    CatalogEntry(id=item_id, canonical=canonical, display_name=display, variant=variant, price=price)
    for item_id, canonical, display, variant, price in RESTAURANT_CATALOG
]


def test_multi_item_parsing():
    items = parse_multi_item("2 chicken biryani, 1 coke and three gulab jamun")

    assert [(item.name, item.qty) for item in items] == [
        ("chicken biryani", 2),
        ("coke", 1),
        ("gulab jamun", 3),
    ]
    assert items[0].raw == "2 chicken biryani"


def test_multi_item_trailing_quantity():
    items = parse_multi_item("coke x2; pizza large")

    assert [(item.name, item.qty) for item in items] == [("coke", 2), ("pizza large", 1)]


def test_single_item_or_no_digit_is_not_a_list():
    assert parse_multi_item("2 chicken biryani") is None
    assert parse_multi_item("chicken biryani, coke") is None
    assert parse_multi_item("") is None


def test_exact_item_match():
    result = resolve_item("chicken biryani", CATALOG)

    assert isinstance(result, Matched)
    assert result.item.id == 1


def test_variant_choice_and_autoselect():
    choice = resolve_item("pizza", CATALOG)
    assert isinstance(choice, VariantChoice)
    assert [variant.variant for variant in choice.variants] == ["Small", "Medium", "Large"]

    picked = resolve_item("medium pizza", CATALOG)
    assert isinstance(picked, Matched)
    assert picked.item.id == 4


def test_ambiguous_and_missing():
    ambiguous = resolve_item("biryani", CATALOG)
    assert isinstance(ambiguous, Ambiguous)
    assert [match.canonical for match in ambiguous.candidates] == ["Chicken Biryani", "Mutton Biryani"]

    assert isinstance(resolve_item("paneer tikka", CATALOG), NoMatch)


def test_quantity_and_choice_parsing():
    assert parse_quantity("3") == 3
    assert parse_quantity("make it two") == 2
    assert parse_quantity("some") is None
    assert parse_choice(" 2 ") == 2
    assert parse_choice("2 please") is None


def test_fuzzy_option_choice():
    options = ["Chicken Biryani", "Mutton Biryani"]

    assert fuzzy_choose_option("mutton", options) == 1
    assert fuzzy_choose_option("xyz", options) is None


def test_quantity_above_the_line_cap_is_rejected():
    assert parse_quantity("99999999999") is None
    assert parse_quantity(str(MAX_LINE_QTY)) == MAX_LINE_QTY
    assert parse_quantity("5", max_qty=4) is None


def test_fuzzy_option_choice_tolerates_typos_and_refuses_ties():
    options = ["Chicken Biryani", "Mutton Biryani"]

    assert fuzzy_choose_option("muton", options) == 1
    assert fuzzy_choose_option("chiken", options) == 0
    assert fuzzy_choose_option("biryani", options) is None
