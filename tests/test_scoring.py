from sensitrack.schemas import Product
from sensitrack.search.scoring import score


def _product(name: str, brands: str = "") -> Product:
    return Product(code="1", product_name=name, brands=brands)


def test_name_prefix_with_both_bonuses():
    assert score(_product("Peanut Butter", "Acme"), "peanut") == 1080


def test_tiers_do_not_stack():
    # Matches name prefix, name word and brand prefix: only the first counts.
    assert score(_product("Peanut peanut", "Peanut Co"), "peanut") == 1080


def test_name_word_boundary():
    assert score(_product("Organic Banana"), "banana") == 880
    assert score(_product("Choco-banana"), "banana") == 880


def test_brand_prefix_and_brand_word():
    assert score(_product("Crunchy Spread", "Nutella Ferrero"), "nutella") == 680
    assert score(_product("Crunchy Spread", "Ferrero Nutella"), "nutella") == 480


def test_substring_tiers():
    assert score(_product("Supermilk"), "milk") == 280
    assert score(_product("Spread", "Superacme"), "acme") == 180


def test_case_insensitive():
    assert score(_product("BANANA CHIPS"), "banana") == score(_product("banana chips"), "BaNaNa")


def test_long_name_loses_bonuses():
    name = "Banana " + "very long descriptive words " * 3
    assert len(name) >= 50
    assert score(_product(name), "banana") == 1000


def test_no_match_scores_zero():
    assert score(_product("Oat Milk", "Acme"), "peanut") == 0


def test_brand_anywhere_always_below_name_anywhere():
    best_tier6 = score(_product("Tea", "Xacmex"), "acm")
    worst_tier5 = score(_product("Xacm " + "y" * 60 + " a b c"), "acm")
    assert best_tier6 < worst_tier5
