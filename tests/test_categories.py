from portfolio.core.categories import CATEGORIES, is_valid_category


def test_fixed_enumeration_in_order():
    assert CATEGORIES == ("nature", "wildlife", "architecture", "travel")


def test_membership_is_exact():
    assert is_valid_category("nature")
    assert not is_valid_category("Nature")
    assert not is_valid_category("landscape")
    assert not is_valid_category("")
    assert not is_valid_category(None)
    assert not is_valid_category(["nature"])


def test_categories_endpoint(client):
    r = client.get("/categories")
    assert r.status_code == 200
    assert r.json() == ["nature", "wildlife", "architecture", "travel"]
