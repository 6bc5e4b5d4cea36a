import pytest
from veritas.classes.category import eligible_positions, format_key, validate_category


def test_flex_categories_draw_from_several_positions():
    assert eligible_positions("FLEX") == ("RB", "WR", "TE")
    assert eligible_positions("SUPERFLEX") == ("QB", "RB", "WR", "TE")
    assert eligible_positions("DEF") == ("DEF",)


def test_format_key_normalizes_case():
    assert format_key("ppr") == "ppr"
    assert format_key(" HALF ") == "half"
    with pytest.raises(ValueError):
        format_key("PPR2")


def test_validate_category_rejects_unknown():
    assert validate_category("K") == "K"
    with pytest.raises(ValueError):
        validate_category("LB")
