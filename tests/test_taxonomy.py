"""Tests for class taxonomies and the multiplier table."""
import pytest

from faraway.core.exceptions import TaxonomyError
from faraway.core.taxonomy import (
    CARD_TAXONOMY,
    COLOR,
    CONDITION,
    DEFAULT_MULTIPLIER_TABLE,
    MULTIPLIER,
    OPTION,
    SCENE_TAXONOMY,
    TEMPLE_TAXONOMY,
    VALUE,
    ClassTaxonomy,
    MultiplierTable,
    load_multiplier_table,
    load_taxonomy,
    parse_value,
)


class TestBuiltinTaxonomies:
    """The shipped class tables match the trained models."""

    def test_card_taxonomy_partition(self):
        assert len(CARD_TAXONOMY) == 43
        assert len(CARD_TAXONOMY.labels_in(COLOR)) == 4
        assert len(CARD_TAXONOMY.labels_in(VALUE)) == 19
        assert len(CARD_TAXONOMY.labels_in(MULTIPLIER)) == 12
        assert CARD_TAXONOMY.labels_in(CONDITION) == ["condition_chimera", "condition_gem", "condition_thistle"]
        assert CARD_TAXONOMY.labels_in(OPTION) == ["chimera", "gem", "hint", "night", "thistle"]

    def test_card_class_ids(self):
        assert CARD_TAXONOMY.label(0) == "card_blue"
        assert CARD_TAXONOMY.label(20) == "gem"
        assert CARD_TAXONOMY.label(42) == "value_9"
        assert CARD_TAXONOMY.label(43) is None
        assert CARD_TAXONOMY.label(-1) is None

    def test_temple_taxonomy_partition(self):
        assert len(TEMPLE_TAXONOMY) == 30
        assert "card_gray" in TEMPLE_TAXONOMY.labels_in(COLOR)
        assert TEMPLE_TAXONOMY.labels_in(VALUE) == ["value_1", "value_2", "value_4", "value_5"]
        assert len(TEMPLE_TAXONOMY.labels_in(MULTIPLIER)) == 16
        assert TEMPLE_TAXONOMY.labels_in(CONDITION) == []

    def test_scene_taxonomy_has_no_attributes(self):
        assert SCENE_TAXONOMY.class_names == ("card", "temple")
        assert SCENE_TAXONOMY.category("card") is None

    def test_every_multiplier_is_in_the_table(self):
        for taxonomy in (CARD_TAXONOMY, TEMPLE_TAXONOMY):
            for label in taxonomy.labels_in(MULTIPLIER):
                assert label in DEFAULT_MULTIPLIER_TABLE


class TestClassTaxonomy:
    """Validation and loading."""

    def test_duplicate_class_names_rejected(self):
        with pytest.raises(TaxonomyError):
            ClassTaxonomy(name="bad", version=1, class_names=("gem", "gem"))

    def test_unknown_category_rejected(self):
        with pytest.raises(TaxonomyError):
            ClassTaxonomy(name="bad", version=1, class_names=("gem",), categories={"gem": "shape"})

    def test_category_for_missing_label_rejected(self):
        with pytest.raises(TaxonomyError):
            ClassTaxonomy(name="bad", version=1, class_names=("gem",), categories={"hint": OPTION})

    def test_load_with_prefix_inference(self, tmp_path):
        path = tmp_path / "card.yaml"
        path.write_text(
            "name: card\n"
            "version: 2\n"
            "class_names: [card_blue, value_3, each_gem, condition_gem, gem, sparkle]\n"
            "options: [gem]\n"
        )

        taxonomy = load_taxonomy(path)

        assert taxonomy.version == 2
        assert taxonomy.category("card_blue") == COLOR
        assert taxonomy.category("condition_gem") == CONDITION
        assert taxonomy.category("gem") == OPTION
        assert taxonomy.category("sparkle") is None

    def test_load_with_explicit_categories(self, tmp_path):
        path = tmp_path / "temple.yaml"
        path.write_text(
            "name: temple\n"
            "class_names: [blue, five]\n"
            "categories:\n"
            "  blue: color\n"
            "  five: value\n"
        )

        taxonomy = load_taxonomy(path)

        assert taxonomy.version == 1
        assert taxonomy.labels_in(COLOR) == ["blue"]

    def test_load_missing_keys(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("version: 1\n")

        with pytest.raises(TaxonomyError):
            load_taxonomy(path)


class TestMultiplierTable:
    """Test suite for MultiplierTable."""

    def test_single_tag_count(self):
        assert DEFAULT_MULTIPLIER_TABLE.count("each_gem", {"gem": 3, "card_blue": 2}) == 3

    def test_two_color_count(self):
        counts = {"card_yellow": 2, "card_blue": 1, "card_red": 4}

        assert DEFAULT_MULTIPLIER_TABLE.count("each_yellow_or_blue", counts) == 3
        assert DEFAULT_MULTIPLIER_TABLE.count("each_red_or_yellow", counts) == 6

    def test_all_colors_ignores_gray(self):
        counts = {"card_yellow": 1, "card_blue": 1, "card_red": 1, "card_green": 1, "card_gray": 5}

        assert DEFAULT_MULTIPLIER_TABLE.count("each_all_colors", counts) == 4

    def test_unknown_multiplier_counts_zero(self):
        assert DEFAULT_MULTIPLIER_TABLE.count("each_dragon", {"dragon": 3}) == 0

    def test_with_entry_extends_a_copy(self):
        table = DEFAULT_MULTIPLIER_TABLE.with_entry("each_gray", ["card_gray"])

        assert table.count("each_gray", {"card_gray": 2}) == 2
        assert "each_gray" not in DEFAULT_MULTIPLIER_TABLE

    def test_empty_entry_rejected(self):
        with pytest.raises(TaxonomyError):
            MultiplierTable({"each_nothing": ()})

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "multipliers.yaml"
        path.write_text("each_gem: gem\neach_warm: [card_red, card_yellow]\n")

        table = load_multiplier_table(path)

        assert table.tags("each_gem") == ("gem",)
        assert table.count("each_warm", {"card_red": 1, "card_yellow": 2}) == 3


@pytest.mark.parametrize(
    "label,expected",
    [("value_12", 12), ("value_1", 1), ("", 0), ("value_x", 0), ("each_gem", 0)],
)
def test_parse_value(label, expected):
    assert parse_value(label) == expected
