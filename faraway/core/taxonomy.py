"""
Class taxonomies and the multiplier table.

A taxonomy maps a model's class indices to labels and sorts the labels
into five disjoint attribute categories:

    color       card_blue, card_green, ...   (best-of)
    value       value_1, value_12, ...       (best-of)
    multiplier  each_gem, each_all_colors... (best-of)
    condition   condition_gem, ...           (all kept)
    option      gem, chimera, ...            (all kept)

One versioned taxonomy exists per model (scene, card, temple). They
are plain data, so a retrained model only needs a new taxonomy, never
changes to the decoding or scoring code. Both taxonomies and the
multiplier table can be loaded from YAML files.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import yaml

from .exceptions import TaxonomyError

logger = logging.getLogger(__name__)

COLOR = "color"
VALUE = "value"
MULTIPLIER = "multiplier"
CONDITION = "condition"
OPTION = "option"

CATEGORIES = (COLOR, VALUE, MULTIPLIER, CONDITION, OPTION)

_PREFIXES = (
    ("card_", COLOR),
    ("value_", VALUE),
    ("each_", MULTIPLIER),
    ("condition_", CONDITION),
)

OPTION_NAMES = ("chimera", "gem", "hint", "night", "thistle")
BASE_COLORS = ("card_blue", "card_green", "card_red", "card_yellow")


@dataclass(frozen=True)
class ClassTaxonomy:
    """Versioned class table of one detection model."""

    name: str
    version: int
    class_names: tuple[str, ...]
    categories: Mapping[str, str] = field(default_factory=dict)
    """Label -> category. Labels absent from it are not attributes."""

    def __post_init__(self):
        if len(set(self.class_names)) != len(self.class_names):
            raise TaxonomyError(f"Taxonomy {self.name} has duplicate class names.")

        known = set(self.class_names)
        for label, category in self.categories.items():
            if label not in known:
                raise TaxonomyError(f"Taxonomy {self.name}: '{label}' is not a class of the model.")
            if category not in CATEGORIES:
                raise TaxonomyError(f"Taxonomy {self.name}: unknown category '{category}' for '{label}'.")

        object.__setattr__(self, "class_names", tuple(self.class_names))
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))

    def __len__(self) -> int:
        return len(self.class_names)

    def label(self, class_id: int) -> str | None:
        if 0 <= class_id < len(self.class_names):
            return self.class_names[class_id]
        return None

    def class_id(self, label: str) -> int:
        return self.class_names.index(label)

    def category(self, label: str) -> str | None:
        return self.categories.get(label)

    def labels_in(self, category: str) -> list[str]:
        return [name for name in self.class_names if self.categories.get(name) == category]

    @classmethod
    def from_prefixes(
        cls,
        name: str,
        version: int,
        class_names: Iterable[str],
        options: Iterable[str] = OPTION_NAMES,
    ) -> "ClassTaxonomy":
        """
        Builds a taxonomy by sorting labels on their naming convention.

        Labels starting with card_, value_, each_ or condition_ go to
        the color, value, multiplier and condition categories; labels
        listed in options are options; anything else is uncategorized.
        """
        class_names = tuple(class_names)
        options = set(options)
        categories = {}
        for label in class_names:
            for prefix, category in _PREFIXES:
                if label.startswith(prefix):
                    categories[label] = category
                    break
            else:
                if label in options:
                    categories[label] = OPTION
        return cls(name=name, version=version, class_names=class_names, categories=categories)


def parse_value(label: str) -> int:
    """
    Converts a value_<N> label to N.

    Returns 0 for an empty or malformed label.
    """
    if not label or not label.startswith("value_"):
        return 0
    try:
        return max(int(label[len("value_"):]), 0)
    except ValueError:
        return 0


def condition_target(label: str) -> str:
    """condition_gem -> gem"""
    return label.removeprefix("condition_")


SCENE_TAXONOMY = ClassTaxonomy(name="scene", version=1, class_names=("card", "temple"))

CARD_TAXONOMY = ClassTaxonomy.from_prefixes(
    "card",
    1,
    (
        "card_blue", "card_green", "card_red", "card_yellow",
        "chimera",
        "condition_chimera", "condition_gem", "condition_thistle",
        "each_all_colors", "each_blue", "each_chimera", "each_gem", "each_green", "each_hint",
        "each_night", "each_red", "each_thistle", "each_yellow_or_blue", "each_yellow_or_green",
        "each_yellow_or_red",
        "gem", "hint", "night", "thistle",
        "value_1", "value_10", "value_12", "value_13", "value_14", "value_15", "value_16",
        "value_17", "value_18", "value_19", "value_2", "value_20", "value_24", "value_3",
        "value_4", "value_5", "value_7", "value_8", "value_9",
    ),
)

TEMPLE_TAXONOMY = ClassTaxonomy.from_prefixes(
    "temple",
    1,
    (
        "card_blue", "card_gray", "card_green", "card_red", "card_yellow",
        "chimera",
        "each_all_colors", "each_blue", "each_blue_or_yellow", "each_chimera", "each_gem",
        "each_green", "each_green_or_blue", "each_green_or_red", "each_hint", "each_night",
        "each_red", "each_red_or_blue", "each_red_or_yellow", "each_thistle", "each_yellow",
        "each_yellow_or_green",
        "gem", "hint", "night", "thistle",
        "value_1", "value_2", "value_4", "value_5",
    ),
)


@dataclass(frozen=True)
class MultiplierTable:
    """
    Maps a multiplier label to the tags it counts.

    The count of a multiplier is the sum of the visible occurrences of
    each of its tags, e.g. each_yellow_or_blue counts card_yellow plus
    card_blue.
    """

    entries: Mapping[str, tuple[str, ...]]

    def __post_init__(self):
        for label, tags in self.entries.items():
            if not tags:
                raise TaxonomyError(f"Multiplier '{label}' counts no tags.")
        object.__setattr__(
            self,
            "entries",
            MappingProxyType({label: tuple(tags) for label, tags in self.entries.items()}),
        )

    def __contains__(self, label: str) -> bool:
        return label in self.entries

    def tags(self, label: str) -> tuple[str, ...] | None:
        return self.entries.get(label)

    def count(self, label: str, visible_counts: Mapping[str, int]) -> int:
        """
        Counts the visible occurrences a multiplier refers to.

        Unknown multipliers count 0.
        """
        tags = self.entries.get(label)
        if tags is None:
            logger.warning("Unknown multiplier '%s', counting 0", label)
            return 0
        return sum(visible_counts.get(tag, 0) for tag in tags)

    def with_entry(self, label: str, tags: Iterable[str]) -> "MultiplierTable":
        entries = dict(self.entries)
        entries[label] = tuple(tags)
        return MultiplierTable(entries)


def _color(name: str) -> str:
    return f"card_{name}"


def _build_default_table() -> dict[str, tuple[str, ...]]:
    entries = {f"each_{opt}": (opt,) for opt in OPTION_NAMES}
    for color in ("blue", "green", "red", "yellow"):
        entries[f"each_{color}"] = (_color(color),)
    for first, second in (
        ("yellow", "blue"),
        ("blue", "yellow"),
        ("yellow", "green"),
        ("yellow", "red"),
        ("green", "blue"),
        ("green", "red"),
        ("red", "blue"),
        ("red", "yellow"),
    ):
        entries[f"each_{first}_or_{second}"] = (_color(first), _color(second))
    entries["each_all_colors"] = BASE_COLORS
    return entries


DEFAULT_MULTIPLIER_TABLE = MultiplierTable(_build_default_table())


def _read_yaml(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise TaxonomyError(f"{path}: expected a mapping at the top level.")
    return data


def load_taxonomy(path: str | Path) -> ClassTaxonomy:
    """
    Loads a taxonomy from a YAML file.

    Expected keys: name, version, class_names, and either an explicit
    categories mapping (label -> category) or an options list used to
    infer categories from label prefixes.
    """
    data = _read_yaml(path)
    try:
        name = data["name"]
        version = int(data.get("version", 1))
        class_names = data["class_names"]
    except (KeyError, TypeError, ValueError) as e:
        raise TaxonomyError(f"{path}: invalid taxonomy file ({e}).") from e

    if "categories" in data:
        return ClassTaxonomy(
            name=name,
            version=version,
            class_names=tuple(class_names),
            categories=data["categories"] or {},
        )
    return ClassTaxonomy.from_prefixes(name, version, class_names, data.get("options", OPTION_NAMES))


def load_multiplier_table(path: str | Path) -> MultiplierTable:
    """
    Loads a multiplier table from a YAML mapping of label -> list of tags.
    """
    data = _read_yaml(path)
    entries = {}
    for label, tags in data.items():
        if isinstance(tags, str):
            tags = [tags]
        entries[label] = tuple(tags or ())
    return MultiplierTable(entries)
