"""
Attribute aggregation.

The card and temple models detect small elements on a single crop:
the color banner, the fame value, the multiplier icon, the condition
icons and the option symbols. A crop may produce candidates in several
categories at once; this module reduces them to one AttributeRecord:
    - color, value, multiplier: highest score wins, ties keep the
      detection seen first
    - conditions: every observed label, repeats included
    - options: every distinct observed label
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .detection import DetectionResult
from .taxonomy import COLOR, CONDITION, MULTIPLIER, OPTION, VALUE, ClassTaxonomy, parse_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributeRecord:
    """Reduced attributes of one card or temple."""

    color: str = ""
    value: str = ""
    """The value_<N> label, or empty."""
    multiplier: str = ""
    conditions: tuple[str, ...] = field(default_factory=tuple)
    options: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "conditions", tuple(c for c in self.conditions if c))
        object.__setattr__(self, "options", tuple(dict.fromkeys(o for o in self.options if o)))

    @property
    def numeric_value(self) -> int:
        return parse_value(self.value)

    def counted_tags(self) -> list[str]:
        """Tags this record contributes when it is visible: its color and options."""
        tags = [self.color] if self.color else []
        tags.extend(self.options)
        return tags

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "value": self.value,
            "multiplier": self.multiplier,
            "conditions": list(self.conditions),
            "options": list(self.options),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "AttributeRecord":
        """
        Builds a record from a plain mapping.

        options may be either a list of names or a mapping of
        name -> bool (checkbox state), in which case only the checked
        names are kept.
        """
        options = data.get("options") or ()
        if isinstance(options, Mapping):
            options = [name for name, checked in options.items() if checked]
        value = data.get("value") or ""
        if isinstance(value, int):
            value = f"value_{value}"
        return cls(
            color=data.get("color") or "",
            value=value,
            multiplier=data.get("multiplier") or "",
            conditions=tuple(data.get("conditions") or ()),
            options=tuple(options),
        )


class _BestOf:
    """Keeps the highest-scoring label; equal scores keep the first one."""

    def __init__(self):
        self.label = ""
        self.score: float | None = None

    def offer(self, label: str, score: float):
        if self.score is None or score > self.score:
            self.label = label
            self.score = score


def aggregate_attributes(
    detections: DetectionResult | None,
    taxonomy: ClassTaxonomy,
    score_threshold: float = 0.0,
) -> AttributeRecord:
    """
    Reduces the detections of one crop to an AttributeRecord.

    Args:
        detections: Result of the type-specific model on the crop, in
            decoder output order. None (model unavailable) gives an
            empty record.
        taxonomy: Class table of the model that produced detections.
        score_threshold: Detections scoring below this are ignored.

    Returns
    -------
        record: The reduced attributes.
    """
    if detections is None:
        return AttributeRecord()

    best = {COLOR: _BestOf(), VALUE: _BestOf(), MULTIPLIER: _BestOf()}
    conditions: list[str] = []
    options: list[str] = []

    for det in detections:
        if det.score < score_threshold:
            continue

        label = taxonomy.label(det.class_id)
        if label is None:
            logger.debug("Class id %d is not in taxonomy %s, ignored", det.class_id, taxonomy.name)
            continue

        category = taxonomy.category(label)
        if category in best:
            best[category].offer(label, det.score)
        elif category == CONDITION:
            conditions.append(label)
        elif category == OPTION:
            options.append(label)

    return AttributeRecord(
        color=best[COLOR].label,
        value=best[VALUE].label,
        multiplier=best[MULTIPLIER].label,
        conditions=tuple(conditions),
        options=tuple(options),
    )


def records_from_dicts(items: Iterable[Mapping]) -> list[AttributeRecord]:
    return [AttributeRecord.from_dict(item) for item in items]
