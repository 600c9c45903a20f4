"""
Score calculation.

Cards are scored from the last placed (rightmost) to the first. A
card's conditions and multiplier only see the temples and the cards
placed after it, so the visible set grows as the loop moves left.
Temples are scored afterwards, in order, and see every card but no
other temple.

For each card:
    1. visible = temples + cards already scored
    2. value = N of its value_<N> label (0 if none)
    3. if it has conditions, each condition_<tag> requires one visible
       <tag>; repeated conditions require more. Any shortfall cancels
       the value. Every check is written to the trace.
    4. value > 0 and a multiplier: value x (visible tags it counts)
    5. otherwise: value

The order of the trace lines follows the evaluation order exactly, and
the last line is always the total.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .attributes import AttributeRecord
from .taxonomy import DEFAULT_MULTIPLIER_TABLE, MultiplierTable, condition_target

logger = logging.getLogger(__name__)

CARDS_HEADER = "--- Cards (right to left) ---"
TEMPLES_HEADER = "--- Temples ---"
SEPARATOR = "---------------------------------"


@dataclass
class ScoreResult:
    """Total score and the human-readable evaluation trace."""

    score: int = 0
    details: list[str] = field(default_factory=list)


def count_visible(visible: Iterable[AttributeRecord]) -> Counter:
    """
    Counts the color and option tags over a visible set.

    Each item adds one to its color and one to each of its options.
    """
    counts = Counter()
    for item in visible:
        counts.update(item.counted_tags())
    return counts


class ScoreCalculator:
    """Pure, deterministic score engine for one player's layout."""

    def __init__(self, multiplier_table: MultiplierTable = DEFAULT_MULTIPLIER_TABLE):
        """
        Args:
            multiplier_table: Mapping of multiplier labels to the tags
                they count.
        """
        self.multiplier_table = multiplier_table

    @staticmethod
    def _check_conditions(
        conditions: Sequence[str],
        counts: Counter,
        details: list[str],
    ) -> bool:
        required = Counter(condition_target(c) for c in conditions)

        met = True
        for target, needed in required.items():
            available = counts.get(target, 0)
            details.append(f" -> Condition: {target} (required: {needed}, available: {available})")
            if available < needed:
                met = False
        return met

    def _contribution(
        self,
        item: AttributeRecord,
        value: int,
        counts: Counter,
        details: list[str],
    ) -> int:
        if value > 0 and item.multiplier:
            count = self.multiplier_table.count(item.multiplier, counts)
            points = value * count
            details.append(f" -> Multiplier ({item.multiplier}): {value} x {count} = {points}pts")
        else:
            points = value
            details.append(f" -> Base score: {points}pts")
        return points

    def calculate(
        self,
        cards: Sequence[AttributeRecord],
        temples: Sequence[AttributeRecord],
    ) -> ScoreResult:
        """
        Computes the total score of a layout.

        Args:
            cards: Cards in placement order, left to right.
            temples: Temples, in detection order.

        Returns
        -------
            result: Total score and the evaluation trace.
        """
        details: list[str] = []
        score = 0

        # Cards, from the rightmost to the leftmost
        details.append(CARDS_HEADER)
        visible_cards: list[AttributeRecord] = []

        for i in range(len(cards) - 1, -1, -1):
            card = cards[i]
            details.append(f"[Card {i + 1}]")

            counts = count_visible([*visible_cards, *temples])
            value = card.numeric_value

            if card.conditions and not self._check_conditions(card.conditions, counts, details):
                value = 0
                details.append(" -> Conditions not met, value cancelled.")

            score += self._contribution(card, value, counts, details)
            visible_cards.append(card)

        # Temples see every card and no other temple
        details.append(TEMPLES_HEADER)
        card_counts = count_visible(cards)

        for i, temple in enumerate(temples):
            details.append(f"[Temple {i + 1}]")
            score += self._contribution(temple, temple.numeric_value, card_counts, details)

        details.append(SEPARATOR)
        details.append(f"TOTAL SCORE: {score}")

        logger.debug("Scored %d cards and %d temples: %d", len(cards), len(temples), score)
        return ScoreResult(score=score, details=details)


def calculate(
    cards: Sequence[AttributeRecord],
    temples: Sequence[AttributeRecord],
) -> ScoreResult:
    """Scores a layout with the default multiplier table."""
    return ScoreCalculator().calculate(cards, temples)
