"""
Score sheet across rounds.

Holds one score per player per round. A round is won only by a player
with the strictly highest positive score; ties produce no winner.
to_dict() / from_dict() use the players / scores / rounds layout of
the external key-value store.
"""

import math
from collections.abc import Mapping, Sequence


class ScoreSheet:
    """Per-player, per-round score table."""

    def __init__(self, players: Sequence[str], rounds: int = 1, scores: Sequence[Sequence[int]] | None = None):
        """
        Args:
            players: Player names, in seating order.
            rounds: Number of rounds.
            scores: Optional existing scores, one list per player.
        """
        if not players:
            raise ValueError("A score sheet needs at least one player.")
        if rounds < 1:
            raise ValueError(f"Invalid number of rounds: {rounds}.")

        self.players = list(players)
        self.rounds = rounds

        if scores is None:
            self.scores = [[0] * rounds for _ in self.players]
        else:
            if len(scores) != len(self.players) or any(len(row) != rounds for row in scores):
                raise ValueError("Scores do not match the players x rounds layout.")
            self.scores = [[int(s) for s in row] for row in scores]

    def set_score(self, player: int, round_index: int, score: int):
        self.scores[player][round_index] = int(score)

    def add_round(self) -> int:
        """Appends an empty round and returns its index."""
        for row in self.scores:
            row.append(0)
        self.rounds += 1
        return self.rounds - 1

    def round_winner(self, round_index: int) -> int | None:
        """
        Index of the player who won a round alone, or None.
        """
        column = [row[round_index] for row in self.scores]
        best = max(column)
        if best <= 0 or column.count(best) > 1:
            return None
        return column.index(best)

    def is_round_winner(self, player: int, round_index: int) -> bool:
        return self.round_winner(round_index) == player

    def wins(self, player: int) -> int:
        return sum(1 for r in range(self.rounds) if self.round_winner(r) == player)

    def total(self, player: int) -> int:
        return sum(self.scores[player])

    def totals(self) -> list[int]:
        return [self.total(p) for p in range(len(self.players))]

    def average(self, player: int) -> float:
        """Mean score per round, rounded half up to one decimal."""
        return math.floor(self.total(player) / self.rounds * 10 + 0.5) / 10

    def to_dict(self) -> dict:
        return {
            "players": list(self.players),
            "scores": [list(row) for row in self.scores],
            "rounds": self.rounds,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "ScoreSheet":
        """
        Rebuilds a sheet from a stored snapshot.

        A snapshot without scores starts a fresh sheet for its players.
        """
        players = data["players"]
        scores = data.get("scores")
        rounds = int(data.get("rounds") or 1)
        if not scores:
            return cls(players, rounds)
        return cls(players, rounds, scores)
