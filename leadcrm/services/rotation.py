"""Rotation cursors for round-robin assignment.

A cursor answers "which eligible agent is next" and is told when that
choice has been used.  The engine never touches the stored pointer
directly, so the same selection code drives both real assignments (a
cursor persisted on the settings row) and previews (an in-memory one).
"""

import itertools
from typing import List, Optional, Protocol, Sequence

from leadcrm.models.assignment import AutoAssignmentSettings, CheckedInAgent


class RotationCursor(Protocol):
    def next(self, eligible_count: int) -> int:
        """Index into an eligible list of *eligible_count* agents."""

    def advance(self) -> None:
        """Move past the index last returned by :meth:`next`."""


class InMemoryRotationCursor:
    """Cursor held in a plain integer; used for previews and tests."""

    def __init__(self, index: int = 0) -> None:
        self.index = max(0, index)
        self._eligible_count: Optional[int] = None

    def next(self, eligible_count: int) -> int:
        if eligible_count <= 0:
            raise ValueError("eligible_count must be positive")
        self._eligible_count = eligible_count
        return self.index % eligible_count

    def advance(self) -> None:
        if self._eligible_count is None:
            raise RuntimeError("advance() called before next()")
        self.index = (self.index % self._eligible_count + 1) % self._eligible_count


class SettingsRotationCursor(InMemoryRotationCursor):
    """Cursor backed by ``auto_assignment_settings.current_round_robin_index``.

    ``advance`` writes the new value onto the ORM row; committing is up
    to the caller so the pointer moves in the same transaction as the
    assignment it belongs to.
    """

    def __init__(self, settings_row: AutoAssignmentSettings) -> None:
        super().__init__(settings_row.current_round_robin_index or 0)
        self._row = settings_row

    def advance(self) -> None:
        super().advance()
        self._row.current_round_robin_index = self.index


class SelectionStrategy(Protocol):
    history_method: str

    def rotation(self, eligible: Sequence[CheckedInAgent]) -> List[CheckedInAgent]:
        """The list the cursor indexes into."""


class RoundRobinStrategy:
    """Plain rotation over eligible agents; ``weight`` is ignored."""

    history_method = "auto_round_robin"

    def rotation(self, eligible: Sequence[CheckedInAgent]) -> List[CheckedInAgent]:
        return list(eligible)


class WeightedRoundRobinStrategy:
    """Rotation in which an agent of weight *w* appears *w* times per cycle.

    Appearances are interleaved (agents [A w=2, B w=1] rotate as
    A, B, A) so a heavy agent does not receive a burst of consecutive
    leads.  Only used when the settings row says ``weighted``.
    """

    history_method = "auto_weighted"

    def rotation(self, eligible: Sequence[CheckedInAgent]) -> List[CheckedInAgent]:
        rounds = [
            [agent] * max(1, agent.weight or 1) for agent in eligible
        ]
        expanded = []
        for group in itertools.zip_longest(*rounds):
            expanded.extend(agent for agent in group if agent is not None)
        return expanded


def strategy_for(method: Optional[str]) -> SelectionStrategy:
    if method == "weighted":
        return WeightedRoundRobinStrategy()
    return RoundRobinStrategy()


def even_split(lead_count: int, agent_count: int) -> List[int]:
    """How many of *lead_count* leads each of *agent_count* agents gets.

    ``floor(n / agents)`` each, and the first ``n % agents`` agents one
    extra.
    """
    if agent_count <= 0:
        return []
    base, remainder = divmod(lead_count, agent_count)
    return [base + (1 if i < remainder else 0) for i in range(agent_count)]
