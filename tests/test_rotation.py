from types import SimpleNamespace

import pytest

from leadcrm.services.rotation import (
    InMemoryRotationCursor,
    RoundRobinStrategy,
    SettingsRotationCursor,
    WeightedRoundRobinStrategy,
    even_split,
    strategy_for,
)


def _agent(name: str, weight: int = 1):
    return SimpleNamespace(agent_id=name, weight=weight)


class TestInMemoryRotationCursor:
    def test_walks_the_rotation(self):
        cursor = InMemoryRotationCursor()
        picks = []
        for _ in range(5):
            picks.append(cursor.next(3))
            cursor.advance()
        assert picks == [0, 1, 2, 0, 1]

    def test_index_wraps_when_eligible_list_shrinks(self):
        cursor = InMemoryRotationCursor(4)
        assert cursor.next(2) == 0
        cursor.advance()
        assert cursor.index == 1

    def test_advance_before_next_is_an_error(self):
        with pytest.raises(RuntimeError):
            InMemoryRotationCursor().advance()

    def test_empty_rotation_is_rejected(self):
        with pytest.raises(ValueError):
            InMemoryRotationCursor().next(0)

    def test_negative_start_is_clamped(self):
        assert InMemoryRotationCursor(-3).index == 0


class TestSettingsRotationCursor:
    def test_advance_writes_back_to_the_row(self):
        row = SimpleNamespace(current_round_robin_index=1)
        cursor = SettingsRotationCursor(row)
        assert cursor.next(2) == 1
        cursor.advance()
        assert row.current_round_robin_index == 0


class TestStrategies:
    def test_round_robin_ignores_weight(self):
        a, b = _agent("a", weight=3), _agent("b")
        assert RoundRobinStrategy().rotation([a, b]) == [a, b]

    def test_weighted_interleaves(self):
        a, b = _agent("a", weight=2), _agent("b")
        rotation = WeightedRoundRobinStrategy().rotation([a, b])
        assert [x.agent_id for x in rotation] == ["a", "b", "a"]

    def test_weighted_treats_missing_weight_as_one(self):
        a, b = _agent("a", weight=None), _agent("b", weight=0)
        rotation = WeightedRoundRobinStrategy().rotation([a, b])
        assert [x.agent_id for x in rotation] == ["a", "b"]

    def test_strategy_for(self):
        assert isinstance(strategy_for("weighted"), WeightedRoundRobinStrategy)
        assert isinstance(strategy_for("round_robin"), RoundRobinStrategy)
        assert isinstance(strategy_for(None), RoundRobinStrategy)

    def test_history_methods(self):
        assert RoundRobinStrategy.history_method == "auto_round_robin"
        assert WeightedRoundRobinStrategy.history_method == "auto_weighted"


class TestEvenSplit:
    @pytest.mark.parametrize(
        "leads,agents,expected",
        [
            (5, 2, [3, 2]),
            (10, 3, [4, 3, 3]),
            (2, 4, [1, 1, 0, 0]),
            (0, 2, [0, 0]),
        ],
    )
    def test_split(self, leads, agents, expected):
        assert even_split(leads, agents) == expected
        assert sum(even_split(leads, agents)) == leads

    def test_no_agents(self):
        assert even_split(5, 0) == []
