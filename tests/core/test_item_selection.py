"""
Tests for Maximum Fisher Information item selection.

Tests cover:
- Selection of the most informative item
- Item filtering (excluded items, uncalibrated items, non-positive discrimination)
- Tie-breaking by pool order
- Edge cases (empty pool, all items excluded, zero information everywhere)
"""

from dataclasses import dataclass
from typing import Optional

import pytest

from irt_engine.core.cat.item_selection import (
    AdaptiveSelector,
    CalibratedItem,
    select_next_item,
)
from irt_engine.core.cat.response_model import fisher_information_3pl
from irt_engine.models import Item


@dataclass
class MockItem:
    """Mock item for testing item selection."""

    id: str
    discrimination: Optional[float]
    difficulty: Optional[float]
    guessing: Optional[float] = 0.2


class FixedInformationModel:
    """Response model whose information is looked up by item difficulty."""

    def __init__(self, information_by_difficulty):
        self.information_by_difficulty = information_by_difficulty

    def probability(self, theta, a, b, c):
        return 0.5

    def information(self, theta, a, b, c):
        return self.information_by_difficulty[b]


def _pool(
    n: int,
    a: float = 1.0,
    b_start: float = -2.0,
    b_step: float = 0.5,
    c: float = 0.2,
) -> list:
    return [
        MockItem(id=f"q{i}", discrimination=a, difficulty=b_start + i * b_step, guessing=c)
        for i in range(n)
    ]


class TestSelection:
    """Tests for picking the maximum-information item."""

    def test_higher_information_wins(self):
        pool = [MockItem("low", 1.0, 0.0), MockItem("high", 1.0, 1.0)]
        selector = AdaptiveSelector(FixedInformationModel({0.0: 0.3, 1.0: 0.8}))
        assert selector.select_next(0.0, pool) == "high"

    def test_picks_item_at_theta_without_guessing(self):
        """With c = 0 information peaks at b, so the item with b == theta wins."""
        pool = _pool(9, c=0.0)  # b from -2.0 to 2.0
        assert AdaptiveSelector().select_next(0.0, pool) == "q4"  # b = 0.0

    def test_guessing_favors_item_below_theta(self):
        """With c > 0 information peaks above b, so a slightly easier item wins."""
        pool = _pool(9, c=0.2)
        # peaks: q3 at -0.5 + 0.267, q4 at 0.0 + 0.267
        assert AdaptiveSelector().select_next(0.0, pool) == "q3"  # b = -0.5

    def test_matches_brute_force_maximum(self):
        pool = [
            MockItem("a", 0.8, -1.0, 0.25),
            MockItem("b", 2.0, 1.5, 0.2),
            MockItem("c", 1.4, 0.3, 0.1),
            MockItem("d", 1.1, 0.6, 0.3),
        ]
        theta = 0.5
        expected = max(
            pool,
            key=lambda item: fisher_information_3pl(
                theta, item.discrimination, item.difficulty, item.guessing
            ),
        )
        assert select_next_item(pool, theta) is expected

    def test_ties_keep_first_item(self):
        pool = [MockItem("first", 1.0, 0.0), MockItem("second", 1.0, 0.0)]
        assert AdaptiveSelector().select_next(0.0, pool) == "first"

    def test_returns_item_object_from_function(self):
        pool = _pool(3)
        item = select_next_item(pool, -1.5)
        assert item in pool

    def test_accepts_engine_items(self):
        pool = [
            Item(id="x", scale_id="s", discrimination=1.0, difficulty=2.0, guessing=0.2),
            Item(id="y", scale_id="s", discrimination=1.0, difficulty=-0.1, guessing=0.2),
        ]
        assert isinstance(pool[0], CalibratedItem)
        assert AdaptiveSelector().select_next(0.0, pool) == "y"


class TestFiltering:
    """Tests for exclusion and eligibility filtering."""

    def test_excluded_ids_never_returned(self):
        pool = _pool(9)
        excluded = {"q4", "q5", "q3"}
        selected = AdaptiveSelector().select_next(0.0, pool, excluded)
        assert selected is not None
        assert selected not in excluded

    @pytest.mark.parametrize("theta", [-3.0, -1.0, 0.0, 1.0, 3.0])
    def test_exclusion_holds_across_theta(self, theta):
        pool = _pool(9)
        for item in pool:
            others_excluded = [other.id for other in pool if other.id != item.id]
            assert AdaptiveSelector().select_next(theta, pool, others_excluded) == item.id

    def test_uncalibrated_items_skipped(self):
        pool = [
            MockItem("no_a", None, 0.0),
            MockItem("no_b", 1.0, None),
            MockItem("no_c", 1.0, 0.0, None),
            MockItem("ok", 0.7, 2.0),
        ]
        assert AdaptiveSelector().select_next(0.0, pool) == "ok"

    def test_non_positive_discrimination_skipped(self):
        pool = [MockItem("zero", 0.0, 0.0), MockItem("ok", 1.0, 1.0)]
        assert AdaptiveSelector().select_next(0.0, pool) == "ok"


class TestEdgeCases:
    """Tests for the no-suitable-item outcome."""

    def test_empty_pool(self):
        assert AdaptiveSelector().select_next(0.0, []) is None

    def test_all_excluded(self):
        pool = _pool(3)
        assert AdaptiveSelector().select_next(0.0, pool, [item.id for item in pool]) is None

    def test_zero_information_everywhere(self):
        """Items never beat the starting maximum of 0."""
        pool = [MockItem("a", 1.0, 0.0), MockItem("b", 1.0, 1.0)]
        selector = AdaptiveSelector(FixedInformationModel({0.0: 0.0, 1.0: 0.0}))
        assert selector.select_next(0.0, pool) is None

    def test_degenerate_at_extreme_theta(self):
        """Far above every item, P reaches 1 and no item carries information."""
        assert AdaptiveSelector().select_next(1e6, _pool(5)) is None
