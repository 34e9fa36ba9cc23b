"""
Tests for urgency/importance quadrant grouping.
"""

import pytest

from focusflow.matrix import Quadrant, classify, group_by_quadrant
from focusflow.models import Task


def task(id, urgency, importance):
    return Task(id=id, board_id=1, column_id=1, urgency=urgency, importance=importance)


class TestMatrix:

    @pytest.mark.parametrize("urgency, importance, quadrant", [
        (10, 10, Quadrant.DO),
        (5, 5, Quadrant.DO),
        (4, 5, Quadrant.PLAN),
        (5, 4, Quadrant.DELEGATE),
        (4, 4, Quadrant.DELETE),
        (0, 0, Quadrant.DELETE),
    ])
    def test_classify(self, urgency, importance, quadrant):
        assert classify(task(1, urgency, importance)) == quadrant

    def test_group_keeps_every_quadrant_and_order(self):
        tasks = [task(1, 9, 9), task(2, 1, 9), task(3, 8, 8)]
        groups = group_by_quadrant(tasks)
        assert set(groups) == set(Quadrant)
        assert [t.id for t in groups[Quadrant.DO]] == [1, 3]
        assert [t.id for t in groups[Quadrant.PLAN]] == [2]
        assert groups[Quadrant.DELETE] == []
