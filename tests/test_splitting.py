"""Tests for task splitting."""

import pytest

from goalplan.engine.splitting import check_split, split_task


class TestSplitTask:
    def test_six_hours_in_two_hour_blocks(self, make_task):
        parent = make_task("t", 360)
        children = split_task(parent, 120)

        assert len(children) == 3
        assert sum(c.estimated_minutes for c in children) == 360
        assert all(c.parent_task_id == "t" for c in children)
        assert [c.task_id for c in children] == ["t#1", "t#2", "t#3"]
        check_split(parent, children)

    def test_last_child_may_be_shorter(self, make_task):
        children = split_task(make_task("t", 300), 120)
        assert [c.estimated_minutes for c in children] == [120, 120, 60]
        assert children[-1].title == "Task t (Part 3/3)"

    def test_fitting_task_is_not_split(self, make_task):
        assert split_task(make_task("t", 120), 120) == []

    def test_children_inherit_priority_and_skills(self, make_task):
        children = split_task(make_task("t", 240, priority=80, skills=["design"]), 120)
        assert {c.priority for c in children} == {80}
        assert all(c.skills == ["design"] for c in children)

    def test_invalid_block_size(self, make_task):
        with pytest.raises(ValueError):
            split_task(make_task("t", 240), 0)

    def test_unestimated_task(self, make_task):
        with pytest.raises(ValueError):
            split_task(make_task("t", None), 60)


class TestCheckSplit:
    def test_lost_work_detected(self, make_task):
        parent = make_task("t", 360)
        children = split_task(parent, 120)[:2]
        with pytest.raises(ValueError):
            check_split(parent, children)

    def test_foreign_child_detected(self, make_task):
        parent = make_task("t", 120)
        with pytest.raises(ValueError):
            check_split(parent, [make_task("x", 120, parent_task_id="y")])
