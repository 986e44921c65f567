"""Unit tests for DependencyGraphBuilder."""

from datetime import date

import pytest

from actionplan.core.config import AssemblySettings
from actionplan.core.exceptions import CycleError, ValidationError
from actionplan.services.graph.dependency_graph_builder import DependencyGraphBuilder


@pytest.fixture
def builder():
    return DependencyGraphBuilder(AssemblySettings())


class TestOrdering:

    def test_fan_out_orders_lowest_first(self, builder, make_step):
        steps = [make_step(1), make_step(2, [1]), make_step(3, [1])]

        graph = builder.build(steps)

        assert graph.topological_order == [1, 2, 3]
        assert sorted(graph.edges) == [(1, 2), (1, 3)]

    def test_ready_nodes_taken_by_step_number(self, builder, make_step):
        steps = [make_step(3), make_step(2, [3]), make_step(1)]

        graph = builder.build(steps)

        assert graph.topological_order == [1, 3, 2]

    def test_every_edge_respects_the_order(self, builder, make_step):
        steps = [make_step(1), make_step(2, [1]), make_step(3, [1, 2]), make_step(4, [3]), make_step(5)]

        graph = builder.build(steps)
        position = {node: i for i, node in enumerate(graph.topological_order)}

        assert sorted(graph.topological_order) == graph.nodes
        for prerequisite, dependent in graph.edges:
            assert prerequisite in graph.nodes and dependent in graph.nodes
            assert prerequisite != dependent
            assert position[prerequisite] < position[dependent]

    def test_empty_input(self, builder):
        graph = builder.build([])

        assert graph.nodes == []
        assert graph.critical_path == []
        assert graph.critical_path_weight == 0.0


class TestReferentialIntegrity:

    def test_missing_dependency(self, builder, make_step):
        with pytest.raises(ValidationError) as exc_info:
            builder.build([make_step(1), make_step(2, [9])])

        assert exc_info.value.reason == "missing_dependency"
        assert exc_info.value.missing_id == 9
        assert exc_info.value.step_number == 2

    def test_duplicate_step_number(self, builder, make_step):
        with pytest.raises(ValidationError) as exc_info:
            builder.build([make_step(1), make_step(1)])

        assert exc_info.value.reason == "duplicate_step"


class TestCycleDetection:

    def test_three_cycle_reported_exactly(self, builder, make_step):
        steps = [make_step(1, [3]), make_step(2, [1]), make_step(3, [2])]

        with pytest.raises(CycleError) as exc_info:
            builder.build(steps)

        assert exc_info.value.cycle_path == [1, 2, 3, 1]
        assert "1 -> 2 -> 3 -> 1" in exc_info.value.message

    def test_self_dependency_is_a_cycle(self, builder, make_step):
        with pytest.raises(CycleError) as exc_info:
            builder.build([make_step(1), make_step(2, [2])])

        assert exc_info.value.cycle_path == [2, 2]

    def test_cycle_reported_from_lowest_step(self, builder, make_step):
        steps = [make_step(1), make_step(2, [1, 4]), make_step(3, [2]), make_step(4, [3])]

        with pytest.raises(CycleError) as exc_info:
            builder.build(steps)

        assert exc_info.value.cycle_path == [2, 3, 4, 2]

    def test_long_chain_deeper_than_recursion_limit(self, builder, make_step):
        length = 2500
        steps = [make_step(1)] + [make_step(n, [n - 1]) for n in range(2, length + 1)]

        graph = builder.build(steps)

        assert graph.topological_order == list(range(1, length + 1))
        assert graph.critical_path == list(range(1, length + 1))

    def test_cycle_closing_a_long_chain(self, builder, make_step):
        length = 2500
        steps = [make_step(1, [length])] + [make_step(n, [n - 1]) for n in range(2, length + 1)]

        with pytest.raises(CycleError) as exc_info:
            builder.build(steps)

        assert exc_info.value.cycle_path == list(range(1, length + 1)) + [1]


class TestCriticalPath:

    def test_longest_weighted_path(self, builder, make_step):
        steps = [make_step(1, duration=2), make_step(2, [1], duration=3), make_step(3, [1], duration=1)]

        graph = builder.build(steps)

        assert graph.critical_path == [1, 2]
        assert graph.critical_path_weight == 5

    def test_missing_duration_counts_as_one_day(self, builder, make_step):
        graph = builder.build([make_step(1), make_step(2, [1]), make_step(3, [2])])

        assert graph.critical_path == [1, 2, 3]
        assert graph.critical_path_weight == 3

    def test_tie_broken_lexicographically(self, builder, make_step):
        graph = builder.build([make_step(1), make_step(2, [1]), make_step(3, [1])])

        assert graph.critical_path == [1, 2]

    def test_tie_broken_by_earliest_terminal_deadline(self, builder, make_step):
        steps = [make_step(1), make_step(2, [1]), make_step(3, [1])]

        graph = builder.build(steps, step_deadlines={2: date(2024, 3, 1), 3: date(2024, 2, 1)})

        assert graph.critical_path == [1, 3]

    def test_step_without_deadline_loses_the_tie(self, builder, make_step):
        steps = [make_step(1), make_step(2, [1]), make_step(3, [1])]

        graph = builder.build(steps, step_deadlines={3: date(2024, 6, 1)})

        assert graph.critical_path == [1, 3]
