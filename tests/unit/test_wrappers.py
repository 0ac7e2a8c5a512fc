"""
Unit tests for map and reduce entry point composition
"""

import itertools

import pytest

from mrbind.conf import Phase
from mrbind.errors import PhaseExecutionError
from mrbind.worker.adapters import (
    literal_map_reader, literal_writer, passthrough_map_reader,
    passthrough_reduce_reader, passthrough_writer,
)
from mrbind.worker.collectors import ListCollector
from mrbind.worker.wrappers import wrap_map, wrap_reduce, wrapper_for


def duplicate(key, value):
    return [(key, value), (key, value)]


def total(key, values):
    yield key, sum(values)


class FailingSink:
    def collect(self, key, value):
        raise IOError("disk full")


class TestMapStrategy:

    def test_duplicating_map_writes_both_pairs_in_order(self):
        entry = wrap_map(duplicate, passthrough_map_reader, passthrough_writer)
        output = ListCollector()

        entry(None, "a", "1", output)

        assert output.pairs == [("a", "1"), ("a", "1")]

    def test_emitting_nothing_filters_the_record(self):
        output = ListCollector()

        wrap_map(lambda k, v: [], passthrough_map_reader, passthrough_writer)(None, "a", "1", output)
        wrap_map(lambda k, v: None, passthrough_map_reader, passthrough_writer)(None, "b", "2", output)

        assert output.pairs == []

    def test_adapters_wrap_the_function(self):
        entry = wrap_map(lambda k, v: [(v, k)], literal_map_reader, literal_writer)
        output = ListCollector()

        entry(None, "'key'", "[1, 2]", output)

        assert output.pairs == [("[1, 2]", "'key'")]

    def test_generator_output_is_written_as_produced(self):
        seen = []

        def emit(key, value):
            for i in range(3):
                seen.append(i)
                yield key, i

        class Sink:
            def collect(self, key, value):
                assert seen[-1] == value
                seen.append("written")

        wrap_map(emit, passthrough_map_reader, passthrough_writer)(None, "k", None, Sink())
        assert seen == [0, "written", 1, "written", 2, "written"]


class TestReduceStrategy:

    def test_summing_reduce(self):
        entry = wrap_reduce(total, passthrough_reduce_reader, passthrough_writer)
        output = ListCollector()

        entry(None, "x", iter([1, 2, 3]), output)

        assert output.pairs == [("x", 6)]

    def test_function_called_once_per_key(self):
        calls = []

        def count(key, values):
            calls.append(key)
            yield key, len(list(values))

        output = ListCollector()
        wrap_reduce(count, passthrough_reduce_reader, passthrough_writer)(None, "x", iter("abc"), output)

        assert calls == ["x"]
        assert output.pairs == [("x", 3)]

    def test_values_are_not_materialized(self):
        def first_two(key, values):
            yield key, list(itertools.islice(values, 2))

        output = ListCollector()
        wrap_reduce(first_two, passthrough_reduce_reader, passthrough_writer)(
            None, "n", itertools.count(), output,
        )

        assert output.pairs == [("n", [0, 1])]

    def test_combiner_strategy_tags_combiner_phase(self):
        entry = wrapper_for(Phase.COMBINER)(lambda k, vs: 1 / 0, passthrough_reduce_reader, passthrough_writer)

        with pytest.raises(PhaseExecutionError) as excinfo:
            entry(None, "k", iter([]), ListCollector())

        assert excinfo.value.phase == Phase.COMBINER


class TestErrors:

    def test_function_error_carries_phase_and_key(self):
        def broken(key, value):
            raise ValueError("bad record")

        entry = wrap_map(broken, passthrough_map_reader, passthrough_writer)

        with pytest.raises(PhaseExecutionError) as excinfo:
            entry(None, "rec-7", "v", ListCollector())

        assert excinfo.value.phase == Phase.MAP
        assert excinfo.value.key == "rec-7"
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_error_midway_through_generator_keeps_earlier_output(self):
        def partial(key, value):
            yield key, 1
            raise RuntimeError("late failure")

        output = ListCollector()
        with pytest.raises(PhaseExecutionError):
            wrap_map(partial, passthrough_map_reader, passthrough_writer)(None, "k", "v", output)

        assert output.pairs == [("k", 1)]

    def test_reader_error(self):
        entry = wrap_map(duplicate, literal_map_reader, passthrough_writer)

        with pytest.raises(PhaseExecutionError) as excinfo:
            entry(None, "not a literal", "1", ListCollector())
        assert excinfo.value.key == "not a literal"

    def test_lazy_reader_error_surfaces_during_reduce(self):
        def values():
            yield 1
            raise KeyError("corrupt value")

        entry = wrap_reduce(total, passthrough_reduce_reader, passthrough_writer, phase=Phase.REDUCE)

        with pytest.raises(PhaseExecutionError) as excinfo:
            entry(None, "x", values(), ListCollector())
        assert excinfo.value.phase == Phase.REDUCE

    def test_writer_error(self):
        def bad_writer(key, value):
            raise TypeError("cannot write")

        with pytest.raises(PhaseExecutionError):
            wrap_map(duplicate, passthrough_map_reader, bad_writer)(None, "a", "1", ListCollector())

    def test_malformed_emitted_pair(self):
        with pytest.raises(PhaseExecutionError):
            wrap_map(lambda k, v: [("only-key",)], passthrough_map_reader, passthrough_writer)(
                None, "a", "1", ListCollector(),
            )

    def test_non_iterable_result(self):
        with pytest.raises(PhaseExecutionError):
            wrap_reduce(lambda k, vs: 42, passthrough_reduce_reader, passthrough_writer)(
                None, "a", iter([1]), ListCollector(),
            )

    def test_sink_errors_pass_through(self):
        entry = wrap_map(duplicate, passthrough_map_reader, passthrough_writer)

        with pytest.raises(IOError, match="disk full"):
            entry(None, "a", "1", FailingSink())
