"""
Unit tests for output collectors and the task reporter
"""

from mrbind.worker.collectors import ListCollector, PartitionedCollector, Reporter, partition_for


class TestPartitionedCollector:
    """Tests for routing pairs to reduce partitions"""

    def test_pairs_land_in_their_partition(self):
        collector = PartitionedCollector(4)
        for word in ["alpha", "beta", "gamma", "delta"]:
            collector.collect(word, 1)

        assert collector.count == 4
        for partition, pairs in collector.partitions.items():
            for key, _ in pairs:
                assert partition_for(key, 4) == partition

    def test_zero_partitions_collects_into_one(self):
        collector = PartitionedCollector(0)
        collector.collect("a", 1)
        collector.collect("b", 2)

        assert dict(collector.partitions) == {0: [("a", 1), ("b", 2)]}


class TestReporter:
    """Tests for per-task counters"""

    def test_counters_accumulate(self):
        reporter = Reporter()
        reporter.incr_counter("MAP_INPUT_RECORDS")
        reporter.incr_counter("MAP_INPUT_RECORDS", 4)

        assert reporter.counters["MAP_INPUT_RECORDS"] == 5
        assert reporter.counters["UNSEEN"] == 0

    def test_reporter_only_tracks_counters(self):
        reporter = Reporter()

        assert vars(reporter).keys() == {"counters"}
        assert not hasattr(reporter, "set_status")


class TestListCollector:
    """Tests for the in-order collector"""

    def test_list_collector_keeps_emission_order(self):
        collector = ListCollector()
        collector.collect("b", 1)
        collector.collect("a", 2)

        assert collector.pairs == [("b", 1), ("a", 2)]
