"""
Output sinks and progress reporting for the host's task loops.
"""

import zlib
from collections import defaultdict
from typing import Any, Dict, List, Tuple


def partition_for(key: Any, num_partitions: int) -> int:
    """Stable partition of a key, identical across worker processes"""
    return zlib.crc32(repr(key).encode("utf-8")) % num_partitions


class OutputCollector:
    """Sink the host passes to a worker's map or reduce method"""

    def collect(self, key, value):
        raise NotImplementedError


class ListCollector(OutputCollector):
    """Keeps collected pairs in emission order"""

    def __init__(self):
        self.pairs: List[Tuple[Any, Any]] = []

    def collect(self, key, value):
        self.pairs.append((key, value))


class PartitionedCollector(OutputCollector):
    """Routes each collected pair to its reduce partition"""

    def __init__(self, num_partitions: int):
        self.num_partitions = max(num_partitions, 1)
        self.partitions: Dict[int, List[Tuple[Any, Any]]] = defaultdict(list)
        self.count = 0

    def collect(self, key, value):
        self.partitions[partition_for(key, self.num_partitions)].append((key, value))
        self.count += 1


class Reporter:
    """Counters for one task"""

    def __init__(self):
        self.counters: Dict[str, int] = defaultdict(int)

    def incr_counter(self, name: str, amount: int = 1):
        self.counters[name] += amount
