"""
Map Task Executor
Runs one map task the way the host engine does: instantiates the configured
mapper class with no arguments, configures it, feeds it every record of its
input file, partitions the output and applies the combiner if one is bound.
"""

import logging
import os
import time
from collections import defaultdict

import psutil

from mrbind.conf import COMBINER_CLASS, MAPPER_CLASS, Configuration
from mrbind.common.formats import OutputSettings, input_format_for, output_format_for
from mrbind.worker.collectors import ListCollector, PartitionedCollector, Reporter
from mrbind.worker.function_loader import load_name
from mrbind.worker.tasks import MAPPER_CLASS_NAME

logger = logging.getLogger(__name__)


def new_instance(class_name: str):
    """Construct a worker class named in the configuration, with no arguments"""
    return load_name(class_name)()


def sort_keys(keys):
    """Natural key order, or repr order when keys don't compare"""
    try:
        return sorted(keys)
    except TypeError:
        return sorted(keys, key=repr)


def group_by_key(pairs):
    groups = defaultdict(list)
    for key, value in pairs:
        groups[key].append(value)
    return groups


class MapExecutor:
    """Executes a single map task"""

    def __init__(self, task_id: int, conf: Configuration, input_path: str,
                 num_reduce_tasks: int, output_path: str = None):
        """
        Args:
            task_id: Unique ID for this map task
            conf: This task's own copy of the job configuration
            input_path: Input file for this task
            num_reduce_tasks: Number of reduce partitions; 0 writes map
                output directly to ``output_path``
            output_path: Job output directory, for map-only jobs
        """
        self.task_id = task_id
        self.conf = conf
        self.input_path = input_path
        self.num_reduce_tasks = num_reduce_tasks
        self.output_path = output_path
        self.reporter = Reporter()
        self.process = psutil.Process()

    def execute(self) -> dict:
        """
        Execute the map task

        Returns:
            Dictionary with 'success', 'execution_time_ms', 'error_message',
            'partitions' (partition id to list of pairs), 'output_file',
            'counters' and 'memory_bytes'
        """
        start_time = time.time()

        try:
            logger.info(f"Map task {self.task_id}: Configuring mapper for {self.input_path}")
            mapper = new_instance(self.conf.get(MAPPER_CLASS, MAPPER_CLASS_NAME))
            mapper.configure(self.conf)

            collector = PartitionedCollector(self.num_reduce_tasks)
            input_format = input_format_for(self.conf)
            try:
                for key, value in input_format.read_records(self.input_path):
                    self.reporter.incr_counter("MAP_INPUT_RECORDS")
                    mapper.map(key, value, collector, self.reporter)
            finally:
                mapper.close()
            self.reporter.incr_counter("MAP_OUTPUT_RECORDS", collector.count)
            partitions = dict(collector.partitions)

            output_file = ''
            if self.num_reduce_tasks == 0:
                output_file = self._write_output(partitions.get(0, []))
                partitions = {}
            elif self.conf.get(COMBINER_CLASS):
                logger.info(f"Map task {self.task_id}: Applying combiner")
                partitions = self._apply_combiner(partitions)

            execution_time = int((time.time() - start_time) * 1000)
            logger.info(f"Map task {self.task_id}: Completed in {execution_time}ms, "
                        f"{self.reporter.counters['MAP_OUTPUT_RECORDS']} pairs")

            return {
                'success': True,
                'execution_time_ms': execution_time,
                'error_message': '',
                'partitions': partitions,
                'output_file': output_file,
                'counters': dict(self.reporter.counters),
                'memory_bytes': self.process.memory_info().rss,
            }

        except Exception as e:
            execution_time = int((time.time() - start_time) * 1000)
            logger.error(f"Map task {self.task_id} failed: {e}")
            return {
                'success': False,
                'execution_time_ms': execution_time,
                'error_message': f"{type(e).__name__}: {e}",
                'partitions': {},
                'output_file': '',
                'counters': dict(self.reporter.counters),
                'memory_bytes': self.process.memory_info().rss,
            }

    def _apply_combiner(self, partitions: dict) -> dict:
        """
        Run the combiner over each partition's local output, key by key

        Args:
            partitions: Dictionary mapping partition id to list of (key, value) pairs

        Returns:
            Dictionary with the same structure holding the combined pairs
        """
        combiner = new_instance(self.conf.get(COMBINER_CLASS))
        combiner.configure(self.conf)

        combined = {}
        try:
            for partition, pairs in partitions.items():
                groups = group_by_key(pairs)
                collector = ListCollector()
                for key in sort_keys(groups):
                    self.reporter.incr_counter("COMBINE_INPUT_RECORDS", len(groups[key]))
                    combiner.reduce(key, iter(groups[key]), collector, self.reporter)
                self.reporter.incr_counter("COMBINE_OUTPUT_RECORDS", len(collector.pairs))
                combined[partition] = collector.pairs
        finally:
            combiner.close()
        return combined

    def _write_output(self, pairs: list) -> str:
        output_format = output_format_for(self.conf)
        path = output_format.write_records(
            self.output_path, f"part-{self.task_id:05d}", pairs,
            OutputSettings.from_conf(self.conf),
        )
        logger.info(f"Map task {self.task_id}: Wrote output to {os.path.basename(path)}")
        return path
