"""
Reduce Task Executor
Groups one partition's intermediate pairs by key, hands each key and a lazy
iterator over its values to the configured reducer class, and writes the
final output.
"""

import logging
import time

import psutil

from mrbind.conf import REDUCER_CLASS, Configuration
from mrbind.common.formats import OutputSettings, output_format_for
from mrbind.worker.collectors import ListCollector, Reporter
from mrbind.worker.map_executor import group_by_key, new_instance, sort_keys
from mrbind.worker.tasks import REDUCER_CLASS_NAME

logger = logging.getLogger(__name__)


class ReduceExecutor:
    """Executes a single reduce task"""

    def __init__(self, task_id: int, partition_id: int, conf: Configuration,
                 intermediate: list, output_path: str):
        """
        Args:
            task_id: Unique ID for this reduce task
            partition_id: Partition this task is responsible for
            conf: This task's own copy of the job configuration
            intermediate: Lists of (key, value) pairs, one per map task
            output_path: Job output directory
        """
        self.task_id = task_id
        self.partition_id = partition_id
        self.conf = conf
        self.intermediate = intermediate
        self.output_path = output_path
        self.reporter = Reporter()
        self.process = psutil.Process()

    def execute(self) -> dict:
        """
        Execute the reduce task

        Returns:
            Dictionary with 'success', 'execution_time_ms', 'error_message',
            'output_file', 'counters' and 'memory_bytes'
        """
        start_time = time.time()

        try:
            groups = group_by_key(pair for pairs in self.intermediate for pair in pairs)
            logger.info(f"Reduce task {self.task_id}: Grouped {len(groups)} unique keys")

            reducer = new_instance(self.conf.get(REDUCER_CLASS, REDUCER_CLASS_NAME))
            reducer.configure(self.conf)

            collector = ListCollector()
            try:
                for key in sort_keys(groups):
                    self.reporter.incr_counter("REDUCE_INPUT_GROUPS")
                    self.reporter.incr_counter("REDUCE_INPUT_RECORDS", len(groups[key]))
                    reducer.reduce(key, iter(groups[key]), collector, self.reporter)
            finally:
                reducer.close()
            self.reporter.incr_counter("REDUCE_OUTPUT_RECORDS", len(collector.pairs))

            output_file = output_format_for(self.conf).write_records(
                self.output_path, f"part-{self.partition_id:05d}", collector.pairs,
                OutputSettings.from_conf(self.conf),
            )

            execution_time = int((time.time() - start_time) * 1000)
            logger.info(f"Reduce task {self.task_id}: Wrote {len(collector.pairs)} pairs "
                        f"to {output_file} in {execution_time}ms")

            return {
                'success': True,
                'execution_time_ms': execution_time,
                'error_message': '',
                'output_file': output_file,
                'counters': dict(self.reporter.counters),
                'memory_bytes': self.process.memory_info().rss,
            }

        except Exception as e:
            execution_time = int((time.time() - start_time) * 1000)
            logger.error(f"Reduce task {self.task_id} failed: {e}")
            return {
                'success': False,
                'execution_time_ms': execution_time,
                'error_message': f"{type(e).__name__}: {e}",
                'output_file': '',
                'counters': dict(self.reporter.counters),
                'memory_bytes': self.process.memory_info().rss,
            }
