"""
Job descriptor and the steps that take it from defaults to a finished run:
build_default_job, parse_overrides, apply_replace_policy and run.
"""

import logging
import os
import shutil
import sys
from typing import List, Optional

from mrbind.conf import (
    COMBINER_CLASS, COMPRESS_OUTPUT, COMPRESSION_TYPE, INPUT_DIR, INPUT_FORMAT,
    JOB_NAME, MAPPER_CLASS, OUTPUT_DIR, OUTPUT_FORMAT, OUTPUT_KEY_CLASS,
    OUTPUT_VALUE_CLASS, REDUCE_TASKS, REDUCER_CLASS, REPLACE_KEY,
    Configuration, Phase, function_key,
)
from mrbind.common.formats import CompressionType
from mrbind.coordinator.job_manager import JobManager, JobRun
from mrbind.coordinator.options import parse_command_line_args, print_usage
from mrbind.errors import BindingError, JobConfigurationError
from mrbind.worker.tasks import COMBINER_CLASS_NAME, MAPPER_CLASS_NAME, REDUCER_CLASS_NAME

logger = logging.getLogger(__name__)

DEFAULT_JOB_NAME = "mrbind.job"


class Job:
    """A job configuration with typed accessors and a way to run it"""

    def __init__(self, conf: Optional[Configuration] = None, job_manager: Optional[JobManager] = None):
        self.conf = Configuration(conf)
        self.job_manager = job_manager
        self.last_run: Optional[JobRun] = None

    @property
    def name(self) -> str:
        return self.conf.get(JOB_NAME, "")

    @name.setter
    def name(self, value: str):
        self.conf.set(JOB_NAME, value)

    @property
    def input_paths(self) -> List[str]:
        return self.conf.get_strings(INPUT_DIR)

    @input_paths.setter
    def input_paths(self, paths: List[str]):
        self.conf.set(INPUT_DIR, ",".join(paths))

    @property
    def output_path(self) -> Optional[str]:
        return self.conf.get(OUTPUT_DIR)

    @output_path.setter
    def output_path(self, path: str):
        self.conf.set(OUTPUT_DIR, path)

    @property
    def input_format(self) -> Optional[str]:
        return self.conf.get(INPUT_FORMAT)

    @input_format.setter
    def input_format(self, value: str):
        self.conf.set(INPUT_FORMAT, value)

    @property
    def output_format(self) -> Optional[str]:
        return self.conf.get(OUTPUT_FORMAT)

    @output_format.setter
    def output_format(self, value: str):
        self.conf.set(OUTPUT_FORMAT, value)

    @property
    def output_key_class(self) -> Optional[str]:
        return self.conf.get(OUTPUT_KEY_CLASS)

    @output_key_class.setter
    def output_key_class(self, value: str):
        self.conf.set(OUTPUT_KEY_CLASS, value)

    @property
    def output_value_class(self) -> Optional[str]:
        return self.conf.get(OUTPUT_VALUE_CLASS)

    @output_value_class.setter
    def output_value_class(self, value: str):
        self.conf.set(OUTPUT_VALUE_CLASS, value)

    @property
    def compress_output(self) -> bool:
        return self.conf.get_bool(COMPRESS_OUTPUT)

    @compress_output.setter
    def compress_output(self, value: bool):
        self.conf.set(COMPRESS_OUTPUT, bool(value))

    @property
    def compression_type(self) -> CompressionType:
        return CompressionType(self.conf.get(COMPRESSION_TYPE, CompressionType.BLOCK.value))

    @compression_type.setter
    def compression_type(self, value: CompressionType):
        self.conf.set(COMPRESSION_TYPE, value.value)

    @property
    def num_reduce_tasks(self) -> int:
        return self.conf.get_int(REDUCE_TASKS, 1)

    @num_reduce_tasks.setter
    def num_reduce_tasks(self, count: int):
        self.conf.set(REDUCE_TASKS, int(count))

    @property
    def mapper_class(self) -> Optional[str]:
        return self.conf.get(MAPPER_CLASS)

    @mapper_class.setter
    def mapper_class(self, name: str):
        self.conf.set(MAPPER_CLASS, name)

    @property
    def reducer_class(self) -> Optional[str]:
        return self.conf.get(REDUCER_CLASS)

    @reducer_class.setter
    def reducer_class(self, name: str):
        self.conf.set(REDUCER_CLASS, name)

    @property
    def combiner_class(self) -> Optional[str]:
        return self.conf.get(COMBINER_CLASS)

    @combiner_class.setter
    def combiner_class(self, name: str):
        self.conf.set(COMBINER_CLASS, name)

    def wait_for_completion(self, verbose: bool = True) -> bool:
        """
        Submit the job and block until it finishes

        Returns:
            True if every task succeeded

        Raises:
            JobConfigurationError: If input or output is not usable
            OutputExistsError: If the output location already exists
        """
        manager = self.job_manager or JobManager()
        job_run = manager.submit(self.conf)
        self.last_run = job_run
        manager.run(job_run)
        if verbose:
            logger.info(f"Job {job_run.job_id} {job_run.status.value} in "
                        f"{job_run.end_time - job_run.start_time:.2f}s; "
                        f"counters: {dict(sorted(job_run.counters.items()))}")
        return job_run.successful


def build_default_job(base_conf: Optional[Configuration] = None) -> Job:
    """
    Job with default name, output types, sequence file input and output,
    block-compressed output, and the mapper and reducer worker classes.
    The combiner worker class is set only when a combiner function is
    configured.
    """
    job = Job(base_conf)
    job.name = DEFAULT_JOB_NAME
    job.output_key_class = "builtins:str"
    job.output_value_class = "builtins:str"
    job.mapper_class = MAPPER_CLASS_NAME
    job.reducer_class = REDUCER_CLASS_NAME
    job.input_format = "seq"
    job.output_format = "seq"
    job.compress_output = True
    job.compression_type = CompressionType.BLOCK
    if job.conf.get(function_key(Phase.COMBINER)):
        job.combiner_class = COMBINER_CLASS_NAME
    return job


def apply_replace_policy(job: Job) -> bool:
    """
    Delete the job's output location when the replace flag is "true".

    Returns:
        True if something was deleted
    """
    if job.conf.get(REPLACE_KEY) != "true":
        return False

    output = job.output_path
    if not output:
        raise JobConfigurationError("Replace requested but no output path configured")
    if not os.path.lexists(output):
        return False

    logger.warning(f"Replacing existing output at {output}")
    if os.path.isdir(output) and not os.path.islink(output):
        shutil.rmtree(output)
    else:
        os.remove(output)
    return True


def parse_overrides(job: Job, args) -> Job:
    """
    Apply command-line overrides; on malformed arguments report the error
    with usage text on stderr and exit with status 1.
    """
    try:
        parse_command_line_args(job, args)
    except (JobConfigurationError, BindingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        print_usage(sys.stderr)
        sys.exit(1)
    return job


def run(job: Job) -> bool:
    """Apply the replace policy, then run the job to completion"""
    apply_replace_policy(job)
    return job.wait_for_completion(True)
