#!/usr/bin/env python3
"""
Job Manager
Reference host engine: tracks jobs and their tasks, ships the job
configuration to map and reduce tasks, shuffles map output into reduce
partitions and retries failed task attempts.
"""

import itertools
import logging
import os
import pickle
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import grpc

from mrbind.conf import (
    INPUT_DIR, JOB_NAME, JOB_TRACKER, LOCAL_MAX_WORKERS, MAP_MAX_ATTEMPTS,
    OUTPUT_DIR, REDUCE_MAX_ATTEMPTS, REDUCE_TASKS, Configuration,
)
from mrbind.common.formats import list_input_files
from mrbind.common import task_pb2
from mrbind.common.grpc_client import get_task_service_stub, result_from_message
from mrbind.errors import JobConfigurationError, OutputExistsError, TaskFailedError
from mrbind.worker.map_executor import MapExecutor
from mrbind.worker.reduce_executor import ReduceExecutor

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "_SUCCESS"


class JobStatus(Enum):
    """Status of a job"""
    PENDING = "pending"
    MAP_PHASE = "map_phase"
    REDUCE_PHASE = "reduce_phase"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(Enum):
    """Status of individual map or reduce tasks"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MapTask:
    """Represents a single map task"""
    task_id: int
    input_path: str
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    partitions: Dict[int, list] = field(default_factory=dict)
    output_file: str = ""


@dataclass
class ReduceTask:
    """Represents a single reduce task"""
    task_id: int
    partition_id: int
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    output_file: str = ""


@dataclass
class JobRun:
    """Represents one submitted job"""
    job_id: str
    name: str
    conf: Configuration
    output_path: str
    num_reduce_tasks: int
    status: JobStatus = JobStatus.PENDING
    map_tasks: List[MapTask] = field(default_factory=list)
    reduce_tasks: List[ReduceTask] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)
    peak_memory_bytes: int = 0
    error_message: str = ""
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def successful(self) -> bool:
        return self.status == JobStatus.COMPLETED


class LocalTaskRunner:
    """Runs tasks in this process, each with its own copy of the configuration"""

    def run_map(self, task: MapTask, conf_json: str, num_reduce_tasks: int, output_path: str) -> dict:
        return MapExecutor(
            task_id=task.task_id,
            conf=Configuration.from_json(conf_json),
            input_path=task.input_path,
            num_reduce_tasks=num_reduce_tasks,
            output_path=output_path,
        ).execute()

    def run_reduce(self, task: ReduceTask, conf_json: str, intermediate: list, output_path: str) -> dict:
        return ReduceExecutor(
            task_id=task.task_id,
            partition_id=task.partition_id,
            conf=Configuration.from_json(conf_json),
            intermediate=intermediate,
            output_path=output_path,
        ).execute()

    def close(self):
        pass


class RemoteTaskRunner:
    """Runs tasks on gRPC workers, round robin"""

    def __init__(self, addresses: List[str], timeout: float = 10, task_timeout: float = None):
        if not addresses:
            raise JobConfigurationError("No worker addresses given")
        self.addresses = addresses
        self.timeout = timeout
        self.task_timeout = task_timeout
        self._next = itertools.cycle(addresses)
        self._stubs = {}
        self._channels = []
        self._lock = threading.Lock()

    def _stub(self):
        with self._lock:
            address = next(self._next)
            if address not in self._stubs:
                channel, stub = get_task_service_stub(address, timeout=self.timeout)
                self._channels.append(channel)
                self._stubs[address] = stub
            return address, self._stubs[address]

    def _call(self, method: str, request) -> dict:
        try:
            address, stub = self._stub()
            return result_from_message(getattr(stub, method)(request, timeout=self.task_timeout))
        except (grpc.RpcError, ConnectionError) as e:
            details = e.details() if isinstance(e, grpc.RpcError) else str(e)
            logger.error(f"{method} failed on worker: {details}")
            return {'success': False, 'error_message': f"RPC failure: {details}",
                    'execution_time_ms': 0, 'partitions': {}, 'output_file': '',
                    'counters': {}, 'memory_bytes': 0}

    def run_map(self, task: MapTask, conf_json: str, num_reduce_tasks: int, output_path: str) -> dict:
        return self._call('RunMapTask', task_pb2.MapTaskRequest(
            task_id=task.task_id,
            conf=conf_json,
            input_path=task.input_path,
            num_reduce_tasks=num_reduce_tasks,
            output_path=output_path or '',
        ))

    def run_reduce(self, task: ReduceTask, conf_json: str, intermediate: list, output_path: str) -> dict:
        return self._call('RunReduceTask', task_pb2.ReduceTaskRequest(
            task_id=task.task_id,
            partition_id=task.partition_id,
            conf=conf_json,
            intermediate=pickle.dumps(intermediate),
            output_path=output_path,
        ))

    def close(self):
        with self._lock:
            for channel in self._channels:
                channel.close()
            self._channels = []
            self._stubs = {}


def task_runner_for(conf: Configuration):
    """'local' runs in process; otherwise a comma-separated list of worker addresses"""
    tracker = conf.get(JOB_TRACKER) or os.environ.get('MRBIND_TRACKER', 'local')
    if tracker.strip() == 'local':
        return LocalTaskRunner()
    return RemoteTaskRunner([a.strip() for a in tracker.split(',') if a.strip()])


class JobManager:
    """Manages jobs and drives them to completion"""

    def __init__(self, task_runner=None, max_workers: Optional[int] = None):
        self.task_runner = task_runner
        self.max_workers = max_workers
        self.jobs: Dict[str, JobRun] = {}
        self.lock = threading.Lock()

    def submit(self, conf: Configuration) -> JobRun:
        """
        Validate the job's input and output and create its map tasks

        Raises:
            JobConfigurationError: If input or output is missing
            OutputExistsError: If the output location already exists
        """
        output_path = conf.get(OUTPUT_DIR)
        if not output_path:
            raise JobConfigurationError("No output path configured")
        if os.path.exists(output_path):
            raise OutputExistsError(f"Output directory {output_path} already exists")

        input_paths = conf.get_strings(INPUT_DIR)
        if not input_paths:
            raise JobConfigurationError("No input paths configured")
        try:
            input_files = list_input_files(input_paths)
        except FileNotFoundError as e:
            raise JobConfigurationError(str(e)) from e

        num_reduce_tasks = conf.get_int(REDUCE_TASKS, 1)
        if num_reduce_tasks < 0:
            raise JobConfigurationError(f"Invalid number of reduce tasks: {num_reduce_tasks}")

        with self.lock:
            job = JobRun(
                job_id=f"job_{uuid.uuid4().hex[:12]}",
                name=conf.get(JOB_NAME, ''),
                conf=conf.copy(),
                output_path=output_path,
                num_reduce_tasks=num_reduce_tasks,
                start_time=time.time(),
            )
            job.map_tasks = [MapTask(task_id=i, input_path=path) for i, path in enumerate(input_files)]
            self.jobs[job.job_id] = job

        logger.info(f"Submitted {job.job_id} ({job.name}): {len(job.map_tasks)} map tasks, "
                    f"{num_reduce_tasks} reduce tasks")
        return job

    def run(self, job: JobRun) -> JobRun:
        """Run a submitted job to completion; failures are recorded on the job"""
        runner = self.task_runner or task_runner_for(job.conf)
        max_workers = self.max_workers or job.conf.get_int(LOCAL_MAX_WORKERS, 4)
        conf_json = job.conf.to_json()

        try:
            with ThreadPoolExecutor(max_workers=max(max_workers, 1)) as pool:
                self._set_status(job, JobStatus.MAP_PHASE)
                attempts = job.conf.get_int(MAP_MAX_ATTEMPTS, 1)
                list(pool.map(
                    lambda task: self._run_map_task(runner, job, task, conf_json, attempts),
                    job.map_tasks,
                ))

                if job.num_reduce_tasks > 0:
                    self._set_status(job, JobStatus.REDUCE_PHASE)
                    job.reduce_tasks = [ReduceTask(task_id=p, partition_id=p)
                                        for p in range(job.num_reduce_tasks)]
                    attempts = job.conf.get_int(REDUCE_MAX_ATTEMPTS, 1)
                    list(pool.map(
                        lambda task: self._run_reduce_task(runner, job, task, conf_json, attempts),
                        job.reduce_tasks,
                    ))

            os.makedirs(job.output_path, exist_ok=True)
            open(os.path.join(job.output_path, SUCCESS_MARKER), 'w').close()
            self._set_status(job, JobStatus.COMPLETED)
            logger.info(f"Job {job.job_id} completed successfully")

        except TaskFailedError as e:
            job.error_message = str(e)
            self._set_status(job, JobStatus.FAILED)
            logger.error(f"Job {job.job_id} failed: {e}")
        finally:
            job.end_time = time.time()
            if self.task_runner is None:
                runner.close()
        return job

    def run_job(self, conf: Configuration) -> JobRun:
        return self.run(self.submit(conf))

    def _run_map_task(self, runner, job: JobRun, task: MapTask, conf_json: str, max_attempts: int):
        result = self._attempt(
            f"Map task {task.task_id}", task, max_attempts,
            lambda: runner.run_map(task, conf_json, job.num_reduce_tasks, job.output_path),
        )
        task.partitions = result.get('partitions', {})
        task.output_file = result.get('output_file', '')
        self._record(job, result)

    def _run_reduce_task(self, runner, job: JobRun, task: ReduceTask, conf_json: str, max_attempts: int):
        intermediate = [m.partitions.get(task.partition_id, []) for m in job.map_tasks]
        result = self._attempt(
            f"Reduce task {task.task_id}", task, max_attempts,
            lambda: runner.run_reduce(task, conf_json, intermediate, job.output_path),
        )
        task.output_file = result.get('output_file', '')
        self._record(job, result)

    def _attempt(self, label: str, task, max_attempts: int, call) -> dict:
        """Run a task until it succeeds or its attempts run out"""
        max_attempts = max(max_attempts, 1)
        error = ''
        while task.attempts < max_attempts:
            task.attempts += 1
            task.status = TaskStatus.RUNNING
            result = call()
            if result['success']:
                task.status = TaskStatus.COMPLETED
                return result
            error = result['error_message']
            logger.warning(f"{label} attempt {task.attempts}/{max_attempts} failed: {error}")
        task.status = TaskStatus.FAILED
        raise TaskFailedError(f"{label} failed after {task.attempts} attempt(s): {error}")

    def _record(self, job: JobRun, result: dict):
        with self.lock:
            for name, value in result.get('counters', {}).items():
                job.counters[name] = job.counters.get(name, 0) + value
            job.peak_memory_bytes = max(job.peak_memory_bytes, result.get('memory_bytes', 0))

    def _set_status(self, job: JobRun, status: JobStatus):
        with self.lock:
            job.status = status

    def get_job_status(self, job_id: str) -> Optional[Dict]:
        """Get current job status with progress"""
        with self.lock:
            job = self.jobs.get(job_id)
            if not job:
                return None

            total_tasks = len(job.map_tasks) + job.num_reduce_tasks
            map_completed = sum(1 for t in job.map_tasks if t.status == TaskStatus.COMPLETED)
            reduce_completed = sum(1 for t in job.reduce_tasks if t.status == TaskStatus.COMPLETED)
            completed_tasks = map_completed + reduce_completed

            progress = int((completed_tasks / total_tasks * 100)) if total_tasks > 0 else 0

            return {
                'status': job.status.value,
                'progress': progress,
                'map_completed': map_completed,
                'map_total': len(job.map_tasks),
                'reduce_completed': reduce_completed,
                'reduce_total': job.num_reduce_tasks,
                'error_message': job.error_message,
            }
