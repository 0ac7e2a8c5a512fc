#!/usr/bin/env python3
"""
MapReduce Worker Server
Serves TaskService so a job manager can run map and reduce tasks in this
process. Each request carries the job configuration; the worker rebuilds it
and runs the task through the same executors as local mode.
"""

import logging
import os
import pickle
import time
from concurrent import futures

import grpc
import psutil

from mrbind.conf import Configuration
from mrbind.common import task_pb2, task_pb2_grpc
from mrbind.common.grpc_client import CHANNEL_OPTIONS, result_to_message
from mrbind.worker.map_executor import MapExecutor
from mrbind.worker.reduce_executor import ReduceExecutor

logger = logging.getLogger(__name__)


class TaskServiceImpl(task_pb2_grpc.TaskServiceServicer):
    """Implementation of TaskService for handling task assignments"""

    def __init__(self, worker_id):
        self.worker_id = worker_id
        self.process = psutil.Process()

    def RunMapTask(self, request, context):
        """Run a map task and report its result"""
        logger.info(f"Worker {self.worker_id}: Received map task {request.task_id}")
        executor = MapExecutor(
            task_id=request.task_id,
            conf=Configuration.from_json(request.conf),
            input_path=request.input_path,
            num_reduce_tasks=request.num_reduce_tasks,
            output_path=request.output_path or None,
        )
        return result_to_message(executor.execute())

    def RunReduceTask(self, request, context):
        """Run a reduce task over the pairs shuffled to its partition"""
        logger.info(f"Worker {self.worker_id}: Received reduce task {request.task_id}")
        executor = ReduceExecutor(
            task_id=request.task_id,
            partition_id=request.partition_id,
            conf=Configuration.from_json(request.conf),
            intermediate=pickle.loads(request.intermediate) if request.intermediate else [],
            output_path=request.output_path,
        )
        return result_to_message(executor.execute())

    def Heartbeat(self, request, context):
        """Respond to heartbeat from the job manager"""
        return task_pb2.WorkerStatus(
            worker_id=self.worker_id,
            is_available=True,
            memory_bytes=self.process.memory_info().rss,
        )


def create_server(port, worker_id, max_workers=5):
    """
    Build and start the worker gRPC server

    Returns:
        (server, bound port); port 0 picks a free port
    """
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers), options=CHANNEL_OPTIONS)
    task_pb2_grpc.add_TaskServiceServicer_to_server(TaskServiceImpl(worker_id), server)
    bound_port = server.add_insecure_port(f'[::]:{port}')
    server.start()
    logger.info(f"Worker {worker_id} gRPC server started on port {bound_port}")
    return server, bound_port


def serve(port, worker_id):
    """Start the worker gRPC server and block"""
    server, _ = create_server(port, worker_id)
    try:
        while True:
            time.sleep(86400)
    except KeyboardInterrupt:
        server.stop(0)


def main():
    """Start the worker process"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    worker_id = os.environ.get('WORKER_ID', 'unknown')
    port = int(os.environ.get('WORKER_PORT', 50052))

    logger.info(f"Worker {worker_id} starting...")
    serve(port, worker_id)


if __name__ == '__main__':
    main()
