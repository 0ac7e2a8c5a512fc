"""
gRPC Client Utilities
Channel and stub helpers for reaching worker task services, and the
conversion between executor result dicts and TaskResult messages.
"""

import pickle

import grpc

from mrbind.common import task_pb2, task_pb2_grpc

CHANNEL_OPTIONS = [
    ('grpc.max_send_message_length', 100 * 1024 * 1024),
    ('grpc.max_receive_message_length', 100 * 1024 * 1024),
]


def get_task_channel(worker_host, timeout=10):
    """
    Open a channel to a worker and wait until it is ready

    Args:
        worker_host: Host address in format 'host:port' (e.g., 'worker-1:50052')
        timeout: Connection timeout in seconds (default: 10)

    Raises:
        ConnectionError: If the worker is not reachable within timeout
    """
    channel = grpc.insecure_channel(worker_host, options=CHANNEL_OPTIONS)
    try:
        grpc.channel_ready_future(channel).result(timeout=timeout)
    except grpc.FutureTimeoutError:
        channel.close()
        raise ConnectionError(f"Failed to connect to worker at {worker_host} within {timeout}s")
    return channel


def get_task_service_stub(worker_host, timeout=10):
    """
    Create a TaskService stub for coordinator-worker communication

    Returns:
        (channel, TaskServiceStub); the caller closes the channel
    """
    channel = get_task_channel(worker_host, timeout=timeout)
    return channel, task_pb2_grpc.TaskServiceStub(channel)


def result_to_message(result: dict):
    """Executor result dict as a TaskResult; partition data travels pickled"""
    message = task_pb2.TaskResult(
        success=result['success'],
        execution_time_ms=result.get('execution_time_ms', 0),
        error_message=result.get('error_message', ''),
        output_file=result.get('output_file', ''),
        memory_bytes=result.get('memory_bytes', 0),
    )
    if result.get('partitions'):
        message.partitions = pickle.dumps(result['partitions'])
    for name, value in result.get('counters', {}).items():
        message.counters[name] = value
    return message


def result_from_message(message) -> dict:
    return {
        'success': message.success,
        'execution_time_ms': message.execution_time_ms,
        'error_message': message.error_message,
        'partitions': pickle.loads(message.partitions) if message.partitions else {},
        'output_file': message.output_file,
        'counters': dict(message.counters),
        'memory_bytes': message.memory_bytes,
    }
