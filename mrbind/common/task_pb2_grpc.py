"""
Client and server classes for the TaskService in mrbind/protos/task.proto,
laid out as grpc's Python generator lays them out.
"""

import grpc

from mrbind.common import task_pb2

SERVICE = f"{task_pb2.PACKAGE}.{task_pb2.SERVICE_NAME}"


class TaskServiceStub(object):
    """Runs map and reduce tasks on a worker process"""

    def __init__(self, channel):
        """
        Args:
            channel: A grpc.Channel.
        """
        self.RunMapTask = channel.unary_unary(
            f'/{SERVICE}/RunMapTask',
            request_serializer=task_pb2.MapTaskRequest.SerializeToString,
            response_deserializer=task_pb2.TaskResult.FromString,
        )
        self.RunReduceTask = channel.unary_unary(
            f'/{SERVICE}/RunReduceTask',
            request_serializer=task_pb2.ReduceTaskRequest.SerializeToString,
            response_deserializer=task_pb2.TaskResult.FromString,
        )
        self.Heartbeat = channel.unary_unary(
            f'/{SERVICE}/Heartbeat',
            request_serializer=task_pb2.HeartbeatRequest.SerializeToString,
            response_deserializer=task_pb2.WorkerStatus.FromString,
        )


class TaskServiceServicer(object):
    """Runs map and reduce tasks on a worker process"""

    def RunMapTask(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')

    def RunReduceTask(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')

    def Heartbeat(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')


def add_TaskServiceServicer_to_server(servicer, server):
    rpc_method_handlers = {
        'RunMapTask': grpc.unary_unary_rpc_method_handler(
            servicer.RunMapTask,
            request_deserializer=task_pb2.MapTaskRequest.FromString,
            response_serializer=task_pb2.TaskResult.SerializeToString,
        ),
        'RunReduceTask': grpc.unary_unary_rpc_method_handler(
            servicer.RunReduceTask,
            request_deserializer=task_pb2.ReduceTaskRequest.FromString,
            response_serializer=task_pb2.TaskResult.SerializeToString,
        ),
        'Heartbeat': grpc.unary_unary_rpc_method_handler(
            servicer.Heartbeat,
            request_deserializer=task_pb2.HeartbeatRequest.FromString,
            response_serializer=task_pb2.WorkerStatus.SerializeToString,
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(SERVICE, rpc_method_handlers)
    server.add_generic_rpc_handlers((generic_handler,))
