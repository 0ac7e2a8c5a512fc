"""
Task service messages.

Mirrors mrbind/protos/task.proto. The file descriptor is assembled here and
the message classes come from the protobuf runtime, so no protoc step is
needed to install the package.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_Field = descriptor_pb2.FieldDescriptorProto

PROTO_FILE = "mrbind/protos/task.proto"
PACKAGE = "mrbind"

# message name -> [(field name, number, type)]
MESSAGE_FIELDS = {
    "MapTaskRequest": [
        ("task_id", 1, _Field.TYPE_INT32),
        ("conf", 2, _Field.TYPE_STRING),
        ("input_path", 3, _Field.TYPE_STRING),
        ("num_reduce_tasks", 4, _Field.TYPE_INT32),
        ("output_path", 5, _Field.TYPE_STRING),
    ],
    "ReduceTaskRequest": [
        ("task_id", 1, _Field.TYPE_INT32),
        ("partition_id", 2, _Field.TYPE_INT32),
        ("conf", 3, _Field.TYPE_STRING),
        ("intermediate", 4, _Field.TYPE_BYTES),
        ("output_path", 5, _Field.TYPE_STRING),
    ],
    "TaskResult": [
        ("success", 1, _Field.TYPE_BOOL),
        ("execution_time_ms", 2, _Field.TYPE_INT64),
        ("error_message", 3, _Field.TYPE_STRING),
        ("partitions", 4, _Field.TYPE_BYTES),
        ("output_file", 5, _Field.TYPE_STRING),
        ("memory_bytes", 7, _Field.TYPE_INT64),
    ],
    "HeartbeatRequest": [
        ("sender", 1, _Field.TYPE_STRING),
    ],
    "WorkerStatus": [
        ("worker_id", 1, _Field.TYPE_STRING),
        ("is_available", 2, _Field.TYPE_BOOL),
        ("memory_bytes", 3, _Field.TYPE_INT64),
    ],
}

# map<string, int64> fields: message name -> [(field name, number)]
MAP_FIELDS = {
    "TaskResult": [("counters", 6)],
}

# method name -> (request message, response message)
SERVICE_NAME = "TaskService"
SERVICE_METHODS = {
    "RunMapTask": ("MapTaskRequest", "TaskResult"),
    "RunReduceTask": ("ReduceTaskRequest", "TaskResult"),
    "Heartbeat": ("HeartbeatRequest", "WorkerStatus"),
}


def _entry_name(field_name):
    return "".join(part.capitalize() for part in field_name.split("_")) + "Entry"


def _file_descriptor_proto():
    file_proto = descriptor_pb2.FileDescriptorProto(name=PROTO_FILE, package=PACKAGE, syntax="proto3")

    for message_name, fields in MESSAGE_FIELDS.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type in fields:
            message.field.add(name=name, number=number, type=field_type, label=_Field.LABEL_OPTIONAL)

        for name, number in MAP_FIELDS.get(message_name, []):
            entry = message.nested_type.add(name=_entry_name(name))
            entry.options.map_entry = True
            entry.field.add(name="key", number=1, type=_Field.TYPE_STRING, label=_Field.LABEL_OPTIONAL)
            entry.field.add(name="value", number=2, type=_Field.TYPE_INT64, label=_Field.LABEL_OPTIONAL)
            message.field.add(
                name=name, number=number, type=_Field.TYPE_MESSAGE, label=_Field.LABEL_REPEATED,
                type_name=f".{PACKAGE}.{message_name}.{entry.name}",
            )

    service = file_proto.service.add(name=SERVICE_NAME)
    for method, (request, response) in SERVICE_METHODS.items():
        service.method.add(name=method, input_type=f".{PACKAGE}.{request}",
                           output_type=f".{PACKAGE}.{response}")
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor_proto().SerializeToString())
DESCRIPTOR = _pool.FindFileByName(PROTO_FILE)


def _message_class(name):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


MapTaskRequest = _message_class("MapTaskRequest")
ReduceTaskRequest = _message_class("ReduceTaskRequest")
TaskResult = _message_class("TaskResult")
HeartbeatRequest = _message_class("HeartbeatRequest")
WorkerStatus = _message_class("WorkerStatus")
