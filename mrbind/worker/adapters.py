"""
Readers, writers and the default adapter for each phase.

Readers translate what the host hands a worker into the values user
functions see: ``reader(key, value) -> (key, value)`` for map and
``reader(key, values) -> (key, values)`` for reduce and combine, where
``values`` must stay a lazy iterator. Writers translate what user functions
emit back for the host: ``writer(key, value) -> (key, value)``.
"""

import ast

from mrbind.conf import Phase


def passthrough_map_reader(key, value):
    return key, value


def passthrough_reduce_reader(key, values):
    return key, (value for value in values)


def passthrough_writer(key, value):
    return key, value


def literal_map_reader(key, value):
    """Parse key and value from their printed (repr) form"""
    return _literal(key), _literal(value)


def literal_reduce_reader(key, values):
    return _literal(key), (_literal(value) for value in values)


def string_map_reader(key, value):
    return _text(key), _text(value)


def string_reduce_reader(key, values):
    return _text(key), (_text(value) for value in values)


def int_string_map_reader(key, value):
    """Text input: integer byte offset and the line as a string"""
    return int(key), _text(value)


def literal_writer(key, value):
    """Print key and value so literal readers can read them back"""
    return repr(key), repr(value)


def string_writer(key, value):
    return str(key), str(value)


def identity_map(key, value):
    yield key, value


def identity_reduce(key, values):
    for value in values:
        yield key, value


def _text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _literal(value):
    if isinstance(value, (str, bytes)):
        return ast.literal_eval(_text(value))
    return value


DEFAULT_READERS = {
    Phase.MAP: passthrough_map_reader,
    Phase.REDUCE: passthrough_reduce_reader,
    Phase.COMBINER: passthrough_reduce_reader,
}

DEFAULT_WRITER = passthrough_writer


def default_reader(phase: Phase):
    return DEFAULT_READERS[phase]


def default_writer(phase: Phase):
    """One writer serves every phase"""
    if phase not in DEFAULT_READERS:
        raise KeyError(phase)
    return DEFAULT_WRITER
