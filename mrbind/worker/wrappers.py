"""
Composition of a user function with its reader and writer into the single
entry point a worker hands each record to.

Entry points are called as ``entry(worker, key, value, output)`` for map
and ``entry(worker, key, values, output)`` for reduce and combine, where
``output.collect(key, value)`` is the host's sink.
"""

from functools import partial

from mrbind.conf import Phase
from mrbind.errors import PhaseExecutionError


def wrap_map(function, reader, writer, phase=Phase.MAP):
    """Entry point applying ``function`` to one (key, value) record"""
    def entry(worker, wkey, wvalue, output):
        def invoke():
            key, value = reader(wkey, wvalue)
            return function(key, value)

        for out_key, out_value in _translate(phase, wkey, invoke, writer):
            output.collect(out_key, out_value)

    return entry


def wrap_reduce(function, reader, writer, phase=Phase.REDUCE):
    """
    Entry point applying ``function`` once to a key and its values.

    The values reach ``function`` through the reader as a lazy iterator;
    nothing here materializes them.
    """
    def entry(worker, wkey, wvalues, output):
        def invoke():
            key, values = reader(wkey, wvalues)
            return function(key, values)

        for out_key, out_value in _translate(phase, wkey, invoke, writer):
            output.collect(out_key, out_value)

    return entry


def _translate(phase, wkey, invoke, writer):
    """
    Yield the writer's form of each pair ``invoke()`` emits.

    Failures in the user function, the adapters or a malformed emitted pair
    are raised as PhaseExecutionError; the caller's sink stays outside the
    try blocks so host errors pass through untouched.
    """
    try:
        emitted = invoke()
        if emitted is None:
            return
        pairs = iter(emitted)
    except Exception as e:
        raise PhaseExecutionError(phase, wkey, e) from e

    while True:
        try:
            pair = next(pairs)
        except StopIteration:
            return
        except Exception as e:
            raise PhaseExecutionError(phase, wkey, e) from e
        try:
            out_key, out_value = pair
            native = writer(out_key, out_value)
            native_key, native_value = native
        except Exception as e:
            raise PhaseExecutionError(phase, wkey, e) from e
        yield native_key, native_value


WRAPPERS = {
    Phase.MAP: wrap_map,
    Phase.REDUCE: wrap_reduce,
    Phase.COMBINER: partial(wrap_reduce, phase=Phase.COMBINER),
}


def wrapper_for(phase: Phase):
    return WRAPPERS[phase]
