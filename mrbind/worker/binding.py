"""
Installs a worker's entry point from the function, reader and writer named
in the job configuration.

A worker starts Unbound and becomes Bound exactly when ``install_binding``
succeeds; a failed install leaves whatever was installed before.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from mrbind.conf import Configuration, Phase, function_key, reader_key, writer_key
from mrbind.errors import InvalidBindingError, MissingFunctionBindingError, PhaseNotConfiguredError
from mrbind.worker import adapters
from mrbind.worker.function_loader import accepts_arity, load_name, resolve
from mrbind.worker.wrappers import wrapper_for

logger = logging.getLogger(__name__)

# Host method each phase is invoked through
HOST_METHODS = {
    Phase.MAP: "map",
    Phase.REDUCE: "reduce",
    Phase.COMBINER: "reduce",
}


class Unbound:
    """Entry point of a worker whose function has not been installed"""

    is_bound = False

    def __init__(self, phase: Phase):
        self.phase = phase

    def __call__(self, worker, key, value, output):
        raise PhaseNotConfiguredError(f"{self.phase.label} function not defined.")

    def __repr__(self):
        return f"Unbound({self.phase.value})"


@dataclass(frozen=True)
class Bound:
    """Entry point composed from a user function and its adapters"""
    phase: Phase
    function: Callable
    reader: Callable
    writer: Callable
    entry: Callable

    is_bound = True

    def __call__(self, worker, key, value, output):
        return self.entry(worker, key, value, output)


# The host constructs workers with no arguments and only hands them the
# configuration in configure(); user code that needs job settings reads them
# here. Valid only until the next configure in this process.
_active_job: Optional[Configuration] = None
_active_lock = threading.Lock()


def active_job() -> Optional[Configuration]:
    """Configuration of the job most recently configured in this process"""
    with _active_lock:
        return _active_job


def _set_active_job(conf: Configuration) -> None:
    global _active_job
    with _active_lock:
        _active_job = conf


def install_binding(phase: Phase, conf: Configuration, worker) -> Bound:
    """
    Resolve the phase's function and adapters from ``conf``, compose them
    and install the result as ``worker.entry_point``.

    Raises:
        MissingFunctionBindingError: No function configured for the phase
        InvalidBindingError: The function identifier names a non-function
        UnresolvedReferenceError: An identifier cannot be located
        NotCallableError: A reader or writer is not a two-argument callable
    """
    method = HOST_METHODS[phase]
    if not callable(getattr(worker, method, None)):
        raise TypeError(f"{type(worker).__name__} has no '{method}' method for the {phase.value} phase")

    _set_active_job(conf)

    key = function_key(phase)
    name = conf.get(key)
    if not name or not name.strip():
        raise MissingFunctionBindingError(phase, key)

    function = load_name(name)
    if not accepts_arity(function, 2):
        raise InvalidBindingError(phase, name)

    reader = _adapter(conf, reader_key(phase), adapters.default_reader(phase))
    writer = _adapter(conf, writer_key(phase), adapters.default_writer(phase))

    bound = Bound(
        phase=phase,
        function=function,
        reader=reader,
        writer=writer,
        entry=wrapper_for(phase)(function, reader, writer),
    )
    worker.entry_point = bound
    logger.debug(f"Bound {phase.value} to {name} on {type(worker).__name__}")
    return bound


def _adapter(conf: Configuration, key: str, default: Callable) -> Callable:
    name = conf.get(key)
    if not name:
        return default
    return resolve(name, arity=2)
