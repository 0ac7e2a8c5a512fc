"""
Error classes for mrbind.

Binding errors are raised while a worker is being configured and abort the
configure call; the host engine treats that as a task failure and applies
its own task-attempt policy. PhaseExecutionError is raised while records
are processed. Nothing in the binding layer retries.
"""


class MrBindError(Exception):
    """Base exception for mrbind."""
    pass


class BindingError(MrBindError):
    """Configuration-time failure to bind a phase to its functions."""
    pass


class UnresolvedReferenceError(BindingError):
    """An identifier could not be located in the running process."""

    def __init__(self, identifier, reason=None):
        self.identifier = identifier
        message = f"Cannot resolve '{identifier}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NotCallableError(BindingError):
    """A resolved adapter is not callable with the expected arity."""

    def __init__(self, identifier, arity):
        self.identifier = identifier
        self.arity = arity
        super().__init__(f"'{identifier}' is not callable with {arity} positional arguments")


class MissingFunctionBindingError(BindingError):
    """No function identifier is configured for a phase."""

    def __init__(self, phase, key):
        self.phase = phase
        self.key = key
        super().__init__(f"No {phase.value} function configured (set '{key}')")


class InvalidBindingError(BindingError):
    """The configured function identifier resolves to a non-function."""

    def __init__(self, phase, identifier):
        self.phase = phase
        self.identifier = identifier
        super().__init__(f"{phase.value} binding '{identifier}' is not a function of (key, value)")


class PhaseNotConfiguredError(MrBindError):
    """A worker was invoked before its binding was installed."""
    pass


class PhaseExecutionError(MrBindError):
    """
    A user function or adapter failed while processing one record.

    Carries the phase and the native key of the offending record; the
    original exception is chained as ``__cause__``.
    """

    def __init__(self, phase, key, cause):
        self.phase = phase
        self.key = key
        super().__init__(
            f"{phase.value} failed on key {key!r}: {type(cause).__name__}: {cause}"
        )


class JobConfigurationError(MrBindError):
    """An option or configuration value is invalid."""
    pass


class UsageError(JobConfigurationError):
    """Malformed command-line arguments."""
    pass


class OutputExistsError(MrBindError):
    """The job output location already exists."""
    pass


class TaskFailedError(MrBindError):
    """A task failed on every attempt the host allows."""
    pass
