"""
Function Loader for MapReduce User Functions
Resolves textual identifiers carried in the job configuration to callables
in the running worker process.

Identifier forms, tried in order:
    wordcount.map                 a name registered with ``register``
    jobs/wordcount.py:map_fn      a Python file and an attribute in it
    examples.wordcount:map_fn     an importable module and an attribute path
    examples.wordcount.map_fn     dotted path, longest importable module prefix
"""

import hashlib
import importlib
import importlib.util
import inspect
import logging
import os
import sys
import threading
from typing import Any, Callable, Dict

from mrbind.errors import NotCallableError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

_registry: Dict[str, Callable] = {}
_file_modules: Dict[str, Any] = {}
# Reentrant: modules loaded under the lock may call register()
_lock = threading.RLock()


def register(name: str, function: Callable = None):
    """
    Register ``function`` under a stable name.

    Usable directly, ``register("wordcount.map", fn)``, or as a decorator,
    ``@register("wordcount.map")``. Registration happens at import time of
    the defining module, so worker processes see the same names as long as
    they import it too.
    """
    def decorator(fn):
        if not callable(fn):
            raise TypeError(f"Cannot register non-callable under '{name}'")
        with _lock:
            _registry[name] = fn
        return fn

    if function is not None:
        return decorator(function)
    return decorator


def unregister(name: str) -> None:
    with _lock:
        _registry.pop(name, None)


def registered_names():
    with _lock:
        return sorted(_registry)


def load_name(identifier: str) -> Any:
    """
    Return the value ``identifier`` refers to.

    Raises:
        UnresolvedReferenceError: If the identifier cannot be located
    """
    if not isinstance(identifier, str) or not identifier.strip():
        raise UnresolvedReferenceError(identifier, "empty identifier")
    identifier = identifier.strip()

    with _lock:
        if identifier in _registry:
            return _registry[identifier]

    if ":" in identifier:
        location, _, attr_path = identifier.rpartition(":")
        if location.endswith(".py"):
            module = load_file_module(location)
        else:
            module = _import(identifier, location)
        return _walk(identifier, module, attr_path)

    parts = identifier.split(".")
    for i in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:i])
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            # Only a missing prefix means "try a shorter one"; anything
            # missing inside the module being imported is a real failure.
            if e.name and (module_name == e.name or module_name.startswith(e.name + ".")):
                continue
            raise UnresolvedReferenceError(identifier, str(e)) from e
        except ImportError as e:
            raise UnresolvedReferenceError(identifier, str(e)) from e
        return _walk(identifier, module, ".".join(parts[i:]))

    raise UnresolvedReferenceError(identifier, "no importable module in identifier")


def resolve(identifier: str, arity: int = 2) -> Callable:
    """
    Load ``identifier`` and check it is callable with ``arity`` positional
    arguments.

    Raises:
        UnresolvedReferenceError: If the identifier cannot be located
        NotCallableError: If the value cannot be called that way
    """
    value = load_name(identifier)
    if not accepts_arity(value, arity):
        raise NotCallableError(identifier, arity)
    return value


def accepts_arity(value: Any, arity: int) -> bool:
    """True if ``value`` is callable with ``arity`` positional arguments"""
    if not callable(value):
        return False
    try:
        signature = inspect.signature(value)
    except (TypeError, ValueError):
        # Some builtins expose no signature; trust callable()
        return True
    try:
        signature.bind(*([None] * arity))
    except TypeError:
        return False
    return True


def load_file_module(path: str):
    """
    Load a Python file as a module, once per absolute path

    Raises:
        UnresolvedReferenceError: If the file doesn't exist or fails to import
    """
    abs_path = os.path.abspath(path)
    with _lock:
        module = _file_modules.get(abs_path)
        if module is not None:
            return module

        if not os.path.exists(abs_path):
            raise UnresolvedReferenceError(path, "file not found")

        digest = hashlib.sha1(abs_path.encode("utf-8")).hexdigest()[:10]
        stem = os.path.splitext(os.path.basename(abs_path))[0]
        module_name = f"mrbind_user_{stem}_{digest}"

        spec = importlib.util.spec_from_file_location(module_name, abs_path)
        if spec is None or spec.loader is None:
            raise UnresolvedReferenceError(path, "not a loadable Python file")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise UnresolvedReferenceError(path, f"import failed: {e}") from e

        _file_modules[abs_path] = module
        logger.debug(f"Loaded user module {module_name} from {abs_path}")
        return module


def _import(identifier: str, module_name: str):
    try:
        return importlib.import_module(module_name)
    except ImportError as e:
        raise UnresolvedReferenceError(identifier, str(e)) from e


def _walk(identifier: str, obj: Any, attr_path: str) -> Any:
    if not attr_path:
        raise UnresolvedReferenceError(identifier, "no attribute named")
    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise UnresolvedReferenceError(identifier, f"no attribute '{attr}'") from e
    return obj


class FunctionLoader:
    """Loads map/reduce/combiner functions from a single user job file"""

    def __init__(self, map_reduce_file: str):
        """
        Initialize the function loader

        Args:
            map_reduce_file: Path to user's Python file, or an importable
                module name, containing map/reduce functions
        """
        self.map_reduce_file = map_reduce_file
        self.module = None

    def load_module(self):
        """
        Load the user module, once

        Raises:
            UnresolvedReferenceError: If the file or module can't be loaded
        """
        if self.module is None:
            if self.map_reduce_file.endswith(".py"):
                self.module = load_file_module(self.map_reduce_file)
            else:
                self.module = _import(self.map_reduce_file, self.map_reduce_file)
        return self.module

    def identifier(self, attr: str) -> str:
        """Configuration identifier for an attribute of the user module"""
        return f"{self.map_reduce_file}:{attr}"

    def get_map_function(self):
        """
        Raises:
            UnresolvedReferenceError: If module doesn't define 'map_function'
        """
        return self._require('map_function')

    def get_reduce_function(self):
        """
        Raises:
            UnresolvedReferenceError: If module doesn't define 'reduce_function'
        """
        return self._require('reduce_function')

    def get_combiner_function(self):
        """
        Returns:
            combiner_function, or None when the module defines none. The
            reduce function is not substituted: combining is only safe for
            functions the author marks as such.
        """
        return getattr(self.load_module(), 'combiner_function', None)

    def _require(self, attr: str):
        module = self.load_module()
        if not hasattr(module, attr):
            raise UnresolvedReferenceError(self.identifier(attr), f"module must define '{attr}'")
        return getattr(module, attr)
