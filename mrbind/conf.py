"""
Phase kinds, configuration keys and the string-valued job configuration
that the host ships to every worker process.
"""

import json
from enum import Enum
from typing import Dict, Iterator, List, Optional

NAMESPACE = "mrbind"


class Phase(Enum):
    """Processing role a worker plays"""
    MAP = "map"
    REDUCE = "reduce"
    COMBINER = "combiner"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def function_key(phase: Phase) -> str:
    return f"{NAMESPACE}.job.{phase.value}"


def reader_key(phase: Phase) -> str:
    return f"{NAMESPACE}.job.{phase.value}.reader"


def writer_key(phase: Phase) -> str:
    return f"{NAMESPACE}.job.{phase.value}.writer"


REPLACE_KEY = f"{NAMESPACE}.job.replace"

# Host engine keys
JOB_NAME = "mapred.job.name"
INPUT_DIR = "mapred.input.dir"
OUTPUT_DIR = "mapred.output.dir"
MAPPER_CLASS = "mapred.mapper.class"
REDUCER_CLASS = "mapred.reducer.class"
COMBINER_CLASS = "mapred.combiner.class"
INPUT_FORMAT = "mapred.input.format.class"
OUTPUT_FORMAT = "mapred.output.format.class"
OUTPUT_KEY_CLASS = "mapred.output.key.class"
OUTPUT_VALUE_CLASS = "mapred.output.value.class"
COMPRESS_OUTPUT = "mapred.output.compress"
COMPRESSION_TYPE = "mapred.output.compression.type"
COMPRESSION_CODEC = "mapred.output.compression.codec"
REDUCE_TASKS = "mapred.reduce.tasks"
JOB_TRACKER = "mapred.job.tracker"
MAP_MAX_ATTEMPTS = "mapred.map.max.attempts"
REDUCE_MAX_ATTEMPTS = "mapred.reduce.max.attempts"
LOCAL_MAX_WORKERS = "mapred.local.max.workers"


class Configuration:
    """
    String-keyed, string-valued job configuration.

    Booleans and integers are accepted on ``set`` and stored by their text
    form; anything else that is not a string is rejected so the
    configuration always survives shipping to worker processes unchanged.
    """

    def __init__(self, values=None):
        self._values: Dict[str, str] = {}
        if isinstance(values, Configuration):
            values = values.to_dict()
        for key, value in (values or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set(self, key: str, value) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Configuration keys must be strings, got {type(key).__name__}")
        self._values[key] = _to_text(key, value)

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        return value.strip().lower() == "true"

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        if value is None or not value.strip():
            return default
        return int(value)

    def get_strings(self, key: str) -> List[str]:
        """Comma-separated value as a list, empty entries dropped"""
        value = self._values.get(key) or ""
        return [item.strip() for item in value.split(",") if item.strip()]

    def copy(self) -> "Configuration":
        return Configuration(self._values)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)

    @classmethod
    def from_dict(cls, values: Dict[str, str]) -> "Configuration":
        return cls(values)

    def to_json(self) -> str:
        return json.dumps(self._values, sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> "Configuration":
        return cls(json.loads(text))

    def __contains__(self, key) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Configuration({self._values!r})"


def _to_text(key, value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    raise TypeError(f"Configuration value for '{key}' must be a string, got {type(value).__name__}")
