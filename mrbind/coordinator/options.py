"""
Job options shared by the command line and job functions.

A job function returns a mapping of option names to values, for example::

    def wordcount_job():
        return {
            "input": "data/books",
            "output": "out/wordcount",
            "map": "examples.wordcount:map_function",
            "reduce": "examples.wordcount:reduce_function",
            "output-format": "text",
        }

On the command line each option is ``--<name> value``; raw configuration
keys are set with ``-D key=value``.
"""

import argparse
import sys
from collections.abc import Mapping

from mrbind.conf import (
    COMBINER_CLASS, COMPRESSION_CODEC, COMPRESSION_TYPE, JOB_TRACKER, REPLACE_KEY,
    Phase, function_key, reader_key, writer_key,
)
from mrbind.common.formats import codec_for, compression_type_for
from mrbind.errors import BindingError, JobConfigurationError, UsageError
from mrbind.worker.function_loader import FunctionLoader, load_name, register
from mrbind.worker.tasks import COMBINER_CLASS_NAME

IDENTITY_MAP = "mrbind.worker.adapters:identity_map"
IDENTITY_REDUCE = "mrbind.worker.adapters:identity_reduce"

OPTIONS = {}


def option(name, help):
    def decorator(handler):
        OPTIONS[name] = (handler, help)
        return handler
    return decorator


def configure(job, name, value):
    """Apply one option to a job"""
    try:
        handler, _ = OPTIONS[name]
    except KeyError:
        raise JobConfigurationError(f"Unknown option '{name}'") from None
    handler(job, value)


def apply_options(job, options):
    """Apply a mapping of options, 'job' first so explicit options win"""
    if not isinstance(options, Mapping):
        raise JobConfigurationError(f"Job options must be a mapping, got {type(options).__name__}")
    if "job" in options:
        configure(job, "job", options["job"])
    for name, value in options.items():
        if name != "job":
            configure(job, name, value)


def identifier_for(value) -> str:
    """Identifier text for an option value naming a function or class"""
    if isinstance(value, str):
        return value
    if callable(value):
        name = f"{value.__module__}:{value.__qualname__}"
        # Lambdas and nested functions are not importable by name; the
        # registry makes them resolvable in this process.
        register(name, value)
        return name
    raise JobConfigurationError(f"Expected a function or identifier, got {value!r}")


def _bool(name, value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text not in ("true", "false"):
        raise JobConfigurationError(f"Option '{name}' expects true or false, got {value!r}")
    return text == "true"


def _paths(value):
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [p.strip() for p in str(value).split(",") if p.strip()]


@option("job", "function returning a mapping of options")
def _job(job, value):
    job_fn = value if callable(value) else load_name(value)
    try:
        options = job_fn()
    except (JobConfigurationError, BindingError):
        raise
    except Exception as e:
        raise JobConfigurationError(f"Job function {value!r} failed: {type(e).__name__}: {e}") from e
    apply_options(job, options)


@option("job-file", "Python file defining map_function, reduce_function and optionally combiner_function")
def _job_file(job, value):
    loader = FunctionLoader(value)
    loader.get_map_function()
    loader.get_reduce_function()
    configure(job, "map", loader.identifier("map_function"))
    configure(job, "reduce", loader.identifier("reduce_function"))
    if loader.get_combiner_function() is not None:
        configure(job, "combine", loader.identifier("combiner_function"))


@option("name", "job name")
def _name(job, value):
    job.name = str(value)


@option("input", "comma-separated input files or directories")
def _input(job, value):
    job.input_paths = _paths(value)


@option("output", "output directory")
def _output(job, value):
    job.output_path = str(value)


@option("replace", "true to delete the output directory before running")
def _replace(job, value):
    job.conf.set(REPLACE_KEY, _bool("replace", value))


@option("map", "map function, or 'identity'")
def _map(job, value):
    if value == "identity":
        value = IDENTITY_MAP
    job.conf.set(function_key(Phase.MAP), identifier_for(value))


@option("reduce", "reduce function, 'identity', or 'none' for a map-only job")
def _reduce(job, value):
    if value == "none":
        job.num_reduce_tasks = 0
        return
    if value == "identity":
        value = IDENTITY_REDUCE
    job.conf.set(function_key(Phase.REDUCE), identifier_for(value))


@option("combine", "combiner function")
def _combine(job, value):
    job.conf.set(function_key(Phase.COMBINER), identifier_for(value))
    job.conf.set(COMBINER_CLASS, COMBINER_CLASS_NAME)


def _adapter_option(phase, key_fn):
    def handler(job, value):
        job.conf.set(key_fn(phase), identifier_for(value))
    return handler


for _prefix, _phase in (("map", Phase.MAP), ("reduce", Phase.REDUCE), ("combine", Phase.COMBINER)):
    option(f"{_prefix}-reader", f"{_phase.value} input reader")(_adapter_option(_phase, reader_key))
    option(f"{_prefix}-writer", f"{_phase.value} output writer")(_adapter_option(_phase, writer_key))


@option("input-format", "text, seq, or a format class")
def _input_format(job, value):
    job.input_format = identifier_for(value)


@option("output-format", "text, seq, or a format class")
def _output_format(job, value):
    job.output_format = identifier_for(value)


@option("output-key", "output key class")
def _output_key(job, value):
    job.output_key_class = identifier_for(value)


@option("output-value", "output value class")
def _output_value(job, value):
    job.output_value_class = identifier_for(value)


@option("compress-output", "true or false")
def _compress_output(job, value):
    job.compress_output = _bool("compress-output", value)


@option("output-compressor", "default, gzip or bzip2")
def _output_compressor(job, value):
    job.conf.set(COMPRESSION_CODEC, codec_for(str(value)).name)


@option("compression-type", "block, record or none")
def _compression_type(job, value):
    job.conf.set(COMPRESSION_TYPE, compression_type_for(str(value)).value)


@option("reduce-tasks", "number of reduce tasks")
def _reduce_tasks(job, value):
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise JobConfigurationError(f"Option 'reduce-tasks' expects an integer, got {value!r}") from None
    if count < 0:
        raise JobConfigurationError(f"Option 'reduce-tasks' must not be negative, got {count}")
    job.num_reduce_tasks = count


@option("tracker", "'local' or comma-separated worker addresses")
def _tracker(job, value):
    job.conf.set(JOB_TRACKER, str(value))


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on bad arguments"""

    def error(self, message):
        raise UsageError(message)


def build_parser(prog=None) -> OptionParser:
    parser = OptionParser(
        prog=prog,
        allow_abbrev=False,
        description='Run a MapReduce job whose functions are named by identifier',
        epilog='Example: %(prog)s --input data/ --output out/ '
               '--map examples.wordcount:map_function --reduce examples.wordcount:reduce_function',
    )
    for name, (_, help_text) in OPTIONS.items():
        parser.add_argument(f'--{name}', dest=name.replace('-', '_'), metavar='VALUE', help=help_text)
    parser.add_argument('-D', dest='defines', action='append', default=[], metavar='KEY=VALUE',
                        help='set a configuration key directly (repeatable)')
    return parser


def parse_command_line_args(job, args):
    """
    Apply command-line overrides to a job

    Raises:
        UsageError: If the arguments are malformed
        JobConfigurationError: If an option value is invalid
    """
    parsed = build_parser().parse_args(list(args))

    if parsed.job is not None:
        configure(job, "job", parsed.job)
    for name in OPTIONS:
        if name == "job":
            continue
        value = getattr(parsed, name.replace('-', '_'))
        if value is not None:
            configure(job, name, value)

    for define in parsed.defines:
        key, sep, value = define.partition('=')
        if not sep or not key.strip():
            raise UsageError(f"-D expects KEY=VALUE, got '{define}'")
        job.conf.set(key.strip(), value)

    if job.conf.get(function_key(Phase.COMBINER)) and not job.conf.get(COMBINER_CLASS):
        job.conf.set(COMBINER_CLASS, COMBINER_CLASS_NAME)


def print_usage(file=None):
    build_parser().print_help(file or sys.stderr)
