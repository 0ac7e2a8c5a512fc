"""
Record formats used by the reference host to read job input and write job
output.

text  one record per line; input keys are byte offsets, output is
      ``key<TAB>value``
seq   sequence files: a header line, then pickled (key, value) records,
      optionally compressed per record or as one block stream
"""

import bz2
import gzip
import json
import os
import pickle
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, List, Tuple

from mrbind.conf import (
    COMPRESS_OUTPUT, COMPRESSION_CODEC, COMPRESSION_TYPE, INPUT_FORMAT,
    OUTPUT_FORMAT, OUTPUT_KEY_CLASS, OUTPUT_VALUE_CLASS, Configuration,
)
from mrbind.errors import JobConfigurationError
from mrbind.worker.function_loader import load_name

SEQ_MAGIC = b"MRSEQ1\n"


class CompressionType(Enum):
    NONE = "none"
    RECORD = "record"
    BLOCK = "block"


@dataclass(frozen=True)
class Codec:
    name: str
    extension: str
    compress: Callable[[bytes], bytes]
    decompress: Callable[[bytes], bytes]
    open_stream: Callable[[Any, str], Any]


GZIP = Codec(
    name="gzip",
    extension=".gz",
    compress=gzip.compress,
    decompress=gzip.decompress,
    open_stream=lambda fileobj, mode: gzip.GzipFile(fileobj=fileobj, mode=mode),
)

BZIP2 = Codec(
    name="bzip2",
    extension=".bz2",
    compress=bz2.compress,
    decompress=bz2.decompress,
    open_stream=lambda fileobj, mode: bz2.BZ2File(fileobj, mode=mode),
)

CODECS = {
    "default": GZIP,
    "gzip": GZIP,
    "bzip2": BZIP2,
}


def codec_for(name: str) -> Codec:
    try:
        return CODECS[name]
    except KeyError:
        raise JobConfigurationError(
            f"Unknown compression codec '{name}' (expected one of {', '.join(sorted(CODECS))})"
        ) from None


def compression_type_for(name: str) -> CompressionType:
    try:
        return CompressionType(name.lower())
    except ValueError:
        raise JobConfigurationError(
            f"Unknown compression type '{name}' (expected none, record or block)"
        ) from None


def list_input_files(paths: Iterable[str]) -> List[str]:
    """
    Expand input paths to files. Directories contribute their regular files,
    skipping names starting with '_' or '.' (markers and hidden files).
    """
    files = []
    for path in paths:
        if os.path.isdir(path):
            for name in sorted(os.listdir(path)):
                full = os.path.join(path, name)
                if name.startswith(("_", ".")) or not os.path.isfile(full):
                    continue
                files.append(full)
        elif os.path.exists(path):
            files.append(path)
        else:
            raise FileNotFoundError(f"Input path not found: {path}")
    return files


def _open_input(path: str):
    if path.endswith(GZIP.extension):
        return gzip.open(path, "rb")
    if path.endswith(BZIP2.extension):
        return bz2.open(path, "rb")
    return open(path, "rb")


class TextInputFormat:
    name = "text"

    def read_records(self, path: str) -> Iterator[Tuple[int, str]]:
        """Yield (byte offset, line without line ending) for each line"""
        offset = 0
        with _open_input(path) as f:
            for raw in f:
                yield offset, raw.decode("utf-8", errors="replace").rstrip("\r\n")
                offset += len(raw)


class SequenceFileInputFormat:
    name = "seq"

    def read_records(self, path: str) -> Iterator[Tuple[Any, Any]]:
        with open(path, "rb") as f:
            header = _read_header(f, path)
            compression = CompressionType(header["compression"])

            if compression == CompressionType.RECORD:
                codec = codec_for(header["codec"])
                while True:
                    size = f.read(4)
                    if not size:
                        return
                    (length,) = struct.unpack(">I", size)
                    key, value = pickle.loads(codec.decompress(f.read(length)))
                    yield key, value

            stream = f
            if compression == CompressionType.BLOCK:
                stream = codec_for(header["codec"]).open_stream(f, "rb")
            while True:
                try:
                    key, value = pickle.load(stream)
                except EOFError:
                    return
                yield key, value


def _read_header(f, path: str) -> dict:
    if f.readline() != SEQ_MAGIC:
        raise ValueError(f"Not a sequence file: {path}")
    return json.loads(f.readline().decode("utf-8"))


@dataclass
class OutputSettings:
    compress: bool
    compression_type: CompressionType
    codec: Codec
    key_class: str
    value_class: str

    @classmethod
    def from_conf(cls, conf: Configuration) -> "OutputSettings":
        return cls(
            compress=conf.get_bool(COMPRESS_OUTPUT),
            compression_type=compression_type_for(conf.get(COMPRESSION_TYPE, "block")),
            codec=codec_for(conf.get(COMPRESSION_CODEC, "default")),
            key_class=conf.get(OUTPUT_KEY_CLASS, "builtins:str"),
            value_class=conf.get(OUTPUT_VALUE_CLASS, "builtins:str"),
        )


class TextOutputFormat:
    name = "text"

    def write_records(self, output_dir: str, part_name: str,
                      records: Iterable[Tuple[Any, Any]], settings: OutputSettings) -> str:
        os.makedirs(output_dir, exist_ok=True)
        compress = settings.compress and settings.compression_type != CompressionType.NONE
        path = os.path.join(output_dir, part_name + (settings.codec.extension if compress else ""))

        with open(path, "wb") as raw:
            stream = settings.codec.open_stream(raw, "wb") if compress else raw
            try:
                for key, value in records:
                    stream.write(f"{key}\t{value}\n".encode("utf-8"))
            finally:
                if stream is not raw:
                    stream.close()
        return path


class SequenceFileOutputFormat:
    name = "seq"

    def write_records(self, output_dir: str, part_name: str,
                      records: Iterable[Tuple[Any, Any]], settings: OutputSettings) -> str:
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, part_name)
        compression = settings.compression_type if settings.compress else CompressionType.NONE
        header = {
            "compression": compression.value,
            "codec": settings.codec.name,
            "key_class": settings.key_class,
            "value_class": settings.value_class,
        }

        with open(path, "wb") as f:
            f.write(SEQ_MAGIC)
            f.write(json.dumps(header).encode("utf-8") + b"\n")

            if compression == CompressionType.RECORD:
                for key, value in records:
                    data = settings.codec.compress(pickle.dumps((key, value)))
                    f.write(struct.pack(">I", len(data)))
                    f.write(data)
            elif compression == CompressionType.BLOCK:
                with settings.codec.open_stream(f, "wb") as stream:
                    for key, value in records:
                        pickle.dump((key, value), stream)
            else:
                for key, value in records:
                    pickle.dump((key, value), f)
        return path


INPUT_FORMATS = {
    TextInputFormat.name: TextInputFormat,
    SequenceFileInputFormat.name: SequenceFileInputFormat,
}

OUTPUT_FORMATS = {
    TextOutputFormat.name: TextOutputFormat,
    SequenceFileOutputFormat.name: SequenceFileOutputFormat,
}


def input_format_for(conf: Configuration):
    return _format(conf.get(INPUT_FORMAT, TextInputFormat.name), INPUT_FORMATS)


def output_format_for(conf: Configuration):
    return _format(conf.get(OUTPUT_FORMAT, TextOutputFormat.name), OUTPUT_FORMATS)


def _format(name: str, known: dict):
    if name in known:
        return known[name]()
    # Custom format classes are named by identifier
    return load_name(name)()
