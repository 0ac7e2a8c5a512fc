"""
Pytest configuration and shared fixtures
"""

import os
import shutil
import tempfile

import pytest

from mrbind.conf import Configuration, Phase, function_key
from mrbind.worker import function_loader

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def sample_text():
    """Sample text for testing"""
    return """The quick brown fox jumps over the lazy dog.
The dog was really lazy.
The fox was very quick and brown.
Quick brown foxes are amazing animals.
Lazy dogs sleep all day."""


@pytest.fixture
def sample_input_file(temp_dir, sample_text):
    """Create a sample input file for testing"""
    filepath = os.path.join(temp_dir, 'input.txt')
    with open(filepath, 'w') as f:
        f.write(sample_text)
    return filepath


@pytest.fixture
def wordcount_job_file():
    """Path to word count example job file"""
    return os.path.join(ROOT, 'examples', 'wordcount.py')


@pytest.fixture
def inverted_index_job_file():
    """Path to inverted index example job file"""
    return os.path.join(ROOT, 'examples', 'inverted_index.py')


@pytest.fixture
def registry():
    """Register functions under stable names for one test"""
    names = []

    def add(name, function):
        function_loader.register(name, function)
        names.append(name)
        return name

    yield add
    for name in names:
        function_loader.unregister(name)


@pytest.fixture
def wordcount_conf(wordcount_job_file):
    """Configuration binding every phase to the word count example"""
    return Configuration({
        function_key(Phase.MAP): f"{wordcount_job_file}:map_function",
        function_key(Phase.REDUCE): f"{wordcount_job_file}:reduce_function",
        function_key(Phase.COMBINER): f"{wordcount_job_file}:combiner_function",
    })


def read_text_output(output_dir):
    """All key/value lines of a text output directory, as a dict"""
    results = {}
    for name in sorted(os.listdir(output_dir)):
        if not name.startswith('part-'):
            continue
        with open(os.path.join(output_dir, name)) as f:
            for line in f:
                key, value = line.rstrip('\n').split('\t')
                results[key] = value
    return results


@pytest.fixture
def read_output():
    return read_text_output
