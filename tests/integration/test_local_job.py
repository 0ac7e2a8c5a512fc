"""
End-to-end tests running whole jobs through the in-process host
"""

import os

import pytest

from mrbind.client.client import JobTool, main, run_as_tool, run_job_fn
from mrbind.common.formats import SequenceFileInputFormat
from mrbind.conf import INPUT_DIR, OUTPUT_DIR, Configuration
from mrbind.coordinator.job_manager import SUCCESS_MARKER

pytestmark = pytest.mark.integration

EXPECTED_COUNTS = {
    'the': '4', 'quick': '3', 'brown': '3', 'fox': '2', 'jumps': '1',
    'over': '1', 'lazy': '3', 'dog': '2', 'was': '2', 'really': '1',
    'very': '1', 'and': '1', 'foxes': '1', 'are': '1', 'amazing': '1',
    'animals': '1', 'dogs': '1', 'sleep': '1', 'all': '1', 'day': '1',
}


def sum_counts(key, values):
    yield key, sum(int(v) for v in values)


def recount_job():
    """Second stage reading the first stage's sequence file output"""
    return {
        "map": "identity",
        "reduce": sum_counts,
        "output-format": "text",
        "compress-output": False,
    }


@pytest.fixture
def input_dir(temp_dir, sample_text):
    path = os.path.join(temp_dir, 'input')
    os.makedirs(path)
    lines = sample_text.split('\n')
    with open(os.path.join(path, 'part-a.txt'), 'w') as f:
        f.write('\n'.join(lines[:2]) + '\n')
    with open(os.path.join(path, 'part-b.txt'), 'w') as f:
        f.write('\n'.join(lines[2:]) + '\n')
    open(os.path.join(path, '_SUCCESS'), 'w').close()
    return path


@pytest.fixture
def output_dir(temp_dir):
    return os.path.join(temp_dir, 'output')


def ambient(input_dir, output_dir):
    return JobTool(Configuration({INPUT_DIR: input_dir, OUTPUT_DIR: output_dir}))


class TestWordCount:

    def test_job_function(self, wordcount_job_file, input_dir, output_dir, read_output):
        succeeded = run_job_fn(f"{wordcount_job_file}:wordcount_job", ambient(input_dir, output_dir))

        assert succeeded is True
        assert read_output(output_dir) == EXPECTED_COUNTS
        assert os.path.exists(os.path.join(output_dir, SUCCESS_MARKER))

    def test_command_line(self, wordcount_job_file, input_dir, output_dir, read_output):
        status = main([
            "--job", f"{wordcount_job_file}:wordcount_job",
            "--input", input_dir, "--output", output_dir,
            "--reduce-tasks", "3",
        ])

        assert status == 0
        assert read_output(output_dir) == EXPECTED_COUNTS
        parts = [n for n in os.listdir(output_dir) if n.startswith('part-')]
        assert sorted(parts) == ['part-00000', 'part-00001', 'part-00002']

    def test_registered_names(self, wordcount_job_file, input_dir, output_dir, read_output):
        # Loading the example registers its stable names in this process
        from mrbind.worker.function_loader import load_file_module
        load_file_module(wordcount_job_file)

        status = run_as_tool(JobTool(), [
            "--input", input_dir, "--output", output_dir,
            "--map", "wordcount.map", "--reduce", "wordcount.reduce", "--combine", "wordcount.combine",
            "--input-format", "text", "--output-format", "text", "--compress-output", "false",
        ])

        assert status == 0
        assert read_output(output_dir) == EXPECTED_COUNTS

    def test_job_file_option(self, inverted_index_job_file, input_dir, output_dir, read_output):
        status = main([
            "--job", f"{inverted_index_job_file}:inverted_index_job",
            "--input", input_dir, "--output", output_dir,
        ])

        assert status == 0
        index = read_output(output_dir)
        assert index['fox'] == 'doc_0'
        assert index['quick'] == 'doc_0,doc_34'


class TestOutputPolicy:

    def test_existing_output_fails_without_replace(self, wordcount_job_file, input_dir, output_dir):
        os.makedirs(output_dir)
        with open(os.path.join(output_dir, 'keep.txt'), 'w') as f:
            f.write("old")

        status = main(["--job", f"{wordcount_job_file}:wordcount_job",
                       "--input", input_dir, "--output", output_dir])

        assert status == 1
        assert os.path.exists(os.path.join(output_dir, 'keep.txt'))

    def test_replace_true_deletes_old_output(self, wordcount_job_file, input_dir, output_dir, read_output):
        os.makedirs(output_dir)
        with open(os.path.join(output_dir, 'stale.txt'), 'w') as f:
            f.write("old")

        status = main(["--job", f"{wordcount_job_file}:wordcount_job", "--replace", "true",
                       "--input", input_dir, "--output", output_dir])

        assert status == 0
        assert not os.path.exists(os.path.join(output_dir, 'stale.txt'))
        assert read_output(output_dir) == EXPECTED_COUNTS

    def test_bad_arguments_exit_before_running(self, input_dir, output_dir):
        with pytest.raises(SystemExit) as excinfo:
            main(["--input", input_dir, "--output", output_dir, "--bogus"])

        assert excinfo.value.code == 1
        assert not os.path.exists(output_dir)


class TestJobShapes:

    def test_map_only(self, wordcount_job_file, input_dir, output_dir):
        status = main([
            "--job", f"{wordcount_job_file}:wordcount_job", "--reduce", "none",
            "--input", input_dir, "--output", output_dir,
        ])

        assert status == 0
        parts = sorted(n for n in os.listdir(output_dir) if n.startswith('part-'))
        assert parts == ['part-00000', 'part-00001']
        with open(os.path.join(output_dir, 'part-00000')) as f:
            assert f.readline() == "the\t1\n"

    def test_missing_map_binding_fails_the_job(self, input_dir, output_dir):
        status = main(["--input", input_dir, "--output", output_dir, "--input-format", "text"])

        assert status == 1
        assert not os.path.exists(os.path.join(output_dir, SUCCESS_MARKER))

    def test_compressed_sequence_output_feeds_next_job(self, wordcount_job_file, input_dir, temp_dir, read_output):
        stage_one = os.path.join(temp_dir, 'stage-one')
        stage_two = os.path.join(temp_dir, 'stage-two')

        first = main([
            "--map", f"{wordcount_job_file}:map_function",
            "--reduce", f"{wordcount_job_file}:reduce_function",
            "--input-format", "text", "--reduce-tasks", "2",
            "--input", input_dir, "--output", stage_one,
        ])
        assert first == 0
        records = []
        for name in sorted(os.listdir(stage_one)):
            if name.startswith('part-'):
                records.extend(SequenceFileInputFormat().read_records(os.path.join(stage_one, name)))
        assert dict(records)['the'] == 4

        second = run_job_fn(f"{__name__}:recount_job", ambient(stage_one, stage_two))

        assert second is True
        assert read_output(stage_two) == EXPECTED_COUNTS
