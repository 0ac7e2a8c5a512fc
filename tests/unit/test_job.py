"""
Unit tests for the job builder, replace policy and override parsing
"""

import os

import pytest

from mrbind.common.formats import CompressionType
from mrbind.conf import (
    COMBINER_CLASS, REPLACE_KEY, Configuration, Phase, function_key,
)
from mrbind.coordinator.job import (
    DEFAULT_JOB_NAME, Job, apply_replace_policy, build_default_job, parse_overrides,
)
from mrbind.errors import JobConfigurationError
from mrbind.worker.tasks import COMBINER_CLASS_NAME, MAPPER_CLASS_NAME, REDUCER_CLASS_NAME


class TestBuildDefaultJob:

    def test_defaults(self):
        job = build_default_job()

        assert job.name == DEFAULT_JOB_NAME
        assert job.output_key_class == "builtins:str"
        assert job.output_value_class == "builtins:str"
        assert job.mapper_class == MAPPER_CLASS_NAME
        assert job.reducer_class == REDUCER_CLASS_NAME
        assert job.input_format == "seq"
        assert job.output_format == "seq"
        assert job.compress_output is True
        assert job.compression_type == CompressionType.BLOCK
        assert job.num_reduce_tasks == 1

    def test_no_combiner_class_without_combiner_function(self):
        job = build_default_job()
        assert job.combiner_class is None

    def test_combiner_class_when_combiner_configured(self):
        base = Configuration({function_key(Phase.COMBINER): "examples.wordcount:combiner_function"})
        job = build_default_job(base)

        assert job.combiner_class == COMBINER_CLASS_NAME

    def test_ambient_settings_carried_over(self):
        base = Configuration({"user.setting": "1", function_key(Phase.MAP): "x:y"})
        job = build_default_job(base)

        assert job.conf.get("user.setting") == "1"
        assert job.conf.get(function_key(Phase.MAP)) == "x:y"
        assert "user.setting" not in build_default_job().conf

    def test_base_configuration_not_modified(self):
        base = Configuration()
        build_default_job(base)
        assert len(base) == 0


class TestReplacePolicy:

    def make_output(self, temp_dir):
        output = os.path.join(temp_dir, 'out')
        os.makedirs(output)
        with open(os.path.join(output, 'part-00000'), 'w') as f:
            f.write("old\n")
        return output

    def test_deletes_output_when_flag_is_true(self, temp_dir):
        job = Job()
        job.output_path = self.make_output(temp_dir)
        job.conf.set(REPLACE_KEY, "true")

        assert apply_replace_policy(job) is True
        assert not os.path.exists(job.output_path)

    @pytest.mark.parametrize("flag", [None, "false", "TRUE", "yes", " true"])
    def test_keeps_output_otherwise(self, temp_dir, flag):
        job = Job()
        job.output_path = self.make_output(temp_dir)
        if flag is not None:
            job.conf.set(REPLACE_KEY, flag)

        assert apply_replace_policy(job) is False
        assert os.path.exists(job.output_path)

    def test_missing_output_is_fine(self, temp_dir):
        job = Job()
        job.output_path = os.path.join(temp_dir, 'never-written')
        job.conf.set(REPLACE_KEY, "true")

        assert apply_replace_policy(job) is False

    def test_output_file_is_removed(self, temp_dir):
        path = os.path.join(temp_dir, 'single-file')
        with open(path, 'w') as f:
            f.write("x")
        job = Job()
        job.output_path = path
        job.conf.set(REPLACE_KEY, "true")

        assert apply_replace_policy(job) is True
        assert not os.path.exists(path)

    def test_replace_without_output(self):
        job = Job()
        job.conf.set(REPLACE_KEY, "true")

        with pytest.raises(JobConfigurationError):
            apply_replace_policy(job)


class TestParseOverrides:

    def test_applies_arguments(self):
        job = parse_overrides(build_default_job(), ["--output-format", "text", "--combine", "a.b:c"])

        assert job.output_format == "text"
        assert job.conf.get(COMBINER_CLASS) == COMBINER_CLASS_NAME

    def test_defined_combiner_sets_combiner_class(self):
        job = parse_overrides(build_default_job(), [
            "-D", f"{function_key(Phase.COMBINER)}=examples.wordcount:combiner_function",
        ])

        assert job.combiner_class == COMBINER_CLASS_NAME

    @pytest.mark.parametrize("args", [
        ["--no-such-flag"],
        ["--reduce-tasks", "lots"],
        ["--job", "no_such_module_xyz:job"],
        ["--job", "json.dumps"],
    ])
    def test_bad_arguments_exit_with_usage(self, capsys, args):
        with pytest.raises(SystemExit) as excinfo:
            parse_overrides(build_default_job(), args)

        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error: ")
        assert "--output" in err


class TestJobProperties:

    def test_job_copies_its_configuration(self):
        conf = Configuration({"a": "1"})
        job = Job(conf)
        job.name = "changed"

        assert conf.get("mapred.job.name") is None

    def test_compression_type_setter(self):
        job = Job()
        job.compression_type = CompressionType.RECORD
        assert job.compression_type == CompressionType.RECORD
