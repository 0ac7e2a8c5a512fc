#!/usr/bin/env python3
"""
Job Runner CLI
Entry points that build a default job, apply a job function or
command-line overrides, and run it to completion.
"""

import logging
import sys
from typing import Optional

from mrbind.conf import Configuration
from mrbind.coordinator.job import build_default_job, parse_overrides, run
from mrbind.coordinator.options import apply_options
from mrbind.errors import MrBindError

logger = logging.getLogger(__name__)


class JobTool:
    """Runs a job from command-line arguments on top of ambient settings"""

    def __init__(self, conf: Optional[Configuration] = None):
        self.conf = Configuration(conf)

    def run(self, args) -> int:
        """
        Returns:
            0 if the job succeeded, 1 otherwise
        """
        job = build_default_job(self.conf)
        parse_overrides(job, args)
        try:
            succeeded = run(job)
        except MrBindError as e:
            logger.error(f"Job {job.name} failed: {e}")
            return 1
        return 0 if succeeded else 1


def run_as_tool(tool: JobTool, args) -> int:
    return tool.run(args)


def run_job_fn(job_fn, tool: Optional[JobTool] = None) -> bool:
    """
    Run the job described by ``job_fn`` and block until it finishes

    Args:
        job_fn: Function returning a mapping of job options, or its identifier
        tool: Supplies the ambient configuration (default: empty)

    Returns:
        True if the job succeeded
    """
    tool = tool or JobTool()
    job = build_default_job(tool.conf)
    apply_options(job, {"job": job_fn})
    return run(job)


def main(argv=None):
    """Main CLI entry point"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = sys.argv[1:] if argv is None else argv
    return run_as_tool(JobTool(), args)


if __name__ == '__main__':
    sys.exit(main())
