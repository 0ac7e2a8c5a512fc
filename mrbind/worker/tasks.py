"""
Worker classes the host engine instantiates by name.

Each is constructed with no arguments, configured once with the job
configuration, then called once per record (map) or once per key (reduce,
combine). All behavior comes from the entry point installed at configure.
"""

from mrbind.conf import Configuration, Phase
from mrbind.worker.binding import Unbound, install_binding


class PhaseTask:
    """Common lifecycle of the map, reduce and combine workers"""

    phase: Phase = None

    def __init__(self):
        self.conf = None
        self.entry_point = Unbound(self.phase)

    @property
    def is_bound(self) -> bool:
        return self.entry_point.is_bound

    def configure(self, conf: Configuration):
        self.conf = conf
        install_binding(self.phase, conf, self)

    def close(self):
        pass


class JobMapper(PhaseTask):
    phase = Phase.MAP

    def map(self, key, value, output, reporter):
        self.entry_point(self, key, value, output)


class JobReducer(PhaseTask):
    phase = Phase.REDUCE

    def reduce(self, key, values, output, reporter):
        self.entry_point(self, key, values, output)


class JobCombiner(JobReducer):
    phase = Phase.COMBINER


MAPPER_CLASS_NAME = "mrbind.worker.tasks:JobMapper"
REDUCER_CLASS_NAME = "mrbind.worker.tasks:JobReducer"
COMBINER_CLASS_NAME = "mrbind.worker.tasks:JobCombiner"
