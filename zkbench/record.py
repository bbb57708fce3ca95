"""Contains the Record class, the state that is threaded through every pipeline
stage for a single parameter set."""

import logging
import time
from contextlib import contextmanager

from zkbench.caching import CacheDecision
from zkbench.workspace import Workspace


class Record:
    """A single persistent state that's passed between the stages of one benchmark run.

    Args:
        manager (BenchmarkManager): The manager this record is associated with.
        params (BenchmarkParameters): The parameter set to apply to any stages this
            record is run through.
        hide (bool): If ``True``, don't add this record to the manager.
    """

    def __init__(self, manager, params, hide=False):
        self.manager = manager
        """The ``BenchmarkManager`` associated with this record."""
        self.params = params
        """The parameter set for this run."""
        self.workspace: Workspace = (
            manager.resolve_workspace(params) if params is not None else None
        )
        """The workspace for this run's tree depth. The circuit generation stage
        replaces this with a copy that has the content keys bound."""
        self.state: dict = {}
        """The dictionary of all outputs created by stages this record is passed through.
        All ``inputs`` from stage decorators are pulled from this dictionary, and all
        ``outputs`` are stored here."""
        self.stages: list[str] = []
        """The names of the stages this record has been passed through, in order."""
        self.decisions: dict[str, CacheDecision] = {}
        """The cache decision made for each stage that ran. Stages without cachers
        are always ``COMPUTE``."""
        self.timings: dict[str, float] = {}
        """Wall-clock durations in seconds, keyed by timing name."""

        if not hide:
            self.manager.records.append(self)

    @property
    def toolchain(self):
        return self.manager.toolchain

    def overwrite_requested(self, stage_name: str = None) -> bool:
        """Whether cached artifacts should be ignored for the passed stage, either
        because the parameter set, the manager, or the stage-specific overwrite list
        asks for it."""
        if self.params is not None and self.params.overwrite:
            return True
        if self.manager.overwrite:
            return True
        return stage_name is not None and stage_name in self.manager.overwrite_stages

    @contextmanager
    def timer(self, name: str):
        """Record the wall-clock duration of the wrapped block under ``name``.

        Example:
            .. code-block:: python

                with record.timer("proving"):
                    proof = prove(...)
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name] = time.perf_counter() - start
        logging.debug("Timing '%s' recorded: %ss", name, self.timings[name])
