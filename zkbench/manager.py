"""Contains the BenchmarkManager, which holds the configuration, toolchain, records
and metadata for one benchmark run."""

import logging
import os
from datetime import datetime
from socket import gethostname

from zkbench import utils, workspace
from zkbench.toolchain import Toolchain, get_toolchain


class BenchmarkManager:
    """This class manages the records, paths, and options for a benchmark run.

    Any path or option not passed in is taken from the ``zkbench_config.json``
    configuration (see ``utils.get_configuration``).

    Args:
        prefix (str): An optional prefix for workspace directory names, used to keep
            separate families of runs apart.
        toolchain (Toolchain): The collaborators to run the pipeline with. If ``None``,
            the command line tools named in the configuration are used.
        workspace_path (str): The directory all per-depth workspaces live in.
        logs_path (str): The path where run logs get stored.
        reports_path (str): The path where sweep summaries are written.
        ptau_path (str): The powers of tau file the trusted setup uses.
        content_addressed (bool): Whether artifact filenames are prefixed with a
            fingerprint of their generating inputs.
        overwrite (bool): Ignore every cached artifact.
        overwrite_stages (list[str]): Names of stages whose cached artifacts are ignored.
        dry (bool): Don't create the log and report directories.
    """

    def __init__(
        self,
        prefix: str = None,
        toolchain: Toolchain = None,
        workspace_path: str = None,
        logs_path: str = None,
        reports_path: str = None,
        ptau_path: str = None,
        content_addressed: bool = None,
        overwrite: bool = False,
        overwrite_stages: list[str] = None,
        dry: bool = False,
    ):
        self.prefix = prefix
        """Prefix for workspace directory names."""
        self.run_timestamp = datetime.now()
        """The datetime timestamp for when the manager is initialized (and usually
        also when the sweep starts running.)"""
        self.git_commit_hash = ""
        """The current commit hash if a git repo is in use."""
        self.os = utils.get_os()
        """The name of the current OS."""
        self.hostname = gethostname()
        """The hostname of the machine this benchmark ran on."""

        self.workspace_path = workspace_path
        """The directory all per-depth workspaces live in."""
        self.logs_path = logs_path
        """The path where run logs get stored."""
        self.reports_path = reports_path
        """The path where sweep summaries are written."""
        self.ptau_path = ptau_path
        """The powers of tau file the trusted setup uses."""
        self.content_addressed = content_addressed
        """Whether artifact filenames carry content keys."""

        self.config = {}
        """The configuration loaded from the zkbench config file if present."""

        self.records = []
        """The list of records run by this manager, one per parameter set."""
        self.overwrite = overwrite
        """Ignore the cache for every stage."""
        self.overwrite_stages = overwrite_stages if overwrite_stages is not None else []
        """The list of individual stages for which to ignore the cache."""

        self.status = "incomplete"
        """The current status of the run: 'incomplete', 'complete', or 'error'."""
        self.error = None
        """The exception class and error string, if one was thrown."""

        self._load_config()
        self.toolchain = toolchain if toolchain is not None else get_toolchain(self.config)
        """The collaborators every record's stages run with."""

        git_commit = utils.get_current_commit()
        if git_commit != "":
            self.git_commit_hash = git_commit

        if not dry:
            os.makedirs(self.logs_path, exist_ok=True)
            os.makedirs(self.reports_path, exist_ok=True)

    def _load_config(self):
        """Populate any non-pre-existing path values with config values."""
        self.config = utils.get_configuration()
        if self.workspace_path is None:
            self.workspace_path = self.config["workspace_path"]
        if self.logs_path is None:
            self.logs_path = self.config["logs_path"]
        if self.reports_path is None:
            self.reports_path = self.config["reports_path"]
        if self.ptau_path is None:
            self.ptau_path = self.config["ptau_path"]
        else:
            self.config["ptau_path"] = self.ptau_path
        if self.content_addressed is None:
            self.content_addressed = self.config["content_addressed"]

    def resolve_workspace(self, params) -> workspace.Workspace:
        """Get the (unkeyed) workspace for a parameter set's tree depth."""
        return workspace.resolve(params.tree_depth, self.workspace_path, self.prefix)

    def get_str_timestamp(self) -> str:
        """Convert the manager's run timestamp into a string representation."""
        return self.run_timestamp.strftime(utils.TIMESTAMP_FORMAT)

    def get_reference_name(self) -> str:
        """Get the reference name of this run, used to name its log and summary folder.

        The format for this name is [prefix]_[timestamp], or zkbench_[timestamp] with
        no prefix."""
        name = self.prefix if self.prefix else "zkbench"
        return f"{name}_{self.get_str_timestamp()}"

    def get_summary_path(self) -> str:
        return os.path.join(self.reports_path, self.get_reference_name())

    def log_info(self):
        """Log the run metadata."""
        logging.info("Run reference %s", self.get_reference_name())
        logging.info("Host %s (%s)", self.hostname, self.os)
        if self.git_commit_hash:
            logging.info("Git commit %s", self.git_commit_hash)
        else:
            logging.warning("No git repository found, the run will not be tied to a commit")
        logging.info("Workspaces in '%s'", self.workspace_path)
        if not self.content_addressed:
            logging.info("Content addressing disabled, artifacts use fixed names")
