"""Running the benchmark pipeline over a sweep of parameter sets."""

import logging
import os
import traceback

from zkbench import reporting, utils
from zkbench.manager import BenchmarkManager
from zkbench.params import BenchmarkParameters, get_params
from zkbench.pipeline import run_pipeline
from zkbench.record import Record
from zkbench.reporting import Report


def run_sweep(
    param_sets: list[BenchmarkParameters], manager: BenchmarkManager
) -> list[Report]:
    """Run the full pipeline for every parameter set, one after the other.

    A parameter set is only started once the previous one has completed. The
    first failure propagates out and no later parameter sets are run.

    Returns:
        The reports, in the order of ``param_sets``.
    """
    reports = []
    for index, params in enumerate(param_sets):
        logging.info(
            "Running parameter set %s (%d/%d)", params.name, index + 1, len(param_sets)
        )
        record = Record(manager, params)
        reports.append(run_pipeline(record))
    return reports


def run_experiment(
    tree_depths: list[int] = None,
    identity_seed: str = None,
    external_nullifier: int = None,
    member_count: int = None,
    prefix: str = None,
    workspace_path: str = None,
    overwrite: bool = False,
    stage_overwrites: list[str] = None,
    manager: BenchmarkManager = None,
    log: bool = False,
    log_debug: bool = False,
    log_errors: bool = False,
    summary: bool = True,
    no_color: bool = False,
    quiet: bool = False,
    plain: bool = False,
):
    """The benchmark entrypoint function. This runs the sweep over the requested tree
    depths, logging to a file and writing a sweep summary if asked to.

    Any argument left as ``None`` is taken from the configuration.

    Args:
        tree_depths (list[int]): The tree depths to benchmark, in order.
        identity_seed (str): Seed the prover identity is derived from.
        external_nullifier (int): The external nullifier signal.
        member_count (int): How many identity commitments go in the tree.
        prefix (str): Prefix for workspace directory names.
        workspace_path (str): Directory the workspaces are created in.
        overwrite (bool): Whether to force recomputing every cached artifact.
        stage_overwrites (list[str]): A list of stage names to recompute even when
            their artifacts are cached.
        manager (BenchmarkManager): A manager to use, one is created if none is passed.
        log (bool): Whether to write a log file or not.
        log_debug (bool): Whether to include DEBUG level messages in the log.
        log_errors (bool): Whether to redirect stderr into the log.
        summary (bool): Whether to write the summary table and plot after the sweep.
        no_color (bool): Suppress colors in console output.
        quiet (bool): Suppress console log output.
        plain (bool): Plain text log output rather than rich.

    Returns:
        A tuple of the list of reports (``None`` if the sweep failed) and the manager.
    """
    if manager is None:
        manager = BenchmarkManager(
            prefix=prefix,
            workspace_path=workspace_path,
            overwrite=overwrite,
            overwrite_stages=stage_overwrites,
        )
    config = manager.config

    if log:
        log_path = os.path.join(manager.logs_path, f"{manager.get_reference_name()}.log")
        level = logging.DEBUG if log_debug else logging.INFO
        utils.init_logging(
            log_path,
            level,
            log_errors,
            no_color=no_color,
            quiet=quiet,
            plain=plain,
        )

    manager.log_info()
    if stage_overwrites:
        logging.info("Overwriting stages %s", stage_overwrites)

    reports = None
    try:
        param_sets = get_params(
            tree_depths if tree_depths is not None else config["tree_depths"],
            identity_seed=(
                identity_seed if identity_seed is not None else config["identity_seed"]
            ),
            external_nullifier=(
                external_nullifier
                if external_nullifier is not None
                else config["external_nullifier"]
            ),
            member_count=(
                member_count if member_count is not None else config["member_count"]
            ),
            overwrite=overwrite,
        )
        logging.info(
            "Sweeping tree depths %s", [params.tree_depth for params in param_sets]
        )
        reports = run_sweep(param_sets, manager)
        manager.status = "complete"
    except Exception as e:
        utils.set_logging_prefix("")
        logging.error(e)
        logging.error(traceback.format_exc())
        manager.status = "error"
        manager.error = f"{str(e.__class__.__name__)} - {str(e)}"

    if reports is not None and summary:
        summary_path = manager.get_summary_path()
        reporting.write_summary(reports, summary_path)
        logging.info("Sweep summary written to '%s'", summary_path)

    logging.info("Run finished with status '%s'", manager.status)
    return reports, manager


def list_reports(workspace_path: str = None) -> list[Report]:
    """Load every persisted report under the workspace directory."""
    if workspace_path is None:
        workspace_path = utils.get_configuration()["workspace_path"]
    return [Report.load(path) for path in reporting.find_reports(workspace_path)]
