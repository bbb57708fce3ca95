"""Command line interface for running benchmark sweeps and listing their reports.

This is effectively all of the argparse and completer logic - we want the imports
in this file to be minimal so that the startup is very fast. (Use lazy imports
where it makes sense/is feasible.)

This file contains a ``__name__ == "__main__"`` and can be run directly.
"""

import argparse
import sys

import argcomplete


def completer_stages(**kwargs) -> list[str]:
    """Argcomplete stage name (--overwrite-stage) completer."""
    # NOTE: importing "lazily" to reduce startup time of CLI
    from zkbench.pipeline import STAGE_NAMES

    return list(STAGE_NAMES)


def cmd_run(args) -> int:
    """``zkbench run`` - run the pipeline for each requested tree depth and summarize.

    Returns:
        The process exit code, non-zero if the sweep failed.
    """
    # NOTE: importing "lazily" to reduce startup time of CLI
    from zkbench import experiment

    _, manager = experiment.run_experiment(
        tree_depths=args.tree_depths,
        identity_seed=args.identity_seed,
        external_nullifier=args.external_nullifier,
        member_count=args.members,
        prefix=args.prefix,
        workspace_path=args.workspace_path,
        overwrite=args.overwrite,
        stage_overwrites=args.overwrite_stages,
        log=not args.no_log,
        log_debug=args.verbose,
        log_errors=args.log_errors,
        summary=not args.no_summary,
        no_color=args.no_color,
        quiet=args.quiet,
        plain=args.plain,
    )
    if manager.status == "error":
        return 1
    return 0


def cmd_ls(args) -> int:
    """``zkbench ls`` - print a table of the persisted per-depth reports."""
    # NOTE: importing "lazily" to reduce startup time of CLI
    from rich.console import Console
    from rich.table import Table

    from zkbench import experiment, utils

    reports = experiment.list_reports(args.workspace_path)
    if len(reports) == 0:
        print("No reports found")
        return 0

    print(f"{len(reports)} report(s) found")
    table = Table(title="Benchmark reports")
    columns = [
        ("name", None),
        ("tree_depth", None),
        ("circuit_size", utils.human_readable_mem_usage),
        ("proving_key_size", utils.human_readable_mem_usage),
        ("verification_key_size", utils.human_readable_mem_usage),
        ("proving_time", utils.human_readable_time),
        ("verification_time", utils.human_readable_time),
        ("verified", None),
    ]
    for column, _ in columns:
        table.add_column(column)
    for report in sorted(reports, key=lambda report: report.tree_depth):
        row = report.to_dict()
        table.add_row(
            *[
                str(row[column]) if formatter is None else formatter(row[column])
                for column, formatter in columns
            ]
        )
    Console().print(table)
    return 0


def main(argv: list[str] = None):
    """'Main' command line entrypoint, parses command line flags and makes the
    appropriate ``run_experiment()`` call as relevant."""

    parser = argparse.ArgumentParser(
        description="Benchmark circuit compilation, trusted setup, proving and verification across tree depths.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    zkbench run
    zkbench run -d 4 -d 8 --overwrite-stage trusted_setup
    zkbench run -d 20 --prefix fresh --overwrite

    zkbench ls  # lists the persisted reports
""",
    )
    parser.add_argument("command", choices=["run", "ls"])

    parameters_group = parser.add_argument_group(
        "Parameterization", "Choose which tree depths and circuit inputs to use."
    )
    outputs_group = parser.add_argument_group(
        "Outputs", "Control what gets created from a benchmark run."
    )
    caching_group = parser.add_argument_group(
        "Caching", "Configure workspace locations and cache usage."
    )
    display_group = parser.add_argument_group(
        "Display", "Configure console output during the run."
    )

    # ---- PARAMETERS ----
    parameters_group.add_argument(
        "-d",
        "--depth",
        dest="tree_depths",
        action="append",
        type=int,
        help="A tree depth to benchmark. Specify multiple -d arguments to sweep several depths, in the order given. Defaults to 'tree_depths' from the configuration.",
    )
    parameters_group.add_argument(
        "--identity-seed",
        dest="identity_seed",
        default=None,
        help="Seed the prover identity (nullifier and trapdoor) is derived from.",
    )
    parameters_group.add_argument(
        "--external-nullifier",
        dest="external_nullifier",
        type=int,
        default=None,
        help="The external nullifier signal passed into the circuit.",
    )
    parameters_group.add_argument(
        "--members",
        dest="members",
        type=int,
        default=None,
        help="How many identity commitments to insert into the membership tree.",
    )

    # ---- OUTPUTS ----
    outputs_group.add_argument(
        "--no-log",
        dest="no_log",
        action="store_true",
        help="Specify this flag to not store the log.",
    )
    outputs_group.add_argument(
        "--no-summary",
        dest="no_summary",
        action="store_true",
        help="Don't write the summary table and scaling plot after the sweep.",
    )
    outputs_group.add_argument(
        "--log-errors",
        dest="log_errors",
        action="store_true",
        help="Include errors and stack traces in output logs. NOTE: this redirects stderr.",
    )

    # ---- CACHING ----
    caching_group.add_argument(
        "-w",
        "--workspace",
        dest="workspace_path",
        default=None,
        help="Specify a different directory to create the per-depth workspaces in.",
    )
    caching_group.add_argument(
        "--prefix",
        dest="prefix",
        default=None,
        help="Prefix for the workspace directory names, this keeps a separate set of cached artifacts.",
    )
    caching_group.add_argument(
        "--overwrite",
        dest="overwrite",
        action="store_true",
        help="Recompute all cached artifacts.",
    )
    caching_group.add_argument(
        "--overwrite-stage",
        dest="overwrite_stages",
        action="append",
        help="Names of specific stages to recompute",
    ).completer = completer_stages

    # ---- DISPLAY ----
    display_group.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        help="Log at debug level.",
    )
    display_group.add_argument(
        "--quiet",
        dest="quiet",
        action="store_true",
        help="Suppress all log output to console.",
    )
    display_group.add_argument(
        "--no-color", dest="no_color", action="store_true", help="Less fancy colors."
    )
    display_group.add_argument(
        "--plain",
        dest="plain",
        action="store_true",
        help="Print normal logging rather than rich colored logs. This will output the exact same text printed into the file log.",
    )
    argcomplete.autocomplete(parser, always_complete_options=False)

    args = parser.parse_args(argv)

    if args.command == "ls":
        return cmd_ls(args)

    if args.overwrite_stages is not None:
        from zkbench.pipeline import STAGE_NAMES

        unknown = [name for name in args.overwrite_stages if name not in STAGE_NAMES]
        if unknown:
            parser.error(
                f"unknown stage(s) {unknown} for --overwrite-stage, expected one of {STAGE_NAMES}"
            )

    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
