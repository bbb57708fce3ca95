"""The per-parameter benchmark report, and the sweep level summary built from a
set of reports: a pandas table, a matplotlib scaling plot, and a check that the
artifact sizes grow with tree depth."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from zkbench.caching import atomic_write

SIZE_COLUMNS = [
    "circuit_size",
    "proving_key_size",
    "proving_key_text_size",
    "verification_key_size",
]
"""Report fields holding on-disk artifact sizes in bytes."""
TIME_COLUMNS = ["proving_time", "verification_time"]
"""Report fields holding wall-clock durations in seconds."""


@dataclass
class Report:
    """The persisted outcome of one pipeline run for a single tree depth.

    ``proving_key_size`` is the size of the binary (packed) proving key, the text
    key's size is kept separately in ``proving_key_text_size``.
    """

    name: str
    tree_depth: int
    params_hash: str
    circuit_key: str
    setup_key: str
    circuit_size: int
    proving_key_size: int
    proving_key_text_size: int
    verification_key_size: int
    proving_time: float
    verification_time: float
    verified: bool
    timestamp: str

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, path: str) -> str:
        """Write the report as JSON, replacing any previous report at ``path``."""
        with atomic_write(path) as outfile:
            json.dump(self.to_dict(), outfile, indent=4)
        return path

    @classmethod
    def load(cls, path: str) -> "Report":
        with open(path) as infile:
            data = json.load(infile)
        known = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


def find_reports(workspace_path: str) -> list[str]:
    """Get the paths of all persisted reports under the workspace directory,
    one per workspace that has finished a run."""
    paths = []
    if not os.path.exists(workspace_path):
        return paths
    for entry in sorted(os.listdir(workspace_path)):
        path = os.path.join(workspace_path, entry, "report.json")
        if os.path.isfile(path):
            paths.append(path)
    return paths


def summarize(reports: list[Report]) -> pd.DataFrame:
    """Collect reports into a table with one row per tree depth, sorted by depth."""
    df = pd.DataFrame([report.to_dict() for report in reports])
    if len(df) == 0:
        return df
    return df.sort_values("tree_depth").reset_index(drop=True)


def non_monotonic_columns(df: pd.DataFrame, columns: list[str] = None) -> list[str]:
    """Find which of the passed columns decrease anywhere as tree depth increases.

    Args:
        df (pd.DataFrame): A summary table as returned from ``summarize``.
        columns (list[str]): The columns to check, the artifact sizes by default.

    Returns:
        The names of the columns that are not monotone non-decreasing.
    """
    if columns is None:
        columns = SIZE_COLUMNS
    if len(df) < 2:
        return []
    ordered = df.sort_values("tree_depth")
    return [
        column
        for column in columns
        if np.any(np.diff(ordered[column].to_numpy(dtype=float)) < 0)
    ]


def plot_scaling(df: pd.DataFrame, path: str):
    """Save a figure of artifact sizes and timings against tree depth."""
    fig, (size_axis, time_axis) = plt.subplots(1, 2, figsize=(12, 5), facecolor="white")
    depths = df["tree_depth"]

    for column in SIZE_COLUMNS:
        size_axis.plot(depths, df[column], marker="o", label=column)
    size_axis.set_xlabel("tree depth")
    size_axis.set_ylabel("bytes")
    size_axis.set_yscale("log")
    size_axis.grid(True)
    size_axis.legend()

    for column in TIME_COLUMNS:
        time_axis.plot(depths, df[column], marker="o", label=column)
    time_axis.set_xlabel("tree depth")
    time_axis.set_ylabel("seconds")
    time_axis.grid(True)
    time_axis.legend()

    fig.tight_layout()
    fig.savefig(path, format="png")
    plt.close(fig)


def write_summary(reports: list[Report], output_path: str) -> pd.DataFrame:
    """Write the sweep summary table (``summary.csv``) and scaling plot
    (``scaling.png``) into ``output_path``, and warn about any artifact size that
    shrinks as depth grows.

    Returns:
        The summary table.
    """
    os.makedirs(output_path, exist_ok=True)
    df = summarize(reports)
    if len(df) == 0:
        logging.warning("No reports to summarize")
        return df

    csv_path = os.path.join(output_path, "summary.csv")
    with atomic_write(csv_path) as outfile:
        df.to_csv(outfile, index=False)
    logging.info("Summary table written to '%s'", csv_path)

    plot_scaling(df, os.path.join(output_path, "scaling.png"))

    for column in non_monotonic_columns(df):
        logging.warning(
            "'%s' does not increase monotonically with tree depth: %s",
            column,
            dict(zip(df["tree_depth"], df[column])),
        )
    return df
