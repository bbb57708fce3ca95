"""Contains the parameter class BenchmarkParameters, a dataclass meant to represent
the configuration of a single benchmark run (one tree depth)."""

from dataclasses import dataclass, field
from typing import Callable, Union

from zkbench import hashing


@dataclass
class BenchmarkParameters:
    """Parameters for one benchmark pipeline run.

    The identity seed and external nullifier are part of the parameter set rather
    than module level values, so that sweeps with different identities can be
    expressed and tests can inject deterministic values.

    Example:
        .. code-block:: python

            from zkbench.params import BenchmarkParameters

            params = BenchmarkParameters(name="depth_20", tree_depth=20)
    """

    name: str = "UNNAMED"
    """Parameter set name, used as the logging prefix and in reports. This should be
    unique for every parameter set in a sweep."""
    tree_depth: int = 20
    """The depth of the membership tree, which drives the structural size of the
    benchmarked circuit and names the workspace."""
    identity_seed: str = "zkbench"
    """Seed the prover identity (nullifier and trapdoor) is derived from."""
    external_nullifier: int = 42
    """The external nullifier signal passed into the circuit."""
    member_count: int = 4
    """How many identity commitments are inserted into the membership tree. The
    prover's own commitment is always the last one."""
    hash: str = None
    """Filled automatically with the hash of the parameter set."""
    overwrite: bool = False
    """Whether to recompute every cached artifact for this parameter set."""

    hash_representations: dict[str, Union[None, Callable]] = field(
        default_factory=dict, repr=False
    )
    """Dictionary of parameter names mapped to functions returning the representation
    to hash for that parameter, or ``None`` to exclude it from the hash. (see
    ``hashing.get_parameter_hash_value``)"""

    def __post_init__(self):
        if isinstance(self.tree_depth, bool) or not isinstance(self.tree_depth, int):
            raise ValueError(
                f"tree_depth must be an integer, got {type(self.tree_depth).__name__}"
            )
        if self.tree_depth < 1:
            raise ValueError(f"tree_depth must be at least 1, got {self.tree_depth}")
        if self.member_count < 1:
            raise ValueError("member_count must be at least 1")
        if self.member_count > 2**self.tree_depth:
            raise ValueError(
                f"A tree of depth {self.tree_depth} can't hold {self.member_count} members"
            )
        if self.hash is None:
            self.hash = self.params_hash()

    def params_hash(self, dry=False):
        """Convenience function to see the hash of these parameters, or debug them
        with ``dry=True``."""
        return hashing.hash_param_set(self, dry=dry)


def get_params(
    tree_depths: list[int],
    identity_seed: str = "zkbench",
    external_nullifier: int = 42,
    member_count: int = 4,
    overwrite: bool = False,
) -> list[BenchmarkParameters]:
    """Build one parameter set per requested tree depth, in the given order."""
    param_sets = []
    for depth in tree_depths:
        param_sets.append(
            BenchmarkParameters(
                name=f"depth_{depth}",
                tree_depth=depth,
                identity_seed=identity_seed,
                external_nullifier=external_nullifier,
                # a shallow tree can't hold the default member count
                member_count=min(member_count, 2**depth),
                overwrite=overwrite,
            )
        )
    return param_sets
