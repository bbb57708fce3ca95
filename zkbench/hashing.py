"""Utility functions for generating hashes of parameter sets and fingerprints of
artifact inputs.

Two kinds of hashes are computed here:

* The hash of a parameter set, which identifies a benchmark configuration in
  reports and logs.
* Artifact fingerprints ("keys"), which are prefixed to the filenames of cached
  artifacts. A fingerprint is computed from everything that goes into generating
  an artifact (the circuit source text, the tree depth, the compiler version and
  so on) so that changing any of those inputs resolves to a different path and
  therefore misses the cache, rather than silently reusing a stale artifact.

Both are computed the same way: some representation for every named part is
retrieved and turned into a string, the md5 hash of ``name + representation``
is computed, the integer values of these md5 hashes are added up, and the final
integer is turned back into a hex string.
"""

import hashlib
from dataclasses import field, fields, is_dataclass
from typing import Any, Callable

PARAMETERS_BLACKLIST = ["name", "hash", "overwrite", "hash_representations"]
"""The parameters on the BenchmarkParameters class that we always ignore as part
of the hash."""


def set_hash_functions(*args, **kwargs):
    """Convenience function for easily setting the hash_representations dictionary
    with the appropriate dataclass field. Parameters passed to this function should
    be the same as the parameter name in the parameters class itself.

    Example:
        .. code-block:: python

            @dataclass
            class Params(BenchmarkParameters):
                label: str = ""

                hash_representations: dict = set_hash_functions(
                    label=None  # label is _not_ included in the hash.
                )
    """
    if len(args) > 0:
        if type(args[0]) != dict:
            raise ValueError(
                "If providing a positional arg to set_hash_functions, it must be a dictionary."
            )
        return field(default_factory=lambda: {**(args[0]), **kwargs}, repr=False)
    return field(default_factory=lambda: dict(**kwargs), repr=False)


def get_parameter_hash_value(param_set, param_name: str) -> tuple[str, Any]:
    """Determines which hashing representation mechanism to use for the specified
    parameter, computes the result of the mechanism, and returns both.

    The mechanisms, in order:

    1. Skip any blacklisted parameters that shouldn't affect the hash.
    2. If there's an associated function in ``hash_representations``, call it
       (or skip the parameter if it's set to ``None``).
    3. If the value of the parameter is ``None``, skip it.
    4. Recurse into dataclasses.
    5. Use ``__qualname__`` for callables.
    6. Otherwise use ``repr``.

    Returns:
        A tuple where the first element is the strategy used to compute the hashable representation,
        and the second element is that computed representation.
    """
    value = getattr(param_set, param_name)

    if param_name in PARAMETERS_BLACKLIST:
        return ("SKIPPED: blacklist", None)

    if (
        hasattr(param_set, "hash_representations")
        and param_name in param_set.hash_representations
    ):
        if param_set.hash_representations[param_name] is None:
            return ("SKIPPED: set to None in hash_representations", None)
        return (
            f"param_set.hash_representations['{param_name}'](param_set, param_set.{param_name})",
            param_set.hash_representations[param_name](param_set, value),
        )

    elif value is None:
        return ("SKIPPED: value is None", None)

    elif is_dataclass(value):
        return (
            f"get_param_set_hash_values(param_set, {param_name})",
            get_param_set_hash_values(value),
        )

    elif isinstance(value, Callable):
        return ("value.__qualname__", value.__qualname__)

    return (f"repr(param_set.{param_name})", repr(value))


def get_param_set_hash_values(param_set) -> dict[str, tuple[str, Any]]:
    """Collect the hash representations from every parameter in the passed parameter set."""
    return {
        param.name: get_parameter_hash_value(param_set, param.name)
        for param in fields(param_set)
    }


def _compute_hash_part(hash_representations: dict[str, tuple[str, Any]]) -> int:
    """Recursive computation for the integer value of the hash of a passed hash_values dictionary."""
    hash_total = 0
    for hash_key, (hash_rep, hash_rep_value) in hash_representations.items():
        if hash_rep_value is None:
            continue

        if hash_rep.startswith("get_param_set_hash_values"):
            hash_total += _compute_hash_part(hash_rep_value)
        else:
            # concatenate the key so two parameters swapping values don't collide
            hash_hex = hashlib.md5(f"{hash_key}{hash_rep_value}".encode()).hexdigest()
            hash_total += int(hash_hex, 16)
    return hash_total


def hash_param_set(param_set, dry: bool = False):
    """Returns the hex string hash of a parameter set.

    Args:
        param_set: The parameter set (dataclass instance) to hash.
        dry (bool): If ``True``, return the dictionary of hash representations
            instead of the hash, which is useful for debugging what does and
            doesn't count toward the hash.
    """
    hash_values = get_param_set_hash_values(param_set)
    if dry:
        return hash_values
    return f"{_compute_hash_part(hash_values):x}"


def fingerprint(length: int = 16, **parts) -> str:
    """Compute a content fingerprint from the named generating inputs of an artifact.

    Parts with a ``None`` value are ignored. The result is truncated to ``length``
    hex characters so it can be used as a filename prefix.

    Example:
        .. code-block:: python

            circuit_key = fingerprint(source=source_text, tree_depth=20, compiler="circom 2.1.9")
    """
    representations = {
        name: (f"repr({name})", None if value is None else repr(value))
        for name, value in parts.items()
    }
    hash_total = _compute_hash_part(representations)
    return f"{hash_total:032x}"[-length:]
