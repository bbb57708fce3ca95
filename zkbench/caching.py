"""Existence-based artifact caching, and the "cacher" classes that save and load
stage outputs to and from workspace slots.

Whether a stage's artifact can be reused is decided by ``decide``, immediately
before the stage would run: an artifact is reused if its path exists and no
overwrite was requested. Each cacher class extends the base ``Cacheable``,
which resolves the artifact path from the record's workspace and performs the
check.
"""

import json
import logging
import os
from contextlib import contextmanager
from enum import Enum


class CacheDecision(Enum):
    REUSE = "reuse"
    COMPUTE = "compute"


def decide(path: str, overwrite: bool = False) -> CacheDecision:
    """Decide whether the artifact at ``path`` can be reused.

    Existence is the only validity signal, so the decision must be made right
    before the producing stage runs rather than once up front.
    """
    if overwrite:
        logging.debug("Overwrite requested for '%s'", path)
        return CacheDecision.COMPUTE
    if os.path.exists(path):
        return CacheDecision.REUSE
    return CacheDecision.COMPUTE


@contextmanager
def atomic_write(path: str, mode: str = "w"):
    """Open a temporary sibling of ``path`` for writing and move it into place once
    the block completes. If the block raises, the temporary file is removed and
    ``path`` is left untouched."""
    temp_path = f"{path}.partial"
    try:
        with open(temp_path, mode) as outfile:
            yield outfile
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


class Cacheable:
    """The base caching class, any caching strategy should extend this.

    Args:
        path_override (str): Use a specific path for the cacheable, rather than
            resolving it from the record's workspace.
        role (str): The workspace slot (see ``workspace.ARTIFACT_SLOTS``) this cacher
            saves to and loads from. If a cacheable is used in a stage header, this
            is automatically provided as the output name from the stage outputs list.
        record (Record): The current record this cacheable is caching under.
    """

    def __init__(self, path_override: str = None, role: str = None, record=None):
        self.path_override = path_override
        """Use a specific path for the cacheable, rather than resolving it from the workspace."""
        self.role = role
        """The workspace slot this cacher is responsible for."""
        self.record = record
        """The current record this cacheable is caching under."""
        self.stage: str = None
        """The stage associated with this cacher, if applicable."""

    def get_path(self) -> str:
        """Retrieve the full filepath to use for saving and loading."""
        if self.path_override is not None:
            return self.path_override
        if self.record is None:
            raise RuntimeError(
                "Trying to call get_path on a cacher with no record and no path_override. Either pass a path directly into this cacher, or set cacher.record = some_record"
            )
        if self.role is None:
            raise RuntimeError(
                "Trying to call get_path on a cacher with no role and no path_override. Either pass a path directly into this cacher, or set cacher.role = 'compiled_circuit'"
            )
        return self.record.workspace.path_for(self.role)

    def overwrite_requested(self) -> bool:
        if self.record is None:
            return False
        return self.record.overwrite_requested(self.stage)

    def check(self) -> bool:
        """Check to see if this cacheable can be reused.

        Returns:
            ``True`` if we find the cached file and overwrite isn't requested,
            otherwise ``False``.
        """
        path = self.get_path()
        logging.debug("Searching for cached file at '%s'...", path)
        decision = decide(path, self.overwrite_requested())
        if decision == CacheDecision.REUSE:
            logging.info("Cached object '%s' found", path)
            return True
        logging.debug("Cached file not found or overwrite requested")
        return False

    def load(self):
        """Load the cacheable from disk.

        Note:
            Any subclass is **required** to implement this.
        """
        raise NotImplementedError(
            "Cacheable class does not have a load function implemented"
        )

    def save(self, obj) -> str:
        """Save the passed object to disk.

        Note:
            Any subclass is **required** to implement this.
        """
        raise NotImplementedError(
            "Cacheable class does not have a save function implemented"
        )


class JsonCacher(Cacheable):
    """Dumps an object to JSON."""

    def load(self):
        with open(self.get_path()) as infile:
            obj = json.load(infile)
        return obj

    def save(self, obj) -> str:
        path = self.get_path()
        with atomic_write(path) as outfile:
            json.dump(obj, outfile, default=lambda x: str(x))
        return path


class CircuitCacher(JsonCacher):
    """Saves the definition of a compiled circuit as JSON, and turns it back into a
    ``CompiledCircuit`` through the record's compiler on load."""

    def load(self):
        return self.record.toolchain.compiler.load(self.get_path())

    def save(self, obj) -> str:
        return super().save(obj.definition)


class ArtifactReferenceCacher(Cacheable):
    """For artifacts a stage writes to its slot itself (e.g. because an external
    tool has to read them back before the stage is over.) The stage returns the
    path, and this cacher only confirms it was written where expected. Loading
    returns the path rather than the content, so later stages decide what they
    need to read.

    Example:

        .. code-block:: python

            @stage(None, ["proving_key_binary"], [ArtifactReferenceCacher])
            def pack_key(record):
                path = record.workspace.proving_key_binary
                ...  # write the file
                return path
    """

    def load(self) -> str:
        return self.get_path()

    def save(self, path: str) -> str:
        expected = self.get_path()
        if os.path.abspath(path) != os.path.abspath(expected):
            raise RuntimeError(
                f"Stage returned '{path}' for artifact '{self.role}', expected '{expected}'"
            )
        if not os.path.exists(expected):
            raise FileNotFoundError(
                f"Stage did not write artifact '{self.role}' to '{expected}'"
            )
        return expected
