"""The per-parameter experiment workspace: a directory and the canonical artifact
paths ("slots") within it."""

import os
from dataclasses import dataclass, replace

ARTIFACT_SLOTS = {
    "source": ("circuit", ".circom", "circuit"),
    "compiled_circuit": ("circuit", ".json", "circuit"),
    "proving_key": ("proving_key", ".json", "setup"),
    "proving_key_binary": ("proving_key", ".bin", "setup"),
    "verification_key": ("verification_key", ".json", "setup"),
    "zkey": ("circuit_final", ".zkey", "setup"),
    "report": ("report", ".json", None),
}
"""Every artifact role mapped to its file stem, extension, and which content key
(if any) prefixes the filename."""


@dataclass(frozen=True)
class Workspace:
    """The directory for one tree depth and the paths of the artifacts inside it.

    When content keys are bound (see ``keyed``), the filenames of the circuit and
    setup artifacts are prefixed with them, e.g. ``3f0c..._circuit.json``. The
    report is never keyed, there is exactly one per parameter.
    """

    parameter: int
    root: str
    circuit_key: str = None
    setup_key: str = None

    def path_for(self, role: str) -> str:
        """Get the path of the artifact in the passed slot."""
        if role not in ARTIFACT_SLOTS:
            raise KeyError(
                f"Unknown artifact role '{role}', expected one of {list(ARTIFACT_SLOTS)}"
            )
        stem, extension, key_group = ARTIFACT_SLOTS[role]
        key = None
        if key_group == "circuit":
            key = self.circuit_key
        elif key_group == "setup":
            key = self.setup_key
        if key is not None:
            stem = f"{key}_{stem}"
        return os.path.join(self.root, stem + extension)

    @property
    def source(self) -> str:
        return self.path_for("source")

    @property
    def compiled_circuit(self) -> str:
        return self.path_for("compiled_circuit")

    @property
    def proving_key(self) -> str:
        return self.path_for("proving_key")

    @property
    def proving_key_binary(self) -> str:
        return self.path_for("proving_key_binary")

    @property
    def verification_key(self) -> str:
        return self.path_for("verification_key")

    @property
    def zkey(self) -> str:
        return self.path_for("zkey")

    @property
    def report(self) -> str:
        return self.path_for("report")

    def exists(self, role: str) -> bool:
        return os.path.exists(self.path_for(role))

    def size_of(self, role: str) -> int:
        """On-disk size in bytes of the artifact in the passed slot."""
        return os.path.getsize(self.path_for(role))

    def keyed(self, circuit_key: str = None, setup_key: str = None) -> "Workspace":
        """Returns a copy of this workspace with the passed content keys bound."""
        return replace(self, circuit_key=circuit_key, setup_key=setup_key)

    def ensure(self) -> "Workspace":
        """Create the workspace directory (and any parents) if missing."""
        os.makedirs(self.root, exist_ok=True)
        return self


def workspace_dir_name(parameter: int, prefix: str = None) -> str:
    if prefix is None or prefix == "":
        return f"depth_{parameter}"
    return f"{prefix}_depth_{parameter}"


def resolve(parameter: int, workspace_path: str, prefix: str = None) -> Workspace:
    """Deterministically compute the workspace for a tree depth. This does no I/O,
    call ``ensure()`` on the result to create the directory.

    Args:
        parameter (int): The tree depth.
        workspace_path (str): The directory all workspaces live under.
        prefix (str): An optional prefix for the workspace directory name, this can be
            used to keep separate families of experiments apart.
    """
    if isinstance(parameter, bool) or not isinstance(parameter, int):
        raise ValueError(f"Workspace parameter must be an integer, got {parameter!r}")
    if parameter < 1:
        raise ValueError(f"Workspace parameter must be at least 1, got {parameter}")
    return Workspace(
        parameter=parameter,
        root=os.path.join(workspace_path, workspace_dir_name(parameter, prefix)),
    )
