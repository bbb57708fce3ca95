"""The benchmarked circuit family: a membership proof over a binary Merkle tree of
identity commitments, parameterized by tree depth.

The circuit source is generated as circom text. The tree, the identity and the
circuit inputs are computed here in plain Python with a field hash (``mix``)
that mirrors the in-circuit ``Mix`` template exactly, so the inputs we hand to
witness generation satisfy the circuit's constraints.
"""

import hashlib
from dataclasses import dataclass

BN254_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
"""Prime order of the BN254 scalar field, the field circom works over."""

CIRCUIT_TEMPLATE = """pragma circom 2.0.0;

template Mix() {
    signal input left;
    signal input right;
    signal output out;

    signal sum;
    sum <== left + right;
    out <== sum * sum + left;
}

template Membership(depth) {
    signal input identityNullifier;
    signal input identityTrapdoor;
    signal input treePathIndices[depth];
    signal input treeSiblings[depth];
    signal input externalNullifier;

    signal output root;
    signal output nullifierHash;

    signal levels[depth + 1];
    signal lefts[depth];
    signal rights[depth];
    component hashers[depth];

    component commitment = Mix();
    commitment.left <== identityNullifier;
    commitment.right <== identityTrapdoor;
    levels[0] <== commitment.out;

    for (var i = 0; i < depth; i++) {
        treePathIndices[i] * (1 - treePathIndices[i]) === 0;

        lefts[i] <== levels[i] + treePathIndices[i] * (treeSiblings[i] - levels[i]);
        rights[i] <== levels[i] + treeSiblings[i] - lefts[i];

        hashers[i] = Mix();
        hashers[i].left <== lefts[i];
        hashers[i].right <== rights[i];
        levels[i + 1] <== hashers[i].out;
    }

    root <== levels[depth];

    component nullifier = Mix();
    nullifier.left <== identityNullifier;
    nullifier.right <== externalNullifier;
    nullifierHash <== nullifier.out;
}
"""

CIRCUIT_VERSION = "membership-mix-1"
"""Bumped whenever the template above changes, this is part of the circuit fingerprint."""


def field(value: int) -> int:
    """Reduce a python int to a field element."""
    return value % BN254_SCALAR_FIELD


def mix(left: int, right: int) -> int:
    """The two-to-one field hash used by the circuit: ``(left + right)^2 + left``."""
    total = field(left + right)
    return field(total * total + left)


def generate_circuit_source(tree_depth: int) -> str:
    """Get the circom source of the membership circuit for the passed tree depth."""
    if tree_depth < 1:
        raise ValueError(f"tree_depth must be at least 1, got {tree_depth}")
    return (
        CIRCUIT_TEMPLATE
        + f"\ncomponent main {{public [externalNullifier]}} = Membership({tree_depth});\n"
    )


def _seeded_element(seed: str, label: str) -> int:
    digest = hashlib.sha256(f"{seed}:{label}".encode()).hexdigest()
    return field(int(digest, 16))


@dataclass(frozen=True)
class Identity:
    """A prover identity: a secret nullifier and trapdoor, and the public
    commitment derived from them."""

    nullifier: int
    trapdoor: int

    @classmethod
    def from_seed(cls, seed: str) -> "Identity":
        """Deterministically derive an identity from a string seed."""
        return cls(
            nullifier=_seeded_element(seed, "nullifier"),
            trapdoor=_seeded_element(seed, "trapdoor"),
        )

    @property
    def commitment(self) -> int:
        return mix(self.nullifier, self.trapdoor)


def membership_commitments(identity: Identity, member_count: int, seed: str) -> list[int]:
    """The set of commitments inserted into the tree: ``member_count - 1`` other
    members derived from the seed, followed by the passed identity's commitment."""
    others = [
        Identity.from_seed(f"{seed}:member:{index}").commitment
        for index in range(member_count - 1)
    ]
    return others + [identity.commitment]


class MerkleTree:
    """Binary Merkle tree of a fixed depth built with ``mix``.

    Only the occupied part of the tree is stored: every leaf beyond the inserted
    ones is zero, so any node with no occupied leaves under it equals the
    precomputed "zero" hash for its level. This keeps deep trees (e.g. depth 32)
    cheap to build for a handful of members.

    - ``levels[0]`` = leaves
    - ``levels[h]`` = occupied nodes at height h
    - ``levels[depth][0]`` = root
    """

    def __init__(self, depth: int, leaves: list[int]):
        if depth < 1:
            raise ValueError("Tree depth must be at least 1")
        if len(leaves) > 2**depth:
            raise ValueError(
                f"A tree of depth {depth} can't hold {len(leaves)} leaves"
            )
        self.depth = depth
        self.zeros = [0]
        for _ in range(depth):
            self.zeros.append(mix(self.zeros[-1], self.zeros[-1]))

        self.levels: list[list[int]] = [[field(leaf) for leaf in leaves]]
        for height in range(depth):
            level = self.levels[height]
            next_level = []
            for i in range(0, len(level), 2):
                left = level[i]
                right = level[i + 1] if i + 1 < len(level) else self.zeros[height]
                next_level.append(mix(left, right))
            self.levels.append(next_level)

    def root(self) -> int:
        if len(self.levels[self.depth]) == 0:
            return self.zeros[self.depth]
        return self.levels[self.depth][0]

    def _node(self, height: int, index: int) -> int:
        level = self.levels[height]
        if index < len(level):
            return level[index]
        return self.zeros[height]

    def opening(self, index: int) -> tuple[list[int], list[int]]:
        """Compute the Merkle opening for the leaf at ``index``.

        Returns:
            ``(siblings, path_indices)`` where ``siblings[h]`` is the sibling node at
            height h and ``path_indices[h]`` is 0 if our node is the left child, 1 if
            it is the right child.
        """
        if index < 0 or index >= len(self.levels[0]):
            raise IndexError(f"No leaf at index {index}")
        siblings = []
        path_indices = []
        for height in range(self.depth):
            path_indices.append(index % 2)
            siblings.append(self._node(height, index ^ 1))
            index //= 2
        return siblings, path_indices


def membership_inputs(
    identity: Identity,
    commitments: list[int],
    tree_depth: int,
    external_nullifier: int,
) -> dict:
    """Build the circuit input signals proving the identity's commitment is in the
    tree of ``commitments``.

    Field elements are written as decimal strings, which is what circom's witness
    calculator expects for values wider than a double.
    """
    if identity.commitment not in commitments:
        raise ValueError("The identity's commitment is not in the commitment set")
    tree = MerkleTree(tree_depth, commitments)
    siblings, path_indices = tree.opening(commitments.index(identity.commitment))
    return {
        "identityNullifier": str(identity.nullifier),
        "identityTrapdoor": str(identity.trapdoor),
        "treePathIndices": [str(bit) for bit in path_indices],
        "treeSiblings": [str(sibling) for sibling in siblings],
        "externalNullifier": str(field(external_nullifier)),
    }


def expected_public_signals(
    identity: Identity, commitments: list[int], tree_depth: int, external_nullifier: int
) -> list[str]:
    """The public signals the circuit should output for these inputs, in circom's
    order (outputs first, then public inputs)."""
    tree = MerkleTree(tree_depth, commitments)
    return [
        str(tree.root()),
        str(mix(identity.nullifier, field(external_nullifier))),
        str(field(external_nullifier)),
    ]
