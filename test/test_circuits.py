import pytest

from zkbench import circuits


def test_mix_matches_formula():
    assert circuits.mix(2, 3) == (2 + 3) ** 2 + 2
    big = circuits.BN254_SCALAR_FIELD - 1
    assert circuits.mix(big, 1) == big


def test_source_contains_main_component():
    source = circuits.generate_circuit_source(12)
    assert source.startswith("pragma circom 2.0.0;")
    assert "component main {public [externalNullifier]} = Membership(12);" in source


def test_source_differs_by_depth():
    assert circuits.generate_circuit_source(4) != circuits.generate_circuit_source(5)


def test_source_rejects_bad_depth():
    with pytest.raises(ValueError):
        circuits.generate_circuit_source(0)


def test_identity_from_seed_is_deterministic():
    assert circuits.Identity.from_seed("a") == circuits.Identity.from_seed("a")
    assert circuits.Identity.from_seed("a") != circuits.Identity.from_seed("b")


def test_identity_commitment():
    identity = circuits.Identity(nullifier=5, trapdoor=7)
    assert identity.commitment == circuits.mix(5, 7)


def test_membership_commitments_end_with_identity():
    identity = circuits.Identity.from_seed("seed")
    commitments = circuits.membership_commitments(identity, 4, "seed")
    assert len(commitments) == 4
    assert commitments[-1] == identity.commitment
    assert len(set(commitments)) == 4


def test_empty_tree_root_is_zero_hash():
    tree = circuits.MerkleTree(3, [])
    zero = 0
    for _ in range(3):
        zero = circuits.mix(zero, zero)
    assert tree.root() == zero


def test_full_tree_root():
    leaves = [1, 2, 3, 4]
    tree = circuits.MerkleTree(2, leaves)
    expected = circuits.mix(circuits.mix(1, 2), circuits.mix(3, 4))
    assert tree.root() == expected


def test_sparse_tree_pads_with_zeros():
    tree = circuits.MerkleTree(2, [1, 2, 3])
    expected = circuits.mix(circuits.mix(1, 2), circuits.mix(3, 0))
    assert tree.root() == expected


def test_tree_rejects_too_many_leaves():
    with pytest.raises(ValueError):
        circuits.MerkleTree(1, [1, 2, 3])


@pytest.mark.parametrize("index", [0, 1, 2, 4])
def test_opening_recomputes_root(index):
    """Folding a leaf up its opening the way the circuit does should give the root."""
    leaves = [11, 22, 33, 44, 55]
    tree = circuits.MerkleTree(4, leaves)
    siblings, path_indices = tree.opening(index)
    assert len(siblings) == 4

    node = leaves[index]
    for sibling, bit in zip(siblings, path_indices):
        node = circuits.mix(sibling, node) if bit else circuits.mix(node, sibling)
    assert node == tree.root()


def test_opening_out_of_range():
    with pytest.raises(IndexError):
        circuits.MerkleTree(2, [1]).opening(1)


def test_membership_inputs_shape():
    identity = circuits.Identity.from_seed("seed")
    commitments = circuits.membership_commitments(identity, 3, "seed")
    inputs = circuits.membership_inputs(identity, commitments, 5, 42)

    assert set(inputs) == {
        "identityNullifier",
        "identityTrapdoor",
        "treePathIndices",
        "treeSiblings",
        "externalNullifier",
    }
    assert len(inputs["treePathIndices"]) == 5
    assert len(inputs["treeSiblings"]) == 5
    assert inputs["externalNullifier"] == "42"
    assert all(isinstance(value, str) for value in inputs["treeSiblings"])
    # the identity is the third leaf
    assert inputs["treePathIndices"][:2] == ["0", "1"]


def test_membership_inputs_require_membership():
    identity = circuits.Identity.from_seed("seed")
    with pytest.raises(ValueError):
        circuits.membership_inputs(identity, [1, 2], 2, 42)


def test_expected_public_signals():
    identity = circuits.Identity.from_seed("seed")
    commitments = circuits.membership_commitments(identity, 2, "seed")
    root, nullifier_hash, external = circuits.expected_public_signals(
        identity, commitments, 3, 42
    )
    assert root == str(circuits.MerkleTree(3, commitments).root())
    assert nullifier_hash == str(circuits.mix(identity.nullifier, 42))
    assert external == "42"
