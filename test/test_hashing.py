"""Ensure the parameter hashing and artifact fingerprints work as expected."""

from dataclasses import dataclass

import pytest

from zkbench.hashing import fingerprint, set_hash_functions
from zkbench.params import BenchmarkParameters


def test_params_subclass_hash_includes_all_sub_params():
    """The hash of a subclass of benchmark parameters should include all of the subclass's
    parameters."""

    @dataclass
    class MyParameters(BenchmarkParameters):
        a: int = 0
        b: int = None

    params1 = MyParameters(name="test", a=6, b=7)
    dry_hash_dict = params1.params_hash(dry=True)
    assert dry_hash_dict["a"] == ("repr(param_set.a)", "6")
    assert dry_hash_dict["b"] == ("repr(param_set.b)", "7")

    # make sure we correctly don't hash everything in the blacklist
    for should_skip in ["name", "hash", "overwrite", "hash_representations"]:
        assert dry_hash_dict[should_skip][0] == "SKIPPED: blacklist"

    params2 = MyParameters(a=5, b=6)
    assert params1.params_hash() != params2.params_hash()


def test_static_hashing_function_same_when_vals_diff():
    """Two parameter sets where a value is different but the hashing mechanism
    is a function that returns the same value should both have the same hash."""

    @dataclass
    class MyParameters(BenchmarkParameters):
        a: int = 0

        hash_representations: dict = set_hash_functions(a=lambda self, obj: 5)

    assert MyParameters().params_hash() == MyParameters(a=6).params_hash()


def test_none_hashing_function_same_when_vals_diff():
    """A parameter with a hashing function set to None should not be included in the hash."""

    @dataclass
    class MyParameters(BenchmarkParameters):
        label: str = ""

        hash_representations: dict = set_hash_functions(label=None)

    assert MyParameters(label="x").params_hash() == MyParameters(label="y").params_hash()


def test_set_hash_functions_rejects_non_dict_positional():
    with pytest.raises(ValueError):
        set_hash_functions(5)


def test_swapped_values_hash_differently():
    """Two parameters trading values shouldn't produce the same hash."""

    @dataclass
    class MyParameters(BenchmarkParameters):
        a: int = 0
        b: int = 0

    assert MyParameters(a=1, b=2).params_hash() != MyParameters(a=2, b=1).params_hash()


def test_fingerprint_deterministic_and_sized():
    key = fingerprint(source="abc", tree_depth=4)
    assert key == fingerprint(source="abc", tree_depth=4)
    assert len(key) == 16
    assert len(fingerprint(length=8, source="abc")) == 8


def test_fingerprint_changes_with_any_part():
    base = fingerprint(source="abc", tree_depth=4, compiler="2.1.0")
    assert base != fingerprint(source="abd", tree_depth=4, compiler="2.1.0")
    assert base != fingerprint(source="abc", tree_depth=5, compiler="2.1.0")
    assert base != fingerprint(source="abc", tree_depth=4, compiler="2.1.1")


def test_fingerprint_ignores_none_parts():
    assert fingerprint(source="abc", ptau=None) == fingerprint(source="abc")
