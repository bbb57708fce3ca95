import json
import os
import re

import pytest
from pytest_mock import mocker  # noqa: F401 -- flake8 doesn't see it's used as fixture

from zkbench.manager import BenchmarkManager
from zkbench.params import BenchmarkParameters
from zkbench.staging import CompilationError, ProofError
from zkbench.toolchain import (
    CommandOutput,
    CompiledCircuit,
    ProofResult,
    SetupResult,
    Toolchain,
    Witness,
    build_dir_for,
)
from zkbench import circuits


class FakeCompiler:
    """Compiles nothing, the definition's size grows linearly with the tree depth
    read back out of the generated source."""

    def __init__(self, fail=False, version="fake-circom 1.0"):
        self.fail = fail
        self.version_string = version
        self.compile_calls = 0
        self.load_calls = 0

    def version(self):
        return self.version_string

    def compile(self, source_path):
        self.compile_calls += 1
        if self.fail:
            raise CompilationError("fake compiler rejected the circuit")
        with open(source_path) as infile:
            depth = int(re.search(r"Membership\((\d+)\);", infile.read()).group(1))
        return CompiledCircuit(
            definition={
                "tree_depth": depth,
                "constraints": [[index, index + 1] for index in range(depth * 4)],
            },
            name=os.path.splitext(os.path.basename(source_path))[0],
            artifacts_dir=build_dir_for(source_path),
        )

    def load(self, path):
        self.load_calls += 1
        with open(path) as infile:
            definition = json.load(infile)
        return CompiledCircuit(
            definition=definition,
            name=os.path.splitext(os.path.basename(path))[0],
            artifacts_dir=build_dir_for(path),
        )


class FakeProvingSystem:
    def __init__(self, valid=True):
        self.valid = valid
        self.setup_calls = 0
        self.prove_calls = 0
        self.verify_calls = 0

    def version(self):
        return "fake-snarkjs 1.0"

    def setup(self, circuit, setup_path):
        self.setup_calls += 1
        depth = circuit.definition["tree_depth"]
        with open(setup_path, "w") as outfile:
            outfile.write(f"zkey for depth {depth}")
        return SetupResult(
            proving_key={"tree_depth": depth, "points": ["ab" * 16] * (depth * 8)},
            verification_key={"tree_depth": depth, "ic": ["1"] * (depth + 2)},
        )

    def load_proving_key(self, path, setup_path):
        if not os.path.exists(setup_path):
            raise ProofError(f"no setup output at {setup_path}")
        with open(path, "rb") as infile:
            return infile.read()

    def gen_proof(self, proving_key, witness):
        self.prove_calls += 1
        return ProofResult(
            proof={"key_bytes": len(proving_key)},
            public_signals=[witness.inputs["externalNullifier"]],
        )

    def is_valid(self, verification_key, proof, public_signals):
        self.verify_calls += 1
        return self.valid


class FakeBinarizer:
    """Writes a binary key half the size of the text key."""

    def __init__(self):
        self.binarize_calls = 0

    def binarize(self, input_path, output_path):
        self.binarize_calls += 1
        size = os.path.getsize(input_path)
        with open(output_path, "wb") as outfile:
            outfile.write(b"\x01" * (size // 2))
        return CommandOutput(stdout="packed", stderr="")


class FakeWitnessGenerator:
    def __init__(self):
        self.generate_calls = 0
        self.witnesses = []

    def generate(self, identity, commitments, tree_depth, external_nullifier, circuit):
        self.generate_calls += 1
        inputs = circuits.membership_inputs(
            identity, commitments, tree_depth, external_nullifier
        )
        witness = Witness(circuit=circuit, inputs=inputs)
        self.witnesses.append(witness)
        return witness

    def parse_verification_key(self, text):
        return json.loads(text)


@pytest.fixture()
def configuration(tmp_path):
    config = {
        "workspace_path": str(tmp_path / "experiments"),
        "logs_path": str(tmp_path / "logs"),
        "reports_path": str(tmp_path / "reports"),
        "ptau_path": str(tmp_path / "data" / "test.ptau"),
        "tree_depths": [2, 4, 6],
        "identity_seed": "test-seed",
        "external_nullifier": 7,
        "member_count": 3,
        "content_addressed": True,
        "circom_command": ["circom"],
        "snarkjs_command": ["snarkjs"],
        "binarize_command": ["node", "buildpkey.js"],
    }
    return config


@pytest.fixture()
def fake_toolchain():
    return Toolchain(
        compiler=FakeCompiler(),
        proving_system=FakeProvingSystem(),
        binarizer=FakeBinarizer(),
        witness_generator=FakeWitnessGenerator(),
    )


@pytest.fixture()
def configured_test_manager(
    mocker, configuration, fake_toolchain  # noqa: F811 -- mocker has to be passed in as fixture
):
    mock = mocker.patch("zkbench.utils.get_configuration")
    mock.return_value = configuration

    return BenchmarkManager(toolchain=fake_toolchain)


@pytest.fixture()
def sample_params():
    return BenchmarkParameters(
        name="sample", tree_depth=3, identity_seed="test-seed", member_count=3
    )
