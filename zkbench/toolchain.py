"""The external collaborators of the pipeline: the circuit compiler, the proving
system, the proving key binarizer and the witness generator.

Each collaborator is described by a ``Protocol`` so the pipeline can be driven
by any implementation (the tests use in-memory fakes). The implementations in
this module shell out to the usual command line tools:

* ``circom`` to compile circuits,
* ``snarkjs`` for groth16 setup, proving, verification and witness calculation,
* websnark's ``buildpkey.js`` (run through node) to pack the proving key.

All of the command prefixes are configurable (see ``utils.get_configuration``).
"""

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from zkbench import circuits, utils
from zkbench.staging import (
    CompilationError,
    ProofError,
    SetupError,
    SubprocessError,
    VerificationError,
    WitnessError,
)


@dataclass
class CompiledCircuit:
    """A compiled circuit definition.

    Args:
        definition (dict): The JSON-serializable definition that gets persisted as the
            compiled circuit artifact.
        name (str): The circuit name, used to locate the compiler's side outputs.
        artifacts_dir (str): Directory holding any compiler side outputs (r1cs, wasm)
            that later tools need.
    """

    definition: dict
    name: str = "circuit"
    artifacts_dir: Optional[str] = None

    @property
    def r1cs_path(self) -> str:
        return os.path.join(self.artifacts_dir, f"{self.name}.r1cs")

    @property
    def wasm_path(self) -> str:
        return os.path.join(self.artifacts_dir, f"{self.name}_js", f"{self.name}.wasm")


@dataclass
class SetupResult:
    proving_key: Any
    verification_key: Any


@dataclass
class ProofResult:
    proof: Any
    public_signals: list


@dataclass
class Witness:
    """A calculated witness for a specific circuit and input."""

    circuit: CompiledCircuit
    inputs: dict
    path: Optional[str] = None
    values: list = field(default_factory=list)


@dataclass
class BinaryProvingKey:
    """A packed proving key, along with the proving system's own setup output that
    proving reads alongside it."""

    path: str
    data: bytes
    setup_path: Optional[str] = None


@dataclass
class CommandOutput:
    """Captured text output of an external command."""

    stdout: str
    stderr: str


class CircuitCompiler(Protocol):
    def version(self) -> str:
        ...

    def compile(self, source_path: str) -> CompiledCircuit:
        ...

    def load(self, path: str) -> CompiledCircuit:
        ...


class ProvingSystem(Protocol):
    """``setup_path`` is the workspace slot the proving system writes its own setup
    output to (the groth16 zkey for snarkjs), so it is cached with the keys."""

    def version(self) -> str:
        ...

    def setup(self, circuit: CompiledCircuit, setup_path: str) -> SetupResult:
        ...

    def load_proving_key(self, path: str, setup_path: str) -> Any:
        ...

    def gen_proof(self, proving_key: Any, witness: Witness) -> ProofResult:
        ...

    def is_valid(self, verification_key: Any, proof: Any, public_signals: list) -> bool:
        ...


class KeyBinarizer(Protocol):
    def binarize(self, input_path: str, output_path: str) -> CommandOutput:
        ...


class WitnessGenerator(Protocol):
    def generate(
        self,
        identity: circuits.Identity,
        commitments: list[int],
        tree_depth: int,
        external_nullifier: int,
        circuit: CompiledCircuit,
    ) -> Witness:
        ...

    def parse_verification_key(self, text: str) -> Any:
        ...


@dataclass
class Toolchain:
    """The bundle of collaborators a pipeline run uses."""

    compiler: CircuitCompiler
    proving_system: ProvingSystem
    binarizer: KeyBinarizer
    witness_generator: WitnessGenerator


def _run(cmd, error_class, description: str):
    """Run a command, raising ``error_class`` with the captured output if it can't be
    spawned or exits non-zero."""
    try:
        result = utils.run_command(cmd)
    except OSError as e:
        raise error_class(f"Unable to run {description} ({cmd[0]}): {e}") from e
    if result.returncode != 0:
        logging.error("%s failed with exit code %s", description, result.returncode)
        if result.stdout:
            logging.error("stdout: %s", result.stdout.strip())
        if result.stderr:
            logging.error("stderr: %s", result.stderr.strip())
        message = f"{description} failed with exit code {result.returncode}"
        if result.stderr.strip():
            message += f": {result.stderr.strip()}"
        raise error_class(message)
    return result


def _read_json(path: str):
    with open(path) as infile:
        return json.load(infile)


def _write_json(path: str, obj):
    with open(path, "w") as outfile:
        json.dump(obj, outfile)


def build_dir_for(path: str) -> str:
    """The directory holding compiler side outputs for a circuit source or compiled
    definition path. Both share a stem, so they resolve to the same directory."""
    return os.path.splitext(path)[0] + "_build"


class CircomCompiler:
    """Compile circuits with the circom CLI, then export the constraint system to
    JSON with snarkjs as the persisted definition."""

    def __init__(self, command: list[str] = None, snarkjs_command: list[str] = None):
        self.command = command if command is not None else ["circom"]
        self.snarkjs_command = (
            snarkjs_command if snarkjs_command is not None else ["snarkjs"]
        )

    def version(self) -> str:
        return utils.get_command_output(self.command + ["--version"]) or "unknown"

    def compile(self, source_path: str) -> CompiledCircuit:
        name = os.path.splitext(os.path.basename(source_path))[0]
        build_dir = build_dir_for(source_path)
        # start clean so outputs from a failed compile can't be picked up
        shutil.rmtree(build_dir, ignore_errors=True)
        os.makedirs(build_dir)

        _run(
            self.command + [source_path, "--r1cs", "--wasm", "-o", build_dir],
            CompilationError,
            "circom compilation",
        )
        circuit = CompiledCircuit(definition=None, name=name, artifacts_dir=build_dir)

        with tempfile.TemporaryDirectory() as temp_dir:
            export_path = os.path.join(temp_dir, f"{name}.json")
            _run(
                self.snarkjs_command
                + ["r1cs", "export", "json", circuit.r1cs_path, export_path],
                CompilationError,
                "r1cs export",
            )
            circuit.definition = _read_json(export_path)
        return circuit

    def load(self, path: str) -> CompiledCircuit:
        name = os.path.splitext(os.path.basename(path))[0]
        return CompiledCircuit(
            definition=_read_json(path), name=name, artifacts_dir=build_dir_for(path)
        )


class SnarkjsProvingSystem:
    """Groth16 through the snarkjs CLI.

    The setup writes the zkey to the setup path it's given, and proving uses that
    zkey. The packed binary proving key is loaded before proving so it's read the
    same way a websnark prover would consume it.

    Args:
        command (list[str]): The snarkjs command prefix.
        ptau_path (str): The powers of tau file to run the phase 2 setup from.
    """

    def __init__(self, command: list[str] = None, ptau_path: str = None):
        self.command = command if command is not None else ["snarkjs"]
        self.ptau_path = ptau_path

    def version(self) -> str:
        # snarkjs prints its banner on any invocation and exits non-zero without a command
        try:
            result = utils.run_command(self.command + ["--version"])
        except OSError:
            return "unknown"
        lines = (result.stdout or result.stderr).strip().splitlines()
        return lines[0] if lines else "unknown"

    def setup(self, circuit: CompiledCircuit, setup_path: str) -> SetupResult:
        if self.ptau_path is None or not os.path.exists(self.ptau_path):
            raise SetupError(
                f"Powers of tau file '{self.ptau_path}' not found, set 'ptau_path' in zkbench_config.json"
            )
        # the zkey only lands at setup_path once both keys were exported from it
        partial_path = f"{setup_path}.partial"
        try:
            _run(
                self.command
                + ["groth16", "setup", circuit.r1cs_path, self.ptau_path, partial_path],
                SetupError,
                "groth16 setup",
            )
            with tempfile.TemporaryDirectory() as temp_dir:
                proving_key_path = os.path.join(temp_dir, "proving_key.json")
                verification_key_path = os.path.join(temp_dir, "verification_key.json")
                _run(
                    self.command
                    + ["zkey", "export", "json", partial_path, proving_key_path],
                    SetupError,
                    "proving key export",
                )
                _run(
                    self.command
                    + [
                        "zkey",
                        "export",
                        "verificationkey",
                        partial_path,
                        verification_key_path,
                    ],
                    SetupError,
                    "verification key export",
                )
                result = SetupResult(
                    proving_key=_read_json(proving_key_path),
                    verification_key=_read_json(verification_key_path),
                )
            os.replace(partial_path, setup_path)
        except BaseException:
            if os.path.exists(partial_path):
                os.remove(partial_path)
            raise
        return result

    def load_proving_key(self, path: str, setup_path: str) -> BinaryProvingKey:
        with open(path, "rb") as infile:
            return BinaryProvingKey(
                path=path, data=infile.read(), setup_path=setup_path
            )

    def gen_proof(self, proving_key: BinaryProvingKey, witness: Witness) -> ProofResult:
        if witness.path is None:
            raise ProofError("snarkjs proving needs a witness file")
        if proving_key.setup_path is None or not os.path.exists(proving_key.setup_path):
            raise ProofError(
                f"zkey '{proving_key.setup_path}' not found, rerun the trusted_setup stage"
            )
        with tempfile.TemporaryDirectory() as temp_dir:
            proof_path = os.path.join(temp_dir, "proof.json")
            public_path = os.path.join(temp_dir, "public.json")
            _run(
                self.command
                + [
                    "groth16",
                    "prove",
                    proving_key.setup_path,
                    witness.path,
                    proof_path,
                    public_path,
                ],
                ProofError,
                "groth16 prove",
            )
            return ProofResult(
                proof=_read_json(proof_path), public_signals=_read_json(public_path)
            )

    def is_valid(self, verification_key, proof, public_signals) -> bool:
        with tempfile.TemporaryDirectory() as temp_dir:
            paths = {}
            for name, obj in (
                ("verification_key", verification_key),
                ("public", public_signals),
                ("proof", proof),
            ):
                paths[name] = os.path.join(temp_dir, f"{name}.json")
                _write_json(paths[name], obj)
            cmd = self.command + [
                "groth16",
                "verify",
                paths["verification_key"],
                paths["public"],
                paths["proof"],
            ]
            try:
                result = utils.run_command(cmd)
            except OSError as e:
                raise VerificationError(
                    f"Unable to run groth16 verify ({cmd[0]}): {e}"
                ) from e
        logging.debug("Verifier output: %s", result.stdout.strip())
        return result.returncode == 0 and "OK" in result.stdout


class CommandBinarizer:
    """Pack a text proving key into binary form by running an external tool as
    ``<command> -i <input> -o <output>``.

    The tool writes to a temporary sibling of the output path, which is only moved
    into place after a zero exit, so a failed run never leaves a partial key at the
    artifact path.
    """

    def __init__(self, command: list[str] = None):
        self.command = (
            command
            if command is not None
            else ["node", "node_modules/websnark/tools/buildpkey.js"]
        )

    def binarize(self, input_path: str, output_path: str) -> CommandOutput:
        temp_path = f"{output_path}.partial"
        cmd = self.command + ["-i", input_path, "-o", temp_path]
        try:
            result = utils.run_command(cmd)
        except OSError as e:
            raise SubprocessError(
                f"Unable to spawn key binarizer '{cmd[0]}': {e}", cmd=cmd
            ) from e

        if result.returncode != 0 or not os.path.exists(temp_path):
            if os.path.exists(temp_path):
                os.remove(temp_path)
            message = f"Key binarizer exited with code {result.returncode}"
            if result.returncode == 0:
                message = "Key binarizer exited cleanly but wrote no output"
            raise SubprocessError(
                message,
                cmd=cmd,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        os.replace(temp_path, output_path)
        return CommandOutput(stdout=result.stdout, stderr=result.stderr)


class MembershipWitnessGenerator:
    """Compute the membership circuit inputs in python and calculate the witness
    with ``snarkjs wtns calculate``."""

    def __init__(self, snarkjs_command: list[str] = None):
        self.command = snarkjs_command if snarkjs_command is not None else ["snarkjs"]

    def generate(
        self,
        identity: circuits.Identity,
        commitments: list[int],
        tree_depth: int,
        external_nullifier: int,
        circuit: CompiledCircuit,
    ) -> Witness:
        try:
            inputs = circuits.membership_inputs(
                identity, commitments, tree_depth, external_nullifier
            )
        except (ValueError, IndexError) as e:
            raise WitnessError(f"Unable to build circuit inputs: {e}") from e

        input_path = os.path.join(circuit.artifacts_dir, "input.json")
        witness_path = os.path.join(circuit.artifacts_dir, "witness.wtns")
        _write_json(input_path, inputs)
        _run(
            self.command
            + ["wtns", "calculate", circuit.wasm_path, input_path, witness_path],
            WitnessError,
            "witness calculation",
        )
        return Witness(circuit=circuit, inputs=inputs, path=witness_path)

    def parse_verification_key(self, text: str):
        return json.loads(text)


def get_toolchain(config: dict) -> Toolchain:
    """Build the command line backed toolchain from a configuration dictionary."""
    return Toolchain(
        compiler=CircomCompiler(
            config["circom_command"], snarkjs_command=config["snarkjs_command"]
        ),
        proving_system=SnarkjsProvingSystem(
            config["snarkjs_command"], ptau_path=config["ptau_path"]
        ),
        binarizer=CommandBinarizer(config["binarize_command"]),
        witness_generator=MembershipWitnessGenerator(config["snarkjs_command"]),
    )
