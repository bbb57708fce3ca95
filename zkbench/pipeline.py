"""The benchmark pipeline for a single tree depth: generate the circuit, compile it,
run the trusted setup and pack the proving key, prove, verify, and write the
report.

Each step is a stage, so compilation and setup are skipped when their
artifacts already exist in the workspace. Proof generation and verification
always run, they're what is being timed.
"""

import logging
import os
from datetime import datetime

from zkbench import circuits, hashing
from zkbench.caching import (
    ArtifactReferenceCacher,
    CircuitCacher,
    JsonCacher,
    atomic_write,
)
from zkbench.record import Record
from zkbench.reporting import Report
from zkbench.staging import stage

STAGE_NAMES = [
    "generate_definition",
    "compile_circuit",
    "trusted_setup",
    "generate_proof",
    "verify_proof",
    "write_report",
]
"""The pipeline stages in execution order."""


def content_keys(record: Record, source: str) -> tuple[str, str]:
    """Fingerprint the generating inputs of the circuit and setup artifacts.

    The circuit key covers the circuit source, depth and compiler version. The
    setup key covers the circuit key, the proving system version and the powers of
    tau file, so a change to any of these resolves to new artifact paths.
    """
    toolchain = record.toolchain
    circuit_key = hashing.fingerprint(
        source=source,
        tree_depth=record.params.tree_depth,
        compiler=toolchain.compiler.version(),
        circuit=circuits.CIRCUIT_VERSION,
    )
    setup_key = hashing.fingerprint(
        circuit=circuit_key,
        proving_system=toolchain.proving_system.version(),
        ptau=record.manager.ptau_path,
    )
    return circuit_key, setup_key


@stage(None, ["source"])
def generate_definition(record: Record):
    source = circuits.generate_circuit_source(record.params.tree_depth)
    if record.manager.content_addressed:
        circuit_key, setup_key = content_keys(record, source)
        logging.info("Circuit key %s, setup key %s", circuit_key, setup_key)
        record.workspace = record.workspace.keyed(circuit_key, setup_key)
    record.workspace.ensure()

    path = record.workspace.source
    with atomic_write(path) as outfile:
        outfile.write(source)
    return path


@stage(["source"], ["compiled_circuit"], [CircuitCacher])
def compile_circuit(record: Record, source: str):
    return record.toolchain.compiler.compile(source)


@stage(
    ["compiled_circuit"],
    ["proving_key", "verification_key", "proving_key_binary", "zkey"],
    [
        ArtifactReferenceCacher,
        ArtifactReferenceCacher,
        ArtifactReferenceCacher,
        ArtifactReferenceCacher,
    ],
)
def trusted_setup(record: Record, compiled_circuit):
    workspace = record.workspace
    toolchain = record.toolchain

    result = toolchain.proving_system.setup(compiled_circuit, workspace.zkey)
    JsonCacher(path_override=workspace.proving_key).save(result.proving_key)
    JsonCacher(path_override=workspace.verification_key).save(result.verification_key)

    # a packed key from an earlier setup must not outlive a failed repack
    if os.path.exists(workspace.proving_key_binary):
        os.remove(workspace.proving_key_binary)
    output = toolchain.binarizer.binarize(
        workspace.proving_key, workspace.proving_key_binary
    )
    if output.stdout.strip():
        logging.info("Key binarizer output: %s", output.stdout.strip())
    if output.stderr.strip():
        logging.warning("Key binarizer stderr: %s", output.stderr.strip())

    return (
        workspace.proving_key,
        workspace.verification_key,
        workspace.proving_key_binary,
        workspace.zkey,
    )


@stage(
    ["compiled_circuit", "proving_key_binary", "zkey", "verification_key"],
    ["proof", "public_signals", "verifier_key"],
)
def generate_proof(
    record: Record,
    compiled_circuit,
    proving_key_binary: str,
    zkey: str,
    verification_key: str,
):
    params = record.params
    toolchain = record.toolchain

    proving_key = toolchain.proving_system.load_proving_key(proving_key_binary, zkey)
    with open(verification_key) as infile:
        verifier_key = toolchain.witness_generator.parse_verification_key(
            infile.read()
        )

    identity = circuits.Identity.from_seed(params.identity_seed)
    commitments = circuits.membership_commitments(
        identity, params.member_count, params.identity_seed
    )
    witness = toolchain.witness_generator.generate(
        identity,
        commitments,
        params.tree_depth,
        params.external_nullifier,
        compiled_circuit,
    )

    with record.timer("proving"):
        result = toolchain.proving_system.gen_proof(proving_key, witness)
    logging.info("Proof generated in %.3fs", record.timings["proving"])
    return result.proof, result.public_signals, verifier_key


@stage(["verifier_key", "proof", "public_signals"], ["verified"])
def verify_proof(record: Record, verifier_key, proof, public_signals):
    with record.timer("verification"):
        verified = record.toolchain.proving_system.is_valid(
            verifier_key, proof, public_signals
        )
    if verified:
        logging.info("Proof verified in %.3fs", record.timings["verification"])
    else:
        logging.warning("Proof did NOT verify")
    return verified


@stage(["verified"], ["report"])
def write_report(record: Record, verified: bool):
    workspace = record.workspace
    report = Report(
        name=record.params.name,
        tree_depth=record.params.tree_depth,
        params_hash=record.params.hash,
        circuit_key=workspace.circuit_key,
        setup_key=workspace.setup_key,
        circuit_size=workspace.size_of("compiled_circuit"),
        proving_key_size=workspace.size_of("proving_key_binary"),
        proving_key_text_size=workspace.size_of("proving_key"),
        verification_key_size=workspace.size_of("verification_key"),
        proving_time=record.timings["proving"],
        verification_time=record.timings["verification"],
        verified=bool(verified),
        timestamp=datetime.now().isoformat(),
    )
    report.save(workspace.report)
    logging.info("Report written to '%s'", workspace.report)
    return report


def run_pipeline(record: Record) -> Report:
    """Run every stage of the pipeline for the record's parameter set, in order.

    Returns:
        The report written at the end of the run.
    """
    record = write_report(
        verify_proof(
            generate_proof(trusted_setup(compile_circuit(generate_definition(record))))
        )
    )
    return record.state["report"]
