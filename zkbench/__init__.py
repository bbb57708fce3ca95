# flake8: noqa

# make all submodules directly accessible from a single zkbench import
from zkbench import (
    caching,
    circuits,
    experiment,
    hashing,
    manager,
    params,
    pipeline,
    record,
    reporting,
    staging,
    toolchain,
    utils,
    workspace,
)

# make super important things accessible directly off of the top level module
from zkbench.caching import CacheDecision, decide
from zkbench.experiment import run_experiment, run_sweep
from zkbench.manager import BenchmarkManager
from zkbench.params import BenchmarkParameters
from zkbench.pipeline import run_pipeline
from zkbench.record import Record
from zkbench.reporting import Report
from zkbench.staging import (
    CachersMismatchError,
    CompilationError,
    EmptyCachersError,
    InputSignatureError,
    OutputSignatureError,
    PipelineError,
    ProofError,
    SetupError,
    SubprocessError,
    VerificationError,
    WitnessError,
    stage,
)
from zkbench.toolchain import Toolchain

__version__ = "0.1.0"
