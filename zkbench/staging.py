"""The stage decorator that orchestrates caching and input/output passing through
record state between pipeline stages, along with the pipeline errors."""

import inspect
import logging
import os
import time
from functools import wraps

import psutil

from zkbench import utils
from zkbench.caching import CacheDecision, Cacheable
from zkbench.record import Record

# NOTE: resource only exists on unix systems
if os.name != "nt":
    import resource


class InputSignatureError(Exception):
    pass


class OutputSignatureError(Exception):
    pass


class EmptyCachersError(Exception):
    pass


class CachersMismatchError(Exception):
    pass


class PipelineError(Exception):
    """Base class for failures of an external collaborator. None of these are
    retried, they abort the current parameter's run and the sweep with it."""


class CompilationError(PipelineError):
    """The circuit compiler rejected the generated source."""


class SetupError(PipelineError):
    """The trusted setup routine failed."""


class WitnessError(PipelineError):
    """Witness generation failed."""


class ProofError(PipelineError):
    """Proof generation failed."""


class VerificationError(PipelineError):
    """The proof verifier could not be run."""


class SubprocessError(PipelineError):
    """An external process exited non-zero or could not be spawned.

    Args:
        message (str): Description of what failed.
        cmd (list[str]): The command that was run.
        returncode (int): The exit code, ``None`` if the process never started.
        stdout (str): Captured standard output.
        stderr (str): Captured standard error.
    """

    def __init__(
        self,
        message: str,
        cmd: list = None,
        returncode: int = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self):
        message = super().__str__()
        if self.stderr:
            message += f" - stderr: {self.stderr.strip()}"
        return message


def _memory_footprint() -> int:
    if os.name != "nt":
        return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024
    return 0


def _log_stats(
    pre_cache_time_start,
    pre_cache_time_end,
    pre_mem_usage,
    post_mem_usage,
    exec_time_start=0,
    exec_time_end=0,
    post_cache_time_start=0,
    post_cache_time_end=0,
    pre_max_footprint=0,
    post_max_footprint=0,
):
    pre_cache_time = pre_cache_time_end - pre_cache_time_start
    exec_time = exec_time_end - exec_time_start
    post_cache_time = post_cache_time_end - post_cache_time_start
    cache_time = pre_cache_time + post_cache_time

    mem_change = post_mem_usage - pre_mem_usage
    footprint_change = post_max_footprint - pre_max_footprint

    logging.debug(
        "Memory (current usage/max allocated) - %s / %s"
        % (
            utils.human_readable_mem_usage(post_mem_usage),
            utils.human_readable_mem_usage(post_max_footprint),
        )
    )
    logging.debug(
        "Stage memory impact (current/max) - %s / %s"
        % (
            utils.human_readable_mem_usage(mem_change),
            utils.human_readable_mem_usage(footprint_change),
        )
    )
    logging.debug(
        "Timing - execution: %s  caching: %s"
        % (utils.human_readable_time(exec_time), utils.human_readable_time(cache_time))
    )


def _instantiate_cachers(name: str, record: Record, outputs: list[str], cachers):
    """Create a fresh cacher instance per output for this call, so that no state
    leaks between records."""
    instances = []
    for index, cacher in enumerate(cachers):
        if type(cacher) == type:
            cacher = cacher()
        elif isinstance(cacher, Cacheable):
            # copy so a cacher instance in a stage header can be shared across records
            cacher = type(cacher)(path_override=cacher.path_override, role=cacher.role)
        cacher.record = record
        cacher.stage = name
        if cacher.role is None and cacher.path_override is None:
            cacher.role = outputs[index]
        instances.append(cacher)
    return instances


def _check_cached_outputs(name: str, cachers: list[Cacheable]) -> bool:
    """All or nothing: a stage is only skipped if every one of its outputs is cached."""
    if cachers is None:
        return False
    for cacher in cachers:
        if not cacher.check():
            logging.debug("Stage %s has outputs that need to be computed", name)
            return False
    return True


def _store_outputs(name: str, record: Record, outputs, cachers, function_outputs):
    if len(outputs) == 0:
        return

    if len(outputs) == 1:
        function_outputs = (function_outputs,)
    elif type(function_outputs) != tuple or len(function_outputs) != len(outputs):
        raise OutputSignatureError(
            "Stage '%s' returned a different number of outputs than expected (%s)"
            % (name, str(outputs))
        )

    for index, output in enumerate(outputs):
        if cachers is not None:
            logging.debug("Caching '%s'..." % output)
            cachers[index].save(function_outputs[index])
        record.state[output] = function_outputs[index]


def stage(
    inputs: list[str] = None,
    outputs: list[str] = None,
    cachers: list = None,
):
    """Decorator to wrap around a function that represents a single step of the
    benchmark pipeline, with inputs and outputs pertaining to the remainder of it.

    Important:
        Any function wrapped with the stage decorator must take a Record instance as the first
        parameter, followed by the input parameters corresponding to the :code:`inputs` list.

    Args:
        inputs (List[str]): A list of variable names that this stage will need from the
            record state. **Each must have a corresponding parameter in the function
            definition with the exact same name.**
        outputs (List[str]): A list of variable names that this stage will return and store
            in the record state. These represent, in order, the tuple of returned values from
            the function being wrapped.
        cachers (List[Cacheable]): An optional list of Cacheable classes or instances to
            apply to each of the return outputs. Before the wrapped function is called,
            every cacher is checked, and if all of their artifacts exist and no overwrite
            is requested, their :code:`load()` functions are called and the wrapped function
            **does not execute.** Otherwise the function runs and each cacher's
            :code:`save()` is called with the corresponding output. Caching is all or
            nothing for a single function.

    Example:
        .. code-block:: python

            @stage(inputs=["compiled_circuit"], outputs=["setup_summary"], cachers=[JsonCacher])
            def summarize(record: Record, compiled_circuit):
                # ...
                return summary_dictionary
    """

    if inputs is None:
        inputs = []
    if outputs is None:
        outputs = []

    def decorator(function):
        @wraps(function)
        def wrapper(record: Record, **kwargs):
            if record.params is not None:
                utils.set_logging_prefix(f"[{record.params.name}] ")
            else:
                utils.set_logging_prefix("")

            try:
                name = function.__name__
                logging.info("-----")
                logging.info("Stage %s", name)
                pre_footprint = _memory_footprint()
                pre_mem_usage = psutil.Process().memory_info().rss
                record.stages.append(name)

                if cachers is not None and len(cachers) == 0:
                    raise EmptyCachersError(
                        f"Stage '{name}' has an empty cachers list, use None for a stage that should always run."
                    )
                if cachers is not None and len(cachers) != len(outputs):
                    raise CachersMismatchError(
                        f"Stage '{name}' - the number of cachers does not match the number of outputs to cache."
                    )

                # find any required inputs for the function in the record
                function_inputs = {}
                for function_input in inputs:
                    if function_input in kwargs:
                        continue
                    if function_input not in record.state:
                        raise KeyError(
                            "Stage '%s' input '%s' not found in record state and not passed to function call."
                            % (name, function_input)
                        )
                    function_inputs[function_input] = record.state[function_input]
                function_inputs.update(kwargs)

                try:
                    inspect.signature(function).bind(record, **function_inputs)
                except TypeError as e:
                    raise InputSignatureError(
                        "Signature for '%s' does not match stage input list. Signature should include %s. Sub error: %s"
                        % (name, str(inputs), str(e))
                    )

                stage_cachers = None
                if cachers is not None:
                    stage_cachers = _instantiate_cachers(name, record, outputs, cachers)

                pre_cache_time_start = time.perf_counter()
                cache_valid = _check_cached_outputs(name, stage_cachers)
                if cache_valid:
                    logging.info("Stage %s REUSE - loading cached outputs", name)
                    for index, output in enumerate(outputs):
                        record.state[output] = stage_cachers[index].load()
                    record.decisions[name] = CacheDecision.REUSE
                    pre_cache_time_end = time.perf_counter()
                    _log_stats(
                        pre_cache_time_start,
                        pre_cache_time_end,
                        pre_mem_usage,
                        psutil.Process().memory_info().rss,
                        pre_max_footprint=pre_footprint,
                        post_max_footprint=_memory_footprint(),
                    )
                    return record
                pre_cache_time_end = time.perf_counter()

                # run the function
                record.decisions[name] = CacheDecision.COMPUTE
                logging.info("Stage %s COMPUTE - executing...", name)
                exec_time_start = time.perf_counter()
                function_outputs = function(record, **function_inputs)
                exec_time_end = time.perf_counter()

                # handle storing outputs in record
                post_cache_time_start = time.perf_counter()
                _store_outputs(name, record, outputs, stage_cachers, function_outputs)
                post_cache_time_end = time.perf_counter()

                logging.info("Stage %s complete", name)
                _log_stats(
                    pre_cache_time_start,
                    pre_cache_time_end,
                    pre_mem_usage,
                    psutil.Process().memory_info().rss,
                    exec_time_start,
                    exec_time_end,
                    post_cache_time_start,
                    post_cache_time_end,
                    pre_footprint,
                    _memory_footprint(),
                )
                return record
            finally:
                utils.set_logging_prefix("")

        return wrapper

    return decorator
