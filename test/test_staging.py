import logging
import os

import pytest

from zkbench import (
    CachersMismatchError,
    EmptyCachersError,
    InputSignatureError,
    OutputSignatureError,
    Record,
    stage,
)
from zkbench.caching import CacheDecision, JsonCacher

# --------------------------
# @stage tests
# --------------------------


def test_stores_output_in_record(configured_test_manager):
    """Returned output from stage function should exist in record state."""

    @stage([], ["tester"])
    def output_stage(record):
        return "hello world"

    record = Record(configured_test_manager, None)
    output_stage(record)
    assert record.state["tester"] == "hello world"


def test_stage_inputs_and_outputs_none(configured_test_manager):
    """Stage inputs and outputs set to None should be equivalent to [] and should not crash."""

    @stage(inputs=None, outputs=None)
    def output_stage(record):
        x = 5
        del x

    record = Record(configured_test_manager, None)
    output_stage(record)
    assert record.state == {}


def test_stores_multiple_outputs_in_record(configured_test_manager):
    """Multiple returned outputs from stage function should exist in record state."""

    @stage([], ["test1", "test2"])
    def output_stage(record):
        return "hello world", 13

    record = Record(configured_test_manager, None)
    output_stage(record)
    assert record.state["test1"] == "hello world"
    assert record.state["test2"] == 13


def test_returns_less_than_expected_errors(configured_test_manager):
    """A function that doesn't return the same number of objects as specified in the stage outputs should throw an OutputSignatureError."""

    @stage([], ["test1", "test2"])
    def output_stage(record):
        return "hello world"

    record = Record(configured_test_manager, None)
    with pytest.raises(OutputSignatureError):
        output_stage(record)


def test_empty_cachers_array_errors(configured_test_manager):
    """A stage with an empty cachers list should throw an EmptyCachersError."""

    @stage([], ["test1"], [])
    def output_stage(record):
        return "hello world"

    record = Record(configured_test_manager, None)
    with pytest.raises(EmptyCachersError):
        output_stage(record)


def test_cachers_count_mismatch_errors(configured_test_manager, sample_params):
    """A stage with a different number of cachers than outputs should throw a CachersMismatchError."""

    @stage([], ["test1", "test2"], [JsonCacher])
    def output_stage(record):
        return "hello world", 13

    record = Record(configured_test_manager, sample_params)
    with pytest.raises(CachersMismatchError):
        output_stage(record)


def test_return_tuple_for_one_output(configured_test_manager):
    """A single output that is a tuple should be stored as the tuple itself."""

    @stage([], ["test1"])
    def output_stage(record):
        return "hello", "world"

    record = Record(configured_test_manager, None)
    output_stage(record)
    assert record.state["test1"] == ("hello", "world")


def test_takes_input_from_record(configured_test_manager):
    """A stage with inputs should receive the values from record state."""

    @stage(["test1"], ["test2"])
    def input_stage(record, test1):
        return test1 + 1

    record = Record(configured_test_manager, None)
    record.state["test1"] = 12
    input_stage(record)
    assert record.state["test2"] == 13


def test_missing_input_errors(configured_test_manager):
    """A stage input that isn't in the record state should throw a KeyError."""

    @stage(["test1"], ["test2"])
    def input_stage(record, test1):
        return test1

    record = Record(configured_test_manager, None)
    with pytest.raises(KeyError):
        input_stage(record)


def test_input_overwritten_by_kwarg(configured_test_manager):
    """A kwarg passed directly into the stage call should take precedence over record state."""

    @stage(["test1"], ["test2"])
    def input_stage(record, test1):
        return test1

    record = Record(configured_test_manager, None)
    record.state["test1"] = 12
    input_stage(record, test1=5)
    assert record.state["test2"] == 5


def test_input_name_incorrect(configured_test_manager):
    """A stage input without a matching function parameter should throw an InputSignatureError."""

    @stage(["test1"], ["test2"])
    def input_stage(record, not_test1):
        return not_test1

    record = Record(configured_test_manager, None)
    record.state["test1"] = 12
    with pytest.raises(InputSignatureError):
        input_stage(record)


def test_type_error_inside_stage_propagates(configured_test_manager):
    """A TypeError raised by the stage body itself shouldn't be reported as a signature problem."""

    @stage(["test1"], ["test2"])
    def input_stage(record, test1):
        return test1 + "a"

    record = Record(configured_test_manager, None)
    record.state["test1"] = 12
    with pytest.raises(TypeError):
        input_stage(record)


def test_stage_returns_record(configured_test_manager):
    @stage([], ["test1"])
    def first(record):
        return 1

    @stage(["test1"], ["test2"])
    def second(record, test1):
        return test1 + 1

    record = second(first(Record(configured_test_manager, None)))
    assert record.state["test2"] == 2
    assert record.stages == ["first", "second"]


# --------------------------
# caching through stages
# --------------------------


def test_cached_stage_shortcircuits(configured_test_manager, sample_params):
    """A stage whose output is cached should load it rather than run again."""
    calls = []

    @stage([], ["report"], [JsonCacher])
    def cached_stage(record):
        calls.append(1)
        return {"value": 5}

    record = Record(configured_test_manager, sample_params)
    record.workspace.ensure()
    cached_stage(record)
    assert record.decisions["cached_stage"] == CacheDecision.COMPUTE

    record2 = Record(configured_test_manager, sample_params)
    cached_stage(record2)
    assert len(calls) == 1
    assert record2.state["report"] == {"value": 5}
    assert record2.decisions["cached_stage"] == CacheDecision.REUSE


def test_cached_stage_overwrite_stage(configured_test_manager, sample_params):
    calls = []

    @stage([], ["report"], [JsonCacher])
    def cached_stage(record):
        calls.append(1)
        return {"value": len(calls)}

    record = Record(configured_test_manager, sample_params)
    record.workspace.ensure()
    cached_stage(record)

    configured_test_manager.overwrite_stages = ["cached_stage"]
    record2 = Record(configured_test_manager, sample_params)
    cached_stage(record2)
    assert len(calls) == 2
    assert record2.state["report"] == {"value": 2}


def test_partial_cache_reruns_stage(configured_test_manager, sample_params):
    """If any of a stage's outputs is missing, the whole stage should run again."""
    calls = []

    @stage([], ["proving_key", "verification_key"], [JsonCacher, JsonCacher])
    def two_output_stage(record):
        calls.append(1)
        return {"pk": 1}, {"vk": 2}

    record = Record(configured_test_manager, sample_params)
    record.workspace.ensure()
    two_output_stage(record)
    os.remove(record.workspace.verification_key)

    record2 = Record(configured_test_manager, sample_params)
    two_output_stage(record2)
    assert len(calls) == 2
    assert os.path.exists(record2.workspace.verification_key)


def test_failing_stage_stores_nothing(configured_test_manager, sample_params):
    @stage([], ["report"], [JsonCacher])
    def failing_stage(record):
        raise RuntimeError("nope")

    record = Record(configured_test_manager, sample_params)
    record.workspace.ensure()
    with pytest.raises(RuntimeError):
        failing_stage(record)
    assert "report" not in record.state
    assert not record.workspace.exists("report")


def test_failing_stage_clears_logging_prefix(configured_test_manager, sample_params):
    """A stage that raises shouldn't leave its parameter set name on later log lines."""

    @stage([], ["report"])
    def failing_stage(record):
        log_record = logging.getLogRecordFactory()(
            "test", logging.INFO, __file__, 0, "inside", None, None
        )
        assert log_record.prefix == "[sample] "
        raise RuntimeError("nope")

    record = Record(configured_test_manager, sample_params)
    with pytest.raises(RuntimeError):
        failing_stage(record)

    log_record = logging.getLogRecordFactory()(
        "test", logging.INFO, __file__, 0, "after", None, None
    )
    assert log_record.prefix == ""
