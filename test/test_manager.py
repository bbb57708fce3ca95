"""Testing path and configuration handling on the manager."""

import os

from pytest_mock import mocker  # noqa: F401 -- flake8 doesn't see it's used as fixture

from zkbench.manager import BenchmarkManager
from zkbench.toolchain import CircomCompiler, CommandBinarizer


def test_manager_paths_from_configuration(configured_test_manager, configuration):
    assert configured_test_manager.workspace_path == configuration["workspace_path"]
    assert configured_test_manager.ptau_path == configuration["ptau_path"]
    assert configured_test_manager.content_addressed is True
    assert os.path.isdir(configuration["logs_path"])
    assert os.path.isdir(configuration["reports_path"])


def test_manager_explicit_paths_win(mocker, configuration, fake_toolchain, tmp_path):  # noqa: F811
    mocker.patch("zkbench.utils.get_configuration", return_value=configuration)
    manager = BenchmarkManager(
        toolchain=fake_toolchain,
        workspace_path=str(tmp_path / "other"),
        content_addressed=False,
    )
    assert manager.workspace_path == str(tmp_path / "other")
    assert manager.content_addressed is False


def test_manager_builds_command_toolchain(mocker, configuration):  # noqa: F811
    mocker.patch("zkbench.utils.get_configuration", return_value=configuration)
    manager = BenchmarkManager(dry=True)
    assert isinstance(manager.toolchain.compiler, CircomCompiler)
    assert isinstance(manager.toolchain.binarizer, CommandBinarizer)
    assert not os.path.exists(configuration["logs_path"])


def test_resolve_workspace_uses_prefix(mocker, configuration, fake_toolchain, sample_params):  # noqa: F811
    mocker.patch("zkbench.utils.get_configuration", return_value=configuration)
    manager = BenchmarkManager(prefix="fresh", toolchain=fake_toolchain)
    ws = manager.resolve_workspace(sample_params)
    assert os.path.basename(ws.root) == "fresh_depth_3"


def test_reference_name(configured_test_manager):
    name = configured_test_manager.get_reference_name()
    assert name.startswith("zkbench_")
    assert configured_test_manager.get_summary_path().endswith(name)
