import os
import subprocess
from unittest.mock import MagicMock

import pytest
import requests

from common.exceptions import InstallError
from installer.docker_installer import (
    BINFMT_IMAGE,
    DOCKER_INSTALL_SCRIPT_URL,
    add_user_to_docker_group,
    install_docker_engine,
    register_amd64_binfmt,
)


@pytest.fixture
def mock_download(mocker):
    response = MagicMock(text="#!/bin/sh\necho docker\n")
    return mocker.patch(
        "installer.docker_installer.requests.get", return_value=response
    )


def test_install_docker_engine(mocker, app_settings, mock_logger, mock_download):
    mocker.patch(
        "installer.docker_installer.default_target_user", return_value="pi"
    )
    mock_elevated = mocker.patch("installer.docker_installer.run_elevated_command")

    install_docker_engine(app_settings, mock_logger)

    mock_download.assert_called_once_with(DOCKER_INSTALL_SCRIPT_URL, timeout=120)
    script_cmd = mock_elevated.call_args_list[0][0][0]
    assert script_cmd[0] == "sh"
    assert not os.path.exists(script_cmd[1])
    assert mock_elevated.call_args_list[1][0][0] == [
        "usermod",
        "-aG",
        "docker",
        "pi",
    ]


def test_install_docker_engine_download_failure(mocker, app_settings):
    mocker.patch(
        "installer.docker_installer.requests.get",
        side_effect=requests.exceptions.ConnectionError("offline"),
    )
    mock_elevated = mocker.patch("installer.docker_installer.run_elevated_command")

    with pytest.raises(InstallError, match="Could not download"):
        install_docker_engine(app_settings)
    mock_elevated.assert_not_called()


def test_install_docker_engine_script_failure(mocker, app_settings, mock_download):
    mock_elevated = mocker.patch(
        "installer.docker_installer.run_elevated_command",
        side_effect=subprocess.CalledProcessError(1, "sh"),
    )

    with pytest.raises(InstallError, match="rc 1"):
        install_docker_engine(app_settings)

    script_path = mock_elevated.call_args[0][0][1]
    assert not os.path.exists(script_path)


def test_add_user_to_docker_group_failure(mocker, app_settings, mock_logger):
    mocker.patch(
        "installer.docker_installer.run_elevated_command",
        side_effect=subprocess.CalledProcessError(6, "usermod"),
    )

    assert add_user_to_docker_group("pi", app_settings, mock_logger) is False
    mock_logger.warning.assert_called_once()


def test_register_amd64_binfmt(mocker, app_settings):
    mocker.patch("installer.docker_installer.command_exists", return_value=True)
    mock_elevated = mocker.patch("installer.docker_installer.run_elevated_command")

    assert register_amd64_binfmt(app_settings) is True
    assert mock_elevated.call_args[0][0] == [
        "docker",
        "run",
        "--privileged",
        "--rm",
        BINFMT_IMAGE,
        "--install",
        "amd64",
    ]


def test_register_amd64_binfmt_failure_is_tolerated(mocker, app_settings, mock_logger):
    mocker.patch("installer.docker_installer.command_exists", return_value=True)
    mocker.patch(
        "installer.docker_installer.run_elevated_command",
        side_effect=subprocess.CalledProcessError(125, "docker"),
    )

    assert register_amd64_binfmt(app_settings, mock_logger) is False
    mock_logger.warning.assert_called_once()


def test_register_amd64_binfmt_without_runtime(mocker, app_settings):
    mocker.patch("installer.docker_installer.command_exists", return_value=False)
    mock_elevated = mocker.patch("installer.docker_installer.run_elevated_command")

    assert register_amd64_binfmt(app_settings) is False
    mock_elevated.assert_not_called()
