# installer/docker_installer.py
# -*- coding: utf-8 -*-
"""
Handles the installation of Docker Engine and of amd64 emulation on ARM hosts.
"""

import logging
import os
import subprocess
import tempfile
from typing import Optional

import requests

from common.command_utils import (
    command_exists,
    get_symbols,
    log_bootstrap,
    run_elevated_command,
)
from common.exceptions import InstallError
from common.system_utils import default_target_user
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

DOCKER_INSTALL_SCRIPT_URL = "https://get.docker.com"
BINFMT_IMAGE = "tonistiigi/binfmt"


def install_docker_engine(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Installs Docker Engine with Docker's convenience script.

    The script is downloaded from get.docker.com into a temporary file and
    run with elevated privileges. It sets up Docker's apt repository and
    installs the engine together with the Compose plugin. Afterwards the
    target user is added to the 'docker' group so the CLI works without
    sudo after the next login; failing to do so is only a warning.

    Parameters:
        app_settings (AppSettings): Application settings (log symbols).
        current_logger (Optional[logging.Logger]): An optional logger instance.

    Raises:
        InstallError: If the script cannot be downloaded or exits non-zero.
        PrivilegeError: If neither root nor sudo is available.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_bootstrap(
        f"{symbols.get('step', '➡️')} Docker not found. Installing via {DOCKER_INSTALL_SCRIPT_URL} (requires sudo).",
        "info",
        logger_to_use,
        app_settings,
    )

    try:
        response = requests.get(DOCKER_INSTALL_SCRIPT_URL, timeout=120)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise InstallError(
            f"Could not download the Docker install script: {e}"
        ) from e

    with tempfile.NamedTemporaryFile(
        "w", prefix="get-docker.", suffix=".sh", delete=False
    ) as script_file:
        script_file.write(response.text)
        script_path = script_file.name

    try:
        run_elevated_command(
            ["sh", script_path], app_settings, current_logger=logger_to_use
        )
    except subprocess.CalledProcessError as e:
        raise InstallError(
            f"Docker install script failed (rc {e.returncode})."
        ) from e
    finally:
        os.unlink(script_path)

    log_bootstrap(
        f"{symbols.get('success', '✅')} Docker Engine installed.",
        "success",
        logger_to_use,
        app_settings,
    )
    add_user_to_docker_group(
        default_target_user(), app_settings, current_logger=logger_to_use
    )


def add_user_to_docker_group(
    user: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Add `user` to the 'docker' group. Returns False if that was not possible."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_bootstrap(
        f"{symbols.get('gear', '⚙️')} Adding user {user} to 'docker' group...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_elevated_command(
            ["usermod", "-aG", "docker", user],
            app_settings,
            current_logger=logger_to_use,
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        log_bootstrap(
            f"{symbols.get('warning', '!')} Could not add user {user} to docker group: {e}.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    log_bootstrap(
        f"   {symbols.get('warning', '!')} Log out and back in for the 'docker' group membership to take effect.",
        "warning",
        logger_to_use,
        app_settings,
    )
    return True


def register_amd64_binfmt(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Registers qemu binfmt handlers so amd64 containers run on this host.

    A failure is logged and tolerated: the stack may still start if the
    handlers were registered earlier, e.g. by the qemu-user-static package.

    Returns:
        bool: True if the handlers were registered.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    runtime = app_settings.container_runtime_command
    if not command_exists(runtime):
        log_bootstrap(
            f"{symbols.get('warning', '!')} '{runtime}' not available; skipping binfmt registration.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    log_bootstrap(
        f"{symbols.get('step', '➡️')} Registering amd64 emulation (binfmt).",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_elevated_command(
            [runtime, "run", "--privileged", "--rm", BINFMT_IMAGE, "--install", "amd64"],
            app_settings,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        log_bootstrap(
            f"{symbols.get('warning', '!')} binfmt registration failed (rc {e.returncode}); continuing.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False
    return True
