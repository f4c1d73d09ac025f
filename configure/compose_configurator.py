# configure/compose_configurator.py
# -*- coding: utf-8 -*-
"""
Prepares and starts a Docker Compose stack.

The stack's own compose file is left as shipped; platform and restart
policy are pinned through docker-compose.override.yml, which Compose
merges automatically.
"""

import logging
import subprocess
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from common.command_utils import get_symbols, log_bootstrap, run_command
from common.exceptions import InstallError, LaunchError
from common.file_utils import atomic_write_text
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

OVERRIDE_FILE_NAME = "docker-compose.override.yml"


class LaunchResult(Enum):
    STARTED = "started"


def build_override_spec(
    service_name: str, platform: str, restart_policy: str
) -> Dict[str, Any]:
    """Compose override fragment pinning `service_name` to a platform and restart policy."""
    return {
        "services": {
            service_name: {
                "platform": platform,
                "restart": restart_policy,
            }
        }
    }


def write_override(
    install_dir: Union[str, Path],
    override_spec: Dict[str, Any],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """Replace the override file in `install_dir` with `override_spec`."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    override_path = Path(install_dir) / OVERRIDE_FILE_NAME
    content = yaml.safe_dump(override_spec, default_flow_style=False, sort_keys=False)
    atomic_write_text(override_path, content, mode=0o644)
    log_bootstrap(
        f"{symbols.get('success', '✅')} Wrote compose override {override_path}",
        "success",
        logger_to_use,
        app_settings,
    )
    return override_path


def launch(
    install_dir: Union[str, Path],
    override_spec: Dict[str, Any],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> LaunchResult:
    """
    Write the override file and bring the stack up in detached mode.

    There is no retry; re-running the deploy is the operator's retry.

    Parameters:
        install_dir: Directory holding the stack's compose file.
        override_spec: Override fragment, see build_override_spec.
        app_settings: Application settings (runtime command, log symbols).
        current_logger: Optional logger instance.

    Returns:
        LaunchResult.STARTED

    Raises:
        LaunchError: If `compose up` fails; carries the tool's exit status.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    write_override(install_dir, override_spec, app_settings, logger_to_use)

    runtime = app_settings.container_runtime_command
    log_bootstrap(
        f"{symbols.get('rocket', '🚀')} Starting containers with {runtime} compose up -d",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_command(
            [runtime, "compose", "up", "-d"],
            app_settings,
            check=True,
            cwd=str(install_dir),
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        raise LaunchError(
            f"'{runtime} compose up -d' failed with exit status {e.returncode}.",
            returncode=e.returncode,
        ) from e
    except FileNotFoundError as e:
        raise LaunchError(f"'{runtime}' is not installed.", returncode=127) from e

    log_bootstrap(
        f"{symbols.get('success', '✅')} Stack started in {install_dir}.",
        "success",
        logger_to_use,
        app_settings,
    )
    return LaunchResult.STARTED


def sync_repository(
    repo_url: str,
    install_dir: Union[str, Path],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Clone `repo_url` into `install_dir`, or fast-forward an existing checkout.

    Raises:
        InstallError: If git fails, e.g. on a non-empty directory that is not
            a checkout or on diverged history.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    target = Path(install_dir)
    target.mkdir(parents=True, exist_ok=True)

    if (target / ".git").is_dir():
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} Repo exists at {target}; pulling latest.",
            "info",
            logger_to_use,
            app_settings,
        )
        command = ["git", "-C", str(target), "pull", "--ff-only"]
    else:
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} Cloning {repo_url} into {target}",
            "info",
            logger_to_use,
            app_settings,
        )
        command = ["git", "clone", repo_url, str(target)]

    try:
        run_command(command, app_settings, check=True, current_logger=logger_to_use)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise InstallError(f"Could not sync {repo_url} into {target}: {e}") from e
