# configure/cron_configurator.py
# -*- coding: utf-8 -*-
"""
Idempotent registration of recurring tasks in a user's crontab.

Every registered line carries a stable task identifier as an environment
assignment in front of the command, e.g.

    */5 * * * * HOSTBOOT_TASK=duckdns-update /usr/bin/python3 -m ddns.updater ...

Registering a task again replaces the line with the same identifier, so a
crontab never holds more than one line per task.
"""

import logging
import os
import re
import subprocess
import tempfile
from enum import Enum
from typing import Iterable, List, Optional

from common.command_utils import (
    command_exists,
    get_symbols,
    is_root,
    log_bootstrap,
    run_command,
)
from common.exceptions import (
    BootstrapError,
    InstallError,
    PrivilegeError,
    ValidationError,
)
from common.system_utils import current_username
from settings.config_models import AppSettings, is_valid_cron_schedule

module_logger = logging.getLogger(__name__)

TASK_ID_VARIABLE = "HOSTBOOT_TASK"
_TASK_ID_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_TASK_ID_IN_LINE_RE = re.compile(
    rf"(?:^|\s){TASK_ID_VARIABLE}=([A-Za-z0-9_.\-]+)(?=\s|$)"
)
_CRONTAB_MISSING = "crontab not found; install cron or drop --no-apt."


class RegistrationResult(Enum):
    REGISTERED = "registered"


def build_cron_line(schedule: str, command: str, task_id: str) -> str:
    """Compose the crontab line for `command`, tagged with `task_id`."""
    if not is_valid_cron_schedule(schedule):
        raise ValidationError(f"'{schedule}' is not a valid cron schedule.")
    if not _TASK_ID_RE.match(task_id):
        raise ValidationError(f"Invalid task identifier: '{task_id}'")
    return f"{schedule.strip()} {TASK_ID_VARIABLE}={task_id} {command.strip()}"


def task_id_of(line: str) -> Optional[str]:
    """Return the task identifier carried by a crontab line, if any."""
    if line.lstrip().startswith("#"):
        return None
    match = _TASK_ID_IN_LINE_RE.search(line)
    return match.group(1) if match else None


def _belongs_to_task(line: str, task_id: str, supersedes: Iterable[str]) -> bool:
    if task_id_of(line) == task_id:
        return True
    return any(marker in line for marker in supersedes)


class CrontabManager:
    """
    Reads and replaces the crontab of one user.

    The current user's crontab is managed directly. Another user's crontab
    needs root, or sudo when not running as root.
    """

    def __init__(
        self,
        owner: str,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.owner = owner
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self._base_command = self._build_base_command()

    def _build_base_command(self) -> List[str]:
        if self.owner == current_username():
            return ["crontab"]
        if is_root():
            return ["crontab", "-u", self.owner]
        if command_exists("sudo"):
            return ["sudo", "crontab", "-u", self.owner]
        raise PrivilegeError(
            f"Cannot manage crontab for {self.owner} without sudo. "
            f"Run with sudo or specify --user {current_username()}."
        )

    def read(self) -> List[str]:
        """Return the crontab lines; an absent crontab reads as empty."""
        try:
            result = run_command(
                self._base_command + ["-l"],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                log_command=False,
            )
        except FileNotFoundError as e:
            raise InstallError(_CRONTAB_MISSING) from e
        if result.returncode != 0:
            if "no crontab" in (result.stderr or "").lower():
                return []
            raise BootstrapError(
                f"Could not read the crontab of {self.owner} (rc {result.returncode}): "
                f"{(result.stderr or '').strip()}"
            )
        return (result.stdout or "").splitlines()

    def write(self, lines: List[str]) -> None:
        """Install `lines` as the new crontab through a temporary file."""
        with tempfile.NamedTemporaryFile(
            "w", prefix="crontab.", suffix=".tmp", delete=False, encoding="utf-8"
        ) as tmp_file:
            tmp_file.write("\n".join(lines) + "\n")
            tmp_path = tmp_file.name
        try:
            run_command(
                self._base_command + [tmp_path],
                self.app_settings,
                check=True,
                capture_output=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError as e:
            raise BootstrapError(
                f"Could not install the crontab of {self.owner} (rc {e.returncode})."
            ) from e
        except FileNotFoundError as e:
            raise InstallError(_CRONTAB_MISSING) from e
        finally:
            os.unlink(tmp_path)


def register(
    schedule: str,
    command: str,
    owner: str,
    task_id: str,
    app_settings: Optional[AppSettings] = None,
    supersedes: Iterable[str] = (),
    current_logger: Optional[logging.Logger] = None,
) -> RegistrationResult:
    """
    Register `command` to run on `schedule` in the crontab of `owner`.

    Lines tagged with the same `task_id`, and lines containing any of the
    `supersedes` substrings, are removed before the new line is appended.
    Calling this twice with the same task identifier leaves exactly one
    line for it.

    Parameters:
        schedule: Cron schedule, e.g. "*/5 * * * *".
        command: Shell command to run. Must not contain secrets.
        owner: User whose crontab is updated.
        task_id: Stable identifier of the logical task.
        app_settings: Application settings (log symbols).
        supersedes: Substrings identifying entries this task replaces.
        current_logger: Optional logger instance.

    Returns:
        RegistrationResult.REGISTERED

    Raises:
        ValidationError: If the schedule or task identifier is invalid.
        PrivilegeError: If the caller cannot manage the owner's crontab.
        InstallError: If the crontab command is not installed.
        BootstrapError: If the crontab cannot be read or installed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    new_line = build_cron_line(schedule, command, task_id)
    supersedes = [marker for marker in supersedes if marker]

    manager = CrontabManager(owner, app_settings, logger_to_use)
    current_lines = manager.read()
    kept = [
        line
        for line in current_lines
        if not _belongs_to_task(line, task_id, supersedes)
    ]
    replaced = len(current_lines) - len(kept)
    while kept and not kept[-1].strip():
        kept.pop()

    manager.write(kept + [new_line])
    log_bootstrap(
        f"{symbols.get('success', '✅')} Installed/updated cron entry for {owner}"
        f"{f' (replaced {replaced})' if replaced else ''}: {new_line}",
        "success",
        logger_to_use,
        app_settings,
    )
    return RegistrationResult.REGISTERED
