# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the bootstrap tools.

This module includes helpers for detecting the host architecture and for
resolving users and their home directories.
"""

import getpass
import logging
import os
import platform
import pwd
from pathlib import Path
from typing import Optional, Set, Union

from common.command_utils import get_symbols, log_bootstrap
from common.exceptions import ValidationError
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

X86_64_MACHINE_NAMES = ("x86_64", "amd64")


def get_machine_architecture() -> str:
    """Return the machine hardware name, as `uname -m` reports it."""
    return platform.machine()


def needs_amd64_emulation(arch: Optional[str] = None) -> bool:
    """True when amd64-only images need emulation on this host."""
    machine = (arch if arch is not None else get_machine_architecture()).lower()
    return machine not in X86_64_MACHINE_NAMES


def current_username() -> str:
    return getpass.getuser()


def default_target_user() -> str:
    """
    The user a setup run acts on behalf of: the invoking user when run
    through sudo, otherwise the current user.
    """
    return os.environ.get("SUDO_USER") or current_username()


def resolve_user_home(
    username: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Look up a user's home directory in the password database.

    Raises:
        ValidationError: If the user does not exist or the home directory is missing.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        home = Path(pwd.getpwnam(username).pw_dir)
    except KeyError as e:
        raise ValidationError(f"Unknown user '{username}'.") from e

    if not home.is_dir():
        raise ValidationError(
            f"Could not resolve home for user '{username}' (got '{home}')."
        )
    log_bootstrap(
        f"{symbols.get('info', 'ℹ️')} Using user='{username}', home='{home}'",
        "info",
        logger_to_use,
        app_settings,
    )
    return home


def expand_user_path(path: str, username: Optional[str] = None) -> Path:
    """
    Expand a leading '~' against the given user's home (or the current
    user's when no user is given) and return an absolute path.
    """
    if username and (path == "~" or path.startswith("~/")):
        home = pwd.getpwnam(username).pw_dir
        path = home + path[1:]
    return Path(os.path.expanduser(path)).absolute()


def _permits(st: os.stat_result, uid: int, groups: Set[int], bits: int) -> bool:
    # `bits` uses the "other" positions: 0o1 execute, 0o4 read.
    if uid == 0:
        return True
    if st.st_uid == uid:
        return (st.st_mode & (bits << 6)) == bits << 6
    if st.st_gid in groups:
        return (st.st_mode & (bits << 3)) == bits << 3
    return (st.st_mode & bits) == bits


def user_can_access(
    path: Union[str, Path], username: str, need_read: bool = False
) -> bool:
    """
    Tell whether `username` can reach and execute `path` (and read it, with
    `need_read`), judged from permission bits along the whole path.

    Used before handing a cron job to another user: a job whose interpreter
    the user cannot run fails silently on every invocation.
    """
    entry = pwd.getpwnam(username)
    groups = set(os.getgrouplist(username, entry.pw_gid))
    target = Path(path)
    for directory in reversed(target.parents):
        if not _permits(os.stat(directory), entry.pw_uid, groups, 0o1):
            return False
    bits = 0o5 if need_read else 0o1
    return _permits(os.stat(target), entry.pw_uid, groups, bits)
