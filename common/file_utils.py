# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: atomic replacement of files and ownership fixes.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from settings.config_models import AppSettings

from .command_utils import get_symbols, log_bootstrap, run_elevated_command

module_logger = logging.getLogger(__name__)

OWNER_ONLY_MODE = 0o600


def atomic_write_text(
    file_path: Union[str, Path],
    content: str,
    mode: int = OWNER_ONLY_MODE,
) -> Path:
    """
    Replace `file_path` with `content` without ever exposing a partial file.

    The content is written to a temporary file in the same directory, which
    mkstemp creates readable by the owner only. Its mode is set to `mode`
    before any content is written, the data is flushed to disk, and the
    temporary file is renamed over the target. The result therefore never
    inherits the permissions of a previous file at that path.

    Parameters:
        file_path: Destination path. Its parent directory must exist.
        content: Text to write (UTF-8).
        mode: Final permission bits of the file.

    Returns:
        Path: The destination path.
    """
    target = Path(file_path)
    fd, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return target


def chown_path(
    path: Union[str, Path],
    owner: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Hand a path over to `owner` (user and group of the same name).

    Used when the tools run as root on behalf of another user, so the files
    they create in that user's home stay manageable by the user.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    run_elevated_command(
        ["chown", f"{owner}:{owner}", str(path)],
        app_settings,
        current_logger=logger_to_use,
    )
    log_bootstrap(
        f"{symbols.get('success', '✅')} Ownership of {path} set to {owner}.",
        "success",
        logger_to_use,
        app_settings,
    )
