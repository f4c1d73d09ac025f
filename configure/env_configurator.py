# configure/env_configurator.py
# -*- coding: utf-8 -*-
"""
Writes KEY="value" environment files holding ports and credentials.

Files are created owner-only and replaced atomically. An existing file is
left alone unless an overwrite is requested, so hand edits made by the
operator survive later runs.
"""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Union

from common.command_utils import get_symbols, log_bootstrap
from common.file_utils import OWNER_ONLY_MODE, atomic_write_text, chown_path
from common.exceptions import ValidationError
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class MaterializeResult(Enum):
    WRITTEN = "written"
    SKIPPED_EXISTING = "skipped_existing"


def _quote_env_value(value: object) -> str:
    text = str(value)
    if "\n" in text or "\r" in text:
        raise ValidationError("Environment values cannot contain line breaks.")
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_env_file(
    values: Mapping[str, object], header: Optional[str] = None
) -> str:
    """Render `values` as KEY="value" lines, preceded by an optional comment header."""
    lines = []
    if header:
        lines.extend(f"# {line}" for line in header.splitlines())
    for key, value in values.items():
        if not _ENV_KEY_RE.match(key):
            raise ValidationError(f"Invalid environment variable name: '{key}'")
        lines.append(f"{key}={_quote_env_value(value)}")
    return "\n".join(lines) + "\n"


def materialize(
    path: Union[str, Path],
    values: Mapping[str, object],
    overwrite: bool,
    app_settings: Optional[AppSettings] = None,
    header: Optional[str] = None,
    owner: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> MaterializeResult:
    """
    Write `values` to the environment file at `path`.

    If the file exists and `overwrite` is false, nothing is touched and
    SKIPPED_EXISTING is returned. Otherwise the file is replaced atomically
    by one created with mode 0600 before any secret is written to it.

    Parameters:
        path: Destination file. Its directory is created if missing.
        values: Ordered key/value pairs.
        overwrite: Replace an existing file.
        app_settings: Application settings (log symbols, ownership changes).
        header: Comment written at the top of the file.
        owner: User to hand the file over to after writing.
        current_logger: Optional logger instance.

    Returns:
        MaterializeResult: WRITTEN or SKIPPED_EXISTING.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    target = Path(path)

    if target.exists() and not overwrite:
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} {target} exists; leaving it unchanged (use --force to overwrite).",
            "info",
            logger_to_use,
            app_settings,
        )
        return MaterializeResult.SKIPPED_EXISTING

    content = render_env_file(values, header=header)
    target.parent.mkdir(parents=True, exist_ok=True)
    log_bootstrap(
        f"{symbols.get('gear', '⚙️')} Writing {target}",
        "info",
        logger_to_use,
        app_settings,
    )
    atomic_write_text(target, content, mode=OWNER_ONLY_MODE)
    if owner:
        chown_path(target, owner, app_settings, current_logger=logger_to_use)
    return MaterializeResult.WRITTEN
