# common/exceptions.py
# -*- coding: utf-8 -*-
"""
Error taxonomy shared by the bootstrap tools.

Validation and privilege errors are raised before anything on the host is
changed. Install and launch errors are reported to the operator without
rolling back steps that already completed. Network errors from the DDNS
updater are only logged.
"""

from typing import List, Optional


class BootstrapError(Exception):
    """Base class for all bootstrap failures."""


class ValidationError(BootstrapError):
    """Required input is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class PrivilegeError(BootstrapError, PermissionError):
    """Elevated rights are required but neither root nor sudo is available."""


class InstallError(BootstrapError):
    """A package or tool installation step failed."""


class LaunchError(BootstrapError):
    """The container stack failed to start."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class NetworkError(BootstrapError):
    """The DDNS update request could not be completed."""
