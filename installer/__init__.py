# installer/__init__.py
# -*- coding: utf-8 -*-
"""
Host tool installers.

This package probes for the tools the bootstrap tools rely on and installs
the missing ones.
"""

from installer.dependency_installer import (
    KNOWN_TOOLS,
    DependencyInstaller,
    EnsureResult,
    ProbeStatus,
    ToolSpec,
)

__all__ = [
    "KNOWN_TOOLS",
    "DependencyInstaller",
    "EnsureResult",
    "ProbeStatus",
    "ToolSpec",
]
