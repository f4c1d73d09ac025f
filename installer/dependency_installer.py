# installer/dependency_installer.py
# -*- coding: utf-8 -*-
"""
Ensures the host tools needed by the bootstrap tools are present.

Each tool is described by a ToolSpec. `DependencyInstaller.probe` reports
whether a tool is present, absent or present in a too old version, and
`DependencyInstaller.ensure` installs it when needed. Both are safe to call
repeatedly.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from common.command_utils import (
    command_exists,
    elevation_available,
    get_symbols,
    log_bootstrap,
    run_command,
)
from common.debian.apt_manager import AptManager
from common.exceptions import InstallError, PrivilegeError
from installer.docker_installer import install_docker_engine
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


class ProbeStatus(Enum):
    PRESENT = "present"
    ABSENT = "absent"
    VERSION_MISMATCH = "version_mismatch"


class EnsureResult(Enum):
    INSTALLED = "installed"
    ALREADY_PRESENT = "already_present"


@dataclass(frozen=True)
class ToolSpec:
    """
    Description of a host tool.

    Attributes:
        name: Name used in logs and in KNOWN_TOOLS.
        executable: Program looked up on PATH.
        packages: apt packages providing the tool, tried in order.
        probe_command: Command that must succeed for the tool to count as present.
        version_command: Command printing the version, compared to `min_version`.
        min_version: Lowest acceptable version ("2.0.0").
        installer: Custom install routine used instead of apt.
    """

    name: str
    executable: str
    packages: Tuple[str, ...] = ()
    probe_command: Optional[Tuple[str, ...]] = None
    version_command: Optional[Tuple[str, ...]] = None
    min_version: Optional[str] = None
    installer: Optional[Callable[[AppSettings, logging.Logger], None]] = None


KNOWN_TOOLS: Dict[str, ToolSpec] = {
    "curl": ToolSpec(name="curl", executable="curl", packages=("curl",)),
    "crontab": ToolSpec(name="crontab", executable="crontab", packages=("cron",)),
    "git": ToolSpec(name="git", executable="git", packages=("git",)),
    "docker": ToolSpec(
        name="docker", executable="docker", installer=install_docker_engine
    ),
    "docker-compose": ToolSpec(
        name="docker-compose",
        executable="docker",
        packages=("docker-compose-plugin", "docker-compose"),
        probe_command=("docker", "compose", "version"),
        version_command=("docker", "compose", "version", "--short"),
        min_version="2.0.0",
    ),
    "qemu-user-static": ToolSpec(
        name="qemu-user-static",
        executable="qemu-x86_64-static",
        packages=("qemu-user-static",),
    ),
}


def parse_version(text: str) -> Optional[Tuple[int, int, int]]:
    """Extract the first dotted version number from `text`."""
    match = _VERSION_RE.search(text or "")
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


class DependencyInstaller:
    """
    Probes for host tools and installs missing ones.

    Installation needs root or sudo. Packages come from apt unless the tool
    has its own installer; with `use_apt=False` apt is never touched.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        use_apt: bool = True,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.use_apt = use_apt
        self._apt_manager: Optional[AptManager] = None

    def _run_probe_command(self, command: Tuple[str, ...]) -> Optional[str]:
        """Run a probe; a failure only means the tool is not usable."""
        try:
            result = run_command(
                list(command),
                self.app_settings,
                capture_output=True,
                check=False,
                current_logger=self.logger,
            )
        except FileNotFoundError:
            return None
        if result.returncode != 0:
            self.logger.debug(
                f"Probe `{' '.join(command)}` exited with {result.returncode}."
            )
            return None
        return result.stdout or ""

    def probe(self, tool: ToolSpec) -> ProbeStatus:
        """Report whether `tool` is usable on this host."""
        if not command_exists(tool.executable):
            return ProbeStatus.ABSENT
        if tool.probe_command and self._run_probe_command(tool.probe_command) is None:
            return ProbeStatus.ABSENT
        if tool.version_command and tool.min_version:
            output = self._run_probe_command(tool.version_command)
            found = parse_version(output or "")
            required = parse_version(tool.min_version)
            if found is None or (required is not None and found < required):
                self.logger.debug(
                    f"{tool.name}: found version {found}, need {tool.min_version}"
                )
                return ProbeStatus.VERSION_MISMATCH
        return ProbeStatus.PRESENT

    def missing(self, tools: Iterable[ToolSpec]) -> List[ToolSpec]:
        """Return the tools from `tools` that are not present."""
        return [t for t in tools if self.probe(t) is not ProbeStatus.PRESENT]

    def check_privileges(self, tools: Iterable[ToolSpec]) -> None:
        """
        Fail early if any of `tools` would need installing without a way to elevate.

        Raises:
            PrivilegeError: If a tool is missing and neither root nor sudo is available.
        """
        to_install = self.missing(tools)
        if to_install and not elevation_available():
            names = ", ".join(t.name for t in to_install)
            raise PrivilegeError(
                f"Installing {names} requires root or sudo. Install sudo or run as root."
            )

    def _get_apt_manager(self) -> AptManager:
        if self._apt_manager is None:
            try:
                self._apt_manager = AptManager(logger=self.logger)
            except FileNotFoundError as e:
                raise InstallError(str(e)) from e
        return self._apt_manager

    def _install_packages(self, tool: ToolSpec) -> None:
        symbols = get_symbols(self.app_settings)
        if not self.use_apt:
            raise InstallError(
                f"{tool.name} is missing and apt installation is disabled. Install it and re-run."
            )
        if not tool.packages:
            raise InstallError(f"No package is known to provide {tool.name}.")

        apt_manager = self._get_apt_manager()
        for package in tool.packages:
            log_bootstrap(
                f"{symbols.get('package', '📦')} Installing {tool.name} from package '{package}'...",
                "info",
                self.logger,
                self.app_settings,
            )
            if apt_manager.install(package, self.app_settings) and (
                self.probe(tool) is ProbeStatus.PRESENT
            ):
                return
            log_bootstrap(
                f"{symbols.get('warning', '!')} Package '{package}' did not provide a usable {tool.name}.",
                "warning",
                self.logger,
                self.app_settings,
            )
        raise InstallError(
            f"Could not install {tool.name} (tried: {', '.join(tool.packages)}). Install it and re-run."
        )

    def ensure(self, tool: ToolSpec) -> EnsureResult:
        """
        Make sure `tool` is present, installing it if necessary.

        Returns:
            EnsureResult.ALREADY_PRESENT if nothing had to be done, otherwise
            EnsureResult.INSTALLED.

        Raises:
            PrivilegeError: If installation is needed but elevation is unavailable.
            InstallError: If installation failed or did not yield a usable tool.
        """
        symbols = get_symbols(self.app_settings)
        status = self.probe(tool)
        if status is ProbeStatus.PRESENT:
            log_bootstrap(
                f"{symbols.get('success', '✅')} {tool.name} is already present.",
                "info",
                self.logger,
                self.app_settings,
            )
            return EnsureResult.ALREADY_PRESENT

        if not elevation_available():
            raise PrivilegeError(
                f"Installing {tool.name} requires root or sudo. Install sudo or run as root."
            )

        log_bootstrap(
            f"{symbols.get('step', '➡️')} {tool.name} is {status.value.replace('_', ' ')}; installing.",
            "info",
            self.logger,
            self.app_settings,
        )
        if tool.installer is not None:
            tool.installer(self.app_settings, self.logger)
            if self.probe(tool) is not ProbeStatus.PRESENT:
                raise InstallError(
                    f"{tool.name} is still not usable after installation."
                )
        else:
            self._install_packages(tool)

        log_bootstrap(
            f"{symbols.get('success', '✅')} {tool.name} installed.",
            "success",
            self.logger,
            self.app_settings,
        )
        return EnsureResult.INSTALLED
