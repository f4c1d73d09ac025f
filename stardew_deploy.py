#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Entry point for deploying the JunimoServer (Stardew Valley dedicated server).

- Installs Docker, the Compose plugin and git if missing
- Sets up amd64 emulation (binfmt/qemu) on ARM hosts
- Clones or pulls the server repository
- Creates .env from the provided secrets and ports
- Adds a compose override forcing the linux/amd64 platform and a restart policy
- Starts the stack with `docker compose up -d`

Examples:
    env STEAM_USER=you STEAM_PASS=secret VNC_PASSWORD=changeme stardew-deploy
    stardew-deploy --steam-user you --steam-pass secret --vnc-password changeme \\
        --steam-guard-code 12345 --game-port 24643 --vnc-port 8090 --dir ~/junimoserver
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from common.command_utils import get_symbols, log_bootstrap
from common.core_utils import setup_logging
from common.exceptions import (
    BootstrapError,
    InstallError,
    LaunchError,
    ValidationError,
)
from common.system_utils import (
    expand_user_path,
    get_machine_architecture,
    needs_amd64_emulation,
)
from configure.compose_configurator import (
    build_override_spec,
    launch,
    sync_repository,
)
from configure.env_configurator import materialize
from installer.dependency_installer import KNOWN_TOOLS, DependencyInstaller
from installer.docker_installer import register_amd64_binfmt
from settings.config_loader import load_app_settings
from settings.config_models import AppSettings, StardewSettings

LOG_PREFIX = "[stardew-deploy]"
ENV_FILE_NAME = ".env"

logger = logging.getLogger("stardew_deploy")


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Deploy Stardew Valley dedicated server (JunimoServer) via Docker.",
        epilog="Every option can also be given as an environment variable with the same upper-case name "
        "(STEAM_USER, STEAM_PASS, STEAM_GUARD_CODE, VNC_PASSWORD, GAME_PORT, VNC_PORT, INSTALL_DIR).",
    )
    parser.add_argument("-u", "--steam-user", help="Steam username")
    parser.add_argument("-p", "--steam-pass", help="Steam password")
    parser.add_argument(
        "--steam-guard-code", help="Steam Guard code (may be needed on first run)"
    )
    parser.add_argument("-v", "--vnc-password", help="VNC password")
    parser.add_argument(
        "-g", "--game-port", type=int, help="Game UDP port on the host (default 24643)"
    )
    parser.add_argument(
        "-w", "--vnc-port", type=int, help="VNC web port on the host (default 8090)"
    )
    parser.add_argument(
        "-d", "--dir", dest="install_dir", help="Install dir (default: ~/junimoserver)"
    )
    parser.add_argument(
        "--no-binfmt", action="store_true", help="Skip amd64 emulation setup on ARM"
    )
    parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing .env"
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable verbose output"
    )
    return parser.parse_args(args)


def build_cli_overrides(parsed: argparse.Namespace) -> Dict[str, Any]:
    return {
        "stardew": {
            "steam_user": parsed.steam_user,
            "steam_pass": parsed.steam_pass,
            "steam_guard_code": parsed.steam_guard_code,
            "vnc_password": parsed.vnc_password,
            "game_port": parsed.game_port,
            "vnc_port": parsed.vnc_port,
            "install_dir": parsed.install_dir,
            "setup_binfmt": False if parsed.no_binfmt else None,
            "force_env": True if parsed.force else None,
        },
    }


def build_server_env(stardew: StardewSettings) -> Dict[str, object]:
    """Values of the stack's .env file, in the order they are written."""
    return {
        "GAME_PORT": stardew.game_port,
        "DISABLE_RENDERING": "true",
        "STEAM_USER": stardew.steam_user,
        "STEAM_PASS": stardew.steam_pass,
        "STEAM_GUARD_CODE": stardew.steam_guard_code,
        "VNC_PORT": stardew.vnc_port,
        "VNC_PASSWORD": stardew.vnc_password,
    }


def ensure_host_tools(app_settings: AppSettings) -> None:
    """
    Install Docker, Compose and git, plus amd64 emulation where needed.

    Privileges are checked for everything up front so a missing sudo aborts
    before any package is touched. Emulation failures are only warnings.
    """
    symbols = get_symbols(app_settings)
    arch = get_machine_architecture()
    log_bootstrap(
        f"{symbols.get('info', 'ℹ️')} Detected arch: {arch}",
        "info",
        logger,
        app_settings,
    )
    emulate = needs_amd64_emulation(arch) and app_settings.stardew.setup_binfmt

    installer = DependencyInstaller(app_settings, logger)
    required = [KNOWN_TOOLS["docker"], KNOWN_TOOLS["docker-compose"], KNOWN_TOOLS["git"]]
    qemu = KNOWN_TOOLS["qemu-user-static"]
    installer.check_privileges(required + ([qemu] if emulate else []))

    for tool in required:
        installer.ensure(tool)

    if emulate:
        log_bootstrap(
            f"{symbols.get('step', '➡️')} Setting up amd64 emulation (binfmt + qemu-user-static).",
            "info",
            logger,
            app_settings,
        )
        try:
            installer.ensure(qemu)
        except InstallError as e:
            log_bootstrap(
                f"{symbols.get('warning', '!')} {e}",
                "warning",
                logger,
                app_settings,
            )
        register_amd64_binfmt(app_settings, logger)


def run_deploy(app_settings: AppSettings) -> None:
    """
    Perform the deployment.

    Raises:
        ValidationError: Missing credentials.
        PrivilegeError: Tools must be installed but root/sudo is unavailable.
        InstallError: A required tool or the repository could not be set up.
        LaunchError: `docker compose up -d` failed.
    """
    symbols = get_symbols(app_settings)
    stardew = app_settings.stardew
    stardew.require_secrets()

    ensure_host_tools(app_settings)

    install_dir = expand_user_path(stardew.install_dir)
    sync_repository(stardew.repo_url, install_dir, app_settings, logger)

    materialize(
        install_dir / ENV_FILE_NAME,
        build_server_env(stardew),
        overwrite=stardew.force_env,
        app_settings=app_settings,
        header="Generated by stardew-deploy",
        current_logger=logger,
    )

    launch(
        install_dir,
        build_override_spec(
            stardew.service_name, stardew.platform, stardew.restart_policy
        ),
        app_settings,
        logger,
    )

    runtime = app_settings.container_runtime_command
    log_bootstrap(
        f"{symbols.get('sparkles', '✨')} Done. Useful commands (in {install_dir}):\n"
        f"  {runtime} compose logs -f\n"
        f"  {runtime} compose ps\n"
        f"  {runtime} compose down   # to stop",
        "success",
        logger,
        app_settings,
    )
    log_bootstrap(
        f"{symbols.get('info', 'ℹ️')} Ports to forward on your router:\n"
        f"  UDP {stardew.game_port}  -> this host (Stardew game)\n"
        f"  TCP {stardew.vnc_port}  -> this host (web VNC admin)",
        "info",
        logger,
        app_settings,
    )


def main(args: Optional[List[str]] = None) -> int:
    parsed = parse_args(args)
    setup_logging(
        log_level=logging.DEBUG if parsed.verbose else logging.INFO,
        log_prefix=LOG_PREFIX,
    )
    try:
        app_settings = load_app_settings(
            build_cli_overrides(parsed), parsed.config, logger
        )
        run_deploy(app_settings)
    except ValidationError as e:
        logger.error(str(e))
        return 1
    except LaunchError as e:
        logger.error(f"{e} Fix the problem and re-run to retry.")
        return 1
    except PermissionError as e:
        logger.error(str(e))
        return 1
    except BootstrapError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
