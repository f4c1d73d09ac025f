#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Entry point for the DuckDNS setup.

Installs the host tools, stores domain and token in an owner-only env file
under the target user's home and registers a single cron entry running the
DuckDNS updater every few minutes.

Examples:
    env DUCKDNS_DOMAIN=myfarm DUCKDNS_TOKEN=xxxxxxxx duckdns-setup
    sudo duckdns-setup --domain myfarm.duckdns.org --token xxxxxxxx --user pi
"""

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.command_utils import (
    elevation_available,
    get_symbols,
    is_root,
    log_bootstrap,
)
from common.core_utils import setup_logging
from common.exceptions import (
    BootstrapError,
    InstallError,
    PrivilegeError,
    ValidationError,
)
from common.file_utils import chown_path
from common.system_utils import (
    current_username,
    default_target_user,
    resolve_user_home,
    user_can_access,
)
from configure.cron_configurator import register
from configure.env_configurator import materialize
from installer.dependency_installer import KNOWN_TOOLS, DependencyInstaller
from settings.config_loader import load_app_settings
from settings.config_models import AppSettings, DuckDnsSettings

LOG_PREFIX = "[duckdns-setup]"
UPDATER_TASK_ID = "duckdns-update"
ENV_FILE_NAME = "duckdns.env"
STATUS_LOG_NAME = "duck.log"
# Entries written by the former shell-based updater.
SUPERSEDED_ENTRY_MARKERS = ("duckdns/duck.sh",)
# Updater options copied into the env file when they differ from the defaults.
UPDATER_OPTION_FIELDS = ("update_url", "request_timeout", "verify_tls")

logger = logging.getLogger("duckdns_setup")


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Register a DuckDNS hostname and keep it updated from cron.",
        epilog="Domain and token can also be given as DUCKDNS_DOMAIN and DUCKDNS_TOKEN.",
    )
    parser.add_argument("-d", "--domain", help="DuckDNS subdomain, with or without .duckdns.org")
    parser.add_argument("-t", "--token", help="DuckDNS token")
    parser.add_argument(
        "-i", "--interval", help="Cron schedule (default: every 5 minutes)"
    )
    parser.add_argument(
        "-u",
        "--user",
        help="Install the crontab for this user (default: SUDO_USER if set, else the current user)",
    )
    parser.add_argument(
        "--no-apt", action="store_true", help="Skip apt installation of host tools"
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    return parser.parse_args(args)


def build_cli_overrides(parsed: argparse.Namespace) -> Dict[str, Any]:
    return {
        "ddns": {
            "domain": parsed.domain,
            "token": parsed.token,
            "interval": parsed.interval,
            "target_user": parsed.user,
            "install_packages": False if parsed.no_apt else None,
        },
    }


def build_updater_command(env_file: Path, log_file: Path) -> str:
    """Shell command cron runs; it references the env file instead of embedding secrets."""
    return (
        f"{shlex.quote(sys.executable)} -m ddns.updater"
        f" --env-file {shlex.quote(str(env_file))}"
        f" --log-file {shlex.quote(str(log_file))}"
        " >/dev/null 2>&1"
    )


def build_updater_env(ddns: DuckDnsSettings) -> Dict[str, object]:
    """
    Values of the updater's env file. Endpoint options are included only
    when they differ from the defaults, so the updater sees them at run time.
    """
    values: Dict[str, object] = {
        "DUCKDNS_DOMAIN": ddns.domain,
        "DUCKDNS_TOKEN": ddns.token,
    }
    for name in UPDATER_OPTION_FIELDS:
        value = getattr(ddns, name)
        if value == DuckDnsSettings.model_fields[name].default:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        values[f"DUCKDNS_{name.upper()}"] = value
    return values


def check_updater_runnable(username: str) -> None:
    """
    Make sure `username` can run this interpreter and read its installation,
    which the cron job relies on.

    Raises:
        ValidationError: If the interpreter or its prefix is out of reach.
    """
    interpreter = Path(sys.executable).resolve()
    prefix = Path(sys.prefix).resolve()
    if not (
        user_can_access(interpreter, username)
        and user_can_access(prefix, username, need_read=True)
    ):
        raise ValidationError(
            f"User {username} cannot run {interpreter} (installed under {prefix}). "
            f"Install host-bootstrap where {username} can use it, e.g. as that user."
        )


def run_setup(app_settings: AppSettings) -> None:
    """
    Perform the DuckDNS setup.

    Raises:
        ValidationError: Missing domain/token, unknown target user, or an
            interpreter the target user cannot run.
        PrivilegeError: Another user's crontab or missing tools need elevation.
        InstallError: cron could not be installed.
    """
    symbols = get_symbols(app_settings)
    ddns = app_settings.ddns
    ddns.require_secrets()

    target_user = ddns.target_user or default_target_user()
    home = resolve_user_home(target_user, app_settings, logger)
    acting_for_other = target_user != current_username()
    if acting_for_other and not elevation_available():
        raise PrivilegeError(
            f"Cannot manage files and crontab of {target_user} without sudo. "
            f"Run with sudo or specify --user {current_username()}."
        )
    if acting_for_other:
        check_updater_runnable(target_user)

    if ddns.install_packages:
        installer = DependencyInstaller(app_settings, logger)
        curl, crontab = KNOWN_TOOLS["curl"], KNOWN_TOOLS["crontab"]
        installer.check_privileges([curl, crontab])
        try:
            installer.ensure(curl)
        except InstallError as e:
            log_bootstrap(
                f"{symbols.get('warning', '!')} {e} Continuing without curl.",
                "warning",
                logger,
                app_settings,
            )
        installer.ensure(crontab)
    else:
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} Skipping apt install (--no-apt).",
            "info",
            logger,
            app_settings,
        )

    duck_dir = home / ddns.base_dir
    duck_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    owner = target_user if (acting_for_other or is_root()) else None
    if owner:
        chown_path(duck_dir, owner, app_settings, current_logger=logger)

    env_file = duck_dir / ENV_FILE_NAME
    log_file = duck_dir / STATUS_LOG_NAME
    materialize(
        env_file,
        build_updater_env(ddns),
        overwrite=True,
        app_settings=app_settings,
        header="Generated by duckdns-setup",
        owner=owner,
        current_logger=logger,
    )

    register(
        ddns.interval,
        build_updater_command(env_file, log_file),
        target_user,
        UPDATER_TASK_ID,
        app_settings,
        supersedes=SUPERSEDED_ENTRY_MARKERS,
        current_logger=logger,
    )
    log_bootstrap(
        f"{symbols.get('sparkles', '✨')} Setup complete. Log file: {log_file}",
        "success",
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
        run_setup(app_settings)
    except ValidationError as e:
        logger.error(str(e))
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
