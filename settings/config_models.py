# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for both bootstrap tools,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

import re
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.exceptions import ValidationError

# --- Default Static Values (can be overridden by config file/env/cli) ---
CONTAINER_RUNTIME_COMMAND_DEFAULT: str = "docker"

DUCKDNS_SUFFIX: str = ".duckdns.org"
DUCKDNS_UPDATE_URL_DEFAULT: str = "https://www.duckdns.org/update"
DUCKDNS_INTERVAL_DEFAULT: str = "*/5 * * * *"
DUCKDNS_BASE_DIR_DEFAULT: str = "duckdns"

GAME_PORT_DEFAULT: int = 24643
VNC_PORT_DEFAULT: int = 8090
INSTALL_DIR_DEFAULT: str = "~/junimoserver"
STARDEW_REPO_URL_DEFAULT: str = (
    "https://github.com/stardew-valley-dedicated-server/server.git"
)
STARDEW_SERVICE_NAME_DEFAULT: str = "stardew"
COMPOSE_PLATFORM_DEFAULT: str = "linux/amd64"
COMPOSE_RESTART_POLICY_DEFAULT: str = "unless-stopped"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️",
    "step": "➡️", "gear": "⚙️", "package": "📦", "rocket": "🚀",
    "sparkles": "✨", "critical": "🔥", "debug": "🐛",
}

_CRON_MACROS = {
    "@reboot", "@yearly", "@annually", "@monthly",
    "@weekly", "@daily", "@midnight", "@hourly",
}
_CRON_FIELD_RE = re.compile(r"^[0-9A-Za-z*/,\-]+$")


def normalize_duckdns_domain(raw_domain: str) -> str:
    """
    Reduce a DuckDNS hostname to the bare subdomain the update API expects.

    Accepts either ``myfarm`` or ``myfarm.duckdns.org`` and also a comma
    separated list of those. The suffix is stripped until none is left, so
    normalizing an already normalized value returns it unchanged.
    """
    normalized: List[str] = []
    for part in raw_domain.split(","):
        name = part.strip()
        while name.lower().endswith(DUCKDNS_SUFFIX):
            name = name[: -len(DUCKDNS_SUFFIX)]
        if name:
            normalized.append(name)
    return ",".join(normalized)


def is_valid_cron_schedule(schedule: str) -> bool:
    """Check for a five-field cron expression or an '@' macro."""
    stripped = schedule.strip()
    if stripped in _CRON_MACROS:
        return True
    fields = stripped.split()
    return len(fields) == 5 and all(_CRON_FIELD_RE.match(f) for f in fields)


class DuckDnsSettings(BaseSettings):
    """DuckDNS registration and updater settings."""
    model_config = SettingsConfigDict(
        env_prefix='DUCKDNS_',
        extra='ignore'
    )

    domain: str = Field(default="", description="DuckDNS subdomain (with or without the .duckdns.org suffix).")
    token: str = Field(default="", description="DuckDNS account token.", repr=False)
    interval: str = Field(default=DUCKDNS_INTERVAL_DEFAULT, description="Cron schedule for the updater.")
    target_user: Optional[str] = Field(default=None,
                                       description="User whose crontab receives the entry. Defaults to SUDO_USER or the current user.")
    install_packages: bool = Field(default=True, description="Install host tools with apt before registering.")
    base_dir: str = Field(default=DUCKDNS_BASE_DIR_DEFAULT,
                          description="Directory, relative to the target user's home, holding the env and log files.")
    update_url: str = Field(default=DUCKDNS_UPDATE_URL_DEFAULT, description="DuckDNS update endpoint.")
    request_timeout: Optional[float] = Field(default=None,
                                             description="Seconds to wait for the update call. None keeps the HTTP client default.")
    verify_tls: bool = Field(default=True, description="Verify the endpoint's TLS certificate.")

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        return normalize_duckdns_domain(value) if value else value

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: str) -> str:
        if not is_valid_cron_schedule(value):
            raise ValueError(f"'{value}' is not a valid cron schedule")
        return value.strip()

    def require_secrets(self) -> None:
        """Raise ValidationError naming every required DuckDNS value that is empty."""
        missing = [
            name
            for name, value in (("DUCKDNS_DOMAIN", self.domain), ("DUCKDNS_TOKEN", self.token))
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing required: {', '.join(missing)}", missing=missing
            )


class StardewSettings(BaseSettings):
    """JunimoServer deployment settings."""
    model_config = SettingsConfigDict(
        env_prefix='STARDEW_',
        extra='ignore'
    )

    # Credentials, ports and install_dir keep their bare environment names.
    steam_user: str = Field(default="", validation_alias="steam_user", description="Steam username.")
    steam_pass: str = Field(default="", validation_alias="steam_pass", description="Steam password.", repr=False)
    steam_guard_code: str = Field(default="", validation_alias="steam_guard_code", description="Steam Guard code, may be needed on first run.", repr=False)
    vnc_password: str = Field(default="", validation_alias="vnc_password", description="Password of the web VNC admin console.", repr=False)
    game_port: int = Field(default=GAME_PORT_DEFAULT, validation_alias="game_port", ge=1, le=65535, description="Host UDP game port.")
    vnc_port: int = Field(default=VNC_PORT_DEFAULT, validation_alias="vnc_port", ge=1, le=65535, description="Host TCP port of the web VNC console.")
    install_dir: str = Field(default=INSTALL_DIR_DEFAULT, validation_alias="install_dir", description="Checkout and compose directory.")
    repo_url: str = Field(default=STARDEW_REPO_URL_DEFAULT, description="Git repository of the server stack.")
    setup_binfmt: bool = Field(default=True, description="Register amd64 emulation on non-x86 hosts.")
    force_env: bool = Field(default=False, description="Overwrite an existing .env file.")
    service_name: str = Field(default=STARDEW_SERVICE_NAME_DEFAULT, description="Compose service to pin.")
    platform: str = Field(default=COMPOSE_PLATFORM_DEFAULT, description="Platform forced in the compose override.")
    restart_policy: str = Field(default=COMPOSE_RESTART_POLICY_DEFAULT, description="Restart policy in the compose override.")

    def require_secrets(self) -> None:
        """Raise ValidationError naming every required credential that is empty."""
        missing = [
            name
            for name, value in (
                ("STEAM_USER", self.steam_user),
                ("STEAM_PASS", self.steam_pass),
                ("VNC_PASSWORD", self.vnc_password),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing required: {', '.join(missing)}", missing=missing
            )


class AppSettings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(extra='ignore')

    container_runtime_command: str = Field(default=CONTAINER_RUNTIME_COMMAND_DEFAULT,
                                           description="Command for the container runtime CLI.")

    ddns: DuckDnsSettings = Field(default_factory=DuckDnsSettings)
    stardew: StardewSettings = Field(default_factory=StardewSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
