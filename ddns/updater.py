# ddns/updater.py
# -*- coding: utf-8 -*-
"""
DuckDNS updater.

Performs one update call per invocation and records the provider's answer
in a "last status" log file that is overwritten every run. Run from cron
as `duckdns-update --env-file ~/duckdns/duckdns.env --log-file ~/duckdns/duck.log`;
domain and token are read from the owner-only env file at run time.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import requests
from pydantic import ValidationError as PydanticValidationError

from common.command_utils import get_symbols, log_bootstrap
from common.core_utils import setup_logging
from common.exceptions import NetworkError, ValidationError
from settings.config_models import (
    AppSettings,
    DuckDnsSettings,
    normalize_duckdns_domain,
)

module_logger = logging.getLogger(__name__)


@dataclass
class HttpResult:
    """Outcome of one update call."""

    status_code: Optional[int]
    body: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        # DuckDNS answers 200 with "OK" or "KO" in the body.
        return self.status_code == 200 and self.body.strip().startswith("OK")


def _send_update(
    update_url: str,
    domain: str,
    token: str,
    timeout: Optional[float],
    verify_tls: bool,
) -> requests.Response:
    try:
        return requests.get(
            update_url,
            params={"domains": domain, "token": token, "ip": ""},
            timeout=timeout,
            verify=verify_tls,
        )
    except requests.exceptions.RequestException as e:
        # The exception text can carry the full URL, token included.
        raise NetworkError(
            f"DuckDNS update request failed: {type(e).__name__}"
        ) from e


def _write_status(log_path: Path, text: str) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(text, encoding="utf-8")


def update(
    domain: str,
    token: str,
    log_path: Union[str, Path],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> HttpResult:
    """
    Ask DuckDNS to point `domain` at the caller's public IP.

    The request carries the normalized domain, the token verbatim and an
    empty ip parameter, letting DuckDNS use the address the request comes
    from. The raw response body replaces the content of `log_path`. A
    failed call is logged and recorded, never raised; the next scheduled
    run simply tries again.

    Returns:
        HttpResult: Status code and body, or the error description.
    """
    logger_to_use = current_logger if current_logger else module_logger
    settings = app_settings if app_settings else AppSettings()
    symbols = get_symbols(settings)
    ddns = settings.ddns
    target = Path(log_path)

    try:
        response = _send_update(
            ddns.update_url,
            normalize_duckdns_domain(domain),
            token,
            ddns.request_timeout,
            ddns.verify_tls,
        )
    except NetworkError as e:
        log_bootstrap(
            f"{symbols.get('error', '❌')} {e}",
            "error",
            logger_to_use,
            settings,
        )
        result = HttpResult(status_code=None, body="", error=str(e))
        _write_status(target, f"ERROR {result.error}\n")
        return result

    result = HttpResult(status_code=response.status_code, body=response.text)
    _write_status(target, result.body)
    if result.ok:
        log_bootstrap(
            f"{symbols.get('success', '✅')} DuckDNS update accepted.",
            "success",
            logger_to_use,
            settings,
        )
    else:
        log_bootstrap(
            f"{symbols.get('warning', '!')} DuckDNS update rejected (HTTP {result.status_code}): {result.body.strip()}",
            "warning",
            logger_to_use,
            settings,
        )
    return result


def load_updater_settings(env_file: Union[str, Path]) -> DuckDnsSettings:
    """
    Read the DuckDNS settings from `env_file`; real environment variables
    take precedence over the file.

    Raises:
        ValidationError: If the file is unreadable, holds invalid values, or
            leaves domain or token empty.
    """
    env_path = Path(env_file)
    if not env_path.is_file():
        raise ValidationError(f"Env file '{env_path}' not found.")
    try:
        settings = DuckDnsSettings(_env_file=str(env_path))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid settings in '{env_path}': {e}") from e
    settings.require_secrets()
    return settings


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send one DuckDNS update and store the answer."
    )
    parser.add_argument(
        "--env-file",
        required=True,
        help="Owner-only env file holding DUCKDNS_DOMAIN and DUCKDNS_TOKEN.",
    )
    parser.add_argument(
        "--log-file",
        required=True,
        help="File receiving the last response, overwritten every run.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    return parser.parse_args(args)


def main(args: Optional[List[str]] = None) -> int:
    parsed = parse_args(args)
    setup_logging(
        log_level=logging.DEBUG if parsed.verbose else logging.INFO,
        log_prefix="[duckdns-update]",
    )
    try:
        ddns_settings = load_updater_settings(parsed.env_file)
    except ValidationError as e:
        module_logger.error(str(e))
        return 1

    app_settings = AppSettings(ddns=ddns_settings)
    update(
        ddns_settings.domain,
        ddns_settings.token,
        parsed.log_file,
        app_settings=app_settings,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
