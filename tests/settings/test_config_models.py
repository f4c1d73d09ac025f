import pytest
from pydantic import ValidationError as PydanticValidationError

from common.exceptions import ValidationError
from settings.config_models import (
    GAME_PORT_DEFAULT,
    VNC_PORT_DEFAULT,
    AppSettings,
    DuckDnsSettings,
    StardewSettings,
    is_valid_cron_schedule,
    normalize_duckdns_domain,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("myfarm", "myfarm"),
        ("myfarm.duckdns.org", "myfarm"),
        ("MyFarm.DuckDNS.org", "MyFarm"),
        ("  myfarm.duckdns.org  ", "myfarm"),
        ("a.duckdns.org, b", "a,b"),
        ("x.duckdns.org.duckdns.org", "x"),
        ("", ""),
    ],
)
def test_normalize_duckdns_domain(raw, expected):
    assert normalize_duckdns_domain(raw) == expected


@pytest.mark.parametrize(
    "raw", ["myfarm", "myfarm.duckdns.org", "a.duckdns.org,b.duckdns.org"]
)
def test_normalize_duckdns_domain_is_idempotent(raw):
    once = normalize_duckdns_domain(raw)

    assert normalize_duckdns_domain(once) == once


@pytest.mark.parametrize(
    "schedule, expected",
    [
        ("*/5 * * * *", True),
        ("0 3 * * mon-fri", True),
        ("@hourly", True),
        ("* * * *", False),
        ("*/5 * * * * extra", False),
        ("every 5 minutes", False),
        ("*/5 * * * $(rm)", False),
    ],
)
def test_is_valid_cron_schedule(schedule, expected):
    assert is_valid_cron_schedule(schedule) is expected


def test_duckdns_settings_normalizes_domain():
    assert DuckDnsSettings(domain="myfarm.duckdns.org").domain == "myfarm"


def test_duckdns_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DUCKDNS_DOMAIN", "myfarm.duckdns.org")
    monkeypatch.setenv("DUCKDNS_TOKEN", "tok")
    monkeypatch.setenv("DUCKDNS_INTERVAL", "*/10 * * * *")

    settings = DuckDnsSettings()

    assert settings.domain == "myfarm"
    assert settings.token == "tok"
    assert settings.interval == "*/10 * * * *"


def test_duckdns_settings_rejects_bad_interval():
    with pytest.raises(PydanticValidationError):
        DuckDnsSettings(interval="soon")


def test_duckdns_token_not_in_repr():
    assert "s3cret" not in repr(DuckDnsSettings(domain="d", token="s3cret"))


def test_duckdns_require_secrets_names_missing_values():
    with pytest.raises(ValidationError) as exc_info:
        DuckDnsSettings().require_secrets()

    assert exc_info.value.missing == ["DUCKDNS_DOMAIN", "DUCKDNS_TOKEN"]


def test_stardew_settings_defaults():
    settings = StardewSettings()

    assert settings.game_port == GAME_PORT_DEFAULT == 24643
    assert settings.vnc_port == VNC_PORT_DEFAULT == 8090
    assert settings.install_dir == "~/junimoserver"
    assert settings.force_env is False


def test_stardew_settings_from_environment(monkeypatch):
    monkeypatch.setenv("STEAM_USER", "you")
    monkeypatch.setenv("GAME_PORT", "25000")

    settings = StardewSettings()

    assert settings.steam_user == "you"
    assert settings.game_port == 25000


def test_stardew_settings_ignores_generic_host_variables(monkeypatch):
    monkeypatch.setenv("PLATFORM", "linux/arm64")
    monkeypatch.setenv("REPO_URL", "https://example.org/other.git")
    monkeypatch.setenv("SERVICE_NAME", "web")
    monkeypatch.setenv("FORCE_ENV", "true")

    settings = StardewSettings()

    assert settings.platform == "linux/amd64"
    assert settings.repo_url.endswith("stardew-valley-dedicated-server/server.git")
    assert settings.service_name == "stardew"
    assert settings.force_env is False


def test_stardew_settings_prefixed_deployment_options(monkeypatch):
    monkeypatch.setenv("STARDEW_REPO_URL", "https://example.org/fork.git")
    monkeypatch.setenv("STARDEW_FORCE_ENV", "true")
    monkeypatch.setenv("VNC_PASSWORD", "vnc")

    settings = StardewSettings()

    assert settings.repo_url == "https://example.org/fork.git"
    assert settings.force_env is True
    assert settings.vnc_password == "vnc"


def test_stardew_settings_rejects_bad_port():
    with pytest.raises(PydanticValidationError):
        StardewSettings(vnc_port=70000)


def test_stardew_require_secrets():
    with pytest.raises(ValidationError) as exc_info:
        StardewSettings(steam_user="you").require_secrets()

    assert exc_info.value.missing == ["STEAM_PASS", "VNC_PASSWORD"]


def test_app_settings_defaults():
    settings = AppSettings()

    assert settings.container_runtime_command == "docker"
    assert settings.symbols["success"] == "✅"
    assert isinstance(settings.ddns, DuckDnsSettings)
    assert isinstance(settings.stardew, StardewSettings)
