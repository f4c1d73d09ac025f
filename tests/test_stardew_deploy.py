import os
import stat
from unittest.mock import ANY

import pytest

import stardew_deploy
from common.exceptions import InstallError, LaunchError
from installer.dependency_installer import KNOWN_TOOLS
from settings.config_models import AppSettings, StardewSettings


def _settings(install_dir, **overrides):
    values = dict(
        steam_user="you",
        steam_pass="secret",
        vnc_password="changeme",
        install_dir=str(install_dir),
    )
    values.update(overrides)
    return AppSettings(stardew=StardewSettings(**values))


@pytest.fixture
def install_dir(tmp_path):
    return tmp_path / "junimoserver"


@pytest.fixture
def deploy_mocks(mocker):
    return {
        "ensure_host_tools": mocker.patch("stardew_deploy.ensure_host_tools"),
        "sync_repository": mocker.patch("stardew_deploy.sync_repository"),
        "launch": mocker.patch("stardew_deploy.launch"),
    }


def test_run_deploy_writes_env_and_launches(deploy_mocks, install_dir):
    settings = _settings(install_dir)

    stardew_deploy.run_deploy(settings)

    env_file = install_dir / ".env"
    assert env_file.read_text().splitlines() == [
        "# Generated by stardew-deploy",
        'GAME_PORT="24643"',
        'DISABLE_RENDERING="true"',
        'STEAM_USER="you"',
        'STEAM_PASS="secret"',
        'STEAM_GUARD_CODE=""',
        'VNC_PORT="8090"',
        'VNC_PASSWORD="changeme"',
    ]
    assert stat.S_IMODE(os.stat(env_file).st_mode) == 0o600
    deploy_mocks["sync_repository"].assert_called_once_with(
        settings.stardew.repo_url, install_dir, settings, ANY
    )
    deploy_mocks["launch"].assert_called_once_with(
        install_dir,
        {
            "services": {
                "stardew": {"platform": "linux/amd64", "restart": "unless-stopped"}
            }
        },
        settings,
        ANY,
    )


def test_second_run_keeps_env_file(deploy_mocks, install_dir):
    stardew_deploy.run_deploy(_settings(install_dir))
    first = (install_dir / ".env").read_bytes()

    stardew_deploy.run_deploy(_settings(install_dir, steam_pass="changed"))

    assert (install_dir / ".env").read_bytes() == first
    assert deploy_mocks["launch"].call_count == 2


def test_force_rewrites_env_file(deploy_mocks, install_dir):
    stardew_deploy.run_deploy(_settings(install_dir))

    stardew_deploy.run_deploy(
        _settings(install_dir, steam_pass="changed", force_env=True)
    )

    assert 'STEAM_PASS="changed"' in (install_dir / ".env").read_text()


def test_run_deploy_missing_credentials(deploy_mocks, install_dir):
    from common.exceptions import ValidationError

    settings = AppSettings(
        stardew=StardewSettings(steam_user="you", install_dir=str(install_dir))
    )

    with pytest.raises(ValidationError) as exc_info:
        stardew_deploy.run_deploy(settings)

    assert exc_info.value.missing == ["STEAM_PASS", "VNC_PASSWORD"]
    deploy_mocks["ensure_host_tools"].assert_not_called()
    assert not install_dir.exists()


@pytest.fixture
def host_mocks(mocker):
    installer = mocker.patch("stardew_deploy.DependencyInstaller").return_value
    return {
        "installer": installer,
        "arch": mocker.patch("stardew_deploy.get_machine_architecture"),
        "binfmt": mocker.patch("stardew_deploy.register_amd64_binfmt"),
    }


def test_ensure_host_tools_on_x86(host_mocks, tmp_path):
    host_mocks["arch"].return_value = "x86_64"

    stardew_deploy.ensure_host_tools(_settings(tmp_path))

    required = [
        KNOWN_TOOLS["docker"],
        KNOWN_TOOLS["docker-compose"],
        KNOWN_TOOLS["git"],
    ]
    host_mocks["installer"].check_privileges.assert_called_once_with(required)
    assert [c[0][0] for c in host_mocks["installer"].ensure.call_args_list] == required
    host_mocks["binfmt"].assert_not_called()


def test_ensure_host_tools_on_arm(host_mocks, tmp_path):
    host_mocks["arch"].return_value = "aarch64"
    settings = _settings(tmp_path)

    stardew_deploy.ensure_host_tools(settings)

    ensured = [c[0][0].name for c in host_mocks["installer"].ensure.call_args_list]
    assert ensured == ["docker", "docker-compose", "git", "qemu-user-static"]
    host_mocks["binfmt"].assert_called_once_with(settings, ANY)


def test_ensure_host_tools_on_arm_without_binfmt(host_mocks, tmp_path):
    host_mocks["arch"].return_value = "aarch64"

    stardew_deploy.ensure_host_tools(_settings(tmp_path, setup_binfmt=False))

    assert len(host_mocks["installer"].ensure.call_args_list) == 3
    host_mocks["binfmt"].assert_not_called()


def test_ensure_host_tools_tolerates_qemu_failure(host_mocks, tmp_path):
    host_mocks["arch"].return_value = "armv7l"

    def ensure(tool):
        if tool.name == "qemu-user-static":
            raise InstallError("Could not install qemu-user-static.")

    host_mocks["installer"].ensure.side_effect = ensure

    stardew_deploy.ensure_host_tools(_settings(tmp_path))

    host_mocks["binfmt"].assert_called_once()


def test_ensure_host_tools_required_failure_propagates(host_mocks, tmp_path):
    host_mocks["arch"].return_value = "x86_64"
    host_mocks["installer"].ensure.side_effect = InstallError("no docker")

    with pytest.raises(InstallError):
        stardew_deploy.ensure_host_tools(_settings(tmp_path))


def test_main_missing_credentials(mocker, tmp_path):
    mocker.patch("stardew_deploy.setup_logging")
    mock_tools = mocker.patch("stardew_deploy.ensure_host_tools")

    rc = stardew_deploy.main(["-u", "you", "--config", str(tmp_path / "absent.yaml")])

    assert rc == 1
    mock_tools.assert_not_called()


def test_main_launch_failure(mocker, tmp_path):
    mocker.patch("stardew_deploy.setup_logging")
    mocker.patch(
        "stardew_deploy.run_deploy",
        side_effect=LaunchError("compose failed", returncode=1),
    )

    rc = stardew_deploy.main(
        ["-u", "you", "-p", "pw", "-v", "vnc", "--config", str(tmp_path / "absent.yaml")]
    )

    assert rc == 1


def test_main_success_applies_cli_values(mocker, tmp_path):
    mocker.patch("stardew_deploy.setup_logging")
    mock_run_deploy = mocker.patch("stardew_deploy.run_deploy")

    rc = stardew_deploy.main(
        [
            "-u", "you", "-p", "pw", "-v", "vnc",
            "-g", "25000", "--dir", str(tmp_path / "srv"),
            "--force", "--no-binfmt",
            "--config", str(tmp_path / "absent.yaml"),
        ]
    )

    assert rc == 0
    stardew = mock_run_deploy.call_args[0][0].stardew
    assert stardew.game_port == 25000
    assert stardew.vnc_port == 8090
    assert stardew.install_dir == str(tmp_path / "srv")
    assert stardew.force_env is True
    assert stardew.setup_binfmt is False
