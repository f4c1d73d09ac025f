from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from common.exceptions import ValidationError
from common.system_utils import (
    default_target_user,
    expand_user_path,
    needs_amd64_emulation,
    resolve_user_home,
    user_can_access,
)


@pytest.mark.parametrize(
    "arch, expected",
    [
        ("x86_64", False),
        ("AMD64", False),
        ("aarch64", True),
        ("armv7l", True),
    ],
)
def test_needs_amd64_emulation(arch, expected):
    assert needs_amd64_emulation(arch) is expected


def test_needs_amd64_emulation_uses_host_arch(mocker):
    mocker.patch(
        "common.system_utils.platform.machine", return_value="aarch64"
    )

    assert needs_amd64_emulation() is True


def test_default_target_user_prefers_sudo_user(mocker, monkeypatch):
    mocker.patch("common.system_utils.getpass.getuser", return_value="root")
    monkeypatch.setenv("SUDO_USER", "pi")

    assert default_target_user() == "pi"


def test_default_target_user_without_sudo(mocker):
    mocker.patch("common.system_utils.getpass.getuser", return_value="alice")

    assert default_target_user() == "alice"


def test_resolve_user_home(mocker, app_settings, mock_logger, tmp_path):
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=MagicMock(pw_dir=str(tmp_path)),
    )

    assert resolve_user_home("pi", app_settings, mock_logger) == tmp_path
    mock_logger.info.assert_called_once()


def test_resolve_user_home_unknown_user(mocker):
    mocker.patch("common.system_utils.pwd.getpwnam", side_effect=KeyError("x"))

    with pytest.raises(ValidationError, match="Unknown user 'ghost'"):
        resolve_user_home("ghost")


def test_resolve_user_home_missing_directory(mocker, tmp_path):
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=MagicMock(pw_dir=str(tmp_path / "missing")),
    )

    with pytest.raises(ValidationError, match="Could not resolve home"):
        resolve_user_home("pi")


def test_expand_user_path_for_other_user(mocker):
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=MagicMock(pw_dir="/home/pi"),
    )

    assert expand_user_path("~/junimoserver", "pi") == Path("/home/pi/junimoserver")


def test_expand_user_path_absolute(tmp_path):
    assert expand_user_path(str(tmp_path / "srv")) == tmp_path / "srv"


INTERPRETER = "/opt/hostboot/venv/bin/python3"


def _fake_tree(mocker, venv_mode, venv_owner=0, uid=1000, groups=(1000,)):
    """Stat results for INTERPRETER's path; only the venv directory varies."""
    entries = {
        "/": SimpleNamespace(st_mode=0o40755, st_uid=0, st_gid=0),
        "/opt": SimpleNamespace(st_mode=0o40755, st_uid=0, st_gid=0),
        "/opt/hostboot": SimpleNamespace(st_mode=0o40755, st_uid=0, st_gid=0),
        "/opt/hostboot/venv": SimpleNamespace(
            st_mode=0o40000 | venv_mode, st_uid=venv_owner, st_gid=0
        ),
        "/opt/hostboot/venv/bin": SimpleNamespace(st_mode=0o40755, st_uid=0, st_gid=0),
        INTERPRETER: SimpleNamespace(st_mode=0o100755, st_uid=0, st_gid=0),
    }
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=SimpleNamespace(pw_uid=uid, pw_gid=groups[0]),
    )
    mocker.patch(
        "common.system_utils.os.getgrouplist", return_value=list(groups)
    )
    mocker.patch(
        "common.system_utils.os.stat", side_effect=lambda p: entries[str(p)]
    )


def test_user_can_access_world_executable(mocker):
    _fake_tree(mocker, venv_mode=0o755)

    assert user_can_access(INTERPRETER, "pi") is True
    assert user_can_access("/opt/hostboot/venv", "pi", need_read=True) is True


def test_user_can_access_blocked_by_private_directory(mocker):
    """A root-owned 0700 virtualenv keeps other users from its interpreter."""
    _fake_tree(mocker, venv_mode=0o700)

    assert user_can_access(INTERPRETER, "pi") is False


def test_user_can_access_as_directory_owner(mocker):
    _fake_tree(mocker, venv_mode=0o700, venv_owner=1000)

    assert user_can_access(INTERPRETER, "pi") is True


def test_user_can_access_through_group(mocker):
    _fake_tree(mocker, venv_mode=0o750, groups=(1000, 0))

    assert user_can_access(INTERPRETER, "pi") is True


def test_user_can_access_needs_read_bit(mocker):
    _fake_tree(mocker, venv_mode=0o711)

    assert user_can_access(INTERPRETER, "pi") is True
    assert user_can_access("/opt/hostboot/venv", "pi", need_read=True) is False


def test_user_can_access_root(mocker):
    _fake_tree(mocker, venv_mode=0o700, uid=0, groups=(0,))

    assert user_can_access(INTERPRETER, "root") is True
