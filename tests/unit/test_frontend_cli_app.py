"""Unit tests for the LockIt command line interface."""

import pytest
from unittest.mock import patch

from lockit.config import Settings
from lockit.core.exceptions import AuthorizationError, AuthorizationReason
from lockit.frontend.cli import app
from lockit.frontend.cli.context import build_context
from lockit.security.auth import PassphraseAuthorizer
from lockit.security.kdf import KdfParams


# --- Fixtures ---

@pytest.fixture
def ctx(tmp_path, authorizer):
    """Real context in a temp home, with a static authorizer."""
    return build_context(Settings(home=tmp_path / "home"), authorizer=authorizer)


@pytest.fixture
def cli(ctx):
    """Run ``main(argv)`` against ``ctx``; returns the exit code."""
    with patch("lockit.frontend.cli.app.build_context", return_value=ctx), \
            patch("lockit.frontend.cli.app.configure_logging"):
        yield app.main


@pytest.fixture
def folder(tmp_path, make_tree):
    return make_tree(tmp_path / "Notes", {"a.txt": b"A"})


# --- Parser ---

def test_parser_requires_command():
    with pytest.raises(SystemExit) as exc:
        app._build_arg_parser().parse_args([])
    assert exc.value.code == 2


def test_parser_lock_takes_folder():
    args = app._build_arg_parser().parse_args(["-v", "lock", "Notes"])
    assert args.command == "lock"
    assert args.folder == "Notes"
    assert args.verbose


# --- Commands ---

def test_list_empty(cli, capsys):
    assert cli(["list"]) == 0
    assert "No folders tracked." in capsys.readouterr().out


def test_add_lock_status_unlock(cli, folder, capsys):
    assert cli(["add", str(folder)]) == 0
    assert "Tracking Notes" in capsys.readouterr().out

    assert cli(["lock", "Notes"]) == 0
    assert "Locked Notes" in capsys.readouterr().out
    assert not folder.exists()

    assert cli(["status", "Notes"]) == 0
    assert "Notes: locked" in capsys.readouterr().out

    assert cli(["list"]) == 0
    assert "locked    Notes" in capsys.readouterr().out

    assert cli(["unlock", "Notes"]) == 0
    assert "Unlocked Notes" in capsys.readouterr().out
    assert (folder / "a.txt").read_bytes() == b"A"


def test_create_and_remove(cli, tmp_path, capsys):
    assert cli(["create", str(tmp_path), "Fresh"]) == 0
    assert (tmp_path / "Fresh").is_dir()
    assert cli(["remove", "Fresh"]) == 0
    assert "No longer tracking Fresh" in capsys.readouterr().out
    assert (tmp_path / "Fresh").is_dir()


def test_status_ambiguous(cli, folder, capsys):
    cli(["add", str(folder)])
    (folder.parent / "Notes.lockit").write_bytes(b"x")
    capsys.readouterr()

    assert cli(["status", "Notes"]) == 0
    assert "both present" in capsys.readouterr().out


def test_lock_all(cli, folder, capsys):
    cli(["add", str(folder)])
    assert cli(["lock-all"]) == 0
    assert not folder.exists()


def test_lock_all_reports_failures(cli, folder, authorizer, capsys):
    cli(["add", str(folder)])
    authorizer.error = AuthorizationError(AuthorizationReason.CANCELED)
    capsys.readouterr()

    assert cli(["lock-all"]) == 1
    assert "Lock failed" in capsys.readouterr().out


def test_recover(cli, ctx, folder, capsys):
    cli(["add", str(folder)])
    cli(["lock", "Notes"])
    cli(["remove", "Notes"])
    capsys.readouterr()

    assert cli(["recover", str(folder.parent / "Notes.lockit")]) == 0
    assert "Folder 'Notes' has been decrypted and added to LockIt." in capsys.readouterr().out
    assert folder.is_dir()
    assert len(ctx.manager.list_folders()) == 1


# --- Errors ---

def test_lockit_error_exit_code(cli, capsys):
    assert cli(["lock", "Nothing"]) == 1
    assert "Error: 'Nothing' is not a tracked folder." in capsys.readouterr().err


def test_double_lock_reports_conflict(cli, folder, capsys):
    cli(["add", str(folder)])
    cli(["lock", "Notes"])
    assert cli(["lock", "Notes"]) == 1
    assert "Folder is already locked." in capsys.readouterr().err


def test_bad_configuration(monkeypatch, capsys):
    monkeypatch.setenv("LOCKIT_MAX_FOLDERS", "lots")
    assert app.main(["list"]) == 1
    assert "Configuration error" in capsys.readouterr().err


# --- enroll ---

def test_enroll_requires_passphrase_authorizer(cli, capsys):
    assert cli(["enroll"]) == 1
    assert "does not use a passphrase" in capsys.readouterr().out


def test_enroll_sets_passphrase(tmp_path, capsys):
    authorizer = PassphraseAuthorizer(tmp_path / "auth.json")
    ctx = build_context(Settings(home=tmp_path / "home"), authorizer=authorizer)
    fast = KdfParams(time_cost=1, memory_cost=8)
    real_enroll = authorizer.enroll

    with patch("lockit.frontend.cli.app.getpass.getpass", side_effect=["pw1", "pw1"]), \
            patch.object(authorizer, "enroll", side_effect=lambda p: real_enroll(p, fast)):
        assert app.run(app._build_arg_parser().parse_args(["enroll"]), ctx) == 0

    assert "Passphrase saved." in capsys.readouterr().out
    assert authorizer.verify("pw1")


def test_enroll_mismatch(tmp_path, capsys):
    authorizer = PassphraseAuthorizer(tmp_path / "auth.json")
    ctx = build_context(Settings(home=tmp_path / "home"), authorizer=authorizer)

    with patch("lockit.frontend.cli.app.getpass.getpass", side_effect=["pw1", "pw2"]):
        assert app.run(app._build_arg_parser().parse_args(["enroll"]), ctx) == 1

    assert "do not match" in capsys.readouterr().out
    assert not authorizer.enrolled
