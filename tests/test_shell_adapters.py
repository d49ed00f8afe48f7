from __future__ import annotations

import subprocess
from types import SimpleNamespace

import pytest

from taskrouter.shell import BashAdapter, blocked_substring_hook, create_shell_adapter


@pytest.mark.parametrize("factory_input", ["bash", "sh", "shell", " Bash "])
def test_create_shell_adapter(factory_input: str) -> None:
    adapter = create_shell_adapter(factory_input)
    assert isinstance(adapter, BashAdapter)


def test_create_shell_adapter_rejects_unsupported_shell() -> None:
    with pytest.raises(ValueError, match="Unsupported shell adapter"):
        create_shell_adapter("powershell")


def test_bash_adapter_runs_command(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> SimpleNamespace:
        assert args[0] == ["bash", "-c", "echo hi"]
        assert kwargs["cwd"] == "/repo"
        return SimpleNamespace(returncode=0, stdout=b"hi\n", stderr=b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = BashAdapter(executable="bash").execute("echo hi", cwd="/repo")

    assert result.returncode == 0
    assert result.stdout == "hi\n"
    assert result.shell == "bash"


def test_bash_adapter_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> SimpleNamespace:
        raise subprocess.TimeoutExpired(cmd=args[0], timeout=1, output=b"", stderr=b"late")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = BashAdapter(executable="bash").execute("sleep 5", timeout=1)

    assert result.timed_out is True
    assert result.returncode == 124
    assert result.stderr == "late"


def test_bash_adapter_missing_executable() -> None:
    result = BashAdapter(executable="/definitely/missing/bash").execute("echo hi")

    assert result.executed is False
    assert result.returncode == 127


def test_bash_adapter_falls_back_to_sh(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_which(name: str) -> str | None:
        if name == "sh":
            return "/bin/sh"
        return None

    monkeypatch.setattr("taskrouter.shell.bash_adapter.shutil.which", fake_which)

    assert BashAdapter().executable == "sh"


def test_allowlist_hook_rejects() -> None:
    adapter = BashAdapter(executable="bash", allowlist_hook=lambda _command, _shell: False)
    result = adapter.execute("ls")

    assert result.executed is False
    assert result.blocked is True
    assert "allowlist" in result.stderr


def test_blocked_commands_become_denylist() -> None:
    adapter = create_shell_adapter("bash", blocked_commands=["mkfs"])
    result = adapter.execute("sudo mkfs /dev/sda1")

    assert result.blocked is True
    assert result.returncode == 126
    assert result.block_reason == "command blocked by denylist policy"


def test_blocked_substring_hook_matches_fragments() -> None:
    hook = blocked_substring_hook(["rm -rf /"])

    assert hook("rm -rf / --no-preserve-root", "bash") is True
    assert hook("rm notes.txt", "bash") is False


def test_sandbox_mode_blocks_destructive_commands() -> None:
    adapter = create_shell_adapter("bash", sandbox_mode=True)
    result = adapter.execute("rm -rf ./build")

    assert result.blocked is True
    assert result.block_reason == "destructive command blocked in sandbox mode"


def test_destructive_command_runs_when_sandbox_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda *_args, **_kwargs: SimpleNamespace(returncode=0, stdout=b"", stderr=b""),
    )
    result = BashAdapter(executable="bash").execute("rm -rf ./build")

    assert result.blocked is False
    assert result.returncode == 0


def test_secrets_are_masked_in_request_log(caplog: pytest.LogCaptureFixture) -> None:
    adapter = BashAdapter(executable="bash")

    with caplog.at_level("INFO"):
        adapter.log_request("deploy --token abc123", timeout=None)

    record = caplog.records[-1]
    assert record.command == "deploy --token ***"
