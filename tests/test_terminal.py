from __future__ import annotations

import asyncio
import io
import os
import shutil
import stat
from pathlib import Path

import pytest
from libtmux.exc import LibTmuxException
from rich.console import Console

from installpy.dispatcher import dispatch
from installpy.errors import TerminalClosedError, TerminalUnavailableError
from installpy.terminal import (
    EchoTerminalProvider,
    ShellTerminalProvider,
    TmuxTerminal,
    TmuxTerminalProvider,
    build_terminal_provider,
)

SH = shutil.which("sh")
needs_sh = pytest.mark.skipif(SH is None, reason="needs a POSIX shell")


@pytest.mark.asyncio
async def test_echo_terminal_prints_commands() -> None:
    buffer = io.StringIO()
    provider = EchoTerminalProvider(Console(file=buffer, width=200))

    session = await provider.get_terminal()
    await session.send_text("brew install python3")

    assert buffer.getvalue() == "$ brew install python3\n"


@pytest.mark.asyncio
@needs_sh
async def test_shell_terminal_runs_commands(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"
    provider = ShellTerminalProvider(shell=SH, output=io.BytesIO(), attach_stdin=False)

    session = await provider.get_terminal()
    await session.send_text(f"echo first > '{target}'")
    await session.send_text(f"echo second >> '{target}'")
    await session.send_text("exit 3")
    returncode = await asyncio.wait_for(session.aclose(), timeout=10)

    assert returncode == 3
    assert target.read_text(encoding="utf-8").splitlines() == ["first", "second"]


@pytest.mark.asyncio
@needs_sh
async def test_shell_terminal_holds_next_command_while_a_prompt_waits(tmp_path: Path) -> None:
    answer = tmp_path / "answer.txt"
    second = tmp_path / "second.txt"
    prompting = f"sh -c 'read ans; echo \"answer=[$ans]\" > {answer}'"
    read_fd, write_fd = os.pipe()
    provider = ShellTerminalProvider(shell=SH, output=io.BytesIO(), input_fd=read_fd)

    session = await provider.get_terminal()
    try:
        sending = asyncio.create_task(
            dispatch(session, [prompting, f"echo second-command > '{second}'"], interval=0.5)
        )
        await asyncio.sleep(1.5)
        assert not sending.done()
        assert not second.exists()

        # the person at the keyboard answers the prompt
        os.write(write_fd, b"yes\n")
        assert await asyncio.wait_for(sending, timeout=10) == 2

        await session.send_text("exit 0")
        assert await asyncio.wait_for(session.wait_closed(), timeout=10) == 0
    finally:
        os.close(write_fd)
        os.close(read_fd)

    assert answer.read_text(encoding="utf-8").splitlines() == ["answer=[yes]"]
    assert second.read_text(encoding="utf-8").splitlines() == ["second-command"]


@pytest.mark.asyncio
@needs_sh
async def test_unattended_shell_ends_a_prompt_with_eof(tmp_path: Path) -> None:
    marker = tmp_path / "eof.txt"
    provider = ShellTerminalProvider(shell=SH, output=io.BytesIO(), attach_stdin=False)

    session = await provider.get_terminal()
    await session.send_text(f"sh -c 'read ans || echo eof > {marker}'")
    await asyncio.sleep(0.5)
    await asyncio.wait_for(provider.aclose(), timeout=10)

    assert marker.read_text(encoding="utf-8").splitlines() == ["eof"]


@pytest.mark.asyncio
@needs_sh
async def test_shell_terminal_copies_output(tmp_path: Path) -> None:
    output = io.BytesIO()
    provider = ShellTerminalProvider(shell=SH, output=output, attach_stdin=False)

    session = await provider.get_terminal()
    await session.send_text("echo from-the-shell")
    await session.send_text("exit 0")
    await asyncio.wait_for(session.aclose(), timeout=10)

    assert b"from-the-shell" in output.getvalue()


@pytest.mark.asyncio
@needs_sh
async def test_shell_terminal_rejects_text_after_close() -> None:
    provider = ShellTerminalProvider(shell=SH, output=io.BytesIO(), attach_stdin=False)
    session = await provider.get_terminal()
    await asyncio.wait_for(provider.aclose(), timeout=10)

    with pytest.raises(TerminalClosedError):
        await session.send_text("true")


@pytest.mark.asyncio
async def test_missing_shell_is_reported(tmp_path: Path) -> None:
    provider = ShellTerminalProvider(shell=str(tmp_path / "no-such-shell"), attach_stdin=False)

    with pytest.raises(TerminalUnavailableError, match="no-such-shell"):
        await provider.get_terminal()


def test_shell_provider_defaults_to_login_shell(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHELL", "/usr/bin/zsh")
    assert ShellTerminalProvider().shell == "/usr/bin/zsh"

    monkeypatch.delenv("SHELL")
    assert ShellTerminalProvider().shell == "/bin/sh"


def _fake_tmux(directory: Path, exit_code: int = 0) -> Path:
    log = directory / "tmux.log"
    script = directory / "tmux"
    script.write_text(f"#!/bin/sh\nprintf '%s\\n' \"$*\" >> '{log}'\nexit {exit_code}\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def _tmux_calls(directory: Path) -> list[str]:
    return (directory / "tmux.log").read_text(encoding="utf-8").splitlines()


class _Pane:
    def __init__(self, pane_id: str) -> None:
        self.pane_id = pane_id


class _Window:
    def __init__(self, index: int) -> None:
        self.window_id = f"@{index}"
        self.active_pane = _Pane(f"%{index}")


class _Session:
    def __init__(self, name: str) -> None:
        self.session_name = name
        self.active_window = _Window(0)
        self.windows = [self.active_window]

    def new_window(self, attach: bool = False) -> _Window:
        window = _Window(len(self.windows))
        self.windows.append(window)
        return window


class _Sessions(list):
    def get(self, default: object = None, **kwargs: str) -> object:
        for session in self:
            if all(getattr(session, key) == value for key, value in kwargs.items()):
                return session
        return default


class _Server:
    def __init__(self, tmux_bin: Path, socket_name: str | None = None) -> None:
        self.sessions = _Sessions()
        self.tmux_bin = str(tmux_bin)
        self.socket_name = socket_name
        self.socket_path = None

    def new_session(self, session_name: str, attach: bool = False) -> _Session:
        session = _Session(session_name)
        self.sessions.append(session)
        return session


class _UnreachableServer:
    @property
    def sessions(self) -> object:
        raise LibTmuxException("tmux not found")


@pytest.mark.asyncio
@needs_sh
async def test_tmux_terminal_types_into_new_session(tmp_path: Path) -> None:
    server = _Server(_fake_tmux(tmp_path), socket_name="installpy-test")
    provider = TmuxTerminalProvider("py", server=server)  # type: ignore[arg-type]

    session = await provider.get_terminal()
    await session.send_text("sudo dnf install python3")

    assert _tmux_calls(tmp_path) == [
        "-L installpy-test send-keys -t %0 -l sudo dnf install python3",
        "-L installpy-test send-keys -t %0 Enter",
    ]


@pytest.mark.asyncio
@needs_sh
async def test_tmux_reuses_session_with_new_window(tmp_path: Path) -> None:
    server = _Server(_fake_tmux(tmp_path))
    provider = TmuxTerminalProvider("py", server=server)  # type: ignore[arg-type]

    await provider.get_terminal()
    second = await provider.get_terminal()
    await second.send_text("brew install python3")

    assert len(server.sessions) == 1
    assert len(server.sessions[0].windows) == 2
    assert _tmux_calls(tmp_path) == [
        "send-keys -t %1 -l brew install python3",
        "send-keys -t %1 Enter",
    ]


@pytest.mark.asyncio
async def test_tmux_server_failure_is_reported() -> None:
    provider = TmuxTerminalProvider("py", server=_UnreachableServer())  # type: ignore[arg-type]

    with pytest.raises(TerminalUnavailableError, match="tmux not found"):
        await provider.get_terminal()


@pytest.mark.asyncio
async def test_tmux_missing_binary_is_reported(tmp_path: Path) -> None:
    session = TmuxTerminal("%0", tmux_bin=str(tmp_path / "tmux"))

    with pytest.raises(TerminalUnavailableError):
        await session.send_text("brew install python3")


@pytest.mark.asyncio
@needs_sh
async def test_tmux_rejected_input_is_a_closed_terminal(tmp_path: Path) -> None:
    session = TmuxTerminal("%9", tmux_bin=str(_fake_tmux(tmp_path, exit_code=1)))

    with pytest.raises(TerminalClosedError, match="%9"):
        await session.send_text("brew install python3")


def test_build_terminal_provider_by_kind() -> None:
    assert isinstance(build_terminal_provider("echo"), EchoTerminalProvider)
    assert isinstance(build_terminal_provider("tmux"), TmuxTerminalProvider)
    shell = build_terminal_provider("shell", shell="/bin/bash")
    assert isinstance(shell, ShellTerminalProvider)
    assert shell.shell == "/bin/bash"
