"""Terminal sessions and the providers that hand them out."""

from __future__ import annotations

import asyncio
import fcntl
import os
import pty
import sys
import termios
import tty
from typing import BinaryIO, Protocol

import libtmux
from libtmux.exc import LibTmuxException
from loguru import logger
from rich import get_console
from rich.console import Console

from installpy.errors import TerminalClosedError, TerminalUnavailableError

# How often a shell session checks whether its foreground job has finished.
IDLE_POLL_INTERVAL = 0.05
_EOF = b"\x04"


class TerminalSession(Protocol):
    """Interactive shell channel that accepts literal command text."""

    async def send_text(self, text: str) -> None: ...


class TerminalProvider(Protocol):
    """Factory for terminal sessions, configured with host defaults."""

    async def get_terminal(self) -> TerminalSession: ...


class EchoTerminal:
    """Prints commands instead of running them."""

    def __init__(self, console: Console | None = None, prompt: str = "$ ") -> None:
        self._console = console or get_console()
        self._prompt = prompt

    async def send_text(self, text: str) -> None:
        self._console.print(f"{self._prompt}{text}", markup=False, highlight=False)


class EchoTerminalProvider:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console

    async def get_terminal(self) -> EchoTerminal:
        return EchoTerminal(self._console)


class ShellTerminal:
    """An interactive shell running on a pseudo-terminal.

    Shell output is copied to ``output``. When ``input_fd`` is set, bytes read
    from it are forwarded to the shell so a person can answer prompts; a tty
    input is switched to raw mode for the lifetime of the session.

    A command is only typed once the shell is back at its prompt, i.e. the
    pty's foreground process group is the shell's own. Text sent while a
    command waits for an answer is therefore never read as that answer.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        *,
        output: BinaryIO,
        input_fd: int | None = None,
    ) -> None:
        self._process = process
        self._master_fd = master_fd
        self._output = output
        self._input_fd = input_fd
        self._saved_tty: list | None = None
        self._closed = False
        self._loop = asyncio.get_running_loop()

        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._copy_output)
        if input_fd is not None:
            if os.isatty(input_fd):
                self._saved_tty = termios.tcgetattr(input_fd)
                tty.setraw(input_fd)
                _copy_window_size(input_fd, master_fd)
            self._loop.add_reader(input_fd, self._forward_input)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def attached(self) -> bool:
        """Whether a person can type into this session."""

        return self._input_fd is not None

    def is_idle(self) -> bool:
        """True when no job holds the terminal's foreground."""

        if self._closed or self._process.returncode is not None:
            return False
        try:
            return os.tcgetpgrp(self._master_fd) == self._process.pid
        except OSError:
            return False

    async def wait_until_idle(self) -> None:
        while not self.is_idle():
            self._ensure_open()
            await asyncio.sleep(IDLE_POLL_INTERVAL)

    async def send_text(self, text: str) -> None:
        self._ensure_open()
        await self.wait_until_idle()
        self._write(f"{text}\n".encode())

    async def wait_closed(self) -> int:
        """Wait for the shell to exit and release the pty."""

        code = await self._process.wait()
        self._teardown()
        return code

    async def aclose(self) -> int:
        """Finish the session.

        An attached session stays open until the person exits the shell.
        Otherwise EOF is sent until the shell exits, which also ends any
        prompt that nobody can answer.
        """

        if self.attached:
            logger.info("terminal.attached pid={} hint='exit the shell to finish'", self.pid)
        else:
            await self._send_eof_until_exit()
        return await self.wait_closed()

    async def _send_eof_until_exit(self) -> None:
        while not self._closed and self._process.returncode is None:
            try:
                self._write(_EOF)
            except TerminalClosedError:
                return
            try:
                await asyncio.wait_for(self._process.wait(), timeout=0.5)
            except TimeoutError:
                continue

    def _ensure_open(self) -> None:
        if self._closed or self._process.returncode is not None:
            raise TerminalClosedError(f"shell {self.pid} is no longer accepting input")

    def _write(self, data: bytes) -> None:
        try:
            os.write(self._master_fd, data)
        except OSError as exc:
            raise TerminalClosedError(f"shell {self.pid} is no longer accepting input: {exc}") from exc

    def _copy_output(self) -> None:
        try:
            data = os.read(self._master_fd, 4096)
        except BlockingIOError:
            return
        except OSError:
            # EIO once the shell side of the pty is gone
            self._loop.remove_reader(self._master_fd)
            return
        if not data:
            self._loop.remove_reader(self._master_fd)
            return
        self._output.write(data)
        self._output.flush()

    def _forward_input(self) -> None:
        assert self._input_fd is not None
        try:
            data = os.read(self._input_fd, 1024)
        except (BlockingIOError, InterruptedError):
            return
        if not data:
            self._loop.remove_reader(self._input_fd)
            return
        try:
            os.write(self._master_fd, data)
        except OSError:
            self._loop.remove_reader(self._input_fd)

    def _teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        # pick up whatever the shell printed last
        while True:
            try:
                data = os.read(self._master_fd, 4096)
            except OSError:
                break
            if not data:
                break
            self._output.write(data)
        self._output.flush()
        self._loop.remove_reader(self._master_fd)
        if self._input_fd is not None:
            self._loop.remove_reader(self._input_fd)
            if self._saved_tty is not None:
                termios.tcsetattr(self._input_fd, termios.TCSADRAIN, self._saved_tty)
        os.close(self._master_fd)


class ShellTerminalProvider:
    """Spawns one pty shell per acquired session and remembers them for shutdown.

    ``input_fd`` defaults to this process's stdin when it is a terminal;
    pass ``attach_stdin=False`` to run without a person at the keyboard.
    """

    def __init__(
        self,
        shell: str | None = None,
        *,
        output: BinaryIO | None = None,
        input_fd: int | None = None,
        attach_stdin: bool = True,
    ) -> None:
        self.shell = shell or os.environ.get("SHELL") or "/bin/sh"
        self._output = output
        self._input_fd = input_fd
        self._attach_stdin = attach_stdin
        self._sessions: list[ShellTerminal] = []

    async def get_terminal(self) -> ShellTerminal:
        master_fd, slave_fd = pty.openpty()
        try:
            process = await asyncio.create_subprocess_exec(
                self.shell,
                "-i",
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_claim_controlling_tty,
            )
        except OSError as exc:
            os.close(master_fd)
            raise TerminalUnavailableError(f"cannot start shell {self.shell}: {exc}") from exc
        finally:
            os.close(slave_fd)

        logger.debug("terminal.spawned shell={} pid={}", self.shell, process.pid)
        session = ShellTerminal(
            process,
            master_fd,
            output=self._output or sys.stdout.buffer,
            input_fd=self._resolve_input_fd(),
        )
        self._sessions.append(session)
        return session

    async def aclose(self) -> None:
        for session in self._sessions:
            code = await session.aclose()
            logger.debug("terminal.exited pid={} returncode={}", session.pid, code)
        self._sessions.clear()

    def _resolve_input_fd(self) -> int | None:
        if self._input_fd is not None or not self._attach_stdin:
            return self._input_fd
        try:
            fd = sys.stdin.fileno()
        except (AttributeError, OSError, ValueError):
            return None
        return fd if os.isatty(fd) else None


def _claim_controlling_tty() -> None:
    # runs in the child after setsid(); stdin is the pty slave
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _copy_window_size(source_fd: int, target_fd: int) -> None:
    try:
        size = fcntl.ioctl(source_fd, termios.TIOCGWINSZ, b"\0" * 8)
        fcntl.ioctl(target_fd, termios.TIOCSWINSZ, size)
    except OSError:
        logger.debug("terminal.window_size_unavailable fd={}", source_fd)


class TmuxTerminal:
    """A tmux pane; text is typed into it literally, followed by Enter."""

    def __init__(self, pane_id: str, *, tmux_bin: str = "tmux", server_args: tuple[str, ...] = ()) -> None:
        self.pane_id = pane_id
        self._tmux_bin = tmux_bin
        self._server_args = server_args

    async def send_text(self, text: str) -> None:
        await self._tmux("send-keys", "-t", self.pane_id, "-l", text)
        await self._tmux("send-keys", "-t", self.pane_id, "Enter")

    async def _tmux(self, *args: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self._tmux_bin,
                *self._server_args,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TerminalUnavailableError(f"cannot run {self._tmux_bin}: {exc}") from exc
        _, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit={process.returncode}"
            raise TerminalClosedError(f"tmux pane {self.pane_id} rejected input: {detail}")


class TmuxTerminalProvider:
    """Opens a window in a named tmux session, creating the session if needed."""

    def __init__(self, session_name: str = "installpy", server: libtmux.Server | None = None) -> None:
        self.session_name = session_name
        self._server = server

    async def get_terminal(self) -> TmuxTerminal:
        try:
            server = self._server or libtmux.Server()
            session = server.sessions.get(session_name=self.session_name, default=None)
            if session is None:
                session = server.new_session(session_name=self.session_name, attach=False)
                window = session.active_window
            else:
                window = session.new_window(attach=False)
            pane_id = window.active_pane.pane_id
        except LibTmuxException as exc:
            raise TerminalUnavailableError(f"cannot open tmux session '{self.session_name}': {exc}") from exc

        logger.debug("terminal.tmux session={} window={} pane={}", self.session_name, window.window_id, pane_id)
        return TmuxTerminal(pane_id, tmux_bin=getattr(server, "tmux_bin", None) or "tmux", server_args=_server_args(server))


def _server_args(server: libtmux.Server) -> tuple[str, ...]:
    socket_name = getattr(server, "socket_name", None)
    socket_path = getattr(server, "socket_path", None)
    if socket_path:
        return ("-S", str(socket_path))
    if socket_name:
        return ("-L", str(socket_name))
    return ()


def build_terminal_provider(kind: str, *, shell: str | None = None, tmux_session: str = "installpy") -> TerminalProvider:
    if kind == "echo":
        return EchoTerminalProvider()
    if kind == "tmux":
        return TmuxTerminalProvider(tmux_session)
    return ShellTerminalProvider(shell)
