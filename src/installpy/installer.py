"""Top-level install flow and the action table that triggers it."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TypeAlias

from loguru import logger

from installpy.config import Settings, load_settings
from installpy.dispatcher import Sleeper, dispatch
from installpy.errors import UnknownActionError
from installpy.prober import ExecutableProber
from installpy.resolver import resolve_commands
from installpy.terminal import TerminalProvider
from installpy.types import CommandSequence, OSClass

ACTIONS: Mapping[str, OSClass] = MappingProxyType(
    {
        "install-python-macos": OSClass.MACOS,
        "install-python-linux": OSClass.LINUX,
    }
)

Action: TypeAlias = Callable[[], Awaitable["InstallResult"]]


@dataclass(frozen=True)
class InstallResult:
    """What was sent for one invocation. Says nothing about whether it worked."""

    os: OSClass
    commands: CommandSequence
    sent: int


class PythonInstaller:
    """Acquire a terminal, resolve the commands for an OS, dispatch them."""

    def __init__(
        self,
        terminals: TerminalProvider,
        prober: ExecutableProber,
        settings: Settings | None = None,
        *,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.terminals = terminals
        self.prober = prober
        self.settings = settings or load_settings()
        self._sleep = sleep

    async def install(self, os: OSClass) -> InstallResult:
        session = await self.terminals.get_terminal()
        commands = resolve_commands(os, self.prober)
        logger.info("install.start os={} commands={}", os, len(commands))
        sent = await dispatch(session, commands, interval=self.settings.send_interval, sleep=self._sleep)
        return InstallResult(os=os, commands=commands, sent=sent)

    def actions(self) -> dict[str, Action]:
        """Map each action name to a parameterless trigger."""

        return {name: self._bind(os) for name, os in ACTIONS.items()}

    async def trigger(self, action: str) -> InstallResult:
        try:
            os = ACTIONS[action]
        except KeyError:
            known = ", ".join(sorted(ACTIONS))
            raise UnknownActionError(f"unknown action '{action}' (known: {known})") from None
        return await self.install(os)

    def _bind(self, os: OSClass) -> Action:
        async def _run() -> InstallResult:
            return await self.install(os)

        return _run
