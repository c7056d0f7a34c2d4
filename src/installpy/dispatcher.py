"""Paced delivery of shell commands into a terminal session."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeAlias

from loguru import logger

from installpy.terminal import TerminalSession

# Heuristic: terminals were seen dropping characters when text arrived faster
# than they could echo it. There is no readiness signal to wait on instead.
DEFAULT_SEND_INTERVAL = 0.5

Sleeper: TypeAlias = Callable[[float], Awaitable[object]]


async def dispatch(
    session: TerminalSession,
    commands: Iterable[str],
    *,
    interval: float = DEFAULT_SEND_INTERVAL,
    sleep: Sleeper = asyncio.sleep,
) -> int:
    """Send each command to ``session`` in order, pausing ``interval`` seconds after each.

    A failing send propagates and the remaining commands are not sent.
    Returns the number of commands sent. Nothing here observes whether a
    command succeeded.
    """

    if interval < 0:
        raise ValueError(f"send interval must be >= 0, got {interval}")

    sent = 0
    for command in commands:
        logger.info("dispatch.send index={} command={}", sent, command)
        await session.send_text(command)
        sent += 1
        await sleep(interval)
    return sent
