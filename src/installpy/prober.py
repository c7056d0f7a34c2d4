"""Executable lookup on the process search path."""

from __future__ import annotations

import shutil
from typing import Protocol

from loguru import logger

from installpy.types import ProbeResult


class ExecutableProber(Protocol):
    """Read-only check for an executable on the search path."""

    def probe(self, executable_name: str) -> ProbeResult: ...


class WhichProber:
    """Prober backed by ``shutil.which``.

    Lookup failures never raise: they are logged and reported as absent.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path

    def probe(self, executable_name: str) -> ProbeResult:
        try:
            resolved = shutil.which(executable_name, path=self.path)
        except OSError as exc:
            logger.debug("probe.failed executable={} error={!r}", executable_name, exc)
            return ProbeResult.missing()

        if resolved is None or not resolved.strip():
            logger.debug("probe.not_found executable={}", executable_name)
            return ProbeResult.missing()

        logger.debug("probe.resolved executable={} path={}", executable_name, resolved)
        return ProbeResult(available=True, path=resolved.strip())
