"""Value types shared by the prober, resolver and dispatcher."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from installpy.errors import UnsupportedPlatformError

CommandSequence: TypeAlias = tuple[str, ...]

_OS_ALIASES = {
    "macos": "macos",
    "mac": "macos",
    "osx": "macos",
    "darwin": "macos",
    "linux": "linux",
}


class OSClass(StrEnum):
    """Operating systems with an install recipe."""

    MACOS = "macos"
    LINUX = "linux"

    @classmethod
    def parse(cls, text: str) -> OSClass:
        key = _OS_ALIASES.get(text.strip().lower())
        if key is None:
            raise UnsupportedPlatformError(f"no install recipe for operating system '{text}'")
        return cls(key)

    @classmethod
    def current(cls) -> OSClass:
        """Classify the running host from ``platform.system()``."""

        system = platform.system()
        if not system:
            raise UnsupportedPlatformError("could not determine the operating system")
        return cls.parse(system)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one executable lookup. Never cached across invocations."""

    available: bool
    path: str = ""

    @classmethod
    def missing(cls) -> ProbeResult:
        return cls(available=False, path="")
