"""Choose the package-manager commands that install Python for one OS."""

from __future__ import annotations

from loguru import logger

from installpy.prober import ExecutableProber
from installpy.types import CommandSequence, OSClass, ProbeResult

BREW_COMMANDS: CommandSequence = ("brew install python3",)
DNF_COMMANDS: CommandSequence = ("sudo dnf install python3",)
# update must run before install
APT_COMMANDS: CommandSequence = (
    "sudo apt-get update",
    "sudo apt-get install python3 python3-venv python3-pip",
)


def resolve_commands(os: OSClass, prober: ExecutableProber) -> CommandSequence:
    """Return the ordered shell commands that install Python on ``os``.

    macOS always uses Homebrew and never probes. Linux uses dnf when it is on
    the search path and falls back to apt-get otherwise, including when the
    probe itself fails.
    """

    if os is OSClass.MACOS:
        return BREW_COMMANDS
    if _dnf_available(prober):
        logger.debug("resolve.package_manager os={} manager=dnf", os)
        return DNF_COMMANDS
    logger.debug("resolve.package_manager os={} manager=apt-get", os)
    return APT_COMMANDS


def _dnf_available(prober: ExecutableProber) -> bool:
    try:
        result: ProbeResult = prober.probe("dnf")
    except Exception as exc:
        logger.debug("resolve.probe_failed executable=dnf error={!r}", exc)
        return False
    return result.available and bool(result.path.strip())
