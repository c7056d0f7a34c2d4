"""Pluggy hook namespace and installpy hook specifications."""

from __future__ import annotations

import pluggy

from installpy.config import Settings
from installpy.prober import ExecutableProber
from installpy.terminal import TerminalProvider

INSTALLPY_HOOK_NAMESPACE = "installpy"
hookspec = pluggy.HookspecMarker(INSTALLPY_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(INSTALLPY_HOOK_NAMESPACE)


class InstallPyHookSpecs:
    """Hook contract for hosts embedding installpy."""

    @hookspec(firstresult=True)
    def provide_terminal(self, settings: Settings) -> TerminalProvider | None:
        """Provide the factory that hands out terminal sessions."""

    @hookspec(firstresult=True)
    def provide_prober(self, settings: Settings) -> ExecutableProber | None:
        """Provide the executable prober used to pick a Linux package manager."""
