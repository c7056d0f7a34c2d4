"""Plugin loading and collaborator lookup through pluggy hooks."""

from __future__ import annotations

from typing import Any, cast

import pluggy
from loguru import logger

from installpy.config import Settings
from installpy.hookspecs import INSTALLPY_HOOK_NAMESPACE, InstallPyHookSpecs
from installpy.prober import ExecutableProber, WhichProber
from installpy.terminal import TerminalProvider, build_terminal_provider


class InstallPyHooks:
    """Wraps a plugin manager; falls back to built-in collaborators."""

    def __init__(self, plugin_manager: pluggy.PluginManager | None = None) -> None:
        if plugin_manager is None:
            plugin_manager = pluggy.PluginManager(INSTALLPY_HOOK_NAMESPACE)
            plugin_manager.add_hookspecs(InstallPyHookSpecs)
        self._plugin_manager = plugin_manager

    def load_plugins(self) -> int:
        """Register plugins published under the ``installpy`` entry-point group."""

        try:
            count = self._plugin_manager.load_setuptools_entrypoints(INSTALLPY_HOOK_NAMESPACE)
        except Exception:
            logger.opt(exception=True).warning("plugin.load_failed group={}", INSTALLPY_HOOK_NAMESPACE)
            return 0
        logger.debug("plugin.loaded group={} count={}", INSTALLPY_HOOK_NAMESPACE, count)
        return count

    def register(self, plugin: object, name: str | None = None) -> None:
        self._plugin_manager.register(plugin, name=name)

    def terminal_provider(self, settings: Settings) -> TerminalProvider:
        provided = self._call_first("provide_terminal", settings=settings)
        if _has_method(provided, "get_terminal"):
            return cast(TerminalProvider, provided)
        return build_terminal_provider(settings.terminal, shell=settings.shell, tmux_session=settings.tmux_session)

    def prober(self, settings: Settings) -> ExecutableProber:
        provided = self._call_first("provide_prober", settings=settings)
        if _has_method(provided, "probe"):
            return cast(ExecutableProber, provided)
        return WhichProber()

    def hook_report(self) -> dict[str, list[str]]:
        """Build a hook->plugins mapping for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name in ("provide_terminal", "provide_prober"):
            impls = getattr(self._plugin_manager.hook, hook_name).get_hookimpls()
            if impls:
                report[hook_name] = [impl.plugin_name for impl in impls]
        return report

    def _call_first(self, hook_name: str, **kwargs: Any) -> Any:
        hook = getattr(self._plugin_manager.hook, hook_name)
        try:
            return hook(**kwargs)
        except Exception:
            logger.opt(exception=True).warning("hook.failed hook={}", hook_name)
            return None


def _has_method(candidate: Any, name: str) -> bool:
    return candidate is not None and callable(getattr(candidate, name, None))
