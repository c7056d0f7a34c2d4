"""Application-level exception types for installpy."""

from __future__ import annotations


class InstallPyError(Exception):
    """Base exception for installpy."""


class ConfigurationError(InstallPyError):
    """Base exception for configuration and startup validation errors."""


class UnsupportedPlatformError(ConfigurationError):
    """Raised when the operating system has no install recipe."""


class UnknownActionError(InstallPyError):
    """Raised when an action name is not in the action table."""


class TerminalError(InstallPyError):
    """Base exception for terminal backends."""


class TerminalUnavailableError(TerminalError):
    """Raised when a terminal session cannot be opened."""


class TerminalClosedError(TerminalError):
    """Raised when text is sent to a terminal that no longer accepts input."""
