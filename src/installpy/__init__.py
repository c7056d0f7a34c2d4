"""installpy - install Python through the terminal you already have open."""

from .dispatcher import dispatch
from .installer import ACTIONS, InstallResult, PythonInstaller
from .prober import WhichProber
from .resolver import resolve_commands
from .types import OSClass, ProbeResult

__version__ = "0.1.0"

__all__ = [
    "ACTIONS",
    "InstallResult",
    "OSClass",
    "ProbeResult",
    "PythonInstaller",
    "WhichProber",
    "dispatch",
    "resolve_commands",
]
