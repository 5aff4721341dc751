"""Extension layer — plugin system via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from crecto.plugins.hookspecs import hookimpl
from crecto.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
