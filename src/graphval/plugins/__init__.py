"""Extension layer: plugin system via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from graphval.plugins.hookspecs import hookimpl
from graphval.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
