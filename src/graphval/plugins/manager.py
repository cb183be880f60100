"""Plugin discovery and loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints in
the ``graphval.plugins`` group, plus direct registration.
Capabilities: extra member rules and markers (``member_rules`` hook).
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable

import pluggy

from graphval.plugins.hookspecs import GraphvalHookSpec

PROJECT_NAME = "graphval"
ENTRY_POINT_GROUP = "graphval.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, loading, and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(GraphvalHookSpec)
        self._loaded: bool = False

    def discover_and_load(self) -> list[str]:
        """Discover plugins from the ``graphval.plugins`` entry point group.

        Returns a list of loaded plugin names. A failing entry point is logged
        and discovery is not retried.
        """
        try:
            self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        except Exception:
            logger.warning(
                "Loading plugins from entry point group %s failed",
                ENTRY_POINT_GROUP,
                exc_info=True,
            )
        self._normalize_plugin_instances()
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        """Unregister a plugin instance."""
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    def list_plugin_names(self) -> list[str]:
        """Return names of all registered plugins."""
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Attribute provider
    # ------------------------------------------------------------------

    def member_rules(self, owner: type, member_name: str) -> list[object]:
        """Collect extra rules and markers for ``owner.member_name``.

        A failing plugin is logged and skipped; it never aborts metadata
        computation for the type.
        """
        try:
            results = self._pm.hook.member_rules(owner=owner, member_name=member_name)
        except Exception:
            logger.warning(
                "member_rules hook failed for %s.%s",
                owner.__qualname__,
                member_name,
                exc_info=True,
            )
            return []

        collected: list[object] = []
        for result in results:
            if result is None:
                continue
            if isinstance(result, Iterable) and not isinstance(result, (str, bytes)):
                collected.extend(result)
            else:
                collected.append(result)
        return collected

    # ------------------------------------------------------------------
    # Entry point normalisation
    # ------------------------------------------------------------------

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly. Hook dispatch
        against class objects leaves ``self`` unbound and fails at runtime.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin):
                continue
            if not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)

            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s",
                    plugin_name,
                    exc_info=True,
                )
                continue

            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("graphval")`` sets a ``graphval_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, "graphval_impl", None):
                return True
        return False
