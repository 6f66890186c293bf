"""
Plugin registry.

Plugins are plain Python objects implementing one of the capability protocols
below and are registered explicitly at start-up. The registry is owned by the
application (see ``main.lifespan``) and passed to whoever needs it.
"""

import logging
import re
from typing import Any, Protocol, Union, runtime_checkable

from boba_export.exceptions import PluginValidationError

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")


@runtime_checkable
class EffectPlugin(Protocol):
    name: str
    version: str

    def apply(self, params: dict[str, Any]) -> dict[str, Any]: ...


@runtime_checkable
class FontPlugin(Protocol):
    name: str
    version: str
    font_family: str


Plugin = Union[EffectPlugin, FontPlugin]


class PluginRegistry:
    """Holds the effect and font plugins of one application instance."""

    def __init__(self) -> None:
        self._effects: dict[str, EffectPlugin] = {}
        self._fonts: dict[str, FontPlugin] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Start the registry and set up already registered plugins."""
        if self._initialized:
            return
        for plugin in self._all():
            _call_hook(plugin, "setup")
        self._initialized = True
        logger.info(
            f"[PLUGINS] Initialized ({len(self._effects)} effects, {len(self._fonts)} fonts)"
        )

    def teardown(self) -> None:
        """Tear down all plugins and empty the registry."""
        for plugin in self._all():
            try:
                _call_hook(plugin, "teardown")
            except Exception:
                logger.exception(f"[PLUGINS] Teardown failed for {plugin.name}")
        self._effects.clear()
        self._fonts.clear()
        self._initialized = False
        logger.info("[PLUGINS] Torn down")

    def register(self, plugin: Plugin) -> None:
        """Validate and register a plugin.

        Raises:
            PluginValidationError: If metadata is missing, the capability is
                unknown, or the name is already taken
        """
        name = getattr(plugin, "name", None)
        version = getattr(plugin, "version", None)
        if not isinstance(name, str) or not name:
            raise PluginValidationError("Plugin has no name")
        if not isinstance(version, str) or not _VERSION_RE.match(version):
            raise PluginValidationError(f"Plugin {name} has an invalid version: {version!r}")
        if name in self._effects or name in self._fonts:
            raise PluginValidationError(f"Plugin already registered: {name}")

        if isinstance(plugin, EffectPlugin):
            self._effects[name] = plugin
        elif isinstance(plugin, FontPlugin):
            self._fonts[name] = plugin
        else:
            raise PluginValidationError(f"Plugin {name} implements no known capability")

        if self._initialized:
            _call_hook(plugin, "setup")
        logger.info(f"[PLUGINS] Registered {name} {version}")

    def unregister(self, name: str) -> bool:
        plugin = self._effects.pop(name, None) or self._fonts.pop(name, None)
        if plugin is None:
            return False
        if self._initialized:
            _call_hook(plugin, "teardown")
        return True

    def get(self, name: str) -> Plugin | None:
        return self._effects.get(name) or self._fonts.get(name)

    def effects(self) -> list[EffectPlugin]:
        return [self._effects[k] for k in sorted(self._effects)]

    def fonts(self) -> list[FontPlugin]:
        return [self._fonts[k] for k in sorted(self._fonts)]

    def _all(self) -> list[Plugin]:
        return [*self.effects(), *self.fonts()]


def _call_hook(plugin: Plugin, hook: str) -> None:
    fn = getattr(plugin, hook, None)
    if callable(fn):
        fn()
