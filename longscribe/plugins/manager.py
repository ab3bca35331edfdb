import inspect
import logging
import importlib
import pkgutil
from typing import Dict, List, Optional

from .base import BasePlugin
from ..constants import OUTPUT_FORMATS

logger = logging.getLogger("Longscribe.PluginManager")

# Modules in the plugins package that hold no renderers
_SUPPORT_MODULES = ("base", "manager")


class PluginManager:
    """
    Registry of transcript renderers.

    Renderers are found by scanning `package` for concrete `BasePlugin`
    subclasses defined in each module. They are looked up by plugin name
    ("markdown") or by output format as typed on the command line ("md").
    """

    def __init__(self, package: str = "longscribe.plugins"):
        self.package = package
        self._plugins: Dict[str, BasePlugin] = {}
        self.discover()

    def discover(self) -> List[str]:
        """Import every renderer module of the package and register its plugins. Returns the new names."""
        package = importlib.import_module(self.package)
        found = []
        for module_info in pkgutil.iter_modules(package.__path__):
            if module_info.name in _SUPPORT_MODULES or module_info.name.startswith("_"):
                continue
            try:
                module = importlib.import_module(f"{self.package}.{module_info.name}")
            except ImportError as e:
                logger.error(f"Failed to load renderer module {module_info.name}: {e}")
                continue

            # Subclasses imported from sibling modules register from their own module
            for _, cls in inspect.getmembers(module, inspect.isclass):
                if issubclass(cls, BasePlugin) and cls.__module__ == module.__name__ and not inspect.isabstract(cls):
                    plugin = cls()
                    self.register_plugin(plugin)
                    found.append(plugin.name)
        logger.debug(f"Renderers: {', '.join(found) or 'none'}")
        return found

    def register_plugin(self, plugin: BasePlugin):
        if plugin.name in self._plugins:
            logger.warning(f"Overwriting existing plugin: {plugin.name}")
        self._plugins[plugin.name] = plugin

    def get_plugin(self, name: str) -> Optional[BasePlugin]:
        return self._plugins.get(name)

    def for_format(self, fmt: str) -> Optional[BasePlugin]:
        """Resolve an output format ("md", "srt") to its renderer, by alias first and then by file extension."""
        fmt = fmt.lower().lstrip(".")
        plugin = self._plugins.get(OUTPUT_FORMATS.get(fmt, fmt))
        if plugin is not None:
            return plugin
        for candidate in self._plugins.values():
            if candidate.default_extension == fmt:
                return candidate
        return None

    def list_plugins(self) -> Dict[str, str]:
        """Plugin names and their descriptions."""
        return {name: p.description for name, p in self._plugins.items()}
