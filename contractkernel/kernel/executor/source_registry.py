"""SourceRegistry: resolves and memoizes the code behind external-method commands.

A source is looked up by its logical name. Resolution order:

1. Objects registered explicitly with :meth:`SourceRegistry.register`
   (a module, an object with callable attributes, or a mapping of callables).
2. The contract's ``sources`` locator:
   - ``./`` or ``../`` paths resolve against the project root. A directory
     uses the ``main`` entry of a ``package.json``/``manifest.json`` inside
     it, else ``__init__.py``, else ``index.py``. A path without a suffix
     gets ``.py``.
   - Anything else is a dotted module name for ``importlib.import_module``.

Loads are memoized per logical name for the registry's lifetime. Concurrent
first-time resolutions of one name share a single in-flight load, so module
level code runs once.
"""

import asyncio
import importlib
import importlib.util
import json
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from contractkernel.kernel.executor.errors import MethodNotFoundError, SourceResolutionError

logger = logging.getLogger(__name__)

_ENTRY_RECORDS = ("package.json", "manifest.json")
_MODULE_PREFIX = "contractkernel_sources"


def exported_functions(source: Any) -> list[str]:
    """Public callable names exported by a resolved source, sorted."""
    if isinstance(source, Mapping):
        return sorted(name for name, value in source.items() if callable(value))

    names = getattr(source, "__all__", None)
    if names is None:
        names = [name for name in dir(source) if not name.startswith("_")]
    return sorted(name for name in names if callable(getattr(source, name, None)))


def find_method(source: Any, source_name: str, method_name: str) -> Callable[..., Any]:
    """Return the callable ``method_name`` exported by ``source``.

    Raises:
        MethodNotFoundError: If the source does not export it, listing what it does export
    """
    if isinstance(source, Mapping):
        method = source.get(method_name)
    else:
        method = getattr(source, method_name, None)

    if method is None or not callable(method):
        raise MethodNotFoundError(method_name, source_name, exported_functions(source))
    return method


class SourceRegistry:
    """Resolves logical source names to loaded modules, with caching."""

    def __init__(
        self,
        sources: Mapping[str, str] | None = None,
        project_root: str | Path | None = None,
    ) -> None:
        """Initialize source registry.

        Args:
            sources: Logical name to locator, usually ``Contract.sources``
            project_root: Base directory for relative locators
        """
        self._sources = dict(sources or {})
        self._project_root = Path(project_root) if project_root is not None else None
        self._registered: dict[str, Any] = {}
        self._cache: dict[str, Any] = {}
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    def register(self, name: str, source: Any) -> None:
        """Register an in-process source under a logical name.

        Raises:
            ValueError: If a source with the same name is already registered
        """
        if name in self._registered:
            raise ValueError(f"Source '{name}' already registered")
        self._registered[name] = source

    def cached_sources(self) -> list[str]:
        """Names of sources loaded so far."""
        return list(self._cache)

    def is_cached(self, name: str) -> bool:
        return name in self._cache

    def clear(self) -> None:
        """Drop every loaded source; the next resolve reloads from scratch."""
        for name in list(self._cache):
            sys.modules.pop(self._module_name(name), None)
        self._cache.clear()
        logger.info("Source cache cleared")

    async def resolve(self, name: str) -> Any:
        """Return the loaded source for ``name``.

        Raises:
            SourceResolutionError: If the name is undeclared, the file is
                missing, or the module fails to import
        """
        if name in self._cache:
            return self._cache[name]

        if name in self._registered:
            self._cache[name] = self._registered[name]
            return self._cache[name]

        task = self._inflight.get(name)
        if task is None:
            task = asyncio.ensure_future(self._load(name))
            self._inflight[name] = task
            task.add_done_callback(lambda _: self._inflight.pop(name, None))

        # A cancelled waiter must not cancel the load other waiters share
        return await asyncio.shield(task)

    def locate(self, name: str) -> Path | str:
        """Resolve a logical name to a file path or a dotted module name.

        Raises:
            SourceResolutionError: If the name is undeclared or the file is missing
        """
        locator = self._sources.get(name)
        if not locator:
            raise SourceResolutionError(
                f"Source '{name}' is not declared in the contract", source_name=name
            )

        if not locator.startswith(("./", "../")):
            return locator

        if self._project_root is None:
            raise SourceResolutionError(
                f"Cannot resolve local source '{locator}': no project root configured",
                source_name=name,
            )

        path = (self._project_root / locator).resolve()
        if path.is_dir():
            path = self._directory_entry(path)
        elif not path.suffix:
            path = path.with_suffix(".py")

        if not path.is_file():
            raise SourceResolutionError(
                f"Source file not found: {path}", source_name=name, path=str(path)
            )
        return path

    @staticmethod
    def _directory_entry(directory: Path) -> Path:
        for record in _ENTRY_RECORDS:
            record_path = directory / record
            if not record_path.is_file():
                continue
            try:
                main = json.loads(record_path.read_text(encoding="utf-8")).get("main")
            except (OSError, json.JSONDecodeError, AttributeError) as e:
                logger.warning("Ignoring unreadable entry record %s: %s", record_path, e)
                continue
            if main:
                return (directory / main).resolve()

        package_init = directory / "__init__.py"
        if package_init.is_file():
            return package_init
        return directory / "index.py"

    @staticmethod
    def _module_name(name: str) -> str:
        return f"{_MODULE_PREFIX}.{name}"

    async def _load(self, name: str) -> Any:
        target = self.locate(name)
        if isinstance(target, Path):
            module = await asyncio.to_thread(self._import_file, name, target)
        else:
            module = await asyncio.to_thread(self._import_package, name, target)
        self._cache[name] = module
        logger.info("Loaded source '%s' from %s", name, target)
        return module

    def _import_file(self, name: str, path: Path) -> ModuleType:
        module_name = self._module_name(name)
        search_locations = [str(path.parent)] if path.name == "__init__.py" else None
        spec = importlib.util.spec_from_file_location(
            module_name, path, submodule_search_locations=search_locations
        )
        if spec is None or spec.loader is None:
            raise SourceResolutionError(
                f"Cannot load source '{name}' from {path}", source_name=name, path=str(path)
            )

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise SourceResolutionError(
                f"Failed to load source '{name}' from {path}: {e}",
                source_name=name,
                path=str(path),
            ) from e
        return module

    @staticmethod
    def _import_package(name: str, dotted: str) -> ModuleType:
        try:
            return importlib.import_module(dotted)
        except Exception as e:
            raise SourceResolutionError(
                f"Failed to import source '{name}' ({dotted}): {e}", source_name=name
            ) from e
