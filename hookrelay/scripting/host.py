"""Scripting host: loads the routing module and runs its handler.

The routing module lives in a sandbox directory and must export:
- ``queue_names``: list or tuple of queue-name strings (the queue manifest)
- ``handler``: callable taking a RequestView and returning a queue name
  (accept) or None (reject)

The host injects ``CONFIG`` (read-only mapping) and ``print`` (logging shim)
into the routing module and every other module imported from the sandbox
before executing it.

Handler calls are not reentrant. Callers hold ``host.lock`` for the full
``decide`` call (see hookrelay.scripting.pool). Plain handlers run on the
host's single worker thread; coroutine handlers are awaited on the loop.
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import inspect
import logging
import sys
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from hookrelay.errors import ScriptFault, ScriptLoadError
from hookrelay.models import RequestRecord
from hookrelay.scripting.decision import Accept, Error, Reject, RoutingDecision
from hookrelay.scripting.output import make_print
from hookrelay.scripting.view import RequestView

__all__ = ["ScriptHost", "prepend_sandbox_path"]

logger = logging.getLogger(__name__)


def prepend_sandbox_path(sandbox_dir: Path | str) -> str:
    """Put the sandbox first on the module search path.

    Source files, bytecode files and package directories in the sandbox are
    found before anything else; the rest of sys.path stays reachable.
    """
    entry = str(Path(sandbox_dir).resolve())
    if sys.path[:1] != [entry]:
        if entry in sys.path:
            sys.path.remove(entry)
        sys.path.insert(0, entry)
        importlib.invalidate_caches()
    return entry


class _SeededLoader(importlib.abc.Loader):
    """Sets script globals on a module before its body runs."""

    def __init__(self, loader: importlib.abc.Loader, seed: Mapping[str, Any]) -> None:
        self._loader = loader
        self._seed = seed

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> Any:
        return self._loader.create_module(spec)

    def exec_module(self, module: Any) -> None:
        for name, value in self._seed.items():
            setattr(module, name, value)
        self._loader.exec_module(module)

    def __getattr__(self, name: str) -> Any:
        # get_source, get_filename, is_package ... from the wrapped loader
        return getattr(self._loader, name)


class _SandboxFinder(importlib.abc.MetaPathFinder):
    """Finds modules under the sandbox and gives them ``CONFIG`` and ``print``.

    Covers helpers and package submodules imported by the routing module.
    Anything outside the sandbox falls through to the regular finders.
    """

    def __init__(self, root: str, seed: Mapping[str, Any]) -> None:
        self.root = root
        self.seed = seed

    def find_spec(self, fullname, path=None, target=None):
        spec = importlib.machinery.PathFinder.find_spec(
            fullname, [self.root] if path is None else path, target
        )
        if spec is None or spec.loader is None or not self._owns(spec.origin):
            return None
        spec.loader = _SeededLoader(spec.loader, self.seed)
        return spec

    def _owns(self, origin: str | None) -> bool:
        if not origin:
            return False
        return Path(origin).resolve().is_relative_to(self.root)


def install_sandbox_finder(root: str, seed: Mapping[str, Any]) -> _SandboxFinder:
    """Register (or refresh) the sandbox finder for ``root`` ahead of the defaults."""
    for finder in sys.meta_path:
        if isinstance(finder, _SandboxFinder) and finder.root == root:
            finder.seed = seed
            return finder
    finder = _SandboxFinder(root, seed)
    sys.meta_path.insert(0, finder)
    return finder


def _script_globals(config: Mapping[str, str]) -> dict[str, Any]:
    return {"CONFIG": config, "print": make_print()}


def _load_module(module_name: str, seed: Mapping[str, Any]) -> Any:
    importlib.invalidate_caches()
    try:
        if "." in module_name:
            spec = importlib.util.find_spec(module_name)
        else:
            # Search the path directly so a stale sys.modules entry is not reused
            spec = importlib.machinery.PathFinder.find_spec(module_name, sys.path)
    except (ImportError, ValueError) as exc:
        raise ScriptLoadError(f"unable to locate module '{module_name}': {exc}") from exc
    if spec is None or spec.loader is None:
        raise ScriptLoadError(f"module '{module_name}' not found in sandbox")

    module = importlib.util.module_from_spec(spec)
    for name, value in seed.items():
        setattr(module, name, value)

    sys.modules[spec.name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(spec.name, None)
        raise ScriptLoadError(f"unable to load module '{module_name}': {exc}") from exc
    return module


def _queue_manifest(module: Any) -> tuple[str, ...]:
    try:
        names = module.queue_names
    except AttributeError:
        raise ScriptLoadError("no 'queue_names' in routing module") from None

    if not isinstance(names, (list, tuple)):
        raise ScriptLoadError(
            f"'queue_names' must be a list or tuple, got {type(names).__name__}"
        )
    for name in names:
        if not isinstance(name, str):
            raise ScriptLoadError(
                f"'queue_names' entries must be strings, got {type(name).__name__}"
            )
    return tuple(names)


def _request_handler(module: Any) -> Callable[[RequestView], Any]:
    handler = getattr(module, "handler", None)
    if handler is None:
        raise ScriptLoadError("no 'handler' in routing module")
    if not callable(handler):
        raise ScriptLoadError(f"'handler' must be callable, got {type(handler).__name__}")
    return handler


class ScriptHost:
    """One routing-module environment."""

    __slots__ = ("_executor", "_handler", "_manifest", "_module_name", "_timeout", "lock")

    def __init__(
        self,
        handler: Callable[[RequestView], Any],
        manifest: tuple[str, ...],
        module_name: str = "mod",
        timeout: float | None = None,
    ) -> None:
        self._handler = handler
        self._manifest = manifest
        self._module_name = module_name
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"script-{module_name}"
        )
        self.lock = asyncio.Lock()

    @classmethod
    def load(
        cls,
        sandbox_dir: Path | str,
        config: Mapping[str, str],
        module_name: str = "mod",
        timeout: float | None = None,
    ) -> ScriptHost:
        """Load the routing module from ``sandbox_dir``.

        Raises:
            ScriptLoadError: module missing, failing, or with malformed exports
        """
        root = prepend_sandbox_path(sandbox_dir)
        seed = _script_globals(config)
        install_sandbox_finder(root, seed)
        module = _load_module(module_name, seed)
        manifest = _queue_manifest(module)
        handler = _request_handler(module)
        logger.info(
            "Loaded routing module '%s' (%d queues: %s)",
            module_name, len(manifest), ", ".join(manifest),
        )
        return cls(handler, manifest, module_name=module_name, timeout=timeout)

    @property
    def manifest(self) -> tuple[str, ...]:
        """Queue names exported by the routing module, in order."""
        return self._manifest

    async def decide(self, record: RequestRecord) -> RoutingDecision:
        """Run the handler for one request. Never raises for handler faults."""
        view = RequestView(record)
        try:
            if self._timeout is None:
                result = await self._invoke(view)
            else:
                result = await asyncio.wait_for(self._invoke(view), self._timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Routing handler timed out after %.3fs (request %s)",
                self._timeout, record.request_id,
            )
            return Error(f"handler timed out after {self._timeout}s")
        except Exception as exc:
            logger.error(
                "Routing handler failed (request %s)", record.request_id, exc_info=True,
            )
            return Error(f"{type(exc).__name__}: {exc}")

        if result is None:
            return Reject()
        if isinstance(result, str):
            if result not in self._manifest:
                logger.warning("Handler routed to undeclared queue '%s'", result)
            return Accept(result)

        fault = ScriptFault(
            f"handler returned {type(result).__name__}, expected a queue name or None"
        )
        logger.error("%s (request %s)", fault.message, record.request_id)
        return Error(fault.message)

    async def _invoke(self, view: RequestView) -> Any:
        if inspect.iscoroutinefunction(self._handler):
            return await self._handler(view)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(self._executor, self._handler, view)
        if inspect.isawaitable(result):
            result = await result
        return result

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
