"""KernelContext and Session: wiring the executor for front-ends.

A KernelContext (contract, source registry, dispatcher) is built once per
process and may be shared by many sessions. A Session owns one state value
and its snapshot path; it processes one command at a time.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from contractkernel.config import KernelSettings
from contractkernel.kernel.executor.command_contract import Contract
from contractkernel.kernel.executor.dispatcher import Dispatcher
from contractkernel.kernel.executor.manifest_loader import load_manifest
from contractkernel.kernel.executor.results import Result
from contractkernel.kernel.executor.source_registry import SourceRegistry
from contractkernel.kernel.executor.state_store import default_state, load_state, save_state

logger = logging.getLogger(__name__)


class KernelContext:
    """Contract plus the shared source cache and dispatcher."""

    def __init__(
        self,
        contract: Contract,
        project_root: Optional[Path] = None,
        handlers: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Initialize kernel context.

        Args:
            contract: Loaded contract
            project_root: Base directory for relative source locators
            handlers: Sources to register up front, by logical name
        """
        self.contract = contract
        self.sources = SourceRegistry(contract.sources, project_root)
        for name, source in (handlers or {}).items():
            self.sources.register(name, source)
        self.dispatcher = Dispatcher(contract, self.sources)

    @classmethod
    def from_settings(
        cls, settings: KernelSettings, handlers: Optional[Mapping[str, Any]] = None
    ) -> "KernelContext":
        """Load the manifest named by ``settings``.

        Raises:
            ManifestLoadError: If the manifest is missing or invalid
        """
        contract = load_manifest(settings.manifest_path)
        return cls(contract, project_root=settings.project_root, handlers=handlers)

    def session(self, context_path: Optional[Path] = None) -> "Session":
        return Session(self, context_path)


class Session:
    """One interactive or one-shot session over a KernelContext.

    Without a ``context_path`` the session starts from the contract's state
    defaults and never persists.
    """

    def __init__(self, context: KernelContext, context_path: Optional[Path] = None) -> None:
        self.context = context
        self.context_path = Path(context_path) if context_path is not None else None
        self.state: dict[str, Any] = {}
        self._opened = False

    def open(self) -> "Session":
        """Load state once.

        Raises:
            StateCorruptionError: If the snapshot exists but cannot be decoded
        """
        if self.context_path is not None:
            self.state = load_state(self.context_path, self.context.contract)
        else:
            self.state = default_state(self.context.contract)
        self._opened = True
        return self

    def save(self) -> bool:
        """Persist state; returns False (and logs) when the write fails."""
        if self.context_path is None:
            return False
        try:
            save_state(self.state, self.context_path, self.context.contract)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not save context snapshot %s: %s", self.context_path, e)
            return False
        return True

    def close(self) -> None:
        if self._opened:
            self.save()
            self._opened = False

    async def execute(self, invocation: Any) -> Result:
        """Run one text line or structured invocation and persist any state change."""
        if not self._opened:
            self.open()

        outcome = await self.context.dispatcher.run(invocation, self.state)
        self.state = outcome.state
        if outcome.state_changed:
            self.save()
        return outcome.result

    def __enter__(self) -> "Session":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
