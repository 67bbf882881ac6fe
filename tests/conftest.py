"""Shared fixtures: a small contract exercising every command shape."""

import logging
from collections.abc import Iterator
from typing import Any

import pytest

from contractkernel.kernel.executor.command_contract import Contract
from contractkernel.kernel.executor.dispatcher import Dispatcher
from contractkernel.kernel.executor.source_registry import SourceRegistry

MANIFEST: dict[str, Any] = {
    "name": "textkit",
    "description": "Test manifest",
    "prompt": "> ",
    "stateDefaults": {"corpus": None, "model": None},
    "sources": {"files": "./handlers.py"},
    "commands": [
        {
            "name": "greet",
            "description": "Say hello",
            "parameters": {"name": {"type": "string", "required": True}},
            "successOutput": "Hello, {{name}}!",
        },
        {
            "name": "copy",
            "parameters": {
                "src": {"type": "string", "required": True},
                "dst": {"type": "string", "required": True},
                "mode": {"type": "string", "enum": ["fast", "safe"]},
            },
            "successOutput": "{{src}} -> {{dst}}",
        },
        {
            "name": "status",
            "parameters": {"verbose": {"type": "boolean", "default": False}},
            "successOutput": "verbose={{verbose}}",
        },
        {
            "name": "use",
            "parameters": {"file": {"type": "string", "required": True}},
            "successOutput": "Using {{file|basename}}",
            "sideEffects": {
                "setState": {
                    "corpus": {"fromParam": "file"},
                    "model": {"template": "{{file|basename}}.json"},
                }
            },
        },
        {
            "name": "forget",
            "parameters": {"file": {"type": "string", "required": True}},
            "sideEffects": {"clearStateIf": {"corpus": {"fromParam": "file"}}},
        },
        {
            "name": "reset",
            "sideEffects": {"clearState": ["corpus", "model"]},
            "successOutput": "reset",
        },
        {
            "name": "stats",
            "commandType": "external-method",
            "source": "files",
            "methodName": "word_stats",
            "parameters": {
                "file": {"type": "string", "required": True, "runtimeFallback": "corpus"},
                "top": {"type": "integer", "default": 3, "min": 1, "max": 20},
            },
        },
        {
            "name": "train",
            "commandType": "external-method",
            "source": "files",
            "methodName": "train_model",
            "parameters": {"file": {"type": "string", "required": True}},
            "sideEffects": {"setState": {"model": {"fromResult": "model"}}},
        },
    ],
}


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    return MANIFEST


@pytest.fixture
def contract() -> Contract:
    return Contract.model_validate(MANIFEST)


class FakeHandlers:
    """In-process stand-in for a handler module."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def word_stats(self, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(args)
        return {"file": args["file"], "top": args["top"]}

    async def train_model(self, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(args)
        if args["file"] == "full.txt":
            raise OSError("disk full")
        return {"model": f"{args['file']}.model", "tokens": 12}


@pytest.fixture
def handlers() -> FakeHandlers:
    return FakeHandlers()


@pytest.fixture
def dispatcher(contract: Contract, handlers: FakeHandlers) -> Dispatcher:
    sources = SourceRegistry(contract.sources)
    sources.register("files", handlers)
    return Dispatcher(contract, sources)


@pytest.fixture(autouse=True)
def reset_kernel_logger() -> Iterator[None]:
    """Undo configure_logging so caplog keeps seeing kernel records."""
    yield
    logger = logging.getLogger("contractkernel")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
