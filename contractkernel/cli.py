"""Command-line front-end: one-shot execution, an interactive loop, and a listing."""

import asyncio
import json
import logging
import shlex
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from contractkernel.config import ConfigError, KernelSettings, load_settings
from contractkernel.kernel.executor.builtin_commands import params_signature
from contractkernel.kernel.executor.errors import ManifestLoadError, StateCorruptionError
from contractkernel.kernel.executor.results import Result
from contractkernel.kernel.session import KernelContext, Session
from contractkernel.log_setup import configure_logging

logger = logging.getLogger("contractkernel.cli")

app = typer.Typer(add_completion=False, help="Run commands declared by a contract manifest.")

BOOTSTRAP_EXIT_CODE = 2


def raise_exit(message: str, code: int = 1) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=code)


def command_line(words: list[str]) -> str:
    """Rejoin shell words, quoting any word that contains whitespace.

    A single word is taken as the whole command line.
    """
    if len(words) == 1:
        return words[0]
    return " ".join(
        shlex.quote(word) if any(ch.isspace() for ch in word) else word for word in words
    )


def format_output(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return json.dumps(output, indent=2, default=str)


def _bootstrap(
    manifest: Path,
    context: Optional[Path],
    config: Optional[Path],
    log_level: Optional[str],
) -> tuple[KernelSettings, KernelContext]:
    try:
        settings = load_settings(
            config,
            manifest_path=manifest,
            context_path=context,
            log_level=log_level,
        )
        configure_logging(settings.log_level)
        return settings, KernelContext.from_settings(settings)
    except (ConfigError, ManifestLoadError) as exc:
        raise_exit(str(exc), BOOTSTRAP_EXIT_CODE)


def _open_session(settings: KernelSettings, kernel: KernelContext) -> Session:
    session = kernel.session(settings.context_path)
    try:
        return session.open()
    except StateCorruptionError as exc:
        raise_exit(exc.message, BOOTSTRAP_EXIT_CODE)


def _print_result(result: Result, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    elif result.error:
        typer.echo(f"Error: {result.error}", err=True)
    else:
        text = format_output(result.output)
        if text:
            typer.echo(text)


ManifestArg = typer.Argument(..., help="Manifest file or directory.")
ContextOpt = typer.Option(None, "--context", help="Context snapshot path.")
ConfigOpt = typer.Option(None, "--config", help="YAML settings file.")
LogLevelOpt = typer.Option(None, "--log-level", help="Logging level.")


@app.command()
def run(
    manifest: Path = ManifestArg,
    command: list[str] = typer.Argument(..., help="Command line to execute."),
    context: Optional[Path] = ContextOpt,
    config: Optional[Path] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = typer.Option(False, "--json", help="Print the raw result object."),
) -> None:
    """Execute a single command and exit."""
    settings, kernel = _bootstrap(manifest, context, config, log_level)
    session = _open_session(settings, kernel)
    try:
        result = asyncio.run(session.execute(command_line(command)))
    finally:
        session.close()

    _print_result(result, as_json)
    if result.error:
        raise typer.Exit(code=1)


@app.command()
def repl(
    manifest: Path = ManifestArg,
    context: Optional[Path] = ContextOpt,
    config: Optional[Path] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
) -> None:
    """Read commands line by line until ``exit`` or end of input."""
    settings, kernel = _bootstrap(manifest, context, config, log_level)
    session = _open_session(settings, kernel)
    prompt = kernel.contract.prompt

    async def _loop() -> None:
        while True:
            try:
                line = input(prompt)
            except (EOFError, KeyboardInterrupt):
                typer.echo("")
                return
            if not line.strip():
                continue
            result = await session.execute(line)
            _print_result(result, as_json=False)
            if result.exit:
                return

    try:
        asyncio.run(_loop())
    finally:
        session.close()


@app.command("commands")
def list_commands(manifest: Path = ManifestArg) -> None:
    """List the commands a manifest declares."""
    try:
        contract = KernelContext.from_settings(load_settings(manifest_path=manifest)).contract
    except (ConfigError, ManifestLoadError) as exc:
        raise_exit(str(exc), BOOTSTRAP_EXIT_CODE)

    for spec in contract.commands:
        typer.echo(f"{spec.name}{params_signature(spec)} - {spec.description}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
