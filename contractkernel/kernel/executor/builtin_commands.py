"""Built-in commands available in every contract: ``help`` and ``exit``.

A contract command with the same name takes precedence over a built-in.
"""

from typing import Any

from contractkernel.kernel.executor.command_contract import CommandSpec, Contract, ParamSpec
from contractkernel.kernel.executor.results import Result

BUILTIN_SPECS: dict[str, CommandSpec] = {
    "help": CommandSpec(
        name="help",
        description="Show help information",
        parameters={
            # Required so that `help copy` parses CLI-style; the default keeps `help` valid
            "command": ParamSpec(
                type="string",
                required=True,
                default="",
                description="Command to describe",
            )
        },
    ),
    "exit": CommandSpec(name="exit", description="Exit the session"),
}


def find_builtin(name: str) -> CommandSpec | None:
    return BUILTIN_SPECS.get(name.lower())


def params_signature(spec: CommandSpec) -> str:
    """``(src, dst, [mode])`` style signature."""
    required = [name for name, param in spec.parameters.items() if param.required]
    optional = [f"[{name}]" for name, param in spec.parameters.items() if not param.required]
    return f"({', '.join(required + optional)})"


def _constraints(param: ParamSpec) -> str:
    parts = []
    if param.min is not None:
        parts.append(f"min: {param.min:g}")
    if param.max is not None:
        parts.append(f"max: {param.max:g}")
    if param.enum:
        parts.append(f"one of: [{', '.join(str(option) for option in param.enum)}]")
    return f" ({', '.join(parts)})" if parts else ""


def format_general_help(contract: Contract) -> str:
    title = f"{contract.name} - {contract.description}" if contract.description else contract.name
    lines = [title, "=" * max(len(contract.name) + 2, 40), "", "Available commands:"]

    for spec in sorted(contract.commands, key=lambda command: command.name):
        lines.append(f"{spec.name}{params_signature(spec)} - {spec.description}")

    lines += [
        "",
        "help([command]) - Show help information",
        "exit() - Exit the session",
        "",
        "Command syntax:",
        "  Function style: command(param1, param2, key=value)",
        "  Object style:   command({param1: value, key: value})",
        "  CLI style:      command param1 param2 key=value",
        "  Simple style:   command",
    ]
    return "\n".join(lines)


def format_command_help(spec: CommandSpec) -> str:
    lines = [f"{spec.name}{params_signature(spec)}", f"   {spec.description}", ""]

    required = {name: param for name, param in spec.parameters.items() if param.required}
    optional = {name: param for name, param in spec.parameters.items() if not param.required}

    if required:
        lines.append("   Required:")
        for name, param in required.items():
            lines.append(f"       {name} - {param.description}")
        lines.append("")

    if optional:
        lines.append("   Options (key=value):")
        for name, param in optional.items():
            default = f" (default: {param.default})" if param.has_default else ""
            lines.append(
                f"       {name}={param.type}{default}{_constraints(param)} - {param.description}"
            )
        lines.append("")

    if spec.examples:
        lines.append("   Examples:")
        lines.extend(f"       {example}" for example in spec.examples)

    return "\n".join(lines).rstrip()


def run_builtin(name: str, args: dict[str, Any], contract: Contract) -> Result:
    """Execute a built-in command with validated arguments."""
    if name == "exit":
        return Result(output="Goodbye!", exit=True)

    target = args.get("command") or ""
    if not target:
        return Result(output=format_general_help(contract))

    spec = contract.find_command(target) or find_builtin(target)
    if spec is None:
        return Result.failure(f"Unknown command: {target}")
    return Result(output=format_command_help(spec))
