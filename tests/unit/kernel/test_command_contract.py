"""Contract model and manifest loading tests."""

import json
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from contractkernel.kernel.executor.command_contract import CommandSpec, Contract, ParamSpec
from contractkernel.kernel.executor.errors import ErrorCode, ManifestLoadError
from contractkernel.kernel.executor.manifest_loader import contract_from_data, load_manifest


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestContractModel:
    """Invariants enforced when a contract is built."""

    def test_camel_case_manifest_fields(self, contract: Contract) -> None:
        stats = contract.find_command("stats")

        assert stats.command_type == "external-method"
        assert stats.method_name == "word_stats"
        assert stats.parameters["file"].runtime_fallback == "corpus"
        assert contract.state_defaults == {"corpus": None, "model": None}

    def test_find_command_ignores_case(self, contract: Contract) -> None:
        assert contract.find_command("GREET").name == "greet"
        assert contract.find_command("nope") is None

    def test_duplicate_command_names_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Contract.model_validate({"commands": [{"name": "a"}, {"name": "a"}]})

        assert "duplicate command name 'a'" in str(exc_info.value)

    def test_external_method_requires_source_and_method(self) -> None:
        with pytest.raises(ValidationError):
            CommandSpec.model_validate({"name": "x", "commandType": "external-method"})

    def test_external_method_source_must_be_declared(self) -> None:
        data = {
            "sources": {},
            "commands": [
                {
                    "name": "x",
                    "commandType": "external-method",
                    "source": "lib",
                    "methodName": "run",
                }
            ],
        }

        with pytest.raises(ValidationError) as exc_info:
            Contract.model_validate(data)

        assert "undeclared source 'lib'" in str(exc_info.value)

    def test_unknown_parameter_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ParamSpec.model_validate({"type": "integer|date"})

    def test_invalid_pattern_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ParamSpec.model_validate({"type": "string", "pattern": "("})

    def test_union_members_normalized(self) -> None:
        spec = ParamSpec.model_validate({"type": "integer | string"})

        assert spec.types == ["integer", "string"]

    def test_parameter_list_form(self) -> None:
        spec = CommandSpec.model_validate(
            {"name": "copy", "parameters": [{"name": "src", "required": True}]}
        )

        assert spec.required_parameters == ["src"]

    def test_commands_mapping_form(self) -> None:
        contract = Contract.model_validate({"commands": {"greet": {"successOutput": "hi"}}})

        assert contract.command_names() == ["greet"]

    def test_default_tracking(self) -> None:
        assert ParamSpec.model_validate({"default": None}).has_default
        assert not ParamSpec.model_validate({}).has_default


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.deterministic
class TestManifestLoader:
    """JSON/YAML files and manifest directories."""

    def test_load_json_file(self, tmp_path: Path, manifest_data: dict[str, Any]) -> None:
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps(manifest_data))

        contract = load_manifest(path)

        assert contract.name == "textkit"
        assert len(contract.commands) == len(manifest_data["commands"])

    def test_load_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.yaml"
        path.write_text(
            "name: demo\n"
            "commands:\n"
            "  - name: greet\n"
            "    parameters:\n"
            "      name: {type: string, required: true}\n"
            "    successOutput: 'Hello, {{name}}!'\n"
        )

        contract = load_manifest(path)

        assert contract.find_command("greet").success_output == "Hello, {{name}}!"

    def test_load_directory(self, tmp_path: Path) -> None:
        (tmp_path / "contract.json").write_text(json.dumps({"name": "demo", "stateDefaults": {"a": 1}}))
        (tmp_path / "commands.json").write_text(json.dumps({"ping": {"successOutput": "pong"}}))

        contract = load_manifest(tmp_path)

        assert contract.command_names() == ["ping"]
        assert contract.state_defaults == {"a": 1}

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestLoadError) as exc_info:
            load_manifest(tmp_path / "absent.json")

        assert exc_info.value.code == ErrorCode.MANIFEST_INVALID

    def test_malformed_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text("{not json")

        with pytest.raises(ManifestLoadError) as exc_info:
            load_manifest(path)

        assert "Malformed manifest" in exc_info.value.message

    def test_invalid_manifest_wrapped(self) -> None:
        with pytest.raises(ManifestLoadError) as exc_info:
            contract_from_data({"commands": [{"name": "a"}, {"name": "a"}]})

        assert "duplicate command name" in exc_info.value.message

    def test_non_object_manifest(self) -> None:
        with pytest.raises(ManifestLoadError):
            contract_from_data(["greet"])
