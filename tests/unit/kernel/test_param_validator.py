"""Parameter contract tests: fallbacks, coercion, unions and constraints."""

import base64

import pytest

from contractkernel.kernel.executor.command_contract import ParamSpec
from contractkernel.kernel.executor.param_validator import ParamValidator, constraint_schema


def params(**specs: dict) -> dict[str, ParamSpec]:
    return {name: ParamSpec.model_validate(spec) for name, spec in specs.items()}


@pytest.fixture
def validator() -> ParamValidator:
    return ParamValidator()


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestPresence:
    """Absent values: runtime fallback, default, required."""

    def test_missing_required_parameter(self, validator: ParamValidator) -> None:
        outcome = validator.validate({}, params(name={"type": "string", "required": True}))

        assert not outcome.is_valid
        assert outcome.errors == ["Missing required parameter: name"]

    def test_runtime_fallback_from_state(self, validator: ParamValidator) -> None:
        spec = params(file={"type": "string", "required": True, "runtimeFallback": "corpus"})

        outcome = validator.validate({}, spec, {"corpus": "moby.txt"})

        assert outcome.is_valid
        assert outcome.args == {"file": "moby.txt"}

    def test_fallback_wins_over_default(self, validator: ParamValidator) -> None:
        spec = params(file={"type": "string", "default": "a.txt", "runtimeFallback": "corpus"})

        outcome = validator.validate({}, spec, {"corpus": "b.txt"})

        assert outcome.args == {"file": "b.txt"}

    def test_default_used_when_state_lacks_fallback(self, validator: ParamValidator) -> None:
        spec = params(file={"type": "string", "default": "a.txt", "runtimeFallback": "corpus"})

        outcome = validator.validate({}, spec, {"corpus": None})

        assert outcome.args == {"file": "a.txt"}

    def test_supplied_value_wins(self, validator: ParamValidator) -> None:
        spec = params(file={"type": "string", "runtimeFallback": "corpus"})

        outcome = validator.validate({"file": "c.txt"}, spec, {"corpus": "b.txt"})

        assert outcome.args == {"file": "c.txt"}

    def test_optional_absent_stays_absent(self, validator: ParamValidator) -> None:
        outcome = validator.validate({}, params(limit={"type": "integer"}))

        assert outcome.is_valid
        assert outcome.args == {}

    def test_undeclared_argument_reported(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"speed": 3}, params(limit={"type": "integer"}))

        assert outcome.errors == ["Unknown parameter: speed"]


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestCoercion:
    """Type checks and string coercion per primitive type."""

    def test_integer_from_string(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"n": "12"}, params(n={"type": "integer"}))

        assert outcome.args == {"n": 12}

    def test_integer_rejects_fraction(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"n": "1.5"}, params(n={"type": "integer"}))

        assert outcome.errors == ["Parameter n must be of type: integer"]

    def test_number_from_string(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"x": "0.25"}, params(x={"type": "number"}))

        assert outcome.args == {"x": 0.25}

    def test_boolean_literal_strings(self, validator: ParamValidator) -> None:
        spec = params(flag={"type": "boolean"})

        assert validator.validate({"flag": "true"}, spec).args == {"flag": True}
        assert validator.validate({"flag": "FALSE"}, spec).args == {"flag": False}
        assert not validator.validate({"flag": "yes"}, spec).is_valid

    def test_boolean_is_not_a_number(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"n": True}, params(n={"type": "integer"}))

        assert not outcome.is_valid

    def test_array_from_json_string(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"items": "[1, 2, 3]"}, params(items={"type": "array"}))

        assert outcome.args == {"items": [1, 2, 3]}

    def test_array_rejects_object_json(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"items": '{"a": 1}'}, params(items={"type": "array"}))

        assert outcome.errors == ["Parameter items must be of type: array"]

    def test_object_from_json_string(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"opts": '{"a": 1}'}, params(opts={"type": "object"}))

        assert outcome.args == {"opts": {"a": 1}}

    def test_buffer_from_data_url(self, validator: ParamValidator) -> None:
        payload = base64.b64encode(b"hello").decode()

        outcome = validator.validate(
            {"blob": f"data:text/plain;base64,{payload}"}, params(blob={"type": "buffer"})
        )

        assert outcome.args == {"blob": b"hello"}

    def test_string_accepts_numbers(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"label": 42}, params(label={"type": "string"}))

        assert outcome.args == {"label": "42"}

    def test_any_accepts_everything(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"v": {"deep": [1]}}, params(v={"type": "any"}))

        assert outcome.args == {"v": {"deep": [1]}}


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestUnionTypes:
    """T1|T2: first matching alternative wins."""

    def test_either_alternative_accepted(self, validator: ParamValidator) -> None:
        spec = params(order={"type": "integer|boolean"})

        assert validator.validate({"order": "3"}, spec).args == {"order": 3}
        assert validator.validate({"order": "true"}, spec).args == {"order": True}

    def test_neither_alternative_rejected_naming_parameter(self, validator: ParamValidator) -> None:
        outcome = validator.validate({"order": "many"}, params(order={"type": "integer|boolean"}))

        assert not outcome.is_valid
        assert outcome.errors == ["Parameter order must be of type: integer|boolean"]

    def test_left_to_right_order(self, validator: ParamValidator) -> None:
        spec = params(v={"type": "string|integer"})

        assert validator.validate({"v": "7"}, spec).args == {"v": "7"}


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestConstraints:
    """min/max, length, pattern and enum, all collected."""

    def test_numeric_bounds(self, validator: ParamValidator) -> None:
        spec = params(top={"type": "integer", "min": 1, "max": 20})

        assert validator.validate({"top": 0}, spec).errors == ["Parameter top must be at least 1"]
        assert validator.validate({"top": 21}, spec).errors == ["Parameter top must be at most 20"]
        assert validator.validate({"top": 20}, spec).is_valid

    def test_string_length_and_pattern(self, validator: ParamValidator) -> None:
        spec = params(
            file={"type": "string", "minLength": 5, "maxLength": 10, "pattern": r"\.txt$"}
        )

        assert validator.validate({"file": "a.md"}, spec).errors == [
            "Parameter file must be at least 5 characters",
            "Parameter file must match pattern \\.txt$",
        ]
        assert validator.validate({"file": "notes.txt"}, spec).is_valid

    def test_bounds_only_apply_to_numbers(self, validator: ParamValidator) -> None:
        spec = params(v={"type": "integer|string", "min": 10, "maxLength": 2})

        assert validator.validate({"v": "abc"}, spec).errors == [
            "Parameter v must be at most 2 characters"
        ]
        assert validator.validate({"v": 50}, spec).is_valid

    def test_enum_membership(self, validator: ParamValidator) -> None:
        spec = params(mode={"type": "enum", "enum": ["fast", "safe"]})

        assert validator.validate({"mode": "fast"}, spec).is_valid
        assert validator.validate({"mode": "slow"}, spec).errors == [
            "Parameter mode must be one of: fast, safe"
        ]

    def test_all_errors_collected(self, validator: ParamValidator) -> None:
        spec = params(
            name={"type": "string", "required": True},
            top={"type": "integer", "min": 1},
            mode={"type": "string", "enum": ["fast"]},
        )

        outcome = validator.validate({"top": 0, "mode": "slow"}, spec)

        assert outcome.errors == [
            "Missing required parameter: name",
            "Parameter top must be at least 1",
            "Parameter mode must be one of: fast",
        ]

    def test_constraint_schema_only_carries_declared_keywords(self) -> None:
        spec = ParamSpec.model_validate({"type": "string", "maxLength": 3})

        assert constraint_schema(spec) == {"maxLength": 3}
