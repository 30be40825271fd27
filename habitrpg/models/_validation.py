"""Payload validation for documents read back from storage or a remote."""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields
from datetime import date
from numbers import Real
from typing import Any, ClassVar, Collection, Mapping, MutableMapping, Sequence


class ModelValidationError(ValueError):
    """Raised when a payload does not satisfy a model's requirements."""

    def __init__(self, model: type[Any], errors: Sequence[str]) -> None:
        self.model = model
        self.errors = list(errors)
        message = ", ".join(self.errors) if self.errors else "invalid payload"
        super().__init__(f"{model.__name__} validation failed: {message}")


@dataclass(frozen=True)
class FieldSpec:
    expected: Any
    description: str
    required: bool = True
    allow_none: bool = False


@dataclass(frozen=True)
class SequenceSpec:
    item: Any
    allow_empty: bool = True


@dataclass(frozen=True)
class MappingSpec:
    key: Any
    value: Any
    allow_empty: bool = True


@dataclass(frozen=True)
class ChoiceSpec:
    """Accept one of a fixed set of string values (enum values included)."""

    choices: Collection[str]


@dataclass(frozen=True)
class RangeSpec:
    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_date_key(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _describe_expected(expected: Any) -> str:
    if isinstance(expected, FieldSpec):
        return expected.description
    if isinstance(expected, SequenceSpec):
        return f"sequence of {_describe_expected(expected.item)}"
    if isinstance(expected, MappingSpec):
        key_desc = _describe_expected(expected.key)
        value_desc = _describe_expected(expected.value)
        return f"mapping of {key_desc} to {value_desc}"
    if isinstance(expected, ChoiceSpec):
        return "one of " + ", ".join(sorted(str(choice) for choice in expected.choices))
    if isinstance(expected, RangeSpec):
        kind = "integer" if expected.integer else "number"
        return f"{kind} between {expected.minimum} and {expected.maximum}"
    if callable(expected) and not isinstance(expected, type):
        return "valid value"
    if isinstance(expected, tuple):
        return " or ".join(_describe_expected(part) for part in expected)
    if isinstance(expected, type):
        return expected.__name__
    return str(expected)


def _matches_type(value: Any, expected: Any) -> bool:
    if expected is Any:
        return True
    if isinstance(expected, FieldSpec):
        return _matches_type(value, expected.expected)
    if isinstance(expected, SequenceSpec):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return False
        if not expected.allow_empty and not value:
            return False
        return all(_matches_type(item, expected.item) for item in value)
    if isinstance(expected, MappingSpec):
        if not isinstance(value, Mapping):
            return False
        if not expected.allow_empty and not value:
            return False
        return all(
            _matches_type(key, expected.key) and _matches_type(item, expected.value)
            for key, item in value.items()
        )
    if isinstance(expected, ChoiceSpec):
        return isinstance(value, str) and value in expected.choices
    if isinstance(expected, RangeSpec):
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if expected.integer and not isinstance(value, int):
            return False
        if expected.minimum is not None and value < expected.minimum:
            return False
        if expected.maximum is not None and value > expected.maximum:
            return False
        return True
    if isinstance(expected, tuple):
        return any(_matches_type(value, part) for part in expected)
    if isinstance(expected, type):
        if expected is str:
            return isinstance(value, str)
        if expected is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected is float:
            return isinstance(value, Real) and not isinstance(value, bool)
        if expected is bool:
            return isinstance(value, bool)
        return isinstance(value, expected)
    if callable(expected):
        try:
            return bool(expected(value))
        except (TypeError, ValueError):
            return False
    return True


class ModelValidator:
    """Base class for model payload validators."""

    model: ClassVar[type[Any]]
    fields: ClassVar[Mapping[str, FieldSpec]]

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ModelValidationError(
                cls.model,
                ["Payload must be a mapping of field names to values"],
            )

        errors: list[str] = []
        normalized: dict[str, Any] = {}

        for name, spec in cls.fields.items():
            if name not in data:
                if spec.required:
                    errors.append(f"Missing required field '{name}' ({spec.description})")
                continue

            value = data[name]
            if value is None:
                if spec.allow_none:
                    normalized[name] = None
                else:
                    errors.append(f"Field '{name}' cannot be null")
                continue

            if not _matches_type(value, spec.expected):
                expected_desc = spec.description or _describe_expected(spec.expected)
                errors.append(
                    f"Field '{name}' expected {expected_desc}, received {type(value).__name__}"
                )
                continue

            normalized[name] = value

        if not errors:
            errors.extend(cls.check(normalized))
        if errors:
            raise ModelValidationError(cls.model, errors)

        for key, value in data.items():
            if key not in cls.fields:
                normalized[key] = value

        return normalized

    @classmethod
    def check(cls, normalized: Mapping[str, Any]) -> list[str]:
        """Cross-field rules; runs only once every field passed."""

        return []


def validate_dataclass_payload(cls: type[Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate payload for a dataclass if a validator is registered."""

    validator: type[ModelValidator] | None = getattr(cls, "validator", None)
    if validator is None:
        if isinstance(data, MutableMapping):
            return dict(data)
        return {key: data[key] for key in data}
    return validator.validate(data)


def load_model(cls: type[Any], data: Mapping[str, Any]) -> Any:
    """Validate ``data`` and build ``cls`` through its ``from_dict`` factory."""

    payload = validate_dataclass_payload(cls, data)
    factory = getattr(cls, "from_dict", None)
    if callable(factory):
        return factory(payload)
    return cls(**payload)


def dataclass_kwargs(cls: type[Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Return the entries of ``data`` that name fields of dataclass ``cls``."""

    names = {item.name for item in dataclass_fields(cls)}
    return {key: value for key, value in data.items() if key in names}
