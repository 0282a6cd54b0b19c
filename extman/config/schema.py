"""
Settings Schema.

A SettingField declares one key of the [extman] table: its type, its
default and the constraints the settings need (a lower bound for numbers,
non-empty strings, a fixed set of choices).

Values reach the schema from two places. TOML files give typed values
(where 300 may stand for 300.0), the environment gives strings.
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a field declaration is inconsistent."""

    pass


class ValidationError(ValueError):
    """Raised when a setting value is rejected."""

    pass


@dataclass(frozen=True)
class SettingField:
    """
    One setting.

    Attributes:
        type_: str or float
        default: Default value
        description: Comment written above the key in generated files
        minimum: Lower bound (float fields only)
        required: Reject empty strings
        choices: Allowed values
    """

    type_: type
    default: Any
    description: str = ""
    minimum: float | None = None
    required: bool = False
    choices: tuple[str, ...] | None = None

    def __post_init__(self):
        if self.type_ not in (str, float):
            raise SchemaError(f"Unsupported setting type {self.type_.__name__}")
        if not isinstance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )
        if self.minimum is not None and self.type_ is not float:
            raise SchemaError("minimum only applies to float settings")
        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(f"Default value {self.default!r} not in choices {list(self.choices)}")

    @property
    def constraints(self) -> list[str]:
        """Readable constraints, used for generated comments."""
        found = []
        if self.minimum is not None:
            found.append(f"min: {self.minimum}")
        if self.required:
            found.append("non-empty")
        if self.choices is not None:
            found.append(f"choices: {', '.join(self.choices)}")
        return found

    def check(self, value: Any) -> Any:
        """
        Validate a typed value and return it normalized (int becomes float).

        Raises:
            ValidationError: If the value has the wrong type or breaks a constraint
        """
        if self.type_ is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.minimum is not None and value < self.minimum:
            raise ValidationError(f"Value {value} is less than minimum {self.minimum}")
        if self.required and not value.strip():
            raise ValidationError("Value cannot be empty")
        if self.choices is not None and value not in self.choices:
            raise ValidationError(f"Value {value!r} not in allowed choices {list(self.choices)}")
        return value

    def parse(self, text: str) -> Any:
        """
        Convert an environment string and validate it.

        Raises:
            ValidationError: If the text cannot be converted or is rejected
        """
        if self.type_ is not float:
            return self.check(text)
        try:
            number = float(text)
        except ValueError as e:
            raise ValidationError(f"Cannot convert {text!r} to float") from e
        return self.check(number)


def validate_settings(values: dict[str, Any], schema: dict[str, SettingField]) -> dict[str, Any]:
    """
    Validate a (possibly partial) settings mapping.

    Args:
        values: Key -> typed value
        schema: Key -> SettingField

    Returns:
        The normalized values

    Raises:
        ValidationError: If a key is unknown or a value is rejected
    """
    checked = {}
    for key, value in values.items():
        field = schema.get(key)
        if field is None:
            raise ValidationError(f"Unknown setting: {key}")
        try:
            checked[key] = field.check(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{key}': {e}") from e
    return checked
