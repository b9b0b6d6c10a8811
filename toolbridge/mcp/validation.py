"""
Schema validation gate in front of every tool handler.

A tool declares its parameters as a ``ToolParameters`` subclass. The model
is strict, so strings, booleans, lists and objects must arrive with their
JSON type; fields annotated with ``Integer`` or ``Number`` are the only ones
that also accept numeric strings. Validation reports every violated
constraint, not only the first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Strict
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .errors import InvalidParametersError
from .protocol import Violation


def _reject_bool(error_type: str, label: str):
    # Lax numeric parsing would turn true/false into 1/0
    def check(value: Any) -> Any:
        if isinstance(value, bool):
            raise PydanticCustomError(error_type, f"Input should be a valid {label}")
        return value

    return check


#: Explicitly numeric fields. ``"5"`` is coerced to ``5``; booleans are rejected.
Integer = Annotated[int, Strict(False), BeforeValidator(_reject_bool("int_type", "integer"))]
Number = Annotated[float, Strict(False), BeforeValidator(_reject_bool("float_type", "number"))]

#: String field with an email-shape check.
Email = EmailStr

ParamsT = TypeVar("ParamsT", bound=BaseModel)


class ToolParameters(BaseModel):
    """Base class for tool parameter schemas."""

    model_config = ConfigDict(strict=True, extra="ignore")


@dataclass
class ValidationOutcome(Generic[ParamsT]):
    """Either validated params or the full list of violations."""

    params: Optional[ParamsT] = None
    violations: List[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


def parameters_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """Return the JSON schema advertised for ``model`` by discovery."""
    return model.model_json_schema()


def _field_path(loc: tuple) -> str:
    if not loc:
        return "arguments"
    return ".".join(str(part) for part in loc)


def _violations(exc: PydanticValidationError) -> List[Violation]:
    return [
        Violation(
            field=_field_path(error.get("loc", ())),
            message=error.get("msg", "Invalid value"),
            type=error.get("type", "value_error"),
        )
        for error in exc.errors(include_url=False)
    ]


def validate_arguments(model: Type[ParamsT], arguments: Any) -> ValidationOutcome[ParamsT]:
    """
    Validate a raw argument payload against a parameter model.

    Args:
        model: The tool's parameter schema
        arguments: Decoded JSON payload, normally a dict

    Returns:
        ValidationOutcome with ``params`` set on success or ``violations``
        listing every problem found.
    """
    if arguments is None:
        arguments = {}
    try:
        params = model.model_validate(arguments)
    except PydanticValidationError as exc:
        return ValidationOutcome(violations=_violations(exc))
    return ValidationOutcome(params=params)


def validate_or_raise(model: Type[ParamsT], arguments: Any, *, tool: Optional[str] = None) -> ParamsT:
    """Like ``validate_arguments`` but raises ``InvalidParametersError``."""
    outcome = validate_arguments(model, arguments)
    if not outcome.ok:
        raise InvalidParametersError(
            [violation.model_dump() for violation in outcome.violations],
            tool=tool,
        )
    return outcome.params
