"""
procgate.functions.params

Request parameter-bag validation against a function's parameter specs.

Responsibilities:
- Enforce required flags and coerce values to the declared data type (pydantic).
- Apply the small rule language stored on each parameter (`min:3`, `in:a,b`, ...).
- Fill defaults for absent optional parameters and drop undeclared keys.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import Json, StrictStr, TypeAdapter, ValidationError

from procgate.errors import ErrorKind
from procgate.functions.definitions import FunctionDefinition, ParameterSpec, ParameterType
from procgate.results import Ok, Result, err

# Accepted as no-ops: the required flag and nullability live on the ParameterSpec.
PASSTHROUGH_RULES = frozenset({"required", "nullable", "sometimes"})
KNOWN_RULES = frozenset({"min", "max", "between", "in", "not_in", "regex"}) | PASSTHROUGH_RULES

_ADAPTERS: dict[str, TypeAdapter[Any]] = {
    ParameterType.string: TypeAdapter(StrictStr),
    ParameterType.integer: TypeAdapter(int),
    ParameterType.float: TypeAdapter(float),
    ParameterType.boolean: TypeAdapter(bool),
    ParameterType.date: TypeAdapter(date),
    ParameterType.datetime: TypeAdapter(datetime),
    ParameterType.json: TypeAdapter(Json[Any]),
    ParameterType.array: TypeAdapter(list[Any] | dict[str, Any]),
}


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    args: tuple[str, ...] = ()


def split_rules(raw: tuple[str, ...] | list[str]) -> list[str]:
    out: list[str] = []
    for item in raw:
        # Pipe-joined strings ("min:1|max:5") are stored by some admin clients.
        out.extend(part for part in str(item).split("|") if part)
    return out


def parse_rule(raw: str) -> Rule:
    """
    Parse one rule string. Raises ValueError for unknown rules or malformed arguments.
    """
    name, _, arg_str = raw.partition(":")
    name = name.strip()
    if name not in KNOWN_RULES:
        raise ValueError(f"unknown validation rule '{name}'")
    if name in PASSTHROUGH_RULES:
        return Rule(name=name)
    if name == "regex":
        if not arg_str:
            raise ValueError("regex rule requires a pattern")
        try:
            re.compile(_strip_delimiters(arg_str))
        except re.error as e:
            raise ValueError(f"invalid regex pattern: {e}") from e
        return Rule(name=name, args=(arg_str,))

    args = tuple(a.strip() for a in arg_str.split(",")) if arg_str else ()
    if name in ("min", "max"):
        if len(args) != 1:
            raise ValueError(f"{name} rule requires exactly one argument")
        float(args[0])
    elif name == "between":
        if len(args) != 2:
            raise ValueError("between rule requires two arguments")
        float(args[0])
        float(args[1])
    elif not args:
        raise ValueError(f"{name} rule requires at least one value")
    return Rule(name=name, args=args)


def _strip_delimiters(pattern: str) -> str:
    # Accept "/^[a-z]+$/" as well as a bare pattern.
    if len(pattern) >= 2 and pattern.startswith("/") and pattern.rfind("/") > 0:
        return pattern[1 : pattern.rfind("/")]
    return pattern


def _measure(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (str, list, dict)):
        return float(len(value))
    raise TypeError(type(value).__name__)


def _apply_rule(rule: Rule, value: Any, raw: Any, name: str) -> str | None:
    if rule.name in PASSTHROUGH_RULES:
        return None
    if rule.name == "regex":
        if not isinstance(raw, str) or re.search(_strip_delimiters(rule.args[0]), raw) is None:
            return f"The {name} format is invalid."
        return None
    if rule.name in ("in", "not_in"):
        present = str(value).lower() if isinstance(value, bool) else str(value)
        inside = present in rule.args
        if rule.name == "in" and not inside:
            return f"The selected {name} is invalid."
        if rule.name == "not_in" and inside:
            return f"The selected {name} is invalid."
        return None
    try:
        size = _measure(value)
    except TypeError:
        return f"The {name} field cannot be size-checked."
    if rule.name == "min" and size < float(rule.args[0]):
        return f"The {name} field must be at least {rule.args[0]}."
    if rule.name == "max" and size > float(rule.args[0]):
        return f"The {name} field must not be greater than {rule.args[0]}."
    if rule.name == "between" and not (float(rule.args[0]) <= size <= float(rule.args[1])):
        return f"The {name} field must be between {rule.args[0]} and {rule.args[1]}."
    return None


def coerce(spec: ParameterSpec, value: Any) -> Any:
    """
    Convert `value` to the spec's data type. Raises pydantic.ValidationError on mismatch.
    """
    if spec.data_type == ParameterType.json:
        # Downstream receives JSON text; structured input is serialized, strings must parse.
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        _ADAPTERS[ParameterType.json].validate_python(value)
        return value
    if spec.data_type == ParameterType.array and isinstance(value, str):
        value = json.loads(value)
    return _ADAPTERS[spec.data_type].validate_python(value)


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def validate_params(
    definition: FunctionDefinition, params: dict[str, Any]
) -> Result[dict[str, Any]]:
    """
    Validate a request's parameter bag; every field error is reported, not just the first.
    """
    errors: dict[str, list[str]] = {}
    validated: dict[str, Any] = {}

    for spec in sorted(definition.parameters, key=lambda p: p.position):
        raw = params.get(spec.name)
        if _missing(raw):
            if spec.is_required:
                errors.setdefault(spec.name, []).append(f"The {spec.name} field is required.")
            elif spec.default_value is not None:
                try:
                    validated[spec.name] = coerce(spec, spec.default_value)
                except (ValidationError, ValueError) as e:
                    errors.setdefault(spec.name, []).append(f"Invalid default value: {e}")
            continue

        try:
            value = coerce(spec, raw)
        except (ValidationError, ValueError):
            errors.setdefault(spec.name, []).append(
                f"The {spec.name} field must be of type {spec.data_type}."
            )
            continue

        for raw_rule in split_rules(spec.validation_rules):
            try:
                rule = parse_rule(raw_rule)
            except ValueError:
                # Definitions are validated before caching; an unparseable rule here is skipped.
                continue
            message = _apply_rule(rule, value, raw, spec.name)
            if message is not None:
                errors.setdefault(spec.name, []).append(message)

        if spec.name not in errors:
            validated[spec.name] = value

    if errors:
        return err(ErrorKind.validation_error, "Request parameters are invalid", {"fields": errors})
    return Ok(validated)


def to_procedure_args(definition: FunctionDefinition, validated: dict[str, Any]) -> dict[str, Any]:
    """
    Rename validated parameters to the downstream procedure's parameter names, in order.
    """
    return {
        p.sp_parameter_name: validated[p.name]
        for p in sorted(definition.parameters, key=lambda p: p.position)
        if p.name in validated
    }
