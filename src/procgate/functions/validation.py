"""
procgate.functions.validation

Structural validation of function definitions before they are cached or executed.

Responsibilities:
- Check the definition header, parameters, response mappings, and error mappings.
- Accumulate every issue (field path + message) instead of stopping at the first.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from procgate.functions.definitions import FunctionDefinition, ParameterType
from procgate.functions.params import coerce, parse_rule, split_rules


@dataclass(frozen=True, slots=True)
class ConfigurationIssue:
    field: str
    message: str
    # Other field paths involved (e.g. the first occurrence of a duplicate).
    related: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"field": self.field, "message": self.message}
        if self.related:
            out["related"] = list(self.related)
        return out


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_definition(definition: FunctionDefinition) -> list[ConfigurationIssue]:
    """
    Return every structural problem with `definition`; an empty list means well-formed.

    Zero parameters, responses or error mappings is valid ("no parameters" /
    default formatting / default error handling).
    """
    issues: list[ConfigurationIssue] = []

    if _blank(definition.name):
        issues.append(ConfigurationIssue("name", "Function name must not be empty"))
    if _blank(definition.identifier):
        issues.append(ConfigurationIssue("identifier", "Function identifier must not be empty"))
    if _blank(definition.stored_procedure):
        issues.append(
            ConfigurationIssue("stored_procedure", "Stored procedure name must not be empty")
        )

    issues.extend(_check_parameters(definition))
    issues.extend(_check_responses(definition))
    issues.extend(_check_error_mappings(definition))
    return issues


def _check_parameters(definition: FunctionDefinition) -> list[ConfigurationIssue]:
    issues: list[ConfigurationIssue] = []
    seen_names: dict[str, int] = {}
    seen_sp_names: dict[str, int] = {}

    for index, param in enumerate(definition.parameters):
        prefix = f"parameters.{index}"

        if _blank(param.name):
            issues.append(ConfigurationIssue(f"{prefix}.name", "Parameter name must not be empty"))
        elif param.name in seen_names:
            first = seen_names[param.name]
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.name",
                    f"Duplicate parameter name '{param.name}' at positions {first} and {index}",
                    related=(f"parameters.{first}.name",),
                )
            )
        else:
            seen_names[param.name] = index

        type_ok = ParameterType.is_valid(param.data_type)
        if not type_ok:
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.data_type", f"Unsupported data type: {param.data_type}"
                )
            )

        if _blank(param.sp_parameter_name):
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.sp_parameter_name",
                    "Stored procedure parameter name must not be empty",
                )
            )
        elif param.sp_parameter_name in seen_sp_names:
            first = seen_sp_names[param.sp_parameter_name]
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.sp_parameter_name",
                    f"Duplicate stored procedure parameter name '{param.sp_parameter_name}' "
                    f"at positions {first} and {index}",
                    related=(f"parameters.{first}.sp_parameter_name",),
                )
            )
        else:
            seen_sp_names[param.sp_parameter_name] = index

        for raw_rule in split_rules(param.validation_rules):
            try:
                parse_rule(raw_rule)
            except ValueError as e:
                issues.append(ConfigurationIssue(f"{prefix}.validation_rules", str(e)))

        if type_ok and param.default_value is not None:
            try:
                coerce(param, param.default_value)
            except (ValidationError, ValueError):
                issues.append(
                    ConfigurationIssue(
                        f"{prefix}.default_value",
                        f"Default value is not a valid {param.data_type}",
                    )
                )

    return issues


def _check_responses(definition: FunctionDefinition) -> list[ConfigurationIssue]:
    issues: list[ConfigurationIssue] = []
    seen: dict[str, int] = {}

    for index, response in enumerate(definition.responses):
        prefix = f"responses.{index}"
        if _blank(response.field_name):
            issues.append(
                ConfigurationIssue(f"{prefix}.field_name", "Response field name must not be empty")
            )
        elif response.field_name in seen:
            first = seen[response.field_name]
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.field_name",
                    f"Duplicate response field name '{response.field_name}'",
                    related=(f"responses.{first}.field_name",),
                )
            )
        else:
            seen[response.field_name] = index

        if _blank(response.sp_column_name):
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.sp_column_name", "Stored procedure column name must not be empty"
                )
            )
        if response.data_type and not ParameterType.is_valid(response.data_type):
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.data_type", f"Unsupported data type: {response.data_type}"
                )
            )
    return issues


def _check_error_mappings(definition: FunctionDefinition) -> list[ConfigurationIssue]:
    issues: list[ConfigurationIssue] = []
    seen: dict[str, int] = {}

    for index, mapping in enumerate(definition.error_mappings):
        prefix = f"error_mappings.{index}"
        if _blank(mapping.error_code):
            issues.append(
                ConfigurationIssue(f"{prefix}.error_code", "Error code must not be empty")
            )
        elif mapping.error_code in seen:
            first = seen[mapping.error_code]
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.error_code",
                    f"Duplicate error code '{mapping.error_code}'",
                    related=(f"error_mappings.{first}.error_code",),
                )
            )
        else:
            seen[mapping.error_code] = index

        if not isinstance(mapping.http_status, int) or not 100 <= mapping.http_status <= 599:
            issues.append(
                ConfigurationIssue(
                    f"{prefix}.http_status", "HTTP status must be between 100 and 599"
                )
            )
        if _blank(mapping.error_message):
            issues.append(
                ConfigurationIssue(f"{prefix}.error_message", "Error message must not be empty")
            )
    return issues


# --- Module Notes -----------------------------------------------------------
# Issues never reach API callers; the resolver logs them and returns CONFIGURATION_INVALID.
