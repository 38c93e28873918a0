"""
procgate.functions.definitions

Immutable, declarative shape of one callable function.

Responsibilities:
- Define `FunctionDefinition` and its parameter / response / error-mapping specs.
- Convert definitions to and from plain dicts for the configuration cache.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class ParameterType(enum.StrEnum):
    string = "string"
    integer = "integer"
    float = "float"
    boolean = "boolean"
    date = "date"
    datetime = "datetime"
    json = "json"
    array = "array"

    @classmethod
    def is_valid(cls, value: str | None) -> bool:
        return value in cls._value2member_map_


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    name: str
    data_type: str
    sp_parameter_name: str
    is_required: bool = False
    default_value: Any = None
    validation_rules: tuple[str, ...] = ()
    position: int = 0


@dataclass(frozen=True, slots=True)
class ResponseMapping:
    field_name: str
    sp_column_name: str
    data_type: str | None = None
    transform_rule: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class ErrorMapping:
    error_code: str
    http_status: int
    error_message: str


@dataclass(frozen=True, slots=True)
class FunctionDefinition:
    id: int
    name: str
    identifier: str
    stored_procedure: str
    is_active: bool = True
    description: str | None = None
    parameters: tuple[ParameterSpec, ...] = ()
    responses: tuple[ResponseMapping, ...] = ()
    error_mappings: tuple[ErrorMapping, ...] = ()

    def error_mapping_for(self, code: str) -> ErrorMapping | None:
        for mapping in self.error_mappings:
            if mapping.error_code == code:
                return mapping
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "identifier": self.identifier,
            "description": self.description,
            "stored_procedure": self.stored_procedure,
            "is_active": self.is_active,
            "parameters": [
                {
                    "name": p.name,
                    "data_type": p.data_type,
                    "sp_parameter_name": p.sp_parameter_name,
                    "is_required": p.is_required,
                    "default_value": p.default_value,
                    "validation_rules": list(p.validation_rules),
                    "position": p.position,
                }
                for p in self.parameters
            ],
            "responses": [
                {
                    "field_name": r.field_name,
                    "sp_column_name": r.sp_column_name,
                    "data_type": r.data_type,
                    "transform_rule": r.transform_rule,
                }
                for r in self.responses
            ],
            "error_mappings": [
                {
                    "error_code": m.error_code,
                    "http_status": m.http_status,
                    "error_message": m.error_message,
                }
                for m in self.error_mappings
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionDefinition:
        return cls(
            id=int(data["id"]),
            name=data["name"],
            identifier=data["identifier"],
            description=data.get("description"),
            stored_procedure=data["stored_procedure"],
            is_active=bool(data.get("is_active", True)),
            parameters=tuple(
                ParameterSpec(
                    name=p["name"],
                    data_type=p["data_type"],
                    sp_parameter_name=p["sp_parameter_name"],
                    is_required=bool(p.get("is_required", False)),
                    default_value=p.get("default_value"),
                    validation_rules=tuple(p.get("validation_rules") or ()),
                    position=int(p.get("position", 0)),
                )
                for p in data.get("parameters", [])
            ),
            responses=tuple(
                ResponseMapping(
                    field_name=r["field_name"],
                    sp_column_name=r["sp_column_name"],
                    data_type=r.get("data_type"),
                    transform_rule=r.get("transform_rule"),
                )
                for r in data.get("responses", [])
            ),
            error_mappings=tuple(
                ErrorMapping(
                    error_code=m["error_code"],
                    http_status=int(m["http_status"]),
                    error_message=m["error_message"],
                )
                for m in data.get("error_mappings", [])
            ),
        )


# --- Module Notes -----------------------------------------------------------
# Definitions are read-only from the gateway's point of view; any edit made by the
# admin backend must be followed by CacheCoordinator.invalidate_function().
