# ============================================================================
# CHECK DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check definitions and per-category parameter schemas
# PURPOSE: Describe a health check independent of how it runs
# CREATED: 19 OCT 2026
# ============================================================================
"""
Check Definition Model

A CheckDefinition names a check, its category and a flat string parameter
map. Each category owns a fixed parameter schema; the map is validated
against it when the definition is constructed, so a definition that exists
is always runnable as far as its parameters go.

    DNS       {"endpoints": "kubernetes.default,example.com"}
    EXTERNAL  {"command": "/bin/check --fast", "env.TARGET": "db"}
"""

import shlex
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from core.contracts import CheckCategory

ENV_PREFIX = "env."


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return value


# ============================================================================
# PARAMETER SCHEMAS
# ============================================================================

class CheckParameters(BaseModel):
    """Base for per-category parameter schemas."""

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def from_map(cls, parameters: Dict[str, str]) -> "CheckParameters":
        return cls.model_validate(parameters)


class ComponentStatusParameters(CheckParameters):
    """Component status checks take no parameters."""


class DaemonSetParameters(CheckParameters):
    pause_image_override: Optional[str] = None


class PodCheckParameters(CheckParameters):
    """Shared by pod restart and pod status checks."""
    namespaces: Tuple[str, ...] = ("kube-system",)

    @field_validator("namespaces", mode="before")
    @classmethod
    def _split_namespaces(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("namespaces")
    @classmethod
    def _require_namespace(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("at least one namespace is required")
        return value


class DNSParameters(CheckParameters):
    endpoints: Tuple[str, ...] = ("kubernetes.default",)

    @field_validator("endpoints", mode="before")
    @classmethod
    def _split_endpoints(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("endpoints")
    @classmethod
    def _require_endpoint(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("at least one endpoint is required")
        return value


class ExternalParameters(CheckParameters):
    """
    External check parameters.

    `command` is shell-split. Keys prefixed with `env.` become environment
    variables of the launched process.
    """
    command: Tuple[str, ...]
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(shlex.split(value))
        return value

    @field_validator("command")
    @classmethod
    def _require_command(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    @classmethod
    def from_map(cls, parameters: Dict[str, str]) -> "ExternalParameters":
        env = {
            key[len(ENV_PREFIX):]: value
            for key, value in parameters.items()
            if key.startswith(ENV_PREFIX)
        }
        rest = {k: v for k, v in parameters.items() if not k.startswith(ENV_PREFIX)}
        return cls.model_validate({**rest, "env": env})


PARAMETER_SCHEMAS: Dict[CheckCategory, Type[CheckParameters]] = {
    CheckCategory.COMPONENT_STATUS: ComponentStatusParameters,
    CheckCategory.DAEMONSET: DaemonSetParameters,
    CheckCategory.POD_RESTART: PodCheckParameters,
    CheckCategory.POD_STATUS: PodCheckParameters,
    CheckCategory.DNS: DNSParameters,
    CheckCategory.EXTERNAL: ExternalParameters,
}


# ============================================================================
# CHECK DEFINITION
# ============================================================================

class CheckDefinition(BaseModel):
    """
    Definition of a single health check.

    Immutable; configuration drift produces a new instance
    (`model_copy(update=...)`) rather than mutating this one.

    Table: khstate.check_definitions (external checks only)
    """

    NAME_PATTERN: ClassVar[str] = r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"

    name: str = Field(..., min_length=1, max_length=253, pattern=NAME_PATTERN)
    category: CheckCategory
    enabled: bool = True
    mandatory: bool = Field(
        default=True,
        description="Failures of mandatory checks make the aggregate status not OK",
    )
    run_interval_seconds: float = Field(default=60.0, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    parameters: Dict[str, str] = Field(default_factory=dict)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "name": "dns-check",
                    "category": "dns",
                    "enabled": True,
                    "parameters": {"endpoints": "kubernetes.default"},
                }
            ]
        },
    }

    @model_validator(mode="after")
    def _validate_parameters(self) -> "CheckDefinition":
        try:
            self.typed_parameters()
        except ValidationError as e:
            raise ValueError(
                f"invalid {self.category.value} parameters: {e.errors(include_url=False)}"
            ) from None
        return self

    def typed_parameters(self) -> CheckParameters:
        """Parse the parameter map with this category's schema."""
        return PARAMETER_SCHEMAS[self.category].from_map(self.parameters)

    @property
    def is_external(self) -> bool:
        return self.category.is_external


__all__ = [
    "CheckParameters",
    "ComponentStatusParameters",
    "DaemonSetParameters",
    "PodCheckParameters",
    "DNSParameters",
    "ExternalParameters",
    "PARAMETER_SCHEMAS",
    "CheckDefinition",
]
