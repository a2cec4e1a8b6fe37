"""Step metadata model.

Steps describe their inputs (parameters and secrets), the containers they run
in and the resources they write. The same model drives flag registration,
configuration resolution, validation and the generated documentation. It is
loaded from the step-metadata YAML format or built in code by a command
module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

__all__ = [
    "REF_TYPE_SYSTEM_TRUST_SECRET",
    "VAULT_ROOT_PATHS",
    "Alias",
    "Condition",
    "Container",
    "ParameterDependence",
    "ResourceReference",
    "StepData",
    "StepInputs",
    "StepMetadata",
    "StepOutputs",
    "StepParameters",
    "StepResources",
    "StepSecrets",
    "StepSpec",
    "load_step_data",
]

REF_TYPE_SYSTEM_TRUST_SECRET = "systemTrustSecret"
REF_TYPE_VAULT_SECRET = "vaultSecret"
REF_TYPE_VAULT_SECRET_FILE = "vaultSecretFile"

# Vault lookup locations; the placeholders are resolved from step config.
VAULT_ROOT_PATHS = [
    "$(vaultPath)",
    "$(vaultBasePath)/$(vaultPipelineName)",
    "$(vaultBasePath)/GROUP-SECRETS",
]

ALL_SCOPES = ["PARAMETERS", "GENERAL", "STEPS", "STAGES"]


def _list(data: Any) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


@dataclass(slots=True)
class Alias:
    name: str
    deprecated: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alias":
        return cls(name=str(data.get("name", "")), deprecated=bool(data.get("deprecated", False)))


@dataclass(slots=True)
class ParameterDependence:
    """A ``mandatoryIf`` condition: required when ``name`` equals ``value``."""

    name: str
    value: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterDependence":
        return cls(name=str(data.get("name", "")), value=str(data.get("value", "")))


@dataclass(slots=True)
class ResourceReference:
    name: str
    type: str = ""
    param: str = ""
    default: str = ""
    aliases: List[Alias] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceReference":
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type") or ""),
            param=str(data.get("param") or ""),
            default=str(data.get("default") or ""),
            aliases=[Alias.from_dict(a) for a in _list(data.get("aliases"))],
        )


@dataclass(slots=True)
class StepParameters:
    name: str
    type: str = "string"
    description: str = ""
    long_description: str = ""
    scope: List[str] = field(default_factory=list)
    mandatory: bool = False
    mandatory_if: List[ParameterDependence] = field(default_factory=list)
    default: Any = None
    possible_values: Optional[List[Any]] = None
    secret: bool = False
    deprecation_message: str = ""
    aliases: List[Alias] = field(default_factory=list)
    resource_ref: List[ResourceReference] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepParameters":
        possible = data.get("possibleValues")
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type") or "string"),
            description=str(data.get("description") or ""),
            long_description=str(data.get("longDescription") or ""),
            scope=[str(s) for s in _list(data.get("scope"))],
            mandatory=bool(data.get("mandatory", False)),
            mandatory_if=[ParameterDependence.from_dict(d) for d in _list(data.get("mandatoryIf"))],
            default=data.get("default"),
            possible_values=list(possible) if possible is not None else None,
            secret=bool(data.get("secret", False)),
            deprecation_message=str(data.get("deprecationMessage") or ""),
            aliases=[Alias.from_dict(a) for a in _list(data.get("aliases"))],
            resource_ref=[ResourceReference.from_dict(r) for r in _list(data.get("resourceRef"))],
        )

    def get_reference(self, ref_type: str) -> Optional[ResourceReference]:
        """Return the first resource reference of ``ref_type``, if any."""
        for ref in self.resource_ref:
            if ref.type == ref_type:
                return ref
        return None

    def is_mandatory(self) -> bool:
        return self.mandatory or len(self.mandatory_if) > 0


@dataclass(slots=True)
class StepSecrets:
    name: str
    description: str = ""
    type: str = ""
    aliases: List[Alias] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepSecrets":
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or ""),
            aliases=[Alias.from_dict(a) for a in _list(data.get("aliases"))],
        )


@dataclass(slots=True)
class Condition:
    condition_ref: str = ""
    params: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        params = [
            {"name": str(p.get("name", "")), "value": str(p.get("value", ""))}
            for p in _list(data.get("params"))
            if isinstance(p, dict)
        ]
        return cls(condition_ref=str(data.get("conditionRef") or ""), params=params)


@dataclass(slots=True)
class Container:
    name: str = ""
    image: str = ""
    shell: str = ""
    working_dir: str = ""
    conditions: List[Condition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Container":
        return cls(
            name=str(data.get("name") or ""),
            image=str(data.get("image") or ""),
            shell=str(data.get("shell") or ""),
            working_dir=str(data.get("workingDir") or ""),
            conditions=[Condition.from_dict(c) for c in _list(data.get("conditions"))],
        )


@dataclass(slots=True)
class StepResources:
    name: str
    type: str = ""
    parameters: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepResources":
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type") or ""),
            parameters=[dict(p) for p in _list(data.get("params")) if isinstance(p, dict)],
        )


@dataclass(slots=True)
class StepMetadata:
    name: str
    description: str = ""
    long_description: str = ""
    aliases: List[Alias] = field(default_factory=list)


@dataclass(slots=True)
class StepInputs:
    parameters: List[StepParameters] = field(default_factory=list)
    secrets: List[StepSecrets] = field(default_factory=list)


@dataclass(slots=True)
class StepOutputs:
    resources: List[StepResources] = field(default_factory=list)


@dataclass(slots=True)
class StepSpec:
    inputs: StepInputs = field(default_factory=StepInputs)
    containers: List[Container] = field(default_factory=list)
    sidecars: List[Container] = field(default_factory=list)
    outputs: StepOutputs = field(default_factory=StepOutputs)


@dataclass(slots=True)
class StepData:
    metadata: StepMetadata
    spec: StepSpec = field(default_factory=StepSpec)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepData":
        if not isinstance(data, dict):
            raise ValueError("step metadata must be a mapping")
        meta = data.get("metadata") or {}
        spec = data.get("spec") or {}
        inputs = spec.get("inputs") or {}
        outputs = spec.get("outputs") or {}
        return cls(
            metadata=StepMetadata(
                name=str(meta.get("name", "")),
                description=str(meta.get("description") or ""),
                long_description=str(meta.get("longDescription") or ""),
                aliases=[Alias.from_dict(a) for a in _list(meta.get("aliases"))],
            ),
            spec=StepSpec(
                inputs=StepInputs(
                    parameters=[StepParameters.from_dict(p) for p in _list(inputs.get("params"))],
                    secrets=[StepSecrets.from_dict(s) for s in _list(inputs.get("secrets"))],
                ),
                containers=[Container.from_dict(c) for c in _list(spec.get("containers"))],
                sidecars=[Container.from_dict(c) for c in _list(spec.get("sidecars"))],
                outputs=StepOutputs(
                    resources=[StepResources.from_dict(r) for r in _list(outputs.get("resources"))],
                ),
            ),
        )

    @property
    def parameters(self) -> List[StepParameters]:
        return self.spec.inputs.parameters

    def parameter(self, name: str) -> Optional[StepParameters]:
        for param in self.spec.inputs.parameters:
            if param.name == name:
                return param
        return None

    def parameter_names(self) -> List[str]:
        return [param.name for param in self.spec.inputs.parameters]


def load_step_data(path: Path | str) -> StepData:
    """Load step metadata from a YAML file."""

    text = Path(path).read_text(encoding="utf-8")
    return StepData.from_dict(yaml.safe_load(text) or {})
