"""
Plan models.

A plan is an ordered list of steps; each step names a tool and an input
mapping. Input strings of the form "$name" are references to the stored
result of an earlier step (or a blackboard seed). "$$text" is the literal
string "$text".

Raw JSON input is parsed once into LiteralValue / Reference nodes by parse_input,
so the executor never has to guess whether a string is a reference.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError

REF_SENTINEL = "$"


@dataclass(frozen=True)
class LiteralValue:
    value: Any


@dataclass(frozen=True)
class Reference:
    name: str


# LiteralValue | Reference | nested dict/list of either
InputNode = Union[LiteralValue, Reference, Dict[str, Any], List[Any]]


def parse_value(value: Any) -> InputNode:
    if isinstance(value, str) and value.startswith(REF_SENTINEL):
        if value.startswith(REF_SENTINEL * 2):
            return LiteralValue(value[1:])
        name = value[1:]
        if not name:
            raise ValidationError("Empty reference '$'")
        return Reference(name)
    if isinstance(value, dict):
        return {k: parse_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [parse_value(v) for v in value]
    return LiteralValue(value)


def parse_input(raw: Dict[str, Any]) -> Dict[str, InputNode]:
    return {k: parse_value(v) for k, v in raw.items()}


def references(node: Any) -> List[str]:
    """All referenced names in a parsed input tree, in order."""
    if isinstance(node, Reference):
        return [node.name]
    if isinstance(node, dict):
        return [n for v in node.values() for n in references(v)]
    if isinstance(node, list):
        return [n for v in node for n in references(v)]
    return []


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    tool: str = Field(..., min_length=1)
    input: Dict[str, Any] = Field(default_factory=dict)

    def parsed_input(self) -> Dict[str, InputNode]:
        return parse_input(self.input)

    def references(self) -> List[str]:
        return references(self.parsed_input())


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: str = ""
    steps: List[Step] = Field(default_factory=list)

    @field_validator("steps")
    @classmethod
    def _unique_names(cls, steps: List[Step]):
        seen = set()
        for step in steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name: {step.name}")
            seen.add(step.name)
        return steps

    @model_validator(mode="after")
    def _no_forward_references(self):
        positions = {s.name: i for i, s in enumerate(self.steps)}
        for i, step in enumerate(self.steps):
            try:
                refs = step.references()
            except ValidationError as e:
                raise ValueError(f"Step '{step.name}': {e}")
            for ref in refs:
                if ref in positions and positions[ref] >= i:
                    raise ValueError(
                        f"Step '{step.name}' references '{ref}' which is not an earlier step"
                    )
        return self


def load_plan(payload: Dict[str, Any]) -> Plan:
    """Build a Plan from a JSON document; pydantic errors become ValidationError."""
    try:
        return Plan.model_validate(payload)
    except PydanticValidationError as e:
        messages = "; ".join(err.get("msg", "") for err in e.errors())
        raise ValidationError(f"Invalid plan: {messages}") from e


def check_seed_conflicts(plan: Plan, initial: Optional[Dict[str, Any]]) -> None:
    """Initial values and step results share one store; a step may not reuse a seed name."""
    for step in plan.steps:
        if step.name in (initial or {}):
            raise ValidationError(f"Step name '{step.name}' collides with an initial value")
