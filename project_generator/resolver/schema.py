"""Versioned schema of the system fields.

The schema is data, not code: it ships as ``system-fields.v1.yaml`` next to
this module and is handed to the resolver explicitly, so several schemas can
coexist in one process.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from project_generator.errors import ConfigError

SCHEMA_PATH = Path(__file__).parent / "system-fields.v1.yaml"


class _FieldBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    required: bool = False
    description: str = ""


class TextField(_FieldBase):
    kind: Literal["text"] = "text"


class EnumField(_FieldBase):
    kind: Literal["enum"] = "enum"
    choices: tuple[str, ...] = Field(min_length=1)


class FlagField(_FieldBase):
    kind: Literal["flag"] = "flag"


FieldSpec = Annotated[Union[TextField, EnumField, FlagField], Field(discriminator="kind")]


class SystemSchema(BaseModel):
    """Ordered description of every system field."""

    model_config = ConfigDict(frozen=True)

    version: int
    fields: tuple[FieldSpec, ...]

    @model_validator(mode="after")
    def _unique_names(self) -> "SystemSchema":
        seen: set[str] = set()
        for spec in self.fields:
            if spec.name in seen:
                raise ValueError(f"duplicate system field '{spec.name}'")
            seen.add(spec.name)
        return self

    @property
    def names(self) -> frozenset[str]:
        return frozenset(spec.name for spec in self.fields)

    def get(self, name: str) -> TextField | EnumField | FlagField | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def __contains__(self, name: object) -> bool:
        return name in self.names


def load_schema(path: str | Path) -> SystemSchema:
    """Parse a system field schema file."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        return SystemSchema.model_validate(data)
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        raise ConfigError(f"Invalid system field schema {path}: {exc}") from exc


@lru_cache(maxsize=1)
def default_schema() -> SystemSchema:
    """The schema shipped with the package (version 1)."""
    return load_schema(SCHEMA_PATH)
