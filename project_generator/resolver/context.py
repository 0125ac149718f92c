"""The merged, validated values that drive one generation run."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Union

from project_generator.errors import KeyCollisionError
from project_generator.scaffolder.catalog import TemplateRef

SystemValue = Union[str, bool]
ExtensionValue = Union[str, bool, tuple[str, ...]]


@dataclass(frozen=True)
class GenerationContext:
    """Read-only result of configuration resolution.

    Both field mappings are wrapped in read-only proxies and list values are
    tuples, so nothing downstream can alter the context.
    """

    template: TemplateRef
    timestamp: datetime
    system_fields: Mapping[str, SystemValue]
    extension_fields: Mapping[str, ExtensionValue]

    def __post_init__(self) -> None:
        overlap = set(self.system_fields) & set(self.extension_fields)
        if overlap:
            raise KeyCollisionError(sorted(overlap)[0])
        object.__setattr__(self, "system_fields", MappingProxyType(dict(self.system_fields)))
        object.__setattr__(
            self, "extension_fields", MappingProxyType(dict(self.extension_fields))
        )

    def __contains__(self, name: object) -> bool:
        return name in self.system_fields or name in self.extension_fields

    def __getitem__(self, name: str) -> SystemValue | ExtensionValue:
        if name in self.system_fields:
            return self.system_fields[name]
        return self.extension_fields[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self[name] if name in self else default

    def as_dict(self) -> dict[str, SystemValue | ExtensionValue]:
        """A fresh merged copy of every value."""
        return {**self.system_fields, **self.extension_fields}

    @property
    def project_name(self) -> str:
        return str(self.system_fields["project_name"])
