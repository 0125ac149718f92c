"""Configuration resolution.

Merges config file values, CLI flags, interactive answers and computed
defaults into a validated, read-only ``GenerationContext``.
"""

from .context import GenerationContext
from .resolver import compute_defaults, derive_urls, resolve
from .schema import EnumField, FlagField, SystemSchema, TextField, default_schema, load_schema

__all__ = [
    "GenerationContext",
    "resolve",
    "compute_defaults",
    "derive_urls",
    "SystemSchema",
    "TextField",
    "EnumField",
    "FlagField",
    "default_schema",
    "load_schema",
]
