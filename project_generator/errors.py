"""Error hierarchy for the project generator.

Every terminal failure of a generation run is a ``GeneratorError`` subclass.
The four families map to distinct process exit codes so callers (and the
CLI) can tell configuration, manifest, substitution and publish failures
apart without parsing messages.
"""

from __future__ import annotations

from pathlib import Path


class GeneratorError(Exception):
    """Base class for all generation failures."""

    exit_code = 1


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(GeneratorError):
    """The merged configuration is invalid; raised before any file I/O."""

    exit_code = 2

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class MissingFieldError(ConfigError):
    """A required field is absent or empty."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Required field '{field}' is missing or empty", field=field)


class InvalidEnumValueError(ConfigError):
    """An enumerated field holds a value outside its legal set."""

    def __init__(self, field: str, value: object, choices: tuple[str, ...]) -> None:
        self.value = value
        self.choices = choices
        super().__init__(
            f"Invalid value {value!r} for '{field}' (allowed: {', '.join(choices)})",
            field=field,
        )


class KeyCollisionError(ConfigError):
    """A template variable reuses the name of a system field."""

    def __init__(self, field: str) -> None:
        super().__init__(
            f"Template variable '{field}' collides with the system field of the same name",
            field=field,
        )


class ListTypeError(ConfigError):
    """A list-typed placeholder was given a scalar, or an empty mandatory list."""


class InvalidValueError(ConfigError):
    """A value has a type the context cannot hold."""


class MissingTokenError(ConfigError):
    """Remote mode was requested without an authentication token."""

    def __init__(self, variable: str) -> None:
        super().__init__(
            f"Remote mode requires an authentication token; set {variable}"
        )


class ConfigFileError(ConfigError):
    """The run configuration file is missing or cannot be parsed."""


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class ManifestError(GeneratorError):
    """The template declaration is missing or malformed."""

    exit_code = 3


class ManifestNotFoundError(ManifestError):
    pass


class MalformedManifestError(ManifestError):
    pass


# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------


class SubstitutionError(GeneratorError):
    """Rewriting the template tree failed for a specific path."""

    exit_code = 4

    def __init__(self, message: str, path: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class UnresolvedPlaceholderError(SubstitutionError):
    """A placeholder token survived substitution."""

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        super().__init__(f"unresolved placeholder '{name}'", path)


class ListExpansionError(SubstitutionError):
    """A list-typed placeholder was used where it cannot be expanded."""

    def __init__(self, name: str, path: str, reason: str) -> None:
        self.name = name
        super().__init__(f"cannot expand list placeholder '{name}': {reason}", path)


class PathCollisionError(SubstitutionError):
    """Two source entries resolved to the same destination path."""


# ---------------------------------------------------------------------------
# Publishing / writing
# ---------------------------------------------------------------------------


class PublishError(GeneratorError):
    """Committing the resolved tree to its destination failed.

    ``workspace`` points at the preserved scratch copy when there is one.
    """

    exit_code = 5

    def __init__(self, message: str, workspace: Path | None = None) -> None:
        self.workspace = workspace
        super().__init__(message)


class WriteError(PublishError):
    """Local staging or the final swap into the destination failed."""


class DestinationExistsError(WriteError):
    def __init__(self, destination: Path) -> None:
        self.destination = destination
        super().__init__(
            f"Destination already exists: {destination} (use --force to replace it)"
        )
