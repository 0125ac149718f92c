"""Template discovery.

Templates live under ``<templates_dir>/<category>/<name>/`` and are recognised
by the declaration file at their root.  A template is addressed by its
identity, the ``category/name`` pair.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from project_generator.errors import ManifestNotFoundError


class TemplateRef(BaseModel):
    """Identity of a template: its category and its name."""

    model_config = ConfigDict(frozen=True)

    category: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "TemplateRef":
        """Parse ``"packages/library"`` into a ``TemplateRef``."""
        parts = [p for p in value.strip().strip("/").split("/") if p]
        if len(parts) != 2:
            raise ValueError(f"Template must be given as <category>/<name>, got '{value}'")
        return cls(category=parts[0], name=parts[1])

    def __str__(self) -> str:
        return f"{self.category}/{self.name}"


class TemplateCatalog:
    """Looks templates up below a templates root directory."""

    def __init__(self, root: str | Path, manifest_filename: str = "template_config.json") -> None:
        self.root = Path(root)
        self.manifest_filename = manifest_filename

    def path_for(self, template: TemplateRef) -> Path:
        return self.root / template.category / template.name

    def manifest_path(self, template: TemplateRef) -> Path:
        return self.path_for(template) / self.manifest_filename

    def locate(self, template: TemplateRef) -> Path:
        """Return the template directory, or raise if it declares nothing.

        Raises:
            ManifestNotFoundError: If the directory or its declaration is missing.
        """
        manifest = self.manifest_path(template)
        if not manifest.is_file():
            raise ManifestNotFoundError(
                f"Template '{template}' not found: missing {manifest}"
            )
        return manifest.parent

    def list_templates(self) -> list[TemplateRef]:
        """Every ``category/name`` below the root that ships a declaration."""
        if not self.root.is_dir():
            return []
        found = []
        for manifest in sorted(self.root.glob(f"*/*/{self.manifest_filename}")):
            template_dir = manifest.parent
            found.append(TemplateRef(category=template_dir.parent.name, name=template_dir.name))
        return found
