"""Template loading, substitution and writing.

Key pieces:
    TemplateCatalog   - Locates templates below the templates root
    load_manifest     - Parses a template's declaration file
    SourceTree        - In-memory snapshot of a template directory
    apply             - Rewrites a source tree against a resolved context
    commit_atomically - Stages a resolved tree and renames it into place
"""

from .catalog import TemplateCatalog, TemplateRef
from .engine import apply
from .manifest import (
    Placeholder,
    PlaceholderType,
    ReplacementRule,
    TemplateManifest,
    load_manifest,
    parse_manifest,
)
from .templates import TemplateRenderer
from .tree import ResolvedTree, SourceTree, TreeEntry
from .writer import commit_atomically, materialize, scratch_name

__all__ = [
    # Templates
    "TemplateCatalog",
    "TemplateRef",
    # Declarations
    "Placeholder",
    "PlaceholderType",
    "ReplacementRule",
    "TemplateManifest",
    "load_manifest",
    "parse_manifest",
    # Trees
    "SourceTree",
    "ResolvedTree",
    "TreeEntry",
    "apply",
    # Output
    "commit_atomically",
    "materialize",
    "scratch_name",
    "TemplateRenderer",
]
