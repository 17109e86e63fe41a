"""propresolvers/host.py – the Python source tree the pipeline runs against.

A :class:`Compilation` is an immutable snapshot of everything the core
needs: the root identifier (used as the default output namespace), the
primary source units and any referenced sources.  Loading touches the
filesystem; everything downstream of :func:`load_compilation` is pure.

Module names are derived from paths.  When a source root is itself a
package (it holds an ``__init__.py``) its directory name becomes the first
segment of every module below it::

    src/                      -> app.domain.orders   (src/app/domain/orders.py)
    src/app/ (package root)   -> app.domain.orders
"""

from __future__ import annotations

import keyword
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from propresolvers.errors import HostError

logger = logging.getLogger(__name__)

# First line of every artifact we write; such units are never re-indexed.
AUTO_GENERATED_MARKER = "# <auto-generated/>"

PYTHON_SUFFIX = ".py"
DEFAULT_DECLARATION_SUFFIX = ".resolvers"

DEFAULT_EXCLUDED_DIRS: FrozenSet[str] = frozenset({
    "__pycache__",
    "build",
    "dist",
    "node_modules",
    "site-packages",
    "venv",
})


@dataclass(frozen=True)
class SourceUnit:
    """One scoping unit: a Python module or a declaration file."""

    path: str
    module: str
    text: str
    kind: str = "python"  # "python" | "declarations"

    @property
    def is_python(self) -> bool:
        return self.kind == "python"

    @property
    def is_generated(self) -> bool:
        return self.text.lstrip().startswith(AUTO_GENERATED_MARKER)


@dataclass(frozen=True)
class ReferencedSource:
    """A referenced code base whose declarations are also collected."""

    name: str
    units: Tuple[SourceUnit, ...] = ()


@dataclass(frozen=True)
class Compilation:
    """Immutable input snapshot for one generation pass."""

    root_name: Optional[str]
    units: Tuple[SourceUnit, ...] = ()
    references: Tuple[ReferencedSource, ...] = ()

    def top_level_packages(self) -> List[str]:
        """First segments of the primary module names, in first-seen order."""
        seen: List[str] = []
        for unit in sorted(self.units, key=lambda u: u.module):
            head = unit.module.split(".", 1)[0]
            if head and head not in seen:
                seen.append(head)
        return seen


# ===========================================================================
# Configuration
# ===========================================================================

@dataclass
class GeneratorConfig:
    """Settings for one generator run (populated from CLI flags)."""

    sources: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    root_name: Optional[str] = None
    output_namespace: Optional[str] = None
    declaration_suffix: str = DEFAULT_DECLARATION_SUFFIX
    exclude_dirs: FrozenSet[str] = DEFAULT_EXCLUDED_DIRS

    def validate(self) -> List[str]:
        """Return human-readable warnings; an empty list means all good."""
        warnings: List[str] = []
        if not self.sources:
            warnings.append("no source roots configured")
        if self.output_namespace is not None and not is_dotted_identifier(self.output_namespace):
            warnings.append(
                f"output_namespace {self.output_namespace!r} is not a dotted Python identifier"
            )
        if not self.declaration_suffix.startswith("."):
            warnings.append("declaration_suffix should start with '.'")
        overlap = set(self.sources) & set(self.references)
        for path in sorted(overlap):
            warnings.append(f"{path} is listed both as a source and a reference")
        return warnings


def is_dotted_identifier(name: str) -> bool:
    parts = name.split(".")
    return all(p.isidentifier() and not keyword.iskeyword(p) for p in parts)


def sanitize_root_name(name: str) -> Optional[str]:
    """Turn a project/distribution name into a dotted identifier, or None."""
    cleaned = ".".join(
        "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in part)
        for part in name.strip().split(".")
    )
    if cleaned and is_dotted_identifier(cleaned):
        return cleaned
    return None


# ===========================================================================
# Discovery
# ===========================================================================

def module_name_for(root: Path, path: Path, suffix: str) -> str:
    """Dotted module name of *path* below *root*."""
    rel = path.relative_to(root)
    parts = list(rel.parts)
    parts[-1] = parts[-1][: -len(suffix)]
    if parts[-1] == "__init__":
        parts.pop()
    if (root / "__init__.py").exists():
        parts.insert(0, root.name)
    return ".".join(parts)


def discover_units(
    root: Path,
    declaration_suffix: str = DEFAULT_DECLARATION_SUFFIX,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> List[SourceUnit]:
    """Read every Python and declaration file under *root*, sorted by module."""
    if not root.exists():
        raise HostError(f"source root not found: {root}")

    excluded = set(exclude_dirs)
    units: List[SourceUnit] = []

    if root.is_file():
        candidates = [root]
        base = root.parent
    else:
        candidates = []
        base = root
        for dirpath, dirnames, filenames in os.walk(root):
            # Prune in place; sorted for a stable walk.
            dirnames[:] = sorted(
                d for d in dirnames if d not in excluded and not d.startswith(".")
            )
            for name in sorted(filenames):
                candidates.append(Path(dirpath) / name)

    for path in candidates:
        if path.name.endswith(PYTHON_SUFFIX):
            kind, suffix = "python", PYTHON_SUFFIX
        elif path.name.endswith(declaration_suffix):
            kind, suffix = "declarations", declaration_suffix
        else:
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise HostError(f"cannot read {path}: {exc}") from exc
        units.append(
            SourceUnit(
                path=str(path),
                module=module_name_for(base, path, suffix),
                text=text,
                kind=kind,
            )
        )

    units.sort(key=lambda u: (u.module, u.kind, u.path))
    logger.debug("Discovered %d unit(s) under %s", len(units), root)
    return units


def default_root_name(sources: Sequence[str]) -> Optional[str]:
    """Name of the first source root that is itself a package."""
    for raw in sources:
        root = Path(raw)
        if root.is_dir() and (root / "__init__.py").exists():
            return sanitize_root_name(root.resolve().name)
    return None


def load_compilation(config: GeneratorConfig) -> Compilation:
    """Build a :class:`Compilation` from the roots named in *config*."""
    units: List[SourceUnit] = []
    for raw in config.sources:
        units.extend(
            discover_units(Path(raw), config.declaration_suffix, config.exclude_dirs)
        )
    units.sort(key=lambda u: (u.module, u.kind, u.path))

    references: List[ReferencedSource] = []
    for raw in config.references:
        ref_units = discover_units(Path(raw), config.declaration_suffix, config.exclude_dirs)
        references.append(ReferencedSource(name=Path(raw).name, units=tuple(ref_units)))

    if config.root_name is not None:
        root_name = sanitize_root_name(config.root_name)
        if root_name is None:
            logger.warning("Ignoring unusable root name %r", config.root_name)
    else:
        root_name = default_root_name(config.sources)

    logger.info(
        "Loaded compilation %s: %d unit(s), %d reference(s)",
        root_name or "<unnamed>", len(units), len(references),
    )
    return Compilation(root_name=root_name, units=tuple(units), references=tuple(references))
