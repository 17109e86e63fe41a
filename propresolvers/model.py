"""propresolvers/model.py – immutable records flowing through the pipeline.

Every record is a frozen dataclass.  Nothing here is mutated after
construction; each generation pass rebuilds them from the current
compilation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from propresolvers.errors import SourceSpan


def casefold_key(name: str) -> str:
    """Case-insensitive key used wherever property names are compared."""
    return name.casefold()


@dataclass(frozen=True)
class PropertyDescriptor:
    """A readable public property on a type."""

    name: str
    nullable: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("PropertyDescriptor.name must be non-empty")


@dataclass(frozen=True)
class TypeDescriptor:
    """A concrete (non-parameterized) class found in the catalog.

    ``qualified_name`` is ``module.Outer.Inner``; ``attribute_path`` is the
    part after the module (``Outer.Inner``).  ``namespace`` is the dotted
    module path used for include/exclude prefix filtering.
    """

    qualified_name: str
    namespace: str
    module: str
    attribute_path: str
    properties: Tuple[PropertyDescriptor, ...] = ()
    site: SourceSpan = field(default_factory=SourceSpan, compare=False)

    def find_properties(self, name: str) -> Tuple[PropertyDescriptor, ...]:
        """All properties whose name matches *name* case-insensitively."""
        key = casefold_key(name)
        return tuple(p for p in self.properties if casefold_key(p.name) == key)


@dataclass(frozen=True)
class ResolverSpecification:
    """A declared request to generate a resolver for one property name."""

    property_name: str
    include_namespaces: Tuple[str, ...] = ()
    exclude_namespaces: Tuple[str, ...] = ()
    site: SourceSpan = field(default_factory=SourceSpan, compare=False)

    def __post_init__(self) -> None:
        if not self.property_name:
            raise ValueError("ResolverSpecification.property_name must be non-empty")
        # Accept any sequence at construction, store tuples.
        object.__setattr__(self, "include_namespaces", tuple(self.include_namespaces))
        object.__setattr__(self, "exclude_namespaces", tuple(self.exclude_namespaces))

    @property
    def key(self) -> str:
        return casefold_key(self.property_name)

    @property
    def artifact_name(self) -> str:
        return f"{self.property_name}Resolver"

    @property
    def method_name(self) -> str:
        return f"Get{self.property_name}"


@dataclass(frozen=True)
class DuplicateKeyGroup:
    """All specification occurrences sharing one case-insensitive key."""

    key: str
    occurrences: Tuple[ResolverSpecification, ...]

    @property
    def first(self) -> ResolverSpecification:
        return self.occurrences[0]

    @property
    def duplicates(self) -> Tuple[ResolverSpecification, ...]:
        return self.occurrences[1:]

    @property
    def has_duplicates(self) -> bool:
        return len(self.occurrences) > 1


@dataclass(frozen=True)
class DispatchEntry:
    """One (type, property, nullability) triple in a generated artifact."""

    type_name: str
    module: str
    attribute_path: str
    property_name: str
    nullable: bool


@dataclass(frozen=True)
class GeneratedArtifact:
    """One emitted dispatch unit and its rendered Python source."""

    artifact_name: str
    method_name: str
    namespace: str
    property_name: str
    entries: Tuple[DispatchEntry, ...]
    code: str = field(default="", repr=False)

    @property
    def file_name(self) -> str:
        return f"{self.artifact_name}.py"

    @property
    def relative_path(self) -> str:
        """Path of the artifact module relative to the output directory."""
        return "/".join(self.namespace.split(".") + [self.file_name])
