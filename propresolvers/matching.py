"""propresolvers/matching.py – select the (type, property) pairs for a resolver.

Namespace filtering is a plain string-prefix test.  There is no segment
boundary check, so an include prefix ``app.dom`` also admits
``app.domain`` and ``app.domino``.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from propresolvers.model import PropertyDescriptor, ResolverSpecification, TypeDescriptor

__all__ = ["Match", "match", "should_include"]

Match = Tuple[TypeDescriptor, PropertyDescriptor]


def should_include(
    namespace: str,
    include: Sequence[str],
    exclude: Sequence[str],
) -> bool:
    """Include filter (empty means unrestricted) AND exclude filter."""
    if include and not any(namespace.startswith(prefix) for prefix in include):
        return False
    return not any(namespace.startswith(prefix) for prefix in exclude)


def match(spec: ResolverSpecification, catalog: Iterable[TypeDescriptor]) -> List[Match]:
    """Matches in catalog order; a type contributes every matching property."""
    found: List[Match] = []
    for type_desc in catalog:
        if not should_include(
            type_desc.namespace, spec.include_namespaces, spec.exclude_namespaces
        ):
            continue
        for prop in type_desc.find_properties(spec.property_name):
            found.append((type_desc, prop))
    return found
